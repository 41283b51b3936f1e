"""会话存储。

ConversationStore 持有全部会话和“当前会话”指针，并提供所有变更操作。
每次变更都以“按 id 整体替换会话对象”的方式完成，然后通知 on_change 监听器
（AppState 用它把状态写入持久化层）。

不变量：
- 会话 id 在存储内唯一；
- 存储非空时，current_id 一定指向其中一个会话。
"""

import threading
from dataclasses import replace
from typing import Callable, Iterable, List, Optional
from uuid import uuid4

from .exceptions import ValidationError
from .models import Conversation, Message


ChangeListener = Callable[["ConversationStore"], None]


class ConversationStore:
    def __init__(
        self,
        conversations: Optional[Iterable[Conversation]] = None,
        current_id: Optional[str] = None,
        on_change: Optional[ChangeListener] = None,
    ):
        self._conversations: List[Conversation] = list(conversations or [])
        self._current_id = current_id
        self._on_change = on_change
        # UI 线程与发送线程都会提交变更，锁只保证列表替换不丢更新
        self._lock = threading.RLock()
        if self._current_id is not None and self.get(self._current_id) is None:
            self._current_id = self._conversations[0].id if self._conversations else None

    # ---- 查询 ----

    @property
    def conversations(self) -> List[Conversation]:
        return list(self._conversations)

    @property
    def current_id(self) -> Optional[str]:
        return self._current_id

    @property
    def current(self) -> Optional[Conversation]:
        if self._current_id is None:
            return None
        return self.get(self._current_id)

    def get(self, conversation_id: str) -> Optional[Conversation]:
        for conv in self._conversations:
            if conv.id == conversation_id:
                return conv
        return None

    def __len__(self) -> int:
        return len(self._conversations)

    def __contains__(self, conversation_id: object) -> bool:
        return any(c.id == conversation_id for c in self._conversations)

    def set_listener(self, on_change: Optional[ChangeListener]) -> None:
        self._on_change = on_change

    # ---- 会话级操作 ----

    def create(self) -> Conversation:
        """创建新会话并设为当前会话。"""
        with self._lock:
            existing = {c.id for c in self._conversations}
            cid = str(uuid4())
            while cid in existing:
                cid = str(uuid4())
            conv = Conversation(id=cid, name=f"Conversation {len(self._conversations) + 1}")
            self._conversations = [*self._conversations, conv]
            self._current_id = cid
            self._notify()
            return conv

    def ensure_current(self) -> Conversation:
        """保证存在当前会话：必要时回退到第一个会话，或新建一个。"""
        with self._lock:
            conv = self.current
            if conv is not None:
                return conv
            if self._conversations:
                self._current_id = self._conversations[0].id
                self._notify()
                return self._conversations[0]
            return self.create()

    def switch_to(self, conversation_id: str) -> None:
        with self._lock:
            if conversation_id not in self or conversation_id == self._current_id:
                return
            self._current_id = conversation_id
            self._notify()

    def rename(self, conversation_id: str, name: str) -> Optional[Conversation]:
        return self._update(conversation_id, name=name)

    def delete(self, conversation_id: str) -> None:
        """删除会话。

        删除的若是当前会话，当前指针移到剩余的第一个会话；
        没有剩余会话时新建一个，保证 current_id 始终可解析。
        """
        with self._lock:
            if conversation_id not in self:
                return
            self._conversations = [c for c in self._conversations if c.id != conversation_id]
            if self._current_id == conversation_id:
                if self._conversations:
                    self._current_id = self._conversations[0].id
                else:
                    self._current_id = None
                    self.create()
                    return
            self._notify()

    def clear(self, conversation_id: str) -> Optional[Conversation]:
        return self._update(conversation_id, messages=[])

    def set_system_instruction(self, conversation_id: str, text: str) -> Optional[Conversation]:
        return self._update(conversation_id, system_instruction=text)

    # ---- 消息级操作 ----

    def append_user_message(self, conversation_id: str, text: str) -> Optional[Conversation]:
        return self._append(conversation_id, Message(role="user", text=text))

    def append_model_message(self, conversation_id: str, text: str) -> Optional[Conversation]:
        return self._append(conversation_id, Message(role="model", text=text))

    def set_messages(self, conversation_id: str, messages: Iterable[Message]) -> Optional[Conversation]:
        """整体替换消息列表（快照提交，后提交者覆盖先提交者）。"""
        return self._update(conversation_id, messages=list(messages))

    def replace_messages_from(
        self, conversation_id: str, index: int, new_tail: Iterable[Message]
    ) -> Optional[Conversation]:
        """截断到 index 之前，并用 new_tail 作为新的后缀。

        index 可以等于消息数（相当于追加）。这是存储层的通用接口，供脚本和
        测试直接调用；ChatOrchestrator 的重发/编辑先在锁外等待回复，再用
        set_messages 一次性提交整段快照，因此不经过这里。
        """
        with self._lock:
            conv = self.get(conversation_id)
            if conv is None:
                return None
            if index < 0 or index > len(conv.messages):
                raise ValidationError(code="MESSAGE_NOT_FOUND", message=f"message index out of range: {index}")
            return self._update(conversation_id, messages=[*conv.messages[:index], *new_tail])

    def edit_message(self, conversation_id: str, index: int, text: str) -> Optional[Conversation]:
        """只替换 index 处消息的文本，不截断，其余消息保持不变。"""
        with self._lock:
            conv = self.get(conversation_id)
            if conv is None:
                return None
            if not 0 <= index < len(conv.messages):
                raise ValidationError(code="MESSAGE_NOT_FOUND", message=f"message index out of range: {index}")
            messages = list(conv.messages)
            messages[index] = replace(messages[index], text=text)
            return self._update(conversation_id, messages=messages)

    # ---- 内部 ----

    def _append(self, conversation_id: str, message: Message) -> Optional[Conversation]:
        with self._lock:
            conv = self.get(conversation_id)
            if conv is None:
                return None
            return self._update(conversation_id, messages=[*conv.messages, message])

    def _update(self, conversation_id: str, **changes) -> Optional[Conversation]:
        with self._lock:
            updated: Optional[Conversation] = None
            items: List[Conversation] = []
            for conv in self._conversations:
                if conv.id == conversation_id:
                    updated = replace(conv, **changes)
                    items.append(updated)
                else:
                    items.append(conv)
            if updated is None:
                return None
            self._conversations = items
            self._notify()
            return updated

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self)
