"""对话编排核心模块。

把用户提交的一段文本变成一组新的 user/model 消息：
先乐观地提交 user 消息，再调用补全边界，最后把回复（或错误占位文本）
作为 model 消息提交回 ConversationStore。
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Sequence
from uuid import uuid4

from chat_core.domain.conversation import ConversationStore
from chat_core.domain.exceptions import ValidationError
from chat_core.domain.models import Conversation, Message
from chat_core.infrastructure.logging.logger import logger


# (messages, system_instruction, model) -> reply text，约定永不抛异常
Completion = Callable[[List[Message], str, str], str]


class ChatOrchestrator:
    def __init__(
        self,
        store: ConversationStore,
        completion: Completion,
        model: Callable[[], str],
    ):
        self._store = store
        self._completion = completion
        self._model = model
        # 同一会话可能有多个请求在途，按计数维护忙碌标记
        self._busy_counts: Dict[str, int] = {}
        self._busy_lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return bool(self._busy_counts)

    def is_busy(self, conversation_id: Optional[str] = None) -> bool:
        if conversation_id is None:
            return self.busy
        return conversation_id in self._busy_counts

    def send(
        self,
        conversation_id: str,
        text: str,
        base_history: Optional[Sequence[Message]] = None,
    ) -> Optional[Conversation]:
        """发送一条用户消息并提交回复。

        Args:
            conversation_id: 目标会话 ID
            text: 用户输入
            base_history: 作为上下文的历史消息；为 None 时使用会话的完整历史

        Returns:
            提交回复后的会话；会话在请求期间被删除时返回 None
        """
        conv = self._require(conversation_id)
        start_time = time.time()
        log_ctx: Dict[str, Any] = {
            "trace_id": f"tr-{uuid4().hex}",
            "conversation_id": conversation_id,
        }

        history = list(base_history) if base_history is not None else list(conv.messages)
        new_messages = [*history, Message(role="user", text=text)]
        self._store.set_messages(conversation_id, new_messages)
        self._log(logging.INFO, "Stored user message", log_ctx, message_count=len(new_messages))

        self._set_busy(conversation_id, True)
        try:
            model = self._model()
            reply = self._completion(new_messages, conv.system_instruction, model)
            committed = self._store.set_messages(
                conversation_id, [*new_messages, Message(role="model", text=reply)]
            )
        finally:
            self._set_busy(conversation_id, False)

        if committed is None:
            self._log(logging.WARNING, "Conversation removed before reply was committed", log_ctx)
        else:
            self._log(
                logging.INFO,
                "Stored model message",
                log_ctx,
                model=model,
                message_count=len(committed.messages),
                elapsed_seconds=round(time.time() - start_time, 2),
            )
        return committed

    def resend(self, conversation_id: str, index: int) -> Optional[Conversation]:
        """从 index 处的用户消息重新发送，丢弃它之后的所有消息。

        index 不是用户消息时不做任何修改并返回 None。
        """
        conv = self._require(conversation_id)
        if not 0 <= index < len(conv.messages):
            return None
        target = conv.messages[index]
        if target.role != "user":
            return None
        return self.send(conversation_id, target.text, conv.messages[:index])

    def edit_message(self, conversation_id: str, index: int, text: str) -> Optional[Conversation]:
        """编辑一条消息。

        - 用户消息：截断到 index 之前，用新文本重新发送；
        - 模型消息：只替换这一条的文本，不截断。
        """
        conv = self._require(conversation_id)
        if not 0 <= index < len(conv.messages):
            raise ValidationError(code="MESSAGE_NOT_FOUND", message=f"message index out of range: {index}")
        target = conv.messages[index]
        if target.role == "user":
            return self.send(conversation_id, text, conv.messages[:index])
        return self._store.edit_message(conversation_id, index, text)

    def _require(self, conversation_id: str) -> Conversation:
        conv = self._store.get(conversation_id)
        if conv is None:
            raise ValidationError(code="CONVERSATION_NOT_FOUND", message=conversation_id)
        return conv

    def _set_busy(self, conversation_id: str, busy: bool) -> None:
        with self._busy_lock:
            count = self._busy_counts.get(conversation_id, 0) + (1 if busy else -1)
            if count > 0:
                self._busy_counts[conversation_id] = count
            else:
                self._busy_counts.pop(conversation_id, None)

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
