"""持久化适配层。

把会话列表、当前会话 id、预设列表、选中模型这四个槽位以 JSON 形式写入
键值存储；API 密钥单独以原始文本保存。

load/save 都是“全函数”：存储或编解码失败只记录日志，load 返回默认值，
绝不把异常抛给调用方。
"""

import json
import logging
from typing import Any, Dict, List, Optional

from chat_core.domain.exceptions import BusinessError
from chat_core.domain.models import Conversation, Message, SystemInstructionPreset
from chat_core.infrastructure.logging.logger import logger
from chat_core.infrastructure.storage.kv_store import KeyValueStorage


CONVERSATIONS_KEY = "gemini_conversations"
CURRENT_CONVERSATION_ID_KEY = "gemini_current_conversation_id"
SYSTEM_INSTRUCTION_PRESETS_KEY = "gemini_system_instruction_presets"
SELECTED_MODEL_KEY = "gemini_selected_model"
API_KEY_KEY = "gemini_api_key"

_MISSING = object()


class PersistenceAdapter:
    def __init__(self, storage: KeyValueStorage):
        self._storage = storage

    # ---- 通用 JSON 槽位 ----

    def load(self, key: str, default: Any = None) -> Any:
        raw = self._read(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError as e:
            self._log(logging.WARNING, "Failed to decode slot", key=key, error=str(e))
            return default

    def save(self, key: str, value: Any) -> None:
        try:
            raw = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            self._log(logging.ERROR, "Failed to encode slot", key=key, error=str(e))
            return
        try:
            self._storage.set(key, raw)
        except BusinessError as e:
            self._log(logging.ERROR, "Failed to write slot", key=key, code=e.code, error=e.message)

    # ---- 会话 ----

    def load_conversations(self) -> Optional[List[Conversation]]:
        """返回已保存的会话；槽位不存在或无法解析时返回 None。"""
        data = self.load(CONVERSATIONS_KEY, _MISSING)
        if data is _MISSING:
            return None
        if not isinstance(data, list):
            self._log(logging.WARNING, "Conversation slot is not a list", key=CONVERSATIONS_KEY)
            return None
        items: List[Conversation] = []
        seen = set()
        for entry in data:
            try:
                conv = self._to_conversation(entry)
            except ValueError as e:
                self._log(logging.WARNING, "Skipped malformed conversation", error=str(e))
                continue
            if conv.id in seen:
                self._log(logging.WARNING, "Skipped duplicate conversation", conversation_id=conv.id)
                continue
            seen.add(conv.id)
            items.append(conv)
        return items

    def save_conversations(self, conversations: List[Conversation]) -> None:
        self.save(CONVERSATIONS_KEY, [self._conversation_to_dict(c) for c in conversations])

    def load_current_id(self) -> Optional[str]:
        value = self.load(CURRENT_CONVERSATION_ID_KEY)
        return value if isinstance(value, str) else None

    def save_current_id(self, conversation_id: Optional[str]) -> None:
        if conversation_id:
            self.save(CURRENT_CONVERSATION_ID_KEY, conversation_id)

    # ---- 预设 ----

    def load_presets(self) -> List[SystemInstructionPreset]:
        data = self.load(SYSTEM_INSTRUCTION_PRESETS_KEY, [])
        if not isinstance(data, list):
            return []
        items: List[SystemInstructionPreset] = []
        for entry in data:
            if not isinstance(entry, dict) or not _is_text(entry.get("name")) or not _is_text(entry.get("instruction")):
                self._log(logging.WARNING, "Skipped malformed preset", entry=repr(entry)[:64])
                continue
            items.append(SystemInstructionPreset(name=entry["name"], instruction=entry["instruction"]))
        return items

    def save_presets(self, presets: List[SystemInstructionPreset]) -> None:
        self.save(
            SYSTEM_INSTRUCTION_PRESETS_KEY,
            [{"name": p.name, "instruction": p.instruction} for p in presets],
        )

    # ---- 模型与密钥 ----

    def load_selected_model(self, default: str) -> str:
        value = self.load(SELECTED_MODEL_KEY)
        return value if isinstance(value, str) and value else default

    def save_selected_model(self, model: str) -> None:
        self.save(SELECTED_MODEL_KEY, model)

    def load_credential(self) -> str:
        return self._read(API_KEY_KEY) or ""

    def save_credential(self, api_key: str) -> None:
        try:
            self._storage.set(API_KEY_KEY, api_key)
        except BusinessError as e:
            self._log(logging.ERROR, "Failed to write credential", code=e.code, error=e.message)

    # ---- 内部 ----

    def _read(self, key: str) -> Optional[str]:
        try:
            return self._storage.get(key)
        except BusinessError as e:
            self._log(logging.WARNING, "Failed to read slot", key=key, code=e.code, error=e.message)
            return None

    @staticmethod
    def _conversation_to_dict(conv: Conversation) -> Dict[str, Any]:
        return {
            "id": conv.id,
            "name": conv.name,
            "messages": [{"role": m.role, "text": m.text} for m in conv.messages],
            "systemInstruction": conv.system_instruction,
        }

    @staticmethod
    def _to_conversation(data: Any) -> Conversation:
        """解码一个会话条目；类型不符时抛出 ValueError，由调用方跳过该条目。

        name / systemInstruction / text 缺省或为 null 时按空串处理，
        其他非字符串类型一律视为损坏。
        """
        if not isinstance(data, dict):
            raise ValueError(f"Conversation entry is not an object: {type(data).__name__}")
        conv_id = data.get("id")
        if not isinstance(conv_id, str) or not conv_id:
            raise ValueError(f"Invalid conversation id: {conv_id!r}")
        raw_messages = data.get("messages")
        if raw_messages is None:
            raw_messages = []
        if not isinstance(raw_messages, list):
            raise ValueError(f"Messages of {conv_id} is not a list")
        messages = []
        for m in raw_messages:
            if not isinstance(m, dict):
                raise ValueError(f"Message of {conv_id} is not an object")
            role = m.get("role")
            if role not in ("user", "model"):
                raise ValueError(f"Unknown message role: {role!r}")
            messages.append(Message(role=role, text=_text_field(m, "text")))
        return Conversation(
            id=conv_id,
            name=_text_field(data, "name"),
            messages=messages,
            system_instruction=_text_field(data, "systemInstruction"),
        )

    @staticmethod
    def _log(level: int, message: str, **fields: Any) -> None:
        logger.log(level, message, extra={"extra": fields})


def _is_text(value: Any) -> bool:
    return isinstance(value, str)


def _text_field(data: Dict[str, Any], field: str) -> str:
    value = data.get(field)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"Field {field!r} is not a string: {type(value).__name__}")
    return value
