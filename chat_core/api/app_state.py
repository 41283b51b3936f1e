"""应用状态。

AppState 是显式传递的应用状态对象：它组合 ConversationStore、PresetStore、
选中的模型和 API 密钥，并把每次变更同步写入 PersistenceAdapter。
界面层只通过这里的方法修改状态，不直接持有全局变量。
"""

from pathlib import Path
from typing import Optional

from chat_core.config.settings import settings
from chat_core.domain.conversation import ConversationStore
from chat_core.domain.exceptions import ValidationError
from chat_core.domain.models import Conversation, SystemInstructionPreset
from chat_core.domain.presets import PresetStore
from chat_core.export.markdown import export_conversation
from chat_core.infrastructure.logging.logger import logger
from chat_core.infrastructure.storage.persistence import PersistenceAdapter


class AppState:
    def __init__(
        self,
        persistence: PersistenceAdapter,
        conversations: Optional[ConversationStore] = None,
        presets: Optional[PresetStore] = None,
        selected_model: Optional[str] = None,
    ):
        self._persistence = persistence
        self.conversations = conversations or ConversationStore()
        self.presets = presets or PresetStore()
        self._selected_model = selected_model or settings.default_model
        self.conversations.set_listener(self._persist_conversations)
        self.presets.set_listener(self._persist_presets)

    @classmethod
    def load(cls, persistence: PersistenceAdapter, default_model: Optional[str] = None) -> "AppState":
        """启动时加载全部槽位。

        没有已保存的会话（或读取失败）时自动新建一个会话；
        保存的当前会话 id 无法解析时回退到第一个会话。
        """
        saved = persistence.load_conversations()
        store = ConversationStore(saved or [], persistence.load_current_id() if saved else None)
        state = cls(
            persistence,
            conversations=store,
            presets=PresetStore(persistence.load_presets()),
            selected_model=persistence.load_selected_model(default_model or settings.default_model),
        )
        state.conversations.ensure_current()
        logger.info(
            "Loaded application state",
            extra={"extra": {
                "conversations": len(state.conversations),
                "presets": len(state.presets.presets),
                "model": state.selected_model,
            }},
        )
        return state

    # ---- 会话 ----

    @property
    def current(self) -> Conversation:
        return self.conversations.ensure_current()

    def new_conversation(self) -> Conversation:
        return self.conversations.create()

    def switch_conversation(self, conversation_id: str) -> None:
        self.conversations.switch_to(conversation_id)

    def rename_conversation(self, conversation_id: str, name: str) -> Optional[Conversation]:
        """重命名；名称去掉首尾空白后为空时忽略。"""
        trimmed = (name or "").strip()
        if not trimmed:
            return None
        return self.conversations.rename(conversation_id, trimmed)

    def delete_conversation(self, conversation_id: str) -> None:
        self.conversations.delete(conversation_id)

    def clear_current(self) -> None:
        self.conversations.clear(self.current.id)

    def set_system_instruction(self, text: str) -> None:
        self.conversations.set_system_instruction(self.current.id, text)

    # ---- 预设 ----

    def apply_preset(self, name: Optional[str]) -> None:
        """把预设指令应用到当前会话；未知或空名称会清空指令。"""
        preset = self.presets.get(name) if name else None
        self.set_system_instruction(preset.instruction if preset else "")

    def save_preset(self, name: str) -> SystemInstructionPreset:
        """把当前会话的系统指令保存为预设。"""
        instruction = self.current.system_instruction
        if not name:
            raise ValidationError(code="INVALID_PRESET_NAME", message="preset name is empty")
        if not instruction.strip():
            raise ValidationError(code="EMPTY_INSTRUCTION", message="system instruction is empty")
        return self.presets.save(name, instruction)

    def delete_preset(self, name: str) -> Optional[SystemInstructionPreset]:
        return self.presets.delete(name, self.conversations)

    def current_preset_name(self) -> Optional[str]:
        return self.presets.find_by_instruction(self.current.system_instruction)

    # ---- 模型与密钥 ----

    @property
    def selected_model(self) -> str:
        return self._selected_model

    def set_model(self, model: str) -> None:
        self._selected_model = model
        self._persistence.save_selected_model(model)

    def credential(self) -> str:
        return self._persistence.load_credential()

    def set_credential(self, api_key: str) -> None:
        self._persistence.save_credential(api_key.strip())

    # ---- 导出 ----

    def export_current(self, directory: str | Path | None = None) -> Path:
        path = export_conversation(self.current, directory or settings.export_dir)
        logger.info("Exported conversation", extra={"extra": {"path": str(path)}})
        return path

    # ---- 持久化监听 ----

    def _persist_conversations(self, store: ConversationStore) -> None:
        self._persistence.save_conversations(store.conversations)
        self._persistence.save_current_id(store.current_id)

    def _persist_presets(self, store: PresetStore) -> None:
        self._persistence.save_presets(store.presets)
