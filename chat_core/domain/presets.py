"""系统指令预设存储。"""

from typing import Callable, Iterable, List, Optional

from .conversation import ConversationStore
from .models import SystemInstructionPreset


class PresetStore:
    def __init__(
        self,
        presets: Optional[Iterable[SystemInstructionPreset]] = None,
        on_change: Optional[Callable[["PresetStore"], None]] = None,
    ):
        self._presets: List[SystemInstructionPreset] = []
        for preset in presets or []:
            self._upsert(preset)
        self._on_change = on_change

    @property
    def presets(self) -> List[SystemInstructionPreset]:
        return list(self._presets)

    def names(self) -> List[str]:
        return [p.name for p in self._presets]

    def get(self, name: str) -> Optional[SystemInstructionPreset]:
        for preset in self._presets:
            if preset.name == name:
                return preset
        return None

    def find_by_instruction(self, instruction: str) -> Optional[str]:
        """返回指令文本与之完全相同的第一个预设名。"""
        for preset in self._presets:
            if preset.instruction == instruction:
                return preset.name
        return None

    def set_listener(self, on_change: Optional[Callable[["PresetStore"], None]]) -> None:
        self._on_change = on_change

    def save(self, name: str, instruction: str) -> SystemInstructionPreset:
        """保存预设；同名时原位覆盖（last write wins）。"""
        preset = SystemInstructionPreset(name=name, instruction=instruction)
        self._upsert(preset)
        self._notify()
        return preset

    def delete(
        self, name: str, conversations: Optional[ConversationStore] = None
    ) -> Optional[SystemInstructionPreset]:
        """删除预设。

        若当前会话的系统指令与被删预设的指令文本完全相同，则把它清空。
        注意这里按文本比较而不是按预设引用：两个预设（或手动输入的指令）
        文本相同时无法区分。
        """
        removed = self.get(name)
        if removed is None:
            return None
        self._presets = [p for p in self._presets if p.name != name]
        self._notify()
        if conversations is not None:
            current = conversations.current
            if current is not None and current.system_instruction == removed.instruction:
                conversations.set_system_instruction(current.id, "")
        return removed

    def _upsert(self, preset: SystemInstructionPreset) -> None:
        for i, existing in enumerate(self._presets):
            if existing.name == preset.name:
                self._presets[i] = preset
                return
        self._presets.append(preset)

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self)
