"""Chat Core 顶层包。

该包提供多会话 Gemini 聊天客户端的核心实现，
包括配置加载、领域模型、会话与预设存储、持久化、
Provider 适配、对话编排、导出以及桌面界面等能力。
"""

from chat_core.agents.chat_orchestrator import ChatOrchestrator
from chat_core.api.app_state import AppState

__all__ = ["AppState", "ChatOrchestrator"]
