"""对外 API 服务模块。

提供简化的函数接口供上层应用（GUI、脚本）调用。
"""

from typing import Optional, Dict, Any

from chat_core.agents.chat_orchestrator import ChatOrchestrator
from chat_core.api.app_state import AppState
from chat_core.config.settings import settings
from chat_core.infrastructure.logging.logger import logger
from chat_core.infrastructure.storage.kv_store import FileKeyValueStore
from chat_core.infrastructure.storage.persistence import PersistenceAdapter
from chat_core.providers import create_provider
from chat_core.providers.completion import CompletionService


_state: Optional[AppState] = None
_orchestrator: Optional[ChatOrchestrator] = None


def get_default_state() -> AppState:
    """获取默认的应用状态（单例），首次调用时从存储加载。"""
    global _state
    if _state is None:
        persistence = PersistenceAdapter(FileKeyValueStore(root=settings.storage_root))
        _state = AppState.load(persistence)
    return _state


def get_default_orchestrator() -> ChatOrchestrator:
    """获取默认的对话编排器（单例）。"""
    global _orchestrator
    if _orchestrator is None:
        state = get_default_state()
        completion = CompletionService(create_provider(), credential=state.credential)
        _orchestrator = ChatOrchestrator(
            state.conversations,
            completion,
            model=lambda: state.selected_model,
        )
    return _orchestrator


def reset_default_app() -> None:
    """丢弃单例，下次调用时重新从存储加载。"""
    global _state, _orchestrator
    _state = None
    _orchestrator = None


def send_message(text: str, conversation_id: Optional[str] = None) -> Dict[str, Any]:
    """向会话发送一条消息，默认发往当前会话。

    Returns:
        包含会话ID、用户消息和模型回复的字典
    """
    state = get_default_state()
    cid = conversation_id or state.current.id
    try:
        conv = get_default_orchestrator().send(cid, text)
    except Exception as e:
        logger.error(f"Chat failed: {e}", extra={"extra": {
            "conversation_id": cid,
            "error": str(e),
        }})
        raise
    messages = conv.messages if conv else []
    return {
        "conversation_id": cid,
        "user_message": text,
        "model_message": messages[-1].text if messages else None,
    }


def list_conversations() -> list[Dict[str, Any]]:
    """列出所有会话。

    Returns:
        会话列表，每项包含 id, name, message_count, current
    """
    state = get_default_state()
    current_id = state.conversations.current_id
    return [
        {
            "id": c.id,
            "name": c.name,
            "message_count": len(c.messages),
            "current": c.id == current_id,
        }
        for c in state.conversations.conversations
    ]


def get_conversation_messages(conversation_id: str) -> list[Dict[str, Any]]:
    """获取会话的所有消息；会话不存在时返回空列表。"""
    conv = get_default_state().conversations.get(conversation_id)
    if conv is None:
        return []
    return [{"index": i, "role": m.role, "text": m.text} for i, m in enumerate(conv.messages)]
