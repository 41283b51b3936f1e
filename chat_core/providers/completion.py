"""补全调用边界。

CompletionService 把“消息列表 + 系统指令 + 模型 ID”变成一段回复文本。
它永远不抛异常：缺少密钥、空响应和调用失败都会被转换成带标记的占位文本，
调用方可以把它当作全函数使用。
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from chat_core.config.settings import settings
from chat_core.domain.exceptions import BusinessError
from chat_core.domain.models import ChatRequest, Message
from chat_core.infrastructure.logging.logger import logger
from chat_core.providers.base import ProviderClient


MISSING_API_KEY_REPLY = "⚠️ API 密钥未设置。"
EMPTY_REPLY = "⚠️ 响应为空。"
ERROR_REPLY_PREFIX = "⚠️ 错误: "
UNKNOWN_ERROR_REPLY = "⚠️ 发生未知错误。"


class CompletionService:
    def __init__(
        self,
        provider_client: ProviderClient,
        credential: Optional[Callable[[], Optional[str]]] = None,
        cfg=settings,
    ):
        self._provider_client = provider_client
        self._credential = credential
        self._settings = cfg

    def __call__(self, messages: List[Message], system_instruction: str, model: str) -> str:
        return self.complete(messages, system_instruction, model)

    def complete(self, messages: List[Message], system_instruction: str, model: str) -> str:
        log_ctx: Dict[str, Any] = {
            "trace_id": f"tr-{uuid4().hex}",
            "provider": getattr(self._provider_client, "name", "unknown"),
            "model": model,
        }
        api_key = self._resolve_api_key()
        if not api_key:
            self._log(logging.WARNING, "Missing API key", log_ctx)
            return MISSING_API_KEY_REPLY

        req = ChatRequest(model=model, messages=list(messages), system_instruction=system_instruction or "")
        start_time = time.time()
        self._log(logging.INFO, "Calling provider", log_ctx, message_count=len(req.messages))
        try:
            result = self._provider_client.generate(req, api_key=api_key)
        except BusinessError as e:
            self._log(logging.ERROR, "Provider call failed", log_ctx, code=e.code, error=e.message)
            return f"{ERROR_REPLY_PREFIX}{e.message}"
        except Exception as e:
            logger.exception("Unexpected provider failure", extra={"extra": log_ctx})
            detail = str(e)
            return f"{ERROR_REPLY_PREFIX}{detail}" if detail else UNKNOWN_ERROR_REPLY

        if result.usage:
            self._log(
                logging.INFO,
                "Token usage",
                log_ctx,
                prompt_tokens=result.usage.prompt_tokens,
                completion_tokens=result.usage.completion_tokens,
                total_tokens=result.usage.total_tokens,
            )
        self._log(
            logging.INFO,
            "Provider call completed",
            log_ctx,
            elapsed_seconds=round(time.time() - start_time, 2),
            finish_reason=result.finish_reason,
        )
        if not result.text:
            return EMPTY_REPLY
        return result.text

    def _resolve_api_key(self) -> Optional[str]:
        stored = self._credential() if self._credential else None
        return (stored or "").strip() or getattr(self._settings, "gemini_api_key", None)

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
