"""Gemini / Generative Language API Provider 适配器。

使用 generateContent 端点：
- URL: {base_url}/models/{model}:generateContent
- 认证: x-goog-api-key: <api_key>

请求体只依赖公共字段：contents / systemInstruction / safetySettings / generationConfig。
"""

from typing import Any, Dict, List, Optional

import httpx

from chat_core.config.settings import settings
from chat_core.domain.exceptions import ApiError, NetworkError, RateLimitError, ValidationError
from chat_core.domain.models import ChatRequest, ChatResult, ChatUsage, Message
from chat_core.providers.registry import GEMINI_CONFIG, ModelConfig, get_model_config


SAFETY_SETTINGS: List[Dict[str, str]] = [
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_NONE"},
]


class GeminiClient:
    """Gemini Provider 客户端实现。"""

    name = "gemini"

    def __init__(self, cfg=settings):
        self._settings = cfg

    def generate(self, req: ChatRequest, api_key: Optional[str] = None) -> ChatResult:
        key = api_key or getattr(self._settings, "gemini_api_key", None)
        if not key:
            raise ValidationError(code="MISSING_API_KEY", message="GEMINI_API_KEY not set")
        if not req.model:
            raise ValidationError(code="MISSING_MODEL", message="model not set")
        model_cfg = get_model_config(req.model)
        payload = self._build_payload(req, model_cfg)
        base = getattr(self._settings, "gemini_base_url", None) or GEMINI_CONFIG.base_url
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(
                    f"{base}/models/{req.model}:generateContent",
                    json=payload,
                    headers={
                        "x-goog-api-key": key,
                        "Content-Type": "application/json",
                    },
                )
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e))
        if resp.status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message="Gemini rate limit", http_status=429)
        if resp.status_code >= 400:
            raise ApiError(code="API_ERROR", message=self._error_message(resp), http_status=resp.status_code)
        data = resp.json()
        return self._parse_response(data, req)

    # ---- 辅助方法 ----

    def _build_payload(self, req: ChatRequest, model_cfg: ModelConfig) -> dict:
        payload: Dict[str, Any] = {
            "contents": [self._message_to_payload(m) for m in req.messages],
            "safetySettings": SAFETY_SETTINGS,
            "generationConfig": {
                "temperature": req.temperature if req.temperature is not None else model_cfg.default_temperature,
                "maxOutputTokens": req.max_output_tokens or model_cfg.max_output_tokens,
            },
        }
        # 空指令时不发送 systemInstruction，API 不接受空的 text part
        if req.system_instruction.strip():
            payload["systemInstruction"] = {"parts": [{"text": req.system_instruction}]}
        return payload

    @staticmethod
    def _message_to_payload(message: Message) -> Dict[str, Any]:
        return {"role": message.role, "parts": [{"text": message.text}]}

    def _parse_response(self, data: dict, req: ChatRequest) -> ChatResult:
        candidates = data.get("candidates") or []
        text: Optional[str] = None
        finish_reason: Optional[str] = None
        if candidates:
            first = candidates[0]
            finish_reason = first.get("finishReason")
            parts = (first.get("content") or {}).get("parts") or []
            pieces = [p["text"] for p in parts if isinstance(p.get("text"), str) and not p.get("thought")]
            if pieces:
                text = "".join(pieces)
        else:
            finish_reason = (data.get("promptFeedback") or {}).get("blockReason")
        usage = None
        usage_raw = data.get("usageMetadata") or {}
        if usage_raw:
            usage = ChatUsage(
                prompt_tokens=usage_raw.get("promptTokenCount", 0),
                completion_tokens=usage_raw.get("candidatesTokenCount", 0),
                total_tokens=usage_raw.get("totalTokenCount", 0),
            )
        return ChatResult(model=req.model, text=text, finish_reason=finish_reason, usage=usage, raw=data)

    @staticmethod
    def _error_message(resp) -> str:
        try:
            body = resp.json()
        except ValueError:
            return resp.text
        if isinstance(body, dict):
            err = body.get("error")
            if isinstance(err, dict) and err.get("message"):
                return str(err["message"])
        return resp.text
