"""Provider 抽象接口。

上层 CompletionService 不直接依赖具体厂商的 HTTP 细节，而是依赖此协议：

- 每个厂商实现一个 ProviderClient（如 GeminiClient）。
- 负责：将 ChatRequest 转成具体 API 请求，并把响应 JSON 解析为 ChatResult。
"""

from typing import Optional, Protocol
from chat_core.domain.models import ChatRequest, ChatResult


class ProviderClient(Protocol):
    """LLM Provider 客户端协议。

    实现者需要提供：
    - name: Provider 名称，用于日志。
    - generate(req, api_key): 执行一次非流式生成调用，返回统一的 ChatResult。
      失败时抛出 domain.exceptions 中的 BusinessError 子类。
    """

    name: str

    def generate(self, req: ChatRequest, api_key: Optional[str] = None) -> ChatResult:
        ...
