"""统一的会话与请求数据模型。

本模块定义了客户端内部共享的标准数据结构：

- Message: 一条对话消息（user/model）。
- Conversation: 一个带名称、消息列表和系统指令的会话。
- SystemInstructionPreset: 可复用的命名系统指令。
- ChatRequest / ChatResult: 与 Provider 之间交换的请求与响应。

Provider 适配器（如 GeminiClient）只依赖这些模型，
并负责在各自的 API JSON 和这些模型之间做转换。
"""

from dataclasses import dataclass, field
from typing import Literal, Optional, List


# 消息角色类型（与 Gemini contents[].role 字段对应）
Role = Literal["user", "model"]


@dataclass(frozen=True)
class Message:
    """一条对话消息。

    创建后不可变；编辑时由 ConversationStore 用新的 Message 替换原位置。
    """

    role: Role
    text: str


@dataclass
class Conversation:
    """一个会话。

    - id: 创建时分配的 uuid 字符串，进程生命周期内唯一。
    - name: 显示名称，默认 "Conversation N"。
    - messages: 按插入顺序排列的消息列表。
    - system_instruction: 本会话每次请求都会附带的系统指令。
    """

    id: str
    name: str
    messages: List[Message] = field(default_factory=list)
    system_instruction: str = ""


@dataclass(frozen=True)
class SystemInstructionPreset:
    """命名的系统指令预设，name 在 PresetStore 内唯一。"""

    name: str
    instruction: str


@dataclass
class ChatRequest:
    """一次完整的生成请求。

    CompletionService 根据会话构造 ChatRequest，再交给具体 ProviderClient。
    """

    model: str  # 模型 ID，如 "gemini-2.5-flash"
    messages: List[Message]
    system_instruction: str = ""
    temperature: Optional[float] = None
    max_output_tokens: Optional[int] = None


@dataclass
class ChatUsage:
    """Provider 返回的 token 统计信息（统一格式）。"""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class ChatResult:
    """一次生成调用的最终结果。

    - text: 候选回答的文本；模型没有返回任何文本时为 None。
    - finish_reason: 结束原因（如 "STOP"、"SAFETY"）。
    - usage: 可选的 token 使用统计。
    - raw: 原始响应 JSON，用于调试或日志记录。
    """

    model: str
    text: Optional[str]
    finish_reason: Optional[str] = None
    usage: Optional[ChatUsage] = None
    raw: Optional[dict] = None
