"""Provider 与模型配置。

集中登记客户端可选的 Gemini 模型及其默认生成参数。
选中模型本身是自由字符串：不在登记表里的模型 ID 也会原样发送，
只是使用 DEFAULT_MODEL_CONFIG 的默认参数。
"""

from dataclasses import dataclass
from typing import Dict, List


@dataclass
class ModelConfig:
    """单个模型的配置。"""

    name: str
    max_output_tokens: int
    default_temperature: float


@dataclass
class ProviderConfig:
    """某个 Provider 的整体配置。"""

    name: str
    base_url: str
    models: Dict[str, ModelConfig]


GEMINI_CONFIG = ProviderConfig(
    name="gemini",
    base_url="https://generativelanguage.googleapis.com/v1beta",
    models={
        "gemini-2.5-flash": ModelConfig(
            name="gemini-2.5-flash",
            max_output_tokens=65536,
            default_temperature=1.0,
        ),
        "gemini-2.5-pro": ModelConfig(
            name="gemini-2.5-pro",
            max_output_tokens=65536,
            default_temperature=1.0,
        ),
    },
)

DEFAULT_MODEL_CONFIG = ModelConfig(name="", max_output_tokens=8192, default_temperature=1.0)


def available_models() -> List[str]:
    """返回可在界面中选择的模型 ID 列表。"""

    return list(GEMINI_CONFIG.models)


def get_model_config(model: str) -> ModelConfig:
    return GEMINI_CONFIG.models.get(model) or ModelConfig(
        name=model,
        max_output_tokens=DEFAULT_MODEL_CONFIG.max_output_tokens,
        default_temperature=DEFAULT_MODEL_CONFIG.default_temperature,
    )
