"""Provider 与模型配置。

本模块将「逻辑模型名」与「具体厂商模型名」解耦：

- 逻辑名（logical_name）：在代码里使用的统一名称，例如 "chat"。
- provider_model：厂商实际提供的模型 ID（Azure 上即部署名），例如 "gpt-4o-mini"。
"""

from dataclasses import dataclass
from typing import Dict, Mapping, Optional


@dataclass
class ModelConfig:
    """单个逻辑模型的配置。"""

    logical_name: str
    provider_model: str
    max_tokens: Optional[int] = None
    default_temperature: Optional[float] = None


@dataclass
class ProviderConfig:
    """某个 Provider 的整体配置。"""

    name: str
    base_url: str
    models: Dict[str, ModelConfig]

    def model(self, logical_name: str, override: Optional[str] = None) -> ModelConfig:
        """查找逻辑模型；override 用于替换厂商模型名（部署名）。"""

        try:
            cfg = self.models[logical_name]
        except KeyError:
            raise KeyError(f"Unknown model {logical_name!r} for provider {self.name!r}")
        if override and override != cfg.provider_model:
            return ModelConfig(
                logical_name=cfg.logical_name,
                provider_model=override,
                max_tokens=cfg.max_tokens,
                default_temperature=cfg.default_temperature,
            )
        return cfg


# Azure OpenAI：base_url 取自 OPENAI_ENDPOINT，这里仅作占位
AZURE_CONFIG = ProviderConfig(
    name="azure",
    base_url="",
    models={
        "chat": ModelConfig(logical_name="chat", provider_model="gpt-4o-mini"),
    },
)

OPENAI_CONFIG = ProviderConfig(
    name="openai",
    base_url="https://api.openai.com/v1",
    models={
        "chat": ModelConfig(logical_name="chat", provider_model="gpt-4o-mini"),
    },
)


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "azure": AZURE_CONFIG,
    "openai": OPENAI_CONFIG,
}


def get_provider_config(name: str) -> ProviderConfig:
    """根据名称获取 ProviderConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown provider: {name!r}")
