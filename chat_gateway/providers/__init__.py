"""补全服务 Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护 Provider 与模型配置 (registry)。
- 提供具体实现 (openai_client: OpenAI 兼容端点与 Azure OpenAI)。
"""

from typing import Literal, Optional

from chat_gateway.config.settings import settings
from chat_gateway.providers.base import ProviderClient
from chat_gateway.providers.openai_client import AzureOpenAIClient, OpenAIClient


def create_provider(name: Optional[str] = None) -> ProviderClient:
    """根据名称创建 Provider 实例，默认取配置中的 completion_provider。"""

    provider_name = (name or getattr(settings, "completion_provider", "azure")).lower()
    if provider_name == "openai":
        return OpenAIClient(settings)
    return AzureOpenAIClient(settings)


DefaultProviderName = Literal["azure", "openai"]
