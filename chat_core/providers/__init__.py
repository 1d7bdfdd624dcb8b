"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护 Provider 与模型配置 (registry)。
- 提供各厂商的具体实现 (azure_openai_client、openai_client)。
"""

from typing import Optional

from chat_core.config.settings import settings
from chat_core.domain.exceptions import ValidationError
from chat_core.providers.base import ProviderClient
from chat_core.providers.azure_openai_client import AzureOpenAIClient
from chat_core.providers.openai_client import OpenAIClient


def create_provider(name: Optional[str] = None, cfg=None) -> ProviderClient:
    """根据名称创建 Provider 实例，默认取配置中的 provider。"""

    cfg = cfg or settings
    provider_name = (name or getattr(cfg, "default_provider", "azure_openai")).lower()
    if provider_name == "openai":
        return OpenAIClient(cfg)
    if provider_name == "azure_openai":
        return AzureOpenAIClient(cfg)
    raise ValidationError(code="UNKNOWN_PROVIDER", message=f"Unknown provider {provider_name!r}")
