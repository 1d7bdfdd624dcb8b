"""Azure OpenAI Provider 适配器。

与 OpenAI 兼容接口的差异：
- URL: {endpoint}/openai/deployments/{deployment}/chat/completions?api-version=...
- 认证: api-key: <key>
- 模型由部署决定，payload 中的 model 字段会被服务端忽略。
"""

from typing import Dict

from chat_core.domain.exceptions import ValidationError
from chat_core.providers.openai_client import OpenAIClient
from chat_core.providers.registry import AZURE_OPENAI_CONFIG, ModelConfig, ProviderConfig


class AzureOpenAIClient(OpenAIClient):
    """Azure OpenAI 客户端实现。"""

    name = "azure_openai"
    config: ProviderConfig = AZURE_OPENAI_CONFIG

    def _check_configured(self) -> None:
        if not getattr(self._settings, "azure_openai_endpoint", None):
            raise ValidationError(code="MISSING_ENDPOINT", message="AZURE_OPENAI_ENDPOINT not set")
        if not getattr(self._settings, "azure_openai_api_key", None):
            raise ValidationError(code="MISSING_API_KEY", message="AZURE_OPENAI_API_KEY not set")

    def _deployment(self, model_cfg: ModelConfig) -> str:
        return getattr(self._settings, "azure_openai_deployment", None) or model_cfg.provider_model

    def _endpoint(self, model_cfg: ModelConfig) -> str:
        endpoint = self._settings.azure_openai_endpoint.rstrip("/")
        api_version = getattr(self._settings, "azure_openai_api_version", None) or "2024-06-01"
        return (
            f"{endpoint}/openai/deployments/{self._deployment(model_cfg)}"
            f"/chat/completions?api-version={api_version}"
        )

    def _headers(self) -> Dict[str, str]:
        return {
            "api-key": self._settings.azure_openai_api_key,
            "Content-Type": "application/json",
        }
