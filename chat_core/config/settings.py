"""配置管理模块。

支持从 .env、config.yaml 以及环境变量加载配置。
各外部适配器不直接读取全局 settings，而是在构造时接收
``CatalogSettings`` / ``AccountSettings`` / ``AuthSettings`` 这类只读值对象。
"""

import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("CHAT_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


@dataclass(frozen=True)
class AuthSettings:
    """OAuth2 client-credentials 参数（获取目录服务的 bearer token）。"""

    tenant_id: str
    client_id: str
    client_secret: Optional[str]
    scope_uri: str
    authority: str = "https://login.microsoftonline.com"
    timeout: float = 30.0


@dataclass(frozen=True)
class CatalogSettings:
    """商品目录服务参数。"""

    api_url: str
    product_id: str
    sku_id: str
    market: str
    language: str
    timeout: float = 30.0


@dataclass(frozen=True)
class AccountSettings:
    """客户账户创建服务参数。"""

    api_url: str
    timeout: float = 30.0


class Settings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- Provider 相关配置 ----
    default_provider: str = Field(
        default="azure_openai",
        description="默认使用的 Provider 名称，例如 azure_openai、openai",
    )
    default_model: str = Field(
        default="chat",
        description="逻辑模型名，由 registry 映射为具体厂商模型",
    )

    # Azure OpenAI
    azure_openai_endpoint: Optional[str] = Field(default=None, description="Azure OpenAI 资源地址")
    azure_openai_api_key: Optional[str] = Field(default=None, description="Azure OpenAI API 密钥")
    azure_openai_deployment: str = Field(default="gpt-4o", description="Azure OpenAI 部署名")
    azure_openai_api_version: str = Field(default="2024-06-01", description="Azure OpenAI API 版本")
    # OpenAI 兼容接口
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API 密钥")
    openai_base_url: str = Field(default="https://api.openai.com/v1", description="OpenAI API 基础URL")

    http_timeout: float = Field(default=30.0, ge=1.0, description="HTTP 超时时间（秒）")
    completion_timeout: float = Field(default=60.0, ge=1.0, description="单次补全调用的总超时（秒）")
    completion_max_attempts: int = Field(
        default=1,
        ge=1,
        le=5,
        description="补全调用最大尝试次数（仅对网络错误/限流重试）",
    )
    history_max_messages: int = Field(
        default=10,
        ge=2,
        le=100,
        description="会话历史上限（含 system 消息），超出后保留 system + 最近 N-1 条",
    )
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    # ---- 商品目录 ----
    catalog_enabled: bool = Field(default=False, description="是否调用目录 API；关闭时由语言模型生成商品列表")
    catalog_api_url: str = Field(
        default="https://frontdoor-displaycatalog-int.bigcatalog.microsoft.com/v8.0/products/",
        description="目录 API 基础URL",
    )
    catalog_product_id: str = Field(default="8MZBMMCK15WZ", description="默认商品 ID")
    catalog_sku_id: str = Field(default="0001", description="默认 SKU ID")
    catalog_market: str = Field(default="US", description="默认市场")
    catalog_language: str = Field(default="en-US", description="默认语言")
    catalog_scope_uri: str = Field(
        default="https://bigcatalog-int.commerce.microsoft.com",
        description="目录服务 token 的 resource/scope",
    )

    # ---- 身份认证 ----
    auth_tenant_id: str = Field(default="", description="AAD 租户 ID")
    auth_client_id: str = Field(default="", description="应用 Client ID")
    auth_client_secret: Optional[str] = Field(default=None, description="应用 Client Secret")
    auth_authority: str = Field(default="https://login.microsoftonline.com", description="认证服务地址")

    # ---- 账户创建 ----
    account_api_url: str = Field(
        default="https://case-ppe-service.azurewebsites.net/api/CustomerAccount/AddCustomerAccountsInfo",
        description="账户创建 API 地址",
    )
    account_auth_token: Optional[str] = Field(default=None, description="账户服务 bearer token")

    # ---- 对话 ----
    strict_dialogue_flow: bool = Field(
        default=True,
        description="是否校验购买流程顺序（拒绝乱序的意图）",
    )

    # ---- 服务 ----
    server_host: str = Field(default="127.0.0.1", description="监听地址")
    server_port: int = Field(default=8000, ge=1, le=65535, description="监听端口")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("azure_openai_api_key", "openai_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )

    def auth_settings(self) -> AuthSettings:
        return AuthSettings(
            tenant_id=self.auth_tenant_id,
            client_id=self.auth_client_id,
            client_secret=self.auth_client_secret,
            scope_uri=self.catalog_scope_uri,
            authority=self.auth_authority,
            timeout=self.http_timeout,
        )

    def catalog_settings(self) -> CatalogSettings:
        return CatalogSettings(
            api_url=self.catalog_api_url,
            product_id=self.catalog_product_id,
            sku_id=self.catalog_sku_id,
            market=self.catalog_market,
            language=self.catalog_language,
            timeout=self.http_timeout,
        )

    def account_settings(self) -> AccountSettings:
        return AccountSettings(api_url=self.account_api_url, timeout=self.http_timeout)


settings = Settings()
