"""外部服务适配器：商品目录、账户创建，以及它们共用的 bearer token 来源。"""

from chat_core.services.accounts import AccountAdapter, generate_account_id
from chat_core.services.auth import ClientCredentialsTokenProvider, StaticTokenProvider, TokenProvider
from chat_core.services.catalog import CatalogAdapter, LanguageModelCatalog, ProductCatalog

__all__ = [
    "AccountAdapter",
    "generate_account_id",
    "TokenProvider",
    "StaticTokenProvider",
    "ClientCredentialsTokenProvider",
    "ProductCatalog",
    "CatalogAdapter",
    "LanguageModelCatalog",
]
