"""商品目录来源。

- CatalogAdapter: 调用目录 HTTP API，返回原始响应文本（不解析）。
- LanguageModelCatalog: 目录 API 未启用时，由语言模型生成商品数据。

两者都满足 ``ProductCatalog.fetch_products`` 约定。
"""

from typing import Optional, Protocol

import httpx

from chat_core.config.settings import CatalogSettings
from chat_core.domain.exceptions import ApiError, NetworkError, UpstreamTimeoutError
from chat_core.infrastructure.resilience import call_with_timeout
from chat_core.infrastructure.telemetry import TelemetryService, dependency, guarded
from chat_core.services.auth import TokenProvider

CATALOG_IDS = "4"


class ProductCatalog(Protocol):
    async def fetch_products(
        self,
        product_id: Optional[str] = None,
        sku_id: Optional[str] = None,
        market: Optional[str] = None,
        language: Optional[str] = None,
    ) -> str:
        ...


class CatalogAdapter:
    def __init__(
        self,
        catalog: CatalogSettings,
        token_provider: TokenProvider,
        telemetry: Optional[TelemetryService] = None,
    ):
        self._catalog = catalog
        self._token_provider = token_provider
        self._telemetry = guarded(telemetry)

    def product_url(self, product_id: str, sku_id: str) -> str:
        return f"{self._catalog.api_url}{product_id}/{sku_id}"

    async def fetch_products(
        self,
        product_id: Optional[str] = None,
        sku_id: Optional[str] = None,
        market: Optional[str] = None,
        language: Optional[str] = None,
    ) -> str:
        """拉取一个商品/SKU 的详情；未指定的参数使用配置中的默认值。"""

        product_id = product_id or self._catalog.product_id
        sku_id = sku_id or self._catalog.sku_id
        params = {
            "market": market or self._catalog.market,
            "languages": language or self._catalog.language,
            "catalogIds": CATALOG_IDS,
        }
        url = self.product_url(product_id, sku_id)
        token = await self._token_provider.get_token()

        with dependency(self._telemetry, "HTTP", "GET Catalog Product", url) as call:
            try:
                async with httpx.AsyncClient(timeout=self._catalog.timeout, trust_env=False) as client:
                    resp = await call_with_timeout(
                        client.get(url, params=params, headers={"Authorization": f"Bearer {token}"}),
                        self._catalog.timeout,
                        url,
                    )
            except httpx.TimeoutException as e:
                raise UpstreamTimeoutError(code="TIMEOUT", message=str(e) or "catalog request timed out", http_status=504)
            except httpx.RequestError as e:
                raise NetworkError(code="NETWORK_ERROR", message=str(e))
            call.success = resp.is_success
            if not resp.is_success:
                raise ApiError(
                    code="CATALOG_ERROR",
                    message=f"Catalog returned {resp.status_code}: {resp.text[:200]}",
                    http_status=resp.status_code,
                    product_id=product_id,
                    sku_id=sku_id,
                )
            return resp.text


class LanguageModelCatalog:
    """用商品提示词代替目录 API，参数只用于满足同一调用约定。"""

    def __init__(self, classifier):
        self._classifier = classifier

    async def fetch_products(
        self,
        product_id: Optional[str] = None,
        sku_id: Optional[str] = None,
        market: Optional[str] = None,
        language: Optional[str] = None,
    ) -> str:
        return await self._classifier.generate_product_details()
