"""客户账户创建。

账户 ID 由客户端生成（``DEM000`` + 5 位数字），随请求一起提交；
服务端返回非 2xx 时视为失败，不把 ID 告诉用户。
"""

import random
from typing import Callable, Optional

import httpx

from chat_core.config.settings import AccountSettings
from chat_core.domain.exceptions import ApiError, NetworkError, UpstreamTimeoutError
from chat_core.infrastructure.logging.logger import logger
from chat_core.infrastructure.resilience import call_with_timeout
from chat_core.infrastructure.telemetry import TelemetryService, dependency, guarded
from chat_core.services.auth import TokenProvider

ACCOUNT_ID_PREFIX = "DEM000"


def generate_account_id() -> str:
    return f"{ACCOUNT_ID_PREFIX}{random.randint(10000, 99999)}"


class AccountAdapter:
    def __init__(
        self,
        accounts: AccountSettings,
        token_provider: TokenProvider,
        telemetry: Optional[TelemetryService] = None,
        id_factory: Callable[[], str] = generate_account_id,
    ):
        self._accounts = accounts
        self._token_provider = token_provider
        self._telemetry = guarded(telemetry)
        self._id_factory = id_factory

    async def create_account(self, customer_name: str, tax_id: str) -> str:
        """提交客户资料并返回新账户 ID。"""

        account_id = self._id_factory()
        payload = {
            "customerAccountId": account_id,
            "customerName": customer_name,
            "taxId": tax_id,
        }
        token = await self._token_provider.get_token()
        url = self._accounts.api_url

        with dependency(self._telemetry, "HTTP", "POST Create Customer Account", url) as call:
            try:
                async with httpx.AsyncClient(timeout=self._accounts.timeout, trust_env=False) as client:
                    resp = await call_with_timeout(
                        client.post(url, json=payload, headers={"Authorization": f"Bearer {token}"}),
                        self._accounts.timeout,
                        url,
                    )
            except httpx.TimeoutException as e:
                raise UpstreamTimeoutError(code="TIMEOUT", message=str(e) or "account request timed out", http_status=504)
            except httpx.RequestError as e:
                raise NetworkError(code="NETWORK_ERROR", message=str(e))
            call.success = resp.is_success
            if not resp.is_success:
                # 响应体可能回显请求内容，这里只记录状态码
                raise ApiError(
                    code="ACCOUNT_ERROR",
                    message=f"Account service returned {resp.status_code}",
                    http_status=resp.status_code,
                )

        logger.info("Customer account created", extra={"extra": {"account_id": account_id}})
        return account_id
