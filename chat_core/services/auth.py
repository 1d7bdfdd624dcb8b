"""Bearer token 来源。

ClientCredentialsTokenProvider 走 OAuth2 client-credentials 流程，
token 在进程内缓存，到期前 60 秒内刷新；多个会话共用同一个实例。
"""

import asyncio
import time
from typing import Optional, Protocol

import httpx

from chat_core.config.settings import AuthSettings
from chat_core.domain.exceptions import ApiError, NetworkError, UpstreamTimeoutError, ValidationError
from chat_core.infrastructure.logging.logger import logger

REFRESH_MARGIN_SECONDS = 60


class TokenProvider(Protocol):
    async def get_token(self) -> str:
        ...


class StaticTokenProvider:
    """固定 token，用于本地调试或由网关注入的场景。"""

    def __init__(self, token: Optional[str]):
        self._token = token

    async def get_token(self) -> str:
        if not self._token:
            raise ValidationError(code="MISSING_TOKEN", message="No bearer token configured")
        return self._token


class ClientCredentialsTokenProvider:
    def __init__(self, auth: AuthSettings):
        self._auth = auth
        self._lock = asyncio.Lock()
        self._token: Optional[str] = None
        self._expires_at = 0.0

    @property
    def token_url(self) -> str:
        return f"{self._auth.authority.rstrip('/')}/{self._auth.tenant_id}/oauth2/v2.0/token"

    @property
    def scope(self) -> str:
        return f"{self._auth.scope_uri.rstrip('/')}/.default"

    async def get_token(self) -> str:
        async with self._lock:
            if self._token and time.monotonic() < self._expires_at - REFRESH_MARGIN_SECONDS:
                return self._token
            self._token, lifetime = await self._acquire()
            self._expires_at = time.monotonic() + lifetime
            return self._token

    async def _acquire(self):
        if not (self._auth.tenant_id and self._auth.client_id and self._auth.client_secret):
            raise ValidationError(
                code="MISSING_CREDENTIALS",
                message="AUTH_TENANT_ID, AUTH_CLIENT_ID and AUTH_CLIENT_SECRET must be set",
            )
        form = {
            "grant_type": "client_credentials",
            "client_id": self._auth.client_id,
            "client_secret": self._auth.client_secret,
            "scope": self.scope,
        }
        try:
            async with httpx.AsyncClient(timeout=self._auth.timeout, trust_env=False) as client:
                resp = await client.post(self.token_url, data=form)
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(code="TIMEOUT", message=str(e) or "token request timed out", http_status=504)
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e))
        if resp.status_code >= 400:
            raise ApiError(code="TOKEN_ERROR", message=resp.text, http_status=resp.status_code)
        data = resp.json()
        token = data.get("access_token")
        if not token:
            raise ApiError(code="TOKEN_ERROR", message="Token response carried no access_token", http_status=502)
        lifetime = float(data.get("expires_in") or 3600)
        logger.info("Acquired access token", extra={"extra": {"scope": self.scope, "expires_in": lifetime}})
        return token, lifetime
