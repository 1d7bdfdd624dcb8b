"""补全调用客户端。

把有序的角色消息发给 ProviderClient，返回首个候选的文本。
本层只负责：超时、有限次重试、依赖调用遥测与 token 统计，不包含业务逻辑。
"""

import logging
from typing import Any, Dict, Optional, Sequence

from chat_core.domain.conversation import HistoryWindow
from chat_core.domain.exceptions import NetworkError, RateLimitError
from chat_core.domain.models import ChatMessage, ChatRequest, ChatResult
from chat_core.infrastructure.logging.logger import logger
from chat_core.infrastructure.resilience import call_with_timeout, retry_async
from chat_core.infrastructure.telemetry import TelemetryService, dependency, guarded
from chat_core.providers.base import ProviderClient

EXIT_COMMAND = "exit"


class CompletionClient:
    def __init__(
        self,
        provider_client: ProviderClient,
        telemetry: Optional[TelemetryService] = None,
        *,
        model: str = "chat",
        timeout: float = 60.0,
        max_attempts: int = 1,
        retry_backoff: float = 0.5,
        temperature: float = 0.7,
        top_p: float = 0.95,
        max_tokens: Optional[int] = 500,
    ):
        self._provider_client = provider_client
        self._telemetry = guarded(telemetry)
        self._model = model
        self._timeout = timeout
        self._max_attempts = max_attempts
        self._retry_backoff = retry_backoff
        self._temperature = temperature
        self._top_p = top_p
        self._max_tokens = max_tokens

    @property
    def provider_name(self) -> str:
        return getattr(self._provider_client, "name", "unknown")

    async def complete(self, messages: Sequence[ChatMessage], dependency_name: Optional[str] = None) -> str:
        """执行一次补全调用并返回首个候选文本。

        每次调用只记录一个依赖 span；dependency_name 为空时使用 "ChatCompletion/<model>"。
        超时抛出 UpstreamTimeoutError；网络错误与限流按 max_attempts 重试，
        其他错误直接向上抛出。
        """

        req = ChatRequest(
            provider=self.provider_name,
            model=self._model,
            messages=list(messages),
            temperature=self._temperature,
            top_p=self._top_p,
            max_tokens=self._max_tokens,
        )
        target = f"Model: {self._model}"
        self._log(
            logging.INFO,
            "Calling provider",
            provider=self.provider_name,
            model=self._model,
            message_count=len(req.messages),
        )

        async def attempt() -> ChatResult:
            return await call_with_timeout(self._provider_client.chat(req), self._timeout, target)

        with self._telemetry.start_operation("RunChatAsync", "CompletionProvider"):
            try:
                span_name = dependency_name or f"ChatCompletion/{self._model}"
                with dependency(self._telemetry, self.provider_name, span_name, target):
                    result = await retry_async(
                        attempt,
                        attempts=self._max_attempts,
                        retry_on=(NetworkError, RateLimitError),
                        backoff=self._retry_backoff,
                        target=target,
                    )
            except Exception as exc:
                self._telemetry.track_exception(exc, {"Provider": self.provider_name, "Model": self._model})
                raise

            if result.usage:
                self._telemetry.track_event(
                    "CompletionTokenUsage",
                    {
                        "PromptTokens": result.usage.prompt_tokens,
                        "CompletionTokens": result.usage.completion_tokens,
                        "TotalTokens": result.usage.total_tokens,
                    },
                )
            return result.text

    async def converse(self, history: HistoryWindow, user_input: str) -> Optional[str]:
        """在给定会话历史上追加一轮问答，返回助手回复。

        空输入或 "exit" 表示结束会话：不发起调用，返回 None。
        模型返回空文本时照常返回空串。
        """

        if not user_input or not user_input.strip() or user_input.strip().lower() == EXIT_COMMAND:
            self._telemetry.track_trace("User exited the chat", logging.INFO)
            return None
        history.append(ChatMessage(role="user", content=user_input))
        reply = await self.complete(history.snapshot())
        history.append(ChatMessage(role="assistant", content=reply))
        dropped = history.trim()
        if dropped:
            self._log(logging.INFO, "Truncated context", max_messages=history.max_messages, trimmed=dropped)
        return reply

    @staticmethod
    def _log(level: int, message: str, **fields: Any) -> None:
        payload: Dict[str, Any] = dict(fields)
        logger.log(level, message, extra={"extra": payload})
