"""意图分类与商品文案提示词。

每次调用都使用一组全新的 system + user 消息，不读取、不修改任何会话历史，
因此相同输入配合相同的模型回复总是得到相同结果。
"""

import logging
import time
from typing import Optional

from chat_core.agents.completion import CompletionClient
from chat_core.domain.intents import Intent
from chat_core.domain.models import ChatMessage
from chat_core.infrastructure.telemetry import TelemetryService, guarded
from chat_core.prompts import (
    FORMAT_PRODUCT_DETAILS,
    INTENT_CLASSIFIER,
    PRODUCT_DETAILS,
    load_prompt,
)


class IntentClassifier:
    """把用户输入归类到封闭的 Intent 集合中，并提供同级的商品格式化提示词。"""

    def __init__(
        self,
        completion: CompletionClient,
        telemetry: Optional[TelemetryService] = None,
        locale: str = "en",
    ):
        self._completion = completion
        self._telemetry = guarded(telemetry)
        self._locale = locale

    async def classify(self, user_input: str) -> Intent:
        """返回用户输入的意图。

        模型回复去除首尾空白后与标签做大小写敏感的精确比较，
        不匹配时返回 Intent.UNKNOWN（这不是错误）。
        """

        with self._telemetry.start_operation("GetUserIntent", "IntentClassifier"):
            self._telemetry.set_property("InputLength", len(user_input or ""))
            started = time.perf_counter()
            raw = await self._run_prompt("GetUserIntent", INTENT_CLASSIFIER, user_input or "")
            elapsed_ms = round((time.perf_counter() - started) * 1000)

            intent = Intent.parse(raw)
            if intent is None:
                self._telemetry.track_trace(
                    "Intent not recognized in available intents",
                    logging.WARNING,
                    {"ReceivedIntent": (raw or "").strip()[:50], "DefaultingTo": Intent.UNKNOWN.value},
                )
                intent = Intent.UNKNOWN

            self._telemetry.track_event(
                "IntentClassified",
                {"Intent": intent.value, "ProcessingTimeMs": elapsed_ms},
            )
            return intent

    async def format_product_details(self, products: str) -> str:
        """把目录返回的商品数据压缩成面向用户的列表。"""

        with self._telemetry.start_operation("FormatProductDetails", "IntentClassifier"):
            self._telemetry.set_property("ProductsDataLength", len(products or ""))
            formatted = await self._run_prompt("FormatProductDetails", FORMAT_PRODUCT_DETAILS, products or "")
            self._telemetry.track_event("ProductDetailsFormatted", {"ResponseLength": len(formatted)})
            return formatted

    async def generate_product_details(self) -> str:
        """没有目录服务时，由语言模型给出商品数据。"""

        with self._telemetry.start_operation("GetProductDetails", "IntentClassifier"):
            products = await self._run_prompt("GetProductDetails", PRODUCT_DETAILS, None)
            self._telemetry.track_event("ProductDetailsRetrieved", {"ResponseLength": len(products)})
            return products

    async def _run_prompt(self, function: str, prompt_name: str, user_content: Optional[str]) -> str:
        messages = [ChatMessage(role="system", content=load_prompt(prompt_name, self._locale))]
        if user_content is not None:
            messages.append(ChatMessage(role="user", content=user_content))
        try:
            # 依赖 span 由 CompletionClient 记录，名称为 function
            return await self._completion.complete(messages, dependency_name=function)
        except Exception as exc:
            self._telemetry.track_exception(exc, {"Function": function})
            raise
