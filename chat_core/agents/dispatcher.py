"""对话编排：意图分类 -> 意图处理 -> 推送消息。

DialogueDispatcher 是 SendMessage 的唯一入口：

1. 空输入 / "exit" 直接提示无法理解，不做分类。
2. 调用 IntentClassifier 得到意图，按意图分支处理。
3. 任何异常都在入口处记录并转换为一条错误消息推送给用户，不会让连接断开。

购买流程的状态保存在 ChatSession.state 中；严格模式下，
不满足前置状态的意图会被拒绝并给出引导，状态保持不变。
"""

import logging
from typing import Optional, Union

from chat_core.agents.intent_classifier import IntentClassifier
from chat_core.agents.session import ChatSession
from chat_core.channel.base import SYSTEM_USER
from chat_core.domain.customer import CustomerDetails
from chat_core.domain.exceptions import BusinessError, DialogueFlowError
from chat_core.domain.intents import REQUIRED_STATE, DialogueState, Intent
from chat_core.domain.models import ChatMessage
from chat_core.infrastructure.telemetry import TelemetryService, dependency, guarded
from chat_core.services.accounts import AccountAdapter
from chat_core.services.catalog import ProductCatalog

WELCOME_MESSAGE = "Welcome to the Chat Application! How can I assist you today?"
NOT_UNDERSTOOD_MESSAGE = "I couldn't understand your message. Please try again."
UNHANDLED_INTENT_MESSAGE = "I'm not sure how to respond to that. Could you rephrase your question?"
ERROR_MESSAGE = "Exception occurred: {error}"

PRODUCTS_INTERIM_MESSAGE = "I am working on pulling the product details for you, please hang on!."
PURCHASE_QUESTION = "Are you interested to purchase one or more of these product(s)?"
NEW_CUSTOMER_QUESTION = (
    "Thank you for showing your interest.<br/>"
    "Before proceeding, wanted to know if you are a new customer to Microsoft?."
)
PROCEED_QUESTION = (
    "Great, in that case I would require your personal details to create an account with us.<br/>"
    "Are you interested to proceed? "
)
PROVIDE_DETAILS_MESSAGE = (
    "Please <a href='#' id='ProvideDetails' onclick='ProvideDetails()'>click here</a> to provide your details."
)
DETAILS_RECEIVED_MESSAGE = (
    "Ok, I received your details, I am in the process of creating your account with us, "
    "<br/> please hang on a few mins while we setup your account."
)
ACCOUNT_CREATED_MESSAGE = (
    "Great news! Your account has been successfully set up. "
    "Please save this CustomerAccountId: {account_id} for future reference in our communications."
)
UNKNOWN_INTENT_MESSAGE = "Unknown intent received."

# 严格模式下乱序意图的引导语，按所需的前置状态区分
FLOW_GUIDANCE = {
    DialogueState.AWAITING_NEW_CUSTOMER_ANSWER: (
        "Let me first show you what we offer. Are you interested in purchasing one of our products?"
    ),
    DialogueState.AWAITING_PROCEED_CONFIRMATION: (
        "Before we collect your details, please let me know whether you are a new customer "
        "or would like to create an account."
    ),
    DialogueState.AWAITING_DETAILS: (
        "I wasn't expecting your details yet. Let me know if you would like to create an account "
        "and I will guide you through it."
    ),
}

EXIT_COMMAND = "exit"


def _describe(error: BaseException) -> str:
    if isinstance(error, BusinessError):
        return error.message
    return str(error) or type(error).__name__


def _preview(text: str, limit: int = 50) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


class DialogueDispatcher:
    def __init__(
        self,
        classifier: IntentClassifier,
        catalog: ProductCatalog,
        accounts: AccountAdapter,
        telemetry: Optional[TelemetryService] = None,
        *,
        strict_flow: bool = True,
    ):
        self._classifier = classifier
        self._catalog = catalog
        self._accounts = accounts
        self._telemetry = guarded(telemetry)
        self._strict_flow = strict_flow

    @property
    def strict_flow(self) -> bool:
        return self._strict_flow

    # ------------------------------------------------------------------
    # 连接生命周期
    # ------------------------------------------------------------------
    async def on_connected(self, session: ChatSession) -> None:
        self._telemetry.track_event("SignalR.ClientConnected", {"ConnectionId": session.session_id})
        await self._push(session, WELCOME_MESSAGE)

    async def on_disconnected(self, session: ChatSession, error: Optional[BaseException] = None) -> None:
        if error is not None:
            self._telemetry.track_exception(error, {"ConnectionId": session.session_id})
        self._telemetry.track_event(
            "SignalR.ClientDisconnected",
            {"ConnectionId": session.session_id, "State": session.state.value},
        )

    # ------------------------------------------------------------------
    # SendMessage
    # ------------------------------------------------------------------
    async def send_message(self, session: ChatSession, user_input: str, raw_message: str = "") -> None:
        """处理一条用户消息。

        处理器中的异常不会向外抛出，而是转换为一条错误消息；
        只有推送通道本身失败时才会抛出（连接已不可用）。
        """

        with self._telemetry.start_operation("SendMessage", "SignalR.Hub"):
            self._telemetry.set_property("ConnectionId", session.session_id)
            text = user_input or ""
            self._telemetry.set_property("MessageLength", len(text))

            if not text.strip() or text.strip().lower() == EXIT_COMMAND:
                self._telemetry.track_trace("Received empty message", logging.WARNING)
                await self._push(session, NOT_UNDERSTOOD_MESSAGE)
                return

            session.history.append(ChatMessage(role="user", content=text))
            session.history.trim()
            self._telemetry.track_event(
                "UserMessageReceived",
                {"ConnectionId": session.session_id, "MessageLength": len(text), "State": session.state.value},
            )

            try:
                intent = await self._classifier.classify(text)
                await self.respond_based_on_intent(session, intent, text)
            except Exception as exc:
                self._telemetry.track_exception(
                    exc,
                    {"ConnectionId": session.session_id, "State": session.state.value},
                )
                await self._push(session, ERROR_MESSAGE.format(error=_describe(exc)))

    async def respond_based_on_intent(
        self,
        session: ChatSession,
        intent: Union[Intent, str],
        user_input: str,
    ) -> None:
        resolved = intent if isinstance(intent, Intent) else Intent.parse(intent)
        if resolved is None:
            self._telemetry.track_trace(
                "No handler found for intent",
                logging.WARNING,
                {"Intent": str(intent)[:50]},
            )
            await self._push(session, UNHANDLED_INTENT_MESSAGE)
            return

        with self._telemetry.start_operation(f"Intent.{resolved.value}", "IntentProcessing"):
            self._telemetry.set_property("State", session.state.value)
            try:
                self._check_flow(session, resolved)
            except DialogueFlowError as exc:
                self._telemetry.track_trace(
                    "Out-of-order intent rejected",
                    logging.WARNING,
                    {"Intent": resolved.value, "State": session.state.value, "Expected": exc.extra.get("expected")},
                )
                await self._push(session, exc.message)
                return

            if resolved is Intent.RECOMMENDED_PRODUCTS:
                await self._handle_recommended_products(session)
            elif resolved is Intent.WANT_TO_PURCHASE:
                await self._handle_want_to_purchase(session)
            elif resolved is Intent.NEW_CUSTOMER:
                await self._handle_new_customer(session)
            elif resolved is Intent.CREATE_ACCOUNT:
                await self._handle_create_account(session)
            elif resolved is Intent.PROVIDE_DETAILS:
                await self._handle_provide_details(session)
            elif resolved is Intent.DETAILS_RECEIVED:
                await self._handle_details_received(session, user_input)
            elif resolved is Intent.UNKNOWN:
                await self._handle_unknown(session)
            else:
                raise AssertionError(f"unhandled intent {resolved!r}")

    def _check_flow(self, session: ChatSession, intent: Intent) -> None:
        if not self._strict_flow:
            return
        expected = REQUIRED_STATE.get(intent)
        if expected is None or session.state is expected:
            return
        raise DialogueFlowError(
            code="OUT_OF_ORDER",
            message=FLOW_GUIDANCE[expected],
            intent=intent.value,
            expected=expected.value,
        )

    # ------------------------------------------------------------------
    # 意图处理
    # ------------------------------------------------------------------
    async def _handle_recommended_products(self, session: ChatSession) -> None:
        self._telemetry.track_trace("Handling RecommendedProducts intent")
        try:
            await self._push(session, PRODUCTS_INTERIM_MESSAGE)
            with dependency(self._telemetry, "CatalogService", "GetProductDetails", "Products API Call"):
                products = await self._catalog.fetch_products()
            formatted = await self._classifier.format_product_details(products)
            await self._push(session, formatted)
            await self._push(session, PURCHASE_QUESTION)
        except Exception as exc:
            self._telemetry.track_exception(exc, {"Intent": Intent.RECOMMENDED_PRODUCTS.value})
            raise
        session.state = DialogueState.AWAITING_PURCHASE_DECISION

    async def _handle_want_to_purchase(self, session: ChatSession) -> None:
        await self._push(session, NEW_CUSTOMER_QUESTION)
        session.state = DialogueState.AWAITING_NEW_CUSTOMER_ANSWER

    async def _handle_new_customer(self, session: ChatSession) -> None:
        await self._push(session, PROCEED_QUESTION)
        session.state = DialogueState.AWAITING_PROCEED_CONFIRMATION

    async def _handle_create_account(self, session: ChatSession) -> None:
        await self._push(session, PROCEED_QUESTION)
        session.state = DialogueState.AWAITING_PROCEED_CONFIRMATION

    async def _handle_provide_details(self, session: ChatSession) -> None:
        await self._push(session, PROVIDE_DETAILS_MESSAGE)
        session.state = DialogueState.AWAITING_DETAILS

    async def _handle_details_received(self, session: ChatSession, user_input: str) -> None:
        self._telemetry.track_trace("Handling DetailsReceived intent")
        try:
            # 先校验载荷，校验失败时不会发生任何外部调用
            details = CustomerDetails.parse(user_input)
            await self._push(session, DETAILS_RECEIVED_MESSAGE)
            # 税号不进入日志与遥测
            self._telemetry.track_event("CustomerDetailsReceived", {"CustomerName": details.customer_name})
            with dependency(self._telemetry, "AccountService", "CreateCustomerAccount", "Account Creation API Call"):
                account_id = await self._accounts.create_account(details.customer_name, details.customer_tax_id)
            await self._push(session, ACCOUNT_CREATED_MESSAGE.format(account_id=account_id))
            self._telemetry.track_event("CustomerAccountCreated", {"CustomerAccountId": account_id})
        except Exception as exc:
            self._telemetry.track_exception(exc, {"Intent": Intent.DETAILS_RECEIVED.value})
            raise
        session.state = DialogueState.IDLE

    async def _handle_unknown(self, session: ChatSession) -> None:
        await self._push(session, UNKNOWN_INTENT_MESSAGE)

    # ------------------------------------------------------------------
    async def _push(self, session: ChatSession, text: str) -> None:
        try:
            await session.channel.push(SYSTEM_USER, text)
        except Exception as exc:
            self._telemetry.track_exception(exc, {"MessageType": "SystemMessage", "ConnectionId": session.session_id})
            raise
        self._telemetry.track_trace("System message sent", logging.INFO, {"MessagePreview": _preview(text)})
        session.history.append(ChatMessage(role="assistant", content=text))
        session.history.trim()
