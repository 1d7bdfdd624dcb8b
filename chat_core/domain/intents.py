"""意图与会话状态枚举。"""

from enum import Enum
from typing import Optional


class Intent(str, Enum):
    """意图分类的封闭标签集合，顺序即提示词中的顺序。"""

    RECOMMENDED_PRODUCTS = "RecommendedProducts"
    CREATE_ACCOUNT = "CreateAccount"
    WANT_TO_PURCHASE = "WantToPurchase"
    NEW_CUSTOMER = "NewCustomer"
    PROVIDE_DETAILS = "ProvideDetails"
    DETAILS_RECEIVED = "DetailsReceived"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, label: Optional[str]) -> Optional["Intent"]:
        """按标签精确匹配（去除首尾空白，大小写敏感），不在集合内返回 None。"""

        if label is None:
            return None
        candidate = label.strip()
        for intent in cls:
            if intent.value == candidate:
                return intent
        return None

    @classmethod
    def labels(cls) -> list[str]:
        return [intent.value for intent in cls]


class DialogueState(str, Enum):
    """单个会话在购买流程中的位置。"""

    IDLE = "Idle"
    AWAITING_PURCHASE_DECISION = "AwaitingPurchaseDecision"
    AWAITING_NEW_CUSTOMER_ANSWER = "AwaitingNewCustomerAnswer"
    AWAITING_PROCEED_CONFIRMATION = "AwaitingProceedConfirmation"
    AWAITING_DETAILS = "AwaitingDetails"


# 需要前置状态的意图；未列出的意图在任何状态下都可以处理
REQUIRED_STATE = {
    Intent.NEW_CUSTOMER: DialogueState.AWAITING_NEW_CUSTOMER_ANSWER,
    Intent.PROVIDE_DETAILS: DialogueState.AWAITING_PROCEED_CONFIRMATION,
    Intent.DETAILS_RECEIVED: DialogueState.AWAITING_DETAILS,
}
