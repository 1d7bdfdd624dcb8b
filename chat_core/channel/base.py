from typing import Protocol

SYSTEM_USER = "System"


class MessageChannel(Protocol):
    """把一条文本消息推送给当前会话的客户端。

    推送失败时实现方直接抛出异常，由调用方决定如何处理。
    """

    async def push(self, user: str, text: str) -> None:
        ...
