"""单连接 websocket 推送。

每个 websocket 连接对应一个会话和一个通道；发送失败直接抛出，
由连接循环结束该会话。
"""

from typing import Any, Dict

from fastapi import WebSocket

RECEIVE_MESSAGE_EVENT = "ReceiveMessage"


class WebSocketChannel:
    def __init__(self, websocket: WebSocket):
        self._websocket = websocket

    @staticmethod
    def frame(user: str, text: str) -> Dict[str, Any]:
        return {"event": RECEIVE_MESSAGE_EVENT, "user": user, "message": text}

    async def push(self, user: str, text: str) -> None:
        await self._websocket.send_json(self.frame(user, text))
