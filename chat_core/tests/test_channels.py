import asyncio
import io

import pytest

from chat_core.channel import ConsoleChannel, WebSocketChannel


class FakeWebSocket:
    def __init__(self, broken=False):
        self.broken = broken
        self.frames = []

    async def send_json(self, data):
        if self.broken:
            raise RuntimeError("websocket is closed")
        self.frames.append(data)


def test_websocket_channel_sends_receive_message_frames():
    ws = FakeWebSocket()
    channel = WebSocketChannel(ws)

    asyncio.run(channel.push("System", "hello"))

    assert ws.frames == [{"event": "ReceiveMessage", "user": "System", "message": "hello"}]


def test_websocket_channel_send_failure_propagates():
    channel = WebSocketChannel(FakeWebSocket(broken=True))
    with pytest.raises(RuntimeError):
        asyncio.run(channel.push("System", "hello"))


def test_console_channel_strips_markup():
    out = io.StringIO()
    channel = ConsoleChannel(stream=out)

    asyncio.run(channel.push("System", "Thank you.<br/>Are you new? <a href='#'>click here</a>"))

    assert out.getvalue() == "System: Thank you.\nAre you new? click here\n"
    assert channel.sent == ["Thank you.<br/>Are you new? <a href='#'>click here</a>"]
