"""消息推送通道。

编排层只依赖 ``MessageChannel.push(user, text)``：

- websocket: 推送到单个 websocket 连接（服务端模式）。
- console: 打印到终端（命令行模式）。
"""

from chat_core.channel.base import SYSTEM_USER, MessageChannel
from chat_core.channel.console import ConsoleChannel
from chat_core.channel.websocket import WebSocketChannel

__all__ = ["SYSTEM_USER", "MessageChannel", "ConsoleChannel", "WebSocketChannel"]
