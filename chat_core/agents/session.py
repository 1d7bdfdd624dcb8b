"""单个客户端连接的会话状态。"""

from dataclasses import dataclass, field
from typing import Optional
from uuid import uuid4

from chat_core.channel.base import MessageChannel
from chat_core.domain.conversation import DEFAULT_MAX_MESSAGES, HistoryWindow
from chat_core.domain.intents import DialogueState
from chat_core.prompts import load_system_prompt


@dataclass
class ChatSession:
    """一个连接对应一个会话：推送通道、对话历史与购买流程状态。

    会话之间不共享任何可变状态；同一会话内的消息按到达顺序串行处理。
    """

    channel: MessageChannel
    history: HistoryWindow
    session_id: str = field(default_factory=lambda: f"s-{uuid4().hex}")
    state: DialogueState = DialogueState.IDLE

    @classmethod
    def open(
        cls,
        channel: MessageChannel,
        session_id: Optional[str] = None,
        max_messages: int = DEFAULT_MAX_MESSAGES,
        locale: str = "en",
    ) -> "ChatSession":
        history = HistoryWindow(load_system_prompt(locale), max_messages=max_messages)
        if session_id:
            return cls(channel=channel, history=history, session_id=session_id)
        return cls(channel=channel, history=history)
