"""会话历史窗口。

一个 HistoryWindow 只属于一个客户端连接，不做持久化，也不做并发保护：
同一会话内的消息处理严格串行。
"""

from typing import List, Tuple

from chat_core.domain.models import ChatMessage

DEFAULT_MAX_MESSAGES = 10


class HistoryWindow:
    """保存“首条 system 消息 + 最近若干条消息”的有界对话历史。

    - append: 追加到末尾，不修改已有消息。
    - trim: 超过上限时重建为 [messages[0]] + 最近 (max_messages - 1) 条。
      这是有损策略，不可撤销。
    - snapshot: 返回当前消息序列的只读副本。
    """

    def __init__(self, system_prompt: str, max_messages: int = DEFAULT_MAX_MESSAGES):
        if max_messages < 2:
            raise ValueError("max_messages must leave room for the system message and one more")
        self._max_messages = max_messages
        self._messages: List[ChatMessage] = [ChatMessage(role="system", content=system_prompt)]

    @property
    def max_messages(self) -> int:
        return self._max_messages

    @property
    def retention_width(self) -> int:
        """trim 之后保留的非 system 消息数。"""

        return self._max_messages - 1

    def __len__(self) -> int:
        return len(self._messages)

    def append(self, message: ChatMessage) -> None:
        if message.role == "system":
            raise ValueError("history already starts with its system message")
        self._messages.append(message)

    def append_exchange(self, user_text: str, assistant_text: str) -> None:
        self.append(ChatMessage(role="user", content=user_text))
        self.append(ChatMessage(role="assistant", content=assistant_text))
        self.trim()

    def trim(self) -> int:
        """按保留策略裁剪，返回被丢弃的消息数。"""

        if len(self._messages) <= self._max_messages:
            return 0
        dropped = len(self._messages) - self._max_messages
        self._messages = [self._messages[0]] + self._messages[-self.retention_width:]
        return dropped

    def snapshot(self) -> Tuple[ChatMessage, ...]:
        return tuple(self._messages)
