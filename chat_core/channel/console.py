"""命令行推送：把消息打印到标准输出。"""

import re
import sys
from typing import List, TextIO

_BREAK = re.compile(r"<br\s*/?>", re.IGNORECASE)
_TAG = re.compile(r"<[^>]+>")


class ConsoleChannel:
    def __init__(self, stream: TextIO = sys.stdout, strip_markup: bool = True):
        self._stream = stream
        self._strip_markup = strip_markup
        self.sent: List[str] = []

    def _render(self, text: str) -> str:
        if not self._strip_markup:
            return text
        return _TAG.sub("", _BREAK.sub("\n", text))

    async def push(self, user: str, text: str) -> None:
        self.sent.append(text)
        print(f"{user}: {self._render(text)}", file=self._stream, flush=True)
