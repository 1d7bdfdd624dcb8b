"""提示词加载工具。

按语言(locale) 从 prompts/<locale> 目录读取提示词文本。
提示词只作为 system 消息的内容使用；用户输入始终放在独立的 user 消息里，
不做字符串模板替换。
"""

from functools import lru_cache
from pathlib import Path


PROMPTS_DIR = Path(__file__).resolve().parent

INTENT_CLASSIFIER = "intent_classifier"
FORMAT_PRODUCT_DETAILS = "format_product_details"
PRODUCT_DETAILS = "product_details"
ASSISTANT_SYSTEM = "assistant_system"


@lru_cache(maxsize=None)
def load_prompt(name: str, locale: str = "en") -> str:
    """根据提示词名称和语言加载文本。"""

    fname = PROMPTS_DIR / locale / f"{name}.md"
    return fname.read_text(encoding="utf-8").strip()


def load_system_prompt(locale: str = "en") -> str:
    """会话历史首条 system 消息。"""

    return load_prompt(ASSISTANT_SYSTEM, locale)
