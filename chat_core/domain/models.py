"""统一的对话与结果数据模型。

本模块定义了在 Provider 与编排层之间共享的标准数据结构：

- ChatMessage: 一条对话消息（system/user/assistant）。
- ChatRequest: 发给底层 LLM Provider 的完整请求。
- ChatResult: 从 Provider 解析后的统一响应结果。
- DependencySpan: 一次外部依赖调用的计时/结果记录，交给遥测层。

所有 Provider 适配器都只依赖这些模型，
并负责在各自的 API JSON 和这些模型之间做转换。
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Literal, Optional, Any, Dict, List


# LLM 消息角色类型（与 OpenAI 的 role 字段对应）
Role = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class ChatMessage:
    """一条对话消息，既可用于请求，也可用于响应。

    - role: 消息角色，如 system/user/assistant。
    - content: 纯文本内容。
    - meta: 附加元数据，不直接发给 Provider，主要用于日志。

    创建后不可修改；会话历史只会追加或整体重建。
    """

    role: Role
    content: str
    meta: Dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass
class ChatRequest:
    """一次完整的聊天请求。

    Provider 适配层负责把本结构转换成各家 API 的 JSON 请求体。
    默认生成参数：max_tokens=500, temperature=0.7, top_p=0.95。
    """

    provider: str  # 逻辑 Provider 名，如 "azure_openai"
    model: str  # 逻辑模型名，如 "chat"（再由 registry 映射为真实模型名）
    messages: List[ChatMessage]
    temperature: float = 0.7
    top_p: float = 0.95
    max_tokens: Optional[int] = 500
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0


@dataclass
class ChatUsage:
    """Provider 返回的 token 统计信息（统一格式）。"""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class ChatChoice:
    """单个候选回答（目前只用 index=0 的一条）。"""

    index: int
    message: ChatMessage
    finish_reason: Optional[str] = None


@dataclass
class ChatResult:
    """一次对话调用的最终结果。

    - provider: 逻辑 Provider 名。
    - model: 逻辑模型名。
    - choices: 一个或多个候选回答。
    - usage: 可选的 token 使用统计。
    - raw: 原始响应 JSON，用于调试或日志记录。
    """

    provider: str
    model: str
    choices: List[ChatChoice]
    usage: Optional[ChatUsage] = None
    raw: Optional[dict] = None

    @property
    def text(self) -> str:
        """返回首个候选回答的文本；没有候选时返回空串。"""

        if not self.choices:
            return ""
        return self.choices[0].message.content or ""


@dataclass
class DependencySpan:
    """一次外部依赖调用的观测记录。

    - type_name: 依赖类型，如 "AzureOpenAI"、"CatalogAPI"。
    - name: 操作名，如 "ChatCompletion/gpt-4o"。
    - target: 目标描述（URL、模型等），不得包含敏感字段。
    - start: 开始时间（UTC）。
    - duration: 耗时。
    - success: 调用是否成功。
    """

    type_name: str
    name: str
    target: str
    start: datetime
    duration: timedelta
    success: bool

    @property
    def duration_ms(self) -> float:
        return round(self.duration.total_seconds() * 1000, 2)
