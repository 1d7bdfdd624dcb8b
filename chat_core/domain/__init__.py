"""领域层模型与协议。

包含：
- models: 统一的 ChatMessage / ChatRequest / ChatResult / DependencySpan 模型。
- intents: 封闭的 Intent 集合与会话状态 DialogueState。
- customer: 客户资料 CustomerDetails 及其载荷解析。
- conversation: 有界会话历史 HistoryWindow。
- exceptions: 业务异常类型定义。
"""
