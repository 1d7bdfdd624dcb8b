"""Chat Core 顶层包。

该包提供面向客户的购买助手对话服务，
包括配置加载、领域模型、LLM Provider 适配、意图分类、
对话编排、外部服务适配、遥测与 websocket 服务入口。
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
