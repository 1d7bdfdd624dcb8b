"""对外服务模块。

- build_default_dispatcher: 按配置组装 Provider、分类器、目录与账户适配器。
- create_app: FastAPI 应用，websocket ``/chatHub`` 与 ``GET /health``。
- run: 使用 uvicorn 启动服务。

每个 websocket 连接对应一个 ChatSession，连接内的消息按到达顺序串行处理；
DialogueDispatcher 及其依赖在所有连接之间共享，但不持有任何会话状态。
"""

import json
from typing import Any, Optional, Tuple

import uvicorn
from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from chat_core import __version__
from chat_core.agents.completion import CompletionClient
from chat_core.agents.dispatcher import DialogueDispatcher
from chat_core.agents.intent_classifier import IntentClassifier
from chat_core.agents.session import ChatSession
from chat_core.channel.websocket import WebSocketChannel
from chat_core.config.settings import Settings, settings
from chat_core.infrastructure.logging.logger import logger
from chat_core.infrastructure.telemetry import TelemetryService, guarded
from chat_core.providers import create_provider
from chat_core.services.accounts import AccountAdapter
from chat_core.services.auth import ClientCredentialsTokenProvider, StaticTokenProvider
from chat_core.services.catalog import CatalogAdapter, LanguageModelCatalog


def build_default_dispatcher(
    cfg: Optional[Settings] = None,
    telemetry: Optional[TelemetryService] = None,
) -> DialogueDispatcher:
    """根据配置构建默认的 DialogueDispatcher。"""

    cfg = cfg or settings
    telemetry = guarded(telemetry)
    completion = CompletionClient(
        create_provider(cfg=cfg),
        telemetry,
        model=cfg.default_model,
        timeout=cfg.completion_timeout,
        max_attempts=cfg.completion_max_attempts,
    )
    classifier = IntentClassifier(completion, telemetry)

    if cfg.catalog_enabled:
        catalog = CatalogAdapter(
            cfg.catalog_settings(),
            ClientCredentialsTokenProvider(cfg.auth_settings()),
            telemetry,
        )
    else:
        catalog = LanguageModelCatalog(classifier)

    accounts = AccountAdapter(
        cfg.account_settings(),
        StaticTokenProvider(cfg.account_auth_token),
        telemetry,
    )
    return DialogueDispatcher(
        classifier,
        catalog,
        accounts,
        telemetry,
        strict_flow=cfg.strict_dialogue_flow,
    )


def parse_frame(raw: str) -> Tuple[str, str]:
    """解析客户端发来的一帧，返回 (userInput, message)。

    只有 JSON 对象和 JSON 字符串会被解析；其他文本（包括 42、true 这类
    恰好是合法 JSON 的输入）整体视为 userInput。
    """

    try:
        data: Any = json.loads(raw)
    except json.JSONDecodeError:
        return raw, ""
    if isinstance(data, dict):
        return str(data.get("userInput") or ""), str(data.get("message") or "")
    if isinstance(data, str):
        return data, ""
    return raw, ""


def create_app(
    dispatcher: Optional[DialogueDispatcher] = None,
    cfg: Optional[Settings] = None,
) -> FastAPI:
    cfg = cfg or settings
    app = FastAPI(title="Chat Application", version=__version__)
    app.state.dispatcher = dispatcher

    def get_dispatcher() -> DialogueDispatcher:
        # 首个连接到来时才组装，避免导入模块时就要求完整配置
        if app.state.dispatcher is None:
            app.state.dispatcher = build_default_dispatcher(cfg)
        return app.state.dispatcher

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "version": __version__,
            "provider": cfg.default_provider,
            "catalog_enabled": cfg.catalog_enabled,
        }

    @app.websocket("/chatHub")
    async def chat_hub(websocket: WebSocket):
        await websocket.accept()
        handler = get_dispatcher()
        session = ChatSession.open(WebSocketChannel(websocket), max_messages=cfg.history_max_messages)
        client_host = websocket.client.host if websocket.client else "unknown"
        logger.info(
            "Client connected",
            extra={"extra": {"session_id": session.session_id, "client": client_host}},
        )

        error: Optional[BaseException] = None
        try:
            await handler.on_connected(session)
            while True:
                raw = await websocket.receive_text()
                user_input, message = parse_frame(raw)
                await handler.send_message(session, user_input, message)
        except WebSocketDisconnect:
            pass
        except Exception as exc:
            error = exc
            logger.error(
                "Connection closed by error",
                extra={"extra": {"session_id": session.session_id, "error": str(exc)}},
            )
        finally:
            await handler.on_disconnected(session, error)
            logger.info("Client disconnected", extra={"extra": {"session_id": session.session_id}})

    return app


app = create_app()


def run(cfg: Optional[Settings] = None) -> None:
    cfg = cfg or settings
    uvicorn.run(create_app(cfg=cfg), host=cfg.server_host, port=cfg.server_port)


if __name__ == "__main__":
    run()
