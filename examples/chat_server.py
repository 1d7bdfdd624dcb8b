"""Start the websocket chat service (ws://<host>:<port>/chatHub)."""

from chat_core.api.service import run

if __name__ == "__main__":
    run()
