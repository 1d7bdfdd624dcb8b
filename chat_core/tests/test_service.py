from fastapi.testclient import TestClient

from chat_core.agents import dispatcher as dialogue
from chat_core.agents.dispatcher import DialogueDispatcher
from chat_core.api.service import create_app, parse_frame
from chat_core.domain.intents import Intent


class ScriptedClassifier:
    def __init__(self, intents):
        self.intents = list(intents)
        self.seen = []

    async def classify(self, user_input):
        self.seen.append(user_input)
        return self.intents.pop(0)

    async def format_product_details(self, products):
        return products


class NoCatalog:
    async def fetch_products(self, product_id=None, sku_id=None, market=None, language=None):
        raise AssertionError("catalog must not be called")


class NoAccounts:
    async def create_account(self, customer_name, tax_id):
        raise AssertionError("accounts must not be called")


def _client(telemetry, intents):
    handler = DialogueDispatcher(ScriptedClassifier(intents), NoCatalog(), NoAccounts(), telemetry)
    return TestClient(create_app(dispatcher=handler))


def test_health(telemetry):
    resp = _client(telemetry, []).get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_chat_hub_welcome_and_reply(telemetry):
    client = _client(telemetry, [Intent.WANT_TO_PURCHASE])
    with client.websocket_connect("/chatHub") as ws:
        welcome = ws.receive_json()
        assert welcome == {"event": "ReceiveMessage", "user": "System", "message": dialogue.WELCOME_MESSAGE}

        ws.send_json({"userInput": "I want to buy", "message": "I want to buy"})
        reply = ws.receive_json()
        assert reply["message"] == dialogue.NEW_CUSTOMER_QUESTION

        ws.send_json({"userInput": "", "message": ""})
        assert ws.receive_json()["message"] == dialogue.NOT_UNDERSTOOD_MESSAGE

    assert "SignalR.ClientDisconnected" in telemetry.event_names()


def test_chat_hub_connections_are_isolated(telemetry):
    client = _client(telemetry, [Intent.WANT_TO_PURCHASE, Intent.NEW_CUSTOMER])
    with client.websocket_connect("/chatHub") as first:
        first.receive_json()
        first.send_json({"userInput": "I want to buy"})
        assert first.receive_json()["message"] == dialogue.NEW_CUSTOMER_QUESTION

    with client.websocket_connect("/chatHub") as second:
        second.receive_json()
        second.send_json({"userInput": "yes I am new"})
        # a fresh connection starts from the beginning of the flow
        message = second.receive_json()["message"]
        assert message == dialogue.FLOW_GUIDANCE[dialogue.DialogueState.AWAITING_NEW_CUSTOMER_ANSWER]


def test_parse_frame():
    assert parse_frame('{"userInput": "hi", "message": "hi"}') == ("hi", "hi")
    assert parse_frame('{"message": "x"}') == ("", "x")
    assert parse_frame("plain text") == ("plain text", "")
    assert parse_frame('"quoted"') == ("quoted", "")
    assert parse_frame("[1, 2]") == ("[1, 2]", "")


def test_parse_frame_keeps_scalar_json_text():
    assert parse_frame("12345") == ("12345", "")
    assert parse_frame("true") == ("true", "")
    assert parse_frame(" 4.5 ") == (" 4.5 ", "")


def test_chat_hub_classifies_numeric_text(telemetry):
    classifier = ScriptedClassifier([Intent.UNKNOWN])
    handler = DialogueDispatcher(classifier, NoCatalog(), NoAccounts(), telemetry)
    client = TestClient(create_app(dispatcher=handler))
    with client.websocket_connect("/chatHub") as ws:
        ws.receive_json()
        ws.send_text("12345")
        assert ws.receive_json()["message"] == dialogue.UNKNOWN_INTENT_MESSAGE

    assert classifier.seen == ["12345"]
