import pytest
from starlette.websockets import WebSocketState

from triagedesk.api.ws import ConnectionManager
from triagedesk.common import events


class FakeWebSocket:
    def __init__(self, fail: bool = False):
        self.client_state = WebSocketState.CONNECTING
        self.sent: list[dict] = []
        self.fail = fail

    async def accept(self):
        self.client_state = WebSocketState.CONNECTED

    async def send_json(self, message: dict):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(message)


@pytest.mark.asyncio
async def test_emit_reaches_subscribers(recorded_events):
    await events.emit("request.created", {"request_id": "comp_1"})

    assert recorded_events[0][0] == "request.created"
    assert recorded_events[0][1]["request_id"] == "comp_1"
    assert "emitted_at" in recorded_events[0][1]


@pytest.mark.asyncio
async def test_failing_handler_does_not_block_others():
    async def broken(event, data):
        raise ValueError("boom")

    events.clear_handlers()
    events.subscribe(broken)
    received = []

    async def healthy(event, data):
        received.append(event)

    events.subscribe(healthy)
    await events.emit("case.routed", {"case_id": "case_1"})

    assert received == ["case.routed"]


@pytest.mark.asyncio
async def test_manager_routes_by_player():
    manager = ConnectionManager()
    everyone, alice, bob = FakeWebSocket(), FakeWebSocket(), FakeWebSocket()
    await manager.connect(everyone)
    await manager.connect(alice, player_id="alice")
    await manager.connect(bob, player_id="bob")

    await manager.handle_event("case.response_released", {"player_id": "alice", "text": "hi"})

    assert len(everyone.sent) == 1
    assert alice.sent[0]["event"] == "case.response_released"
    assert alice.sent[0]["data"]["text"] == "hi"
    assert bob.sent == []


@pytest.mark.asyncio
async def test_manager_drops_dead_connections():
    manager = ConnectionManager()
    dead = FakeWebSocket(fail=True)
    await manager.connect(dead, player_id="alice")

    await manager.handle_event("case.routed", {"player_id": "alice"})

    assert manager.active_connections == 0
