import asyncio

import pytest
from fastapi.testclient import TestClient

from main import app
from sockets.endpoints import _background, drop_player
from state import registry, ws_by_user

GAME_DATA = {
    "stocks": [{"id": "ACME", "name": "Acme Corp", "prices": [100, 200]}],
    "gold": {"prices": [300, 360]},
}


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c
    for code in list(registry.rooms):
        registry.remove_room(code)


def _connect(client, uid):
    ws = client.websocket_connect(f"/ws?userId={uid}")
    return ws


def _hello(ws):
    msg = ws.receive_json()
    assert msg["type"] == "hello"
    return msg["userId"]


def _create(ws, name="Asha"):
    ws.send_json({"type": "create-room", "playerName": name, "gameData": GAME_DATA})
    msg = ws.receive_json()
    assert msg["type"] == "room-created"
    return msg


def _join(ws, code, name="Ravi"):
    ws.send_json({"type": "join-room", "roomCode": code, "playerName": name})
    joined = ws.receive_json()
    assert joined["type"] == "room-joined"
    assert ws.receive_json()["type"] == "player-joined"
    return joined


def test_index_and_health(client):
    assert client.get("/").json()["activeGames"] == 0

    body = client.get("/health").json()

    assert body["status"] == "ok"
    assert body["activeRooms"] == 0
    assert body["totalMonths"] == 240


def test_create_and_join(client):
    with _connect(client, "alice") as a, _connect(client, "bob") as b:
        assert _hello(a) == "alice"
        _hello(b)

        created = _create(a)
        code = created["roomCode"]
        assert created["player"]["isHost"]
        assert created["room"]["status"] == "waiting"
        # schedules derive from the seed; clients never see it
        assert "seed" not in created["room"]

        joined = _join(b, code.lower())
        assert joined["roomCode"] == code
        assert [p["id"] for p in joined["room"]["players"]] == ["alice", "bob"]

        notice = a.receive_json()
        assert notice == {"type": "player-joined",
                          "player": {"id": "bob", "name": "Ravi"},
                          "totalPlayers": 2}

        health = client.get("/health").json()
        assert health["activeRooms"] == 1
        assert health["rooms"][0]["players"] == 2


def test_errors_go_to_sender_only(client):
    with _connect(client, "alice") as a:
        _hello(a)

        a.send_json({"type": "join-room", "roomCode": "ZZZZZZ", "playerName": "A"})
        assert a.receive_json()["code"] == "room_not_found"

        a.send_json({"type": "create-room", "playerName": "A", "gameData": {"stocks": []}})
        assert a.receive_json()["code"] == "invalid_request"

        a.send_text("not json")
        assert a.receive_json()["code"] == "invalid_request"

        a.send_json({"type": "teleport"})
        assert a.receive_json()["code"] == "invalid_request"

        a.send_json({"type": "buy-stock", "stockId": "ACME", "shares": 1})
        assert a.receive_json()["code"] == "room_not_found"

        _create(a)
        a.send_json({"type": "start-game"})
        assert a.receive_json()["code"] == "not_enough_players"

        a.send_json({"type": "buy-stock", "stockId": "ACME", "shares": 1})
        assert a.receive_json()["code"] == "game_not_active"


def test_game_flow(client):
    with _connect(client, "alice") as a, _connect(client, "bob") as b:
        _hello(a)
        _hello(b)
        code = _create(a)["roomCode"]
        _join(b, code)
        a.receive_json()  # player-joined

        b.send_json({"type": "start-game"})
        assert b.receive_json()["code"] == "not_host"

        a.send_json({"type": "start-game"})
        started = a.receive_json()
        assert started["type"] == "game-started"
        assert started["currentPrices"] == {"ACME": 100, "gold": 300}
        assert started["availableInvestments"] == ["savings"]
        assert b.receive_json()["type"] == "game-started"

        b.send_json({"type": "buy-stock", "stockId": "ACME", "shares": 10})
        done = b.receive_json()
        assert done["type"] == "transaction-success"
        assert done["action"] == "buy"
        assert done["category"] == "stocks"
        assert done["cash"] == 49_000
        assert done["portfolio"]["holdings"]["ACME"] == {"quantity": 10, "avgPrice": 100}
        assert b.receive_json()["type"] == "leaderboard-update"
        board = a.receive_json()
        assert board["type"] == "leaderboard-update"
        assert [r["netWorth"] for r in board["leaderboard"]] == [50_000, 50_000]

        b.send_json({"type": "buy-stock", "stockId": "NOPE", "shares": 1})
        assert b.receive_json()["code"] == "instrument_not_found"

        b.send_json({"type": "sell-stock", "stockId": "ACME", "shares": 11})
        assert b.receive_json()["code"] == "insufficient_shares"

        a.send_json({"type": "buy-gold", "grams": 2})
        gold = a.receive_json()
        assert gold["type"] == "investment-success"
        assert gold["price"] == 300
        assert gold["cash"] == 49_400
        a.receive_json()  # leaderboard-update
        b.receive_json()

        a.send_json({"type": "invest-fixed-deposit", "amount": 1_000, "termMonths": 12})
        fd = a.receive_json()
        assert fd["portfolio"]["fixedDeposits"][0]["roi"] == 6.5
        a.receive_json()
        b.receive_json()

        a.send_json({"type": "get-room-info"})
        info = a.receive_json()
        assert info["type"] == "room-info"
        assert info["room"]["status"] == "playing"

        a.send_json({"type": "end-game"})
        ended = a.receive_json()
        assert ended["type"] == "game-ended"
        assert [e["type"] for e in ended["events"]] == ["buy", "buy", "fixed-deposit"]
        assert b.receive_json()["type"] == "game-ended"


def _until_pong(ws, limit=10):
    """Read everything queued ahead of a ping's reply."""
    ws.send_json({"type": "ping"})
    seen = []
    for _ in range(limit):
        msg = ws.receive_json()
        if msg["type"] == "pong":
            return seen
        seen.append(msg)
    raise AssertionError(f"no pong after {seen!r}")


def test_host_disconnect_hands_over(client):
    with _connect(client, "bob") as b:
        _hello(b)
        with _connect(client, "alice") as a:
            _hello(a)
            code = _create(a)["roomCode"]
            _join(b, code)
            a.receive_json()

        seen = _until_pong(b)
        assert [m["type"] for m in seen] == [
            "new-host", "player-left", "leaderboard-update"]
        assert seen[0]["hostId"] == "bob"
        assert seen[1]["playerId"] == "alice"
        assert seen[1]["totalPlayers"] == 1
        assert [r["id"] for r in seen[2]["leaderboard"]] == ["bob"]
        assert registry.get_room(code).host_id == "bob"

    client.get("/health")
    assert registry.get_room(code) is None


class SlowSocket:

    def __init__(self):
        self.sent = []

    async def send_json(self, payload):
        # yield on every send, like a real socket write
        await asyncio.sleep(0)
        self.sent.append(payload)

    def types(self):
        return [p["type"] for p in self.sent]


def test_departure_notices_outlive_the_closing_socket(catalog):
    room = registry.create_room("alice", "Asha", catalog)
    registry.join_room(room.code, "bob", "Ravi")
    bob = SlowSocket()
    ws_by_user["bob"] = bob

    async def scenario():

        async def closing():
            assert drop_player("alice") is not None
            # roster changes before any notice goes out
            assert room.host_id == "bob"
            assert "alice" not in room.players
            await asyncio.sleep(10)

        closer = asyncio.create_task(closing())
        await asyncio.sleep(0)
        pending = list(_background)
        closer.cancel()
        with pytest.raises(asyncio.CancelledError):
            await closer
        await asyncio.wait_for(asyncio.gather(*pending), timeout=5)

    try:
        asyncio.run(scenario())
    finally:
        ws_by_user.pop("bob", None)
        registry.remove_room(room.code)

    assert bob.types() == ["new-host", "player-left", "leaderboard-update"]


def test_drop_player_without_room_sends_nothing():
    assert drop_player("nobody") is None


def test_join_moves_player_between_rooms(client):
    with _connect(client, "alice") as a, _connect(client, "bob") as b, \
            _connect(client, "carol") as c:
        for ws in (a, b, c):
            _hello(ws)
        first = _create(a)["roomCode"]
        _join(b, first)
        a.receive_json()  # player-joined
        second = _create(c, "Meera")["roomCode"]

        joined = _join(b, second)

        assert [p["id"] for p in joined["room"]["players"]] == ["carol", "bob"]
        left = a.receive_json()
        assert left["type"] == "player-left"
        assert left["playerId"] == "bob"
        assert a.receive_json()["type"] == "leaderboard-update"
        assert c.receive_json()["type"] == "player-joined"
        assert registry.room_of("bob").code == second
        assert list(registry.get_room(first).players) == ["alice"]


def test_failed_join_keeps_current_seat(client):
    with _connect(client, "alice") as a, _connect(client, "bob") as b, \
            _connect(client, "carol") as c:
        for ws in (a, b, c):
            _hello(ws)
        busy = _create(a)["roomCode"]
        _join(b, busy)
        a.receive_json()
        a.send_json({"type": "start-game"})
        assert a.receive_json()["type"] == "game-started"
        assert b.receive_json()["type"] == "game-started"
        home = _create(c, "Meera")["roomCode"]

        c.send_json({"type": "join-room", "roomCode": busy, "playerName": "Meera"})

        assert c.receive_json()["code"] == "game_already_started"
        assert registry.room_of("carol").code == home
        assert registry.get_room(home).host_id == "carol"


def test_sole_player_disconnect_deletes_room(client):
    with _connect(client, "alice") as a:
        _hello(a)
        code = _create(a)["roomCode"]
        assert registry.get_room(code) is not None

    # the server handles the close after the client side returns
    client.get("/health")
    assert registry.get_room(code) is None
