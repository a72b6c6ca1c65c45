"""
Tests for the WebSocket match server.

Drives GameServer with in-memory sockets: who gets told what after
accepted events, rejected joins, and silently dropped requests.
"""

import asyncio
import json
import random

from server.config import load_config
from server.server import GameServer
from server.shardring.engine import ShardRingEngine
from server.shardring.state import LOBBY, PLAYING, create_player, find_shard


# ── Helpers ───────────────────────────────────────────────────────────

class FakeSocket:
    """Records outgoing frames and replays scripted incoming ones."""

    def __init__(self, incoming=()):
        self.incoming = [json.dumps(m) for m in incoming]
        self.sent = []

    async def send(self, data):
        self.sent.append(json.loads(data))

    def __aiter__(self):
        return self._replay()

    async def _replay(self):
        for raw in self.incoming:
            yield raw

    def types(self):
        return [m["type"] for m in self.sent]


def make_server(*conn_ids):
    server = GameServer(ShardRingEngine(rng=random.Random(7)))
    sockets = {}
    for conn_id in conn_ids:
        sockets[conn_id] = FakeSocket()
        server.connections[conn_id] = sockets[conn_id]
    return server, sockets


def send(server, conn_id, msg):
    raw = msg if isinstance(msg, str) else json.dumps(msg)
    asyncio.run(server.handle_message(conn_id, raw))


def put_in_play(server, conn_ids, demon_room=0):
    state = server.state
    for i, conn_id in enumerate(conn_ids):
        player = create_player(i, conn_id, f"P{i + 1}")
        player["room"] = 2
        player["slot"] = 1
        state["players"].append(player)
    state["phase"] = PLAYING
    state["demon"]["room"] = demon_room


# ══════════════════════════════════════════════════════════════════════
# Broadcast Tests
# ══════════════════════════════════════════════════════════════════════

class TestBroadcast:

    def test_join_broadcasts_state_and_log(self):
        server, sockets = make_server("a", "b")
        send(server, "a", {"type": "join", "name": "Ana"})

        assert sockets["a"].types() == ["state", "log"]
        assert sockets["b"].types() == ["state", "log"]
        assert sockets["a"].sent[0]["state"]["you"] == 0
        assert sockets["b"].sent[0]["state"]["you"] is None
        assert sockets["b"].sent[1]["messages"] == ["Ana joined the match"]

    def test_rejected_join_only_tells_requester(self):
        server, sockets = make_server("a", "b", "c")
        send(server, "a", {"type": "join", "name": "Ana"})
        send(server, "a", {"type": "start"})
        for sock in sockets.values():
            sock.sent.clear()

        send(server, "c", {"type": "join", "name": "Cy"})
        assert sockets["c"].types() == ["error_msg"]
        assert sockets["a"].sent == []
        assert sockets["b"].sent == []

    def test_invalid_move_is_silent(self):
        server, sockets = make_server("a", "b")
        put_in_play(server, ["a", "b"])
        before = server.state

        send(server, "a", {"type": "action", "action": {
            "kind": "move", "target": {"room": 2, "slot": 3},
        }})
        assert server.state is before
        assert sockets["a"].sent == []
        assert sockets["b"].sent == []

    def test_accepted_action_broadcasts(self):
        server, sockets = make_server("a", "b")
        put_in_play(server, ["a", "b"], demon_room=0)
        rotation = find_shard(server.state, 2, 1)["rotation"]

        send(server, "a", {"type": "action", "action": {
            "kind": "rotate", "target": {"room": 2, "slot": 1},
        }})
        assert find_shard(server.state, 2, 1)["rotation"] == (rotation + 120) % 360
        assert sockets["b"].types() == ["state", "log"]
        assert sockets["a"].sent[0]["your_turn"] is True
        assert sockets["b"].sent[0]["your_turn"] is False

    def test_get_state_answers_requester_only(self):
        server, sockets = make_server("a", "b")
        send(server, "a", {"type": "get_state"})
        assert sockets["a"].types() == ["state"]
        assert sockets["a"].sent[0]["phase_info"]["phase"] == LOBBY
        assert sockets["a"].sent[0]["valid_actions"] == [{"kind": "join"}]
        assert sockets["b"].sent == []

    def test_garbage_is_dropped(self):
        server, sockets = make_server("a")
        send(server, "a", "not json")
        send(server, "a", {"type": "fly"})
        send(server, "a", json.dumps([1, 2]))
        assert sockets["a"].sent == []

    def test_non_string_type_is_dropped(self):
        server, sockets = make_server("a", "b")
        put_in_play(server, ["a", "b"])
        before = server.state

        send(server, "a", {"type": ["join"]})
        send(server, "a", {"type": {"x": 1}})
        send(server, "a", {"type": None})
        assert server.state is before
        assert sockets["a"].sent == []
        assert sockets["b"].sent == []

    def test_bad_frame_keeps_connection_alive(self):
        server, _ = make_server()
        sock = FakeSocket([
            {"type": {"x": 1}},
            {"type": "get_state"},
        ])
        # The handler assigns its own id, so seat the player once it is known
        original = server._send_game_state

        async def seat_then_send(conn_id):
            if not server.state["players"]:
                put_in_play(server, [conn_id])
            await original(conn_id)

        server._send_game_state = seat_then_send
        asyncio.run(server.handle_connection(sock))

        # Both frames were read: the bad one dropped, get_state answered
        assert sock.types() == ["state", "state"]
        assert sock.sent[1]["state"]["players"][0]["alive"] is True


# ══════════════════════════════════════════════════════════════════════
# Connection Lifecycle Tests
# ══════════════════════════════════════════════════════════════════════

class TestConnectionLifecycle:

    def test_lobby_disconnect_removes_player(self):
        server, sockets = make_server("b")
        sock = FakeSocket([{"type": "join", "name": "Ana"}])

        asyncio.run(server.handle_connection(sock))

        assert server.state["players"] == []
        assert server.connections == {"b": sockets["b"]}
        assert sock.types()[0] == "state"
        # b saw the join and the departure
        assert sockets["b"].types() == ["state", "log", "state", "log"]

    def test_disconnect_in_play_marks_dead(self):
        server, _ = make_server()
        put_in_play(server, ["x"])
        server.connections["x"] = FakeSocket()

        async def drop():
            server.connections.pop("x")
            await server.dispatch("x", {"kind": "disconnect"})

        asyncio.run(drop())
        player = server.state["players"][0]
        assert player["alive"] is False
        assert player["name"].endswith("(offline)")


# ══════════════════════════════════════════════════════════════════════
# Config Tests
# ══════════════════════════════════════════════════════════════════════

class TestConfig:

    def test_defaults(self):
        config = load_config({})
        assert config.host == "0.0.0.0"
        assert config.port == 8765
        assert config.rooms == 5
        assert config.seed is None
        assert config.log_level == "INFO"

    def test_env_overrides(self):
        config = load_config({
            "PORT": "3000",
            "SHARDRING_SEED": "42",
            "SHARDRING_ROOMS": "6",
            "SHARDRING_LOG_LEVEL": "debug",
        })
        assert config.port == 3000
        assert config.seed == 42
        assert config.rooms == 6
        assert config.log_level == "DEBUG"
