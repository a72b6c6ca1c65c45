"""
WebSocket server for a single Shard Ring match.

Handles connections and routes every request to the engine as one event.
Knows nothing about the rules — it only broadcasts what the engine accepts.
"""

import asyncio
import json
import logging
import random
import secrets

import websockets

from server.config import load_config
from server.game_engine import GameEngine
from server.shardring.engine import ShardRingEngine

logger = logging.getLogger(__name__)

# Inbound message type -> engine action kind
MESSAGE_KINDS = {
    "join": "join",
    "start": "start",
    "roll_dice": "roll_dice",
}


def generate_connection_id():
    return f"c_{secrets.token_urlsafe(6)}"


class GameServer:
    """
    Owns the one match state and every open connection.

    Requests are handled one at a time to completion, so the state never
    sees interleaved mutations.
    """

    def __init__(self, engine: GameEngine):
        self.engine = engine
        self.state = engine.initial_state()
        self.connections = {}                          # connection id -> websocket
        self._lock = asyncio.Lock()

    # ── WebSocket Handler ────────────────────────────────────────────

    async def handle_connection(self, websocket):
        """Main handler for a single WebSocket connection."""
        conn_id = generate_connection_id()
        self.connections[conn_id] = websocket
        logger.info("Connection opened: %s", conn_id)

        try:
            await self._send_game_state(conn_id)
            async for raw in websocket:
                await self.handle_message(conn_id, raw)
        except websockets.ConnectionClosed:
            pass
        finally:
            self.connections.pop(conn_id, None)
            logger.info("Connection closed: %s", conn_id)
            await self.dispatch(conn_id, {"kind": "disconnect"})

    async def handle_message(self, conn_id, raw):
        try:
            msg = json.loads(raw)
        except json.JSONDecodeError:
            logger.debug("Dropping non-JSON message from %s", conn_id)
            return
        if not isinstance(msg, dict):
            return

        msg_type = msg.get("type")
        if not isinstance(msg_type, str):
            logger.debug("Dropping message without a type from %s", conn_id)
            return

        if msg_type in MESSAGE_KINDS:
            action = {"kind": MESSAGE_KINDS[msg_type]}
            if msg_type == "join":
                action["name"] = msg.get("name")
            await self.dispatch(conn_id, action)

        elif msg_type == "action":
            action = msg.get("action")
            # Disconnects only come from the socket closing
            if isinstance(action, dict) and action.get("kind") != "disconnect":
                await self.dispatch(conn_id, action)

        elif msg_type == "get_state":
            await self._send_game_state(conn_id)

        else:
            logger.debug("Dropping unknown message type %r from %s", msg_type, conn_id)

    async def dispatch(self, conn_id, action):
        """Apply one event and notify whoever needs to hear about it."""
        async with self._lock:
            result = self.engine.apply_action(self.state, conn_id, action)

            if not result.accepted:
                logger.debug("Rejected %s from %s: %s", action.get("kind"), conn_id, result.reason)
                if result.error:
                    await self._send_to(conn_id, {"type": "error_msg", "message": result.error})
                return result

            self.state = result.new_state
            for line in result.log:
                logger.info("[match] %s", line)

            await self._broadcast_game_state()
            if result.log:
                await self._broadcast({"type": "log", "messages": result.log})
            return result

    # ── Broadcasting ─────────────────────────────────────────────────

    async def _send(self, websocket, data):
        try:
            await websocket.send(json.dumps(data))
        except websockets.ConnectionClosed:
            pass

    async def _send_to(self, conn_id, data):
        websocket = self.connections.get(conn_id)
        if websocket is not None:
            await self._send(websocket, data)

    async def _broadcast(self, data):
        """Send the same message to every open connection."""
        for websocket in list(self.connections.values()):
            await self._send(websocket, data)

    async def _send_game_state(self, conn_id):
        """Send personalized match view to one connection."""
        view = self.engine.get_player_view(self.state, conn_id)
        waiting_for = self.engine.get_waiting_for(self.state)

        await self._send_to(conn_id, {
            "type": "state",
            "state": view,
            "phase_info": self.engine.get_phase_info(self.state),
            "valid_actions": self.engine.get_valid_actions(self.state, conn_id),
            "your_turn": conn_id in waiting_for,
        })

    async def _broadcast_game_state(self):
        for conn_id in list(self.connections):
            await self._send_game_state(conn_id)


# ── Server Entry Point ───────────────────────────────────────────────

async def run_server(config=None):
    config = config or load_config()
    rng = random.Random(config.seed)
    server = GameServer(ShardRingEngine(rng=rng, rooms=config.rooms))

    print(f"Shard Ring server starting on ws://{config.host}:{config.port}")

    async with websockets.serve(server.handle_connection, config.host, config.port):
        print("Server running. Ctrl+C to stop.")
        await asyncio.Future()  # run forever


def main():
    config = load_config()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(run_server(config))


if __name__ == "__main__":
    main()
