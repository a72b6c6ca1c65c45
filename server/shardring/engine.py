"""
Shard Ring — game engine implementation.

Implements the GameEngine interface as a pure state machine.
All state is a plain dict. No side effects, no networking.

Phase machine:
  lobby → setup (one roll per player, then the demon's roll) → playing

Inside playing, the current player spends action points on rotate / move /
swap until they end their turn. When the turn pointer wraps, the demon
moves and the next round starts.
"""

import random
from copy import deepcopy

from server.game_engine import GameEngine, ActionResult
from server.shardring.state import (
    LOBBY, SETUP, PLAYING, ROOMS, SLOTS, MAX_PLAYERS, DEFAULT_SLOT,
    PLAYER_COLORS, ROTATION_STEP,
    create_initial_state, create_player, find_shard, player_by_id,
)
from server.shardring.topology import (
    COLOR_MISMATCH, NOT_ADJACENT, check_connection, neighbors,
)
from server.shardring.demon import run_demon
from server.shardring.errors import (
    ShardRingError, WrongPhase, RoomFull, NotInMatch, NotYourTurn,
    UnknownAction, InsufficientAP, InvalidTarget, NotAdjacent,
    ColorMismatch, DemonBlocksAbility,
)

ACTION_COSTS = {
    "rotate": 1,
    "move": 1,
    "swap": 2,
}

TURN_ACTIONS = ("end_turn",) + tuple(ACTION_COSTS)

# Bound on dead-player skipping when the turn advances
MAX_TURN_SKIPS = 10


class ShardRingEngine(GameEngine):

    def __init__(self, rng=None, rooms=ROOMS, slots=SLOTS):
        self.rng = rng if rng is not None else random.Random()
        self.rooms = rooms
        self.slots = slots

    # ── Setup ─────────────────────────────────────────────────────────

    def initial_state(self):
        return create_initial_state(self.rng, self.rooms, self.slots)

    # ── Views ─────────────────────────────────────────────────────────

    def get_player_view(self, state, player_id):
        """Everything is public except the connection handles."""
        view = deepcopy(state)
        me = player_by_id(state, player_id)
        for p in view["players"]:
            p.pop("player_id", None)
        view["you"] = me["index"] if me else None
        return view

    def get_valid_actions(self, state, player_id):
        phase = state["phase"]
        me = player_by_id(state, player_id)

        if phase == LOBBY:
            if me is None:
                if len(state["players"]) < MAX_PLAYERS:
                    return [{"kind": "join"}]
                return []
            return [{"kind": "start"}]

        if phase == SETUP:
            if player_id in self.get_waiting_for(state):
                return [{"kind": "roll_dice"}]
            return []

        if phase == PLAYING:
            if me is None or self._current_player(state) is not me:
                return []
            return self._valid_turn_actions(state, me)

        return []

    def get_waiting_for(self, state):
        players = state["players"]
        phase = state["phase"]

        if phase == SETUP:
            step = state["setup_step"]
            if step < len(players):
                return [players[step]["player_id"]]
            # Anyone may trigger the demon's roll
            return [p["player_id"] for p in players if p["alive"]]

        if phase == PLAYING:
            current = self._current_player(state)
            if current and current["alive"]:
                return [current["player_id"]]

        return []

    def get_phase_info(self, state):
        phase = state["phase"]
        players = state["players"]
        current = None
        description = phase

        if phase == LOBBY:
            description = f"Waiting for players ({len(players)}/{MAX_PLAYERS})"
        elif phase == SETUP:
            step = state["setup_step"]
            if step < len(players):
                current = players[step]["name"]
                description = f"{current}: Roll for a starting room"
            else:
                description = "Roll for the demon's room"
        elif phase == PLAYING:
            player = self._current_player(state)
            if player:
                current = player["name"]
                description = f"{current}: Rotate, move, swap or end turn ({player['ap']} AP)"

        return {
            "phase": phase,
            "round": state["round"],
            "current_player": current,
            "description": description,
        }

    # ── Action Dispatch ───────────────────────────────────────────────

    def apply_action(self, state, player_id, action):
        kind = action.get("kind") if isinstance(action, dict) else None
        new_state = deepcopy(state)

        try:
            if kind == "join":
                log = self._do_join(new_state, player_id, action)
            elif kind == "start":
                log = self._do_start(new_state)
            elif kind == "roll_dice":
                log = self._do_roll_dice(new_state, player_id)
            elif kind == "disconnect":
                log = self._do_disconnect(new_state, player_id)
            elif kind in TURN_ACTIONS:
                log = self._do_turn_action(new_state, player_id, kind, action)
            else:
                raise UnknownAction(f"Unknown action kind: {kind}")
        except ShardRingError as e:
            error = None
            if kind == "join" and isinstance(e, (WrongPhase, RoomFull)):
                error = str(e)
            return ActionResult(new_state=state, accepted=False, reason=e.code, error=error)

        new_state["log"].extend(log)
        return ActionResult(new_state=new_state, log=log)

    # ── Lobby / Setup ─────────────────────────────────────────────────

    def _do_join(self, state, player_id, action):
        players = state["players"]
        if state["phase"] != LOBBY:
            raise WrongPhase("The match is already in progress, you cannot join")
        if len(players) >= MAX_PLAYERS:
            raise RoomFull("The room is full")
        if player_by_id(state, player_id) is not None:
            raise InvalidTarget("Already joined")

        name = action.get("name")
        if not isinstance(name, str):
            name = None
        player = create_player(len(players), player_id, name and name.strip())
        players.append(player)
        return [f"{player['name']} joined the match"]

    def _do_start(self, state):
        if state["phase"] != LOBBY:
            raise WrongPhase("Match already started")
        if not state["players"]:
            raise NotInMatch("Need at least one player")

        state["phase"] = SETUP
        state["setup_step"] = 0
        return ["The match begins! Roll for your starting rooms"]

    def _do_roll_dice(self, state, player_id):
        if state["phase"] != SETUP:
            raise WrongPhase("Not rolling right now")

        players = state["players"]
        step = state["setup_step"]

        if step < len(players):
            roller = players[step]
            if roller["player_id"] != player_id:
                raise NotYourTurn(f"Waiting for {roller['name']} to roll")
            roll = self.rng.randrange(state["rooms"])
            roller["room"] = roll
            roller["slot"] = DEFAULT_SLOT
            state["setup_step"] += 1
            self._skip_fallen_rollers(state)
            return [f"{roller['name']} rolled {roll + 1}"]

        roll = self.rng.randrange(state["rooms"])
        state["demon"]["room"] = roll
        state["phase"] = PLAYING
        state["turn_idx"] = 0
        log = [f"The demon descends on room {roll + 1}"]
        if not players[0]["alive"]:
            log += self._advance_turn(state)
        return log

    def _skip_fallen_rollers(self, state):
        """Players who left during setup never get to roll."""
        players = state["players"]
        while state["setup_step"] < len(players) and not players[state["setup_step"]]["alive"]:
            state["setup_step"] += 1

    def _do_disconnect(self, state, player_id):
        player = player_by_id(state, player_id)
        if player is None:
            raise NotInMatch("Connection has no player")

        players = state["players"]
        if state["phase"] == LOBBY:
            # Public indices are positional: close the gap and recolor
            players.remove(player)
            for i, p in enumerate(players):
                p["index"] = i
                p["color"] = PLAYER_COLORS[i]
            return [f"{player['name']} left the lobby"]

        held_turn = state["phase"] == PLAYING and self._current_player(state) is player
        player["alive"] = False
        player["name"] += " (offline)"
        log = [f"{player['name']} disconnected"]

        if state["phase"] == SETUP:
            self._skip_fallen_rollers(state)
        elif held_turn:
            log += self._advance_turn(state)
        return log

    # ── Turn Actions ──────────────────────────────────────────────────

    def _do_turn_action(self, state, player_id, kind, action):
        if state["phase"] != PLAYING:
            raise WrongPhase("Match is not in play")
        player = self._current_player(state)
        if player is None or player["player_id"] != player_id:
            raise NotYourTurn("Not your turn")

        if kind == "end_turn":
            return self._advance_turn(state)

        room, slot = self._parse_target(action.get("target"))
        cost = ACTION_COSTS[kind]
        if player["ap"] < cost:
            raise InsufficientAP(f"{kind} costs {cost} AP, {player['ap']} left")
        shard = find_shard(state, room, slot)
        if shard is None:
            raise InvalidTarget(f"No shard at room {room} slot {slot}")

        if kind == "rotate":
            log = self._do_rotate(state, player, shard)
        elif kind == "move":
            log = self._do_move(state, player, room, slot)
        else:
            log = self._do_swap(state, player, shard)

        player["ap"] -= cost
        return log

    def _do_rotate(self, state, player, shard):
        if (shard["room"], shard["slot"]) != (player["room"], player["slot"]):
            raise InvalidTarget("Can only rotate the shard you stand on")
        if player["room"] == state["demon"]["room"]:
            raise DemonBlocksAbility("The demon is in this room")

        shard["rotation"] = (shard["rotation"] + ROTATION_STEP) % 360
        return [f"{player['name']} rotated a shard"]

    def _do_move(self, state, player, room, slot):
        here = (player["room"], player["slot"])
        if here == (room, slot):
            raise InvalidTarget("Already standing there")

        connection = check_connection(state, here, (room, slot))
        if not connection.ok:
            if connection.reason == NOT_ADJACENT:
                raise NotAdjacent("Positions are not adjacent")
            if connection.reason == COLOR_MISMATCH:
                raise ColorMismatch("Edge colors do not match")
            raise InvalidTarget("Missing shard data")

        player["room"] = room
        player["slot"] = slot
        return [f"{player['name']} moved to room {room + 1}"]

    def _do_swap(self, state, player, shard):
        demon_room = state["demon"]["room"]
        if player["room"] == demon_room or shard["room"] == demon_room:
            raise DemonBlocksAbility("The demon blocks the swap")
        mine = find_shard(state, player["room"], player["slot"])
        if mine is None:
            raise InvalidTarget("No shard under the player")

        mine["rotation"], shard["rotation"] = shard["rotation"], mine["rotation"]
        mine["edges"], shard["edges"] = shard["edges"], mine["edges"]
        return [f"{player['name']} swapped two shards across space"]

    # ── Valid Action Generators ───────────────────────────────────────

    def _valid_turn_actions(self, state, player):
        actions = [{"kind": "end_turn"}]
        here = (player["room"], player["slot"])
        demon_room = state["demon"]["room"]

        if player["ap"] >= ACTION_COSTS["rotate"] and player["room"] != demon_room:
            if find_shard(state, *here):
                actions.append(self._target_action("rotate", *here))

        if player["ap"] >= ACTION_COSTS["move"]:
            for pos in neighbors(player["room"], player["slot"], state["rooms"]):
                if check_connection(state, here, pos).ok:
                    actions.append(self._target_action("move", *pos))

        if player["ap"] >= ACTION_COSTS["swap"] and player["room"] != demon_room:
            for shard in state["shards"]:
                pos = (shard["room"], shard["slot"])
                if shard["room"] != demon_room and pos != here:
                    actions.append(self._target_action("swap", *pos))

        return actions

    # ── Helpers ───────────────────────────────────────────────────────

    def _current_player(self, state):
        players = state["players"]
        if 0 <= state["turn_idx"] < len(players):
            return players[state["turn_idx"]]
        return None

    def _parse_target(self, target):
        if not isinstance(target, dict):
            raise InvalidTarget("Missing target")
        room, slot = target.get("room"), target.get("slot")
        for value in (room, slot):
            if not isinstance(value, int) or isinstance(value, bool):
                raise InvalidTarget("Malformed target position")
        return room, slot

    def _target_action(self, kind, room, slot):
        return {"kind": kind, "target": {"room": room, "slot": slot}}

    def _advance_turn(self, state):
        """
        Pass the turn to the next living player.

        Wrapping past the last player ends the round and runs the demon.
        Gives up after MAX_TURN_SKIPS steps if nobody is alive.
        """
        players = state["players"]
        log = []
        for _ in range(MAX_TURN_SKIPS):
            state["turn_idx"] += 1
            if state["turn_idx"] >= len(players):
                state["turn_idx"] = 0
                log += run_demon(state)
            if players[state["turn_idx"]]["alive"]:
                log.append(f"It is {players[state['turn_idx']]['name']}'s turn")
                break
        return log
