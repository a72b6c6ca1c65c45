"""
Constants and state helpers for Shard Ring.

Board dimensions, shard generation, player creation, and initial state.
"""

# ── Board Constants ──────────────────────────────────────────────────

ROOMS = 5
SLOTS = 4
MAX_PLAYERS = 5

START_HP = 3
START_AP = 3
DEFAULT_SLOT = 1

ROTATION_STEP = 120
ROTATIONS = (0, 120, 240)
EDGE_COLORS = (0, 1, 2)

# Cosmetic player colors, indexed by public index
PLAYER_COLORS = ("#00d2d3", "#e056fd", "#ff9f43", "#2ecc71", "#ff6b81")

# ── Phases ───────────────────────────────────────────────────────────

LOBBY = "lobby"
SETUP = "setup"
PLAYING = "playing"


# ── Shard Grid ───────────────────────────────────────────────────────

def generate_shards(rng, rooms=ROOMS, slots=SLOTS):
    """Return rooms*slots shards with random rotation and edge colors."""
    shards = []
    for room in range(rooms):
        for slot in range(slots):
            shards.append({
                "room": room,
                "slot": slot,
                "rotation": ROTATIONS[rng.randrange(len(ROTATIONS))],
                "edges": [EDGE_COLORS[rng.randrange(len(EDGE_COLORS))] for _ in range(3)],
            })
    return shards


def find_shard(state, room, slot):
    """Look up the shard at (room, slot), or None if there is none."""
    for shard in state["shards"]:
        if shard["room"] == room and shard["slot"] == slot:
            return shard
    return None


# ── Player / State Creation ──────────────────────────────────────────

def create_player(index, player_id, name):
    """Create a freshly joined player. Position is set by the setup roll."""
    return {
        "index": index,
        "player_id": player_id,
        "name": name or f"Player {index + 1}",
        "color": PLAYER_COLORS[index],
        "room": None,
        "slot": DEFAULT_SLOT,
        "hp": START_HP,
        "ap": START_AP,
        "alive": True,
    }


def create_initial_state(rng, rooms=ROOMS, slots=SLOTS):
    """Build the empty lobby state with a freshly generated shard grid."""
    return {
        "game": "shardring",
        "rooms": rooms,
        "slots": slots,
        "phase": LOBBY,
        "players": [],
        "demon": {"room": None},
        "shards": generate_shards(rng, rooms, slots),
        "turn_idx": 0,
        "setup_step": 0,
        "round": 0,
        "log": [],
    }


def player_by_id(state, player_id):
    """Return the player bound to a connection, or None for observers."""
    for player in state["players"]:
        if player["player_id"] == player_id:
            return player
    return None
