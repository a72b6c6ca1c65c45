"""
Shard adjacency and color matching for Shard Ring.

Rooms form a ring; each room holds four slots (S0..S3). Two shards touch
along one physical edge each, and a move between them is open only when
the colors shown on those two edges agree.

Adjacency table (edges are physical edge indices, from-side first):

  same room   S1-S0 (1,0)   S0-S2 (2,2)   S0-S3 (1,2)
  clockwise   S1-S1 (2,0)   S3-S2 (0,0)
  counter-cw  S1-S1 (0,2)   S2-S3 (0,0)

There are no S1-S2, S1-S3 or S2-S3 links inside a room.
"""

from collections import namedtuple

from server.shardring.state import ROTATION_STEP, find_shard

SAME = "same"
CW = "cw"
CCW = "ccw"

Link = namedtuple("Link", ["from_slot", "to_slot", "direction", "edges"])
Connection = namedtuple("Connection", ["ok", "reason", "edges"])

NOT_ADJACENT = "not_adjacent"
MISSING_SHARD = "missing_shard"
COLOR_MISMATCH = "color_mismatch"

ADJACENCY = (
    Link(1, 0, SAME, (1, 0)),
    Link(0, 1, SAME, (0, 1)),
    Link(0, 2, SAME, (2, 2)),
    Link(2, 0, SAME, (2, 2)),
    Link(0, 3, SAME, (1, 2)),
    Link(3, 0, SAME, (2, 1)),
    Link(1, 1, CW, (2, 0)),
    Link(3, 2, CW, (0, 0)),
    Link(1, 1, CCW, (0, 2)),
    Link(2, 3, CCW, (0, 0)),
)


def _target_room(room, direction, rooms):
    if direction == CW:
        return (room + 1) % rooms
    if direction == CCW:
        return (room - 1) % rooms
    return room


def get_adjacency(frm, to, rooms):
    """
    Return the (from_edge, to_edge) pair joining two positions, or None.

    Positions are (room, slot) tuples. Across rooms the clockwise links are
    tried before the counter-clockwise ones.
    """
    (from_room, from_slot), (to_room, to_slot) = frm, to
    if from_room == to_room:
        directions = (SAME,)
    else:
        directions = (CW, CCW)

    for direction in directions:
        if _target_room(from_room, direction, rooms) != to_room:
            continue
        for link in ADJACENCY:
            if link.direction == direction and link.from_slot == from_slot and link.to_slot == to_slot:
                return link.edges
    return None


def displayed_color(shard, edge):
    """Color a shard shows on physical edge `edge` given its rotation."""
    steps = shard["rotation"] // ROTATION_STEP
    return shard["edges"][(edge - steps + 3) % 3]


def check_connection(state, frm, to):
    """
    Decide whether a player may walk from one position to another.

    Returns a Connection; `reason` tells apart a missing link, a missing
    shard, and a color mismatch.
    """
    edges = get_adjacency(frm, to, state["rooms"])
    if edges is None:
        return Connection(False, NOT_ADJACENT, None)

    a = find_shard(state, *frm)
    b = find_shard(state, *to)
    if a is None or b is None:
        return Connection(False, MISSING_SHARD, edges)

    if displayed_color(a, edges[0]) != displayed_color(b, edges[1]):
        return Connection(False, COLOR_MISMATCH, edges)
    return Connection(True, None, edges)


def neighbors(room, slot, rooms):
    """Return every position linked to (room, slot), in table order."""
    found = []
    for link in ADJACENCY:
        if link.from_slot != slot:
            continue
        pos = (_target_room(room, link.direction, rooms), link.to_slot)
        # On rings of one or two rooms several links collapse onto one target
        if pos not in found and get_adjacency((room, slot), pos, rooms) is not None:
            found.append(pos)
    return found
