"""
Rejection reasons for Shard Ring events.

All of them are ValueErrors raised inside the engine's action helpers and
caught once in apply_action. Only rejected joins ever reach a client.
"""


class ShardRingError(ValueError):
    code = "rejected"


class WrongPhase(ShardRingError):
    code = "wrong_phase"


class RoomFull(ShardRingError):
    code = "room_full"


class NotInMatch(ShardRingError):
    code = "not_in_match"


class NotYourTurn(ShardRingError):
    code = "not_your_turn"


class UnknownAction(ShardRingError):
    code = "unknown_action"


class InsufficientAP(ShardRingError):
    code = "insufficient_ap"


class InvalidTarget(ShardRingError):
    """Missing shard, malformed position, or a target the action can't use."""
    code = "invalid_target"


class NotAdjacent(ShardRingError):
    code = "not_adjacent"


class ColorMismatch(ShardRingError):
    code = "color_mismatch"


class DemonBlocksAbility(ShardRingError):
    code = "demon_blocks_ability"
