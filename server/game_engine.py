"""
Abstract game engine interface.

The engine owns the rules of a match; the server owns connections.
Every client request reaches the engine as one event through
apply_action, and the server broadcasts whatever comes back.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class ActionResult:
    """Returned by apply_action to tell the server what happened."""
    new_state: dict
    # If non-empty, broadcast a log/message to all observers
    log: list[str] = field(default_factory=list)
    # False means the event was dropped and new_state is the untouched input
    accepted: bool = True
    # Rejection code, for server-side diagnostics only
    reason: Optional[str] = None
    # Message for the requester alone
    error: Optional[str] = None


class GameEngine(ABC):
    """
    Pure-logic game engine. No networking, no rendering — just rules.

    State is always a plain dict (JSON-serializable) so the server can
    store it and send it over the wire as-is.
    """

    @abstractmethod
    def initial_state(self) -> dict:
        """
        Create the empty match state, before anyone has joined.
        Called once when the server starts a match.
        """
        ...

    @abstractmethod
    def get_player_view(self, state: dict, player_id: str) -> dict:
        """
        Return the state as one connection should see it.
        Observers that never joined get a view too.
        """
        ...

    @abstractmethod
    def get_valid_actions(self, state: dict, player_id: str) -> list[dict]:
        """
        Return the list of events this connection can currently submit.
        Each entry is a dict shaped like the action the client sends.
        """
        ...

    @abstractmethod
    def apply_action(self, state: dict, player_id: str, action: dict) -> ActionResult:
        """
        Validate and apply one event to a copy of the state.
        Never raises for bad input: rejections come back with accepted=False.
        """
        ...

    @abstractmethod
    def get_waiting_for(self, state: dict) -> list[str]:
        """
        Return list of player_ids who need to act before the match can proceed.
        """
        ...

    @abstractmethod
    def get_phase_info(self, state: dict) -> dict:
        """
        Return a summary of the current phase for display purposes.
        e.g. {"phase": "playing", "round": 3, "description": "Ana: take actions"}
        """
        ...
