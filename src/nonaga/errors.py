"""Rule violations raised by the NONAGA state machine."""

from __future__ import annotations

from enum import Enum


class ViolationKind(str, Enum):
    CONFLICT = "conflict"
    UNKNOWN_ACTOR = "unknown_actor"
    NOT_YOUR_TURN = "not_your_turn"
    WRONG_PHASE = "wrong_phase"
    INVALID_SELECTION = "invalid_selection"
    ILLEGAL_MOVE = "illegal_move"


class RuleViolation(Exception):
    """Base class for rejected commands.

    Every subclass is recoverable: the caller refetches state and retries.
    The rejected state is never modified.
    """

    kind: ViolationKind = ViolationKind.CONFLICT

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class Conflict(RuleViolation):
    """Operation not valid for the game's current status."""

    kind = ViolationKind.CONFLICT


class NotPlaying(Conflict):
    pass


class UnknownActor(RuleViolation):
    kind = ViolationKind.UNKNOWN_ACTOR


class NotYourTurn(RuleViolation):
    kind = ViolationKind.NOT_YOUR_TURN


class WrongPhase(RuleViolation):
    kind = ViolationKind.WRONG_PHASE


class InvalidSelection(RuleViolation):
    """Referenced piece or tile does not exist or may not be moved."""

    kind = ViolationKind.INVALID_SELECTION


class NoSuchPiece(InvalidSelection):
    pass


class WrongOwner(InvalidSelection):
    pass


class NoSuchTile(InvalidSelection):
    pass


class TileNotMovable(InvalidSelection):
    pass


class IllegalMove(RuleViolation):
    kind = ViolationKind.ILLEGAL_MOVE


class EngineInvariantError(RuntimeError):
    """State is corrupt: a guaranteed legal move or invariant is missing."""
