"""
Failure classification for battle operations.

Every error a caller can observe is a ``KnownError`` subclass carrying a
``FailureKind``, a human-readable message and the HTTP status the API
layer should use. Routes translate these into ``HTTPException``.

``ConcurrentResolutionLost`` is not a ``KnownError``. It is an
internal signal between the store and the resolution engine and is always
converted into a successful "already resolved" result.
"""

from enum import Enum


class FailureKind(str, Enum):
    """Classification of failure types."""

    # Resource failures
    NOT_FOUND = "not_found"

    # Lifecycle failures
    INVALID_STATE = "invalid_state"

    # Data integrity
    MISSING_CARD_DATA = "missing_card_data"
    INVALID_INPUT = "invalid_input"

    # Selection rejections
    ALREADY_SELECTED = "already_selected"
    NOT_PARTICIPANT = "not_participant"
    INVALID_CARD = "invalid_card"


class KnownError(Exception):
    """
    Base class for exceptions that represent known, explainable failures.

    Subclass this for errors where the system knows exactly what went wrong.
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        status_code: int = 400,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        self.status_code = status_code
        super().__init__(message)


class BattleNotFoundError(KnownError):
    """The referenced battle does not exist."""

    def __init__(self, battle_id: str):
        self.battle_id = battle_id
        super().__init__(
            kind=FailureKind.NOT_FOUND,
            message=f"Battle '{battle_id}' not found",
            status_code=404,
        )


class CardNotFoundError(KnownError):
    """The referenced card does not exist."""

    def __init__(self, card_id: str):
        self.card_id = card_id
        super().__init__(
            kind=FailureKind.NOT_FOUND,
            message=f"Card '{card_id}' not found",
            status_code=404,
        )


class InvalidStateError(KnownError):
    """An operation was attempted on a battle in the wrong state."""

    def __init__(self, battle_id: str, current: str, expected: str):
        self.battle_id = battle_id
        self.current = current
        self.expected = expected
        super().__init__(
            kind=FailureKind.INVALID_STATE,
            message=f"Battle must be {expected}. Current status: {current}",
            detail=f"battle_id={battle_id}",
            status_code=409,
        )


class MissingCardDataError(KnownError):
    """A selection references a card that cannot be fetched or is no longer owned."""

    def __init__(self, battle_id: str, card_id: str | None, reason: str):
        self.battle_id = battle_id
        self.card_id = card_id
        super().__init__(
            kind=FailureKind.MISSING_CARD_DATA,
            message=f"Battle cards could not be loaded: {reason}",
            detail=f"battle_id={battle_id}, card_id={card_id}",
            status_code=422,
        )


class InvalidBattleError(KnownError):
    """A battle could not be created from the given participants."""

    def __init__(self, message: str):
        super().__init__(kind=FailureKind.INVALID_INPUT, message=message, status_code=400)


class InvalidCardDataError(KnownError):
    """Card registration data is outside the allowed ranges."""

    def __init__(self, message: str):
        super().__init__(kind=FailureKind.INVALID_INPUT, message=message, status_code=422)


# Selection rejection reason -> (message, HTTP status)
_SELECTION_REJECTIONS: dict[FailureKind, tuple[str, int]] = {
    FailureKind.ALREADY_SELECTED: ("You have already selected a card for this battle", 409),
    FailureKind.NOT_PARTICIPANT: ("You are not a participant in this battle", 403),
    FailureKind.INVALID_CARD: ("This card cannot be used in this battle", 422),
}


class SelectionRejectedError(KnownError):
    """
    A card selection was refused.

    ``reason`` is one of ALREADY_SELECTED, NOT_PARTICIPANT or INVALID_CARD.
    """

    def __init__(self, reason: FailureKind, detail: str | None = None):
        if reason not in _SELECTION_REJECTIONS:
            msg = f"Not a selection rejection reason: {reason}"
            raise ValueError(msg)
        message, status_code = _SELECTION_REJECTIONS[reason]
        self.reason = reason
        super().__init__(kind=reason, message=message, detail=detail, status_code=status_code)


class ConcurrentResolutionLost(Exception):
    """Another caller completed the battle first; this caller must back off."""

    def __init__(self, battle_id: str):
        self.battle_id = battle_id
        super().__init__(f"Battle '{battle_id}' was resolved by another caller")
