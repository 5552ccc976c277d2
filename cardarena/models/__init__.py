from cardarena.models.battle import (
    Battle,
    BattleOutcome,
    BattleResult,
    BattleStatus,
    OutcomeReason,
    ResolutionResult,
    Selection,
    TransferRecord,
)
from cardarena.models.card import Attribute, Attributes, Card, CardKind, beats
from cardarena.models.failure import (
    BattleNotFoundError,
    CardNotFoundError,
    ConcurrentResolutionLost,
    FailureKind,
    InvalidBattleError,
    InvalidCardDataError,
    InvalidStateError,
    KnownError,
    MissingCardDataError,
    SelectionRejectedError,
)

__all__ = [
    "Attribute",
    "Attributes",
    "Battle",
    "BattleNotFoundError",
    "BattleOutcome",
    "BattleResult",
    "BattleStatus",
    "Card",
    "CardKind",
    "CardNotFoundError",
    "ConcurrentResolutionLost",
    "FailureKind",
    "InvalidBattleError",
    "InvalidCardDataError",
    "InvalidStateError",
    "KnownError",
    "MissingCardDataError",
    "OutcomeReason",
    "ResolutionResult",
    "Selection",
    "SelectionRejectedError",
    "TransferRecord",
    "beats",
]
