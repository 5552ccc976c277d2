"""
Battle domain models.

Plain dataclasses for battles, selections and transfer records. The ORM
rows in ``cardarena.models.db`` are converted to these at the service
boundary.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class BattleStatus(str, Enum):
    """Battle lifecycle states."""

    PENDING = "pending"
    SELECTING = "selecting"
    ACTIVE = "active"
    CARDS_REVEALED = "cards_revealed"
    COMPLETED = "completed"


class BattleOutcome(str, Enum):
    """Outcome kind stored on a completed battle."""

    VICTORY = "victory"
    DRAW = "draw"


class OutcomeReason(str, Enum):
    """Which rule decided a duel."""

    TYPE_ADVANTAGE = "type_advantage"
    PRIMARY_ATTRIBUTE = "primary_attribute"
    EQUAL_PRIMARY_ATTRIBUTE = "equal_primary_attribute"


@dataclass(frozen=True, slots=True)
class BattleResult:
    """Structured result payload stored on a completed battle."""

    outcome: BattleOutcome
    reason: OutcomeReason
    margin: int
    challenger_total: int
    opponent_total: int
    explanation: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "reason": self.reason.value,
            "margin": self.margin,
            "challenger_total": self.challenger_total,
            "opponent_total": self.opponent_total,
            "explanation": self.explanation,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BattleResult":
        return cls(
            outcome=BattleOutcome(data["outcome"]),
            reason=OutcomeReason(data["reason"]),
            margin=int(data["margin"]),
            challenger_total=int(data["challenger_total"]),
            opponent_total=int(data["opponent_total"]),
            explanation=data["explanation"],
        )


@dataclass(frozen=True, slots=True)
class Selection:
    """A participant's committed card choice for one battle."""

    battle_id: str
    player_id: str
    card_id: str
    submitted_at: datetime


@dataclass(frozen=True, slots=True)
class Battle:
    """
    One duel between two participants.

    Winner/loser fields and ``result`` are only set once the battle is
    completed. A completed battle with no winner is a draw.
    """

    id: str
    challenger_id: str
    opponent_id: str
    status: BattleStatus
    created_at: datetime
    winner_id: str | None = None
    loser_id: str | None = None
    winner_card_id: str | None = None
    loser_card_id: str | None = None
    result: BattleResult | None = None
    completed_at: datetime | None = None
    selections: list[Selection] = field(default_factory=list)

    def is_completed(self) -> bool:
        return self.status == BattleStatus.COMPLETED


@dataclass(frozen=True, slots=True)
class TransferRecord:
    """Append-only audit entry for one card changing owner."""

    card_id: str
    previous_owner_id: str
    new_owner_id: str
    battle_id: str
    transferred_at: datetime


@dataclass(frozen=True, slots=True)
class ResolutionResult:
    """
    Summary returned by the resolution engine.

    ``already_resolved`` is True when the battle had been completed by an
    earlier or concurrent call and this call performed no writes.
    """

    battle_id: str
    outcome: BattleOutcome
    reason: OutcomeReason
    margin: int
    explanation: str
    winner_id: str | None = None
    loser_id: str | None = None
    winner_card_id: str | None = None
    loser_card_id: str | None = None
    already_resolved: bool = False

    @property
    def transferred_card_id(self) -> str | None:
        """The loser's card, which now belongs to the winner."""
        if self.outcome == BattleOutcome.DRAW:
            return None
        return self.loser_card_id
