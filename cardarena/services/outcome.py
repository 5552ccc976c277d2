"""
Outcome Calculator.

Pure function deciding a duel between two cards:

1. Different kinds: the type-advantage cycle decides outright.
2. Same kind: the kind's primary attribute decides; the margin is the
   difference. Equal values are a draw.

The calculator knows nothing about challengers or opponents. Callers map
WIN_A / WIN_B back onto participants.
"""

from dataclasses import dataclass
from enum import Enum

from cardarena.models.battle import OutcomeReason
from cardarena.models.card import ADVANTAGE_FLAVOR, Card, beats


class DuelResult(str, Enum):
    """Which of the two compared cards won."""

    WIN_A = "win_a"
    WIN_B = "win_b"
    DRAW = "draw"


@dataclass(frozen=True, slots=True)
class Outcome:
    """Verdict for one pair of cards."""

    result: DuelResult
    reason: OutcomeReason
    margin: int
    explanation: str

    @property
    def is_draw(self) -> bool:
        return self.result == DuelResult.DRAW


def compute_outcome(card_a: Card, card_b: Card) -> Outcome:
    """
    Decide a duel between two cards.

    Deterministic for identical inputs. Swapping the arguments swaps
    WIN_A and WIN_B and keeps the margin.
    """
    if card_a.kind != card_b.kind:
        a_wins = beats(card_a.kind, card_b.kind)
        winner, loser = (card_a, card_b) if a_wins else (card_b, card_a)
        return Outcome(
            result=DuelResult.WIN_A if a_wins else DuelResult.WIN_B,
            reason=OutcomeReason.TYPE_ADVANTAGE,
            margin=0,
            explanation=(
                f"{winner.kind.display_name}'s {ADVANTAGE_FLAVOR[winner.kind]} "
                f"{loser.kind.display_name}!"
            ),
        )

    attribute = card_a.primary_attribute
    attr_name = attribute.value.capitalize()
    value_a = card_a.primary_value
    value_b = card_b.primary_value
    kind_name = card_a.kind.display_name

    if value_a == value_b:
        return Outcome(
            result=DuelResult.DRAW,
            reason=OutcomeReason.EQUAL_PRIMARY_ATTRIBUTE,
            margin=0,
            explanation=f"Both cards are {kind_name} with equal {attr_name} ({value_a})!",
        )

    high, low = max(value_a, value_b), min(value_a, value_b)
    return Outcome(
        result=DuelResult.WIN_A if value_a > value_b else DuelResult.WIN_B,
        reason=OutcomeReason.PRIMARY_ATTRIBUTE,
        margin=high - low,
        explanation=f"Both cards are {kind_name}, but the winner has higher {attr_name} "
        f"({high} vs {low})!",
    )
