"""
Resolution Engine.

Computes a battle's outcome and applies its side effects exactly once:

    1. Load the battle as stored; a completed battle returns its stored result.
    2. Promote ``active`` to ``cards_revealed`` when both selections exist.
    3. Load both selected cards and run the outcome calculator.
    4. In ONE transaction: compare-and-swap ``cards_revealed -> completed``
       with the result, move the loser's card to the winner, append the
       transfer record, insert both notifications.
    5. After commit, broadcast ``battle_resolved``.

Client polling, the background sweep and manual calls may all invoke
``resolve`` for the same battle at once. The status compare-and-swap in
step 4 lets exactly one of them write; the others roll back and return the
stored result with ``already_resolved=True``.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from cardarena.db.operations import (
    add_notifications,
    add_transfer_record,
    card_to_model,
    complete_battle,
    get_battle,
    get_cards,
    reassign_card_owner,
)
from cardarena.models.battle import (
    BattleOutcome,
    BattleResult,
    BattleStatus,
    ResolutionResult,
)
from cardarena.models.card import Card, CardKind
from cardarena.models.db import BattleDB, BattleSelectionDB
from cardarena.models.failure import (
    BattleNotFoundError,
    ConcurrentResolutionLost,
    InvalidStateError,
    KnownError,
    MissingCardDataError,
)
from cardarena.services.battle_state import both_selected, can_trigger_resolution, transition
from cardarena.services.broadcaster import BATTLE_RESOLVED, Broadcaster, broadcast
from cardarena.services.outcome import DuelResult, compute_outcome

logger = logging.getLogger(__name__)


def build_notifications(
    challenger_id: str,
    opponent_id: str,
    winner_id: str | None,
    explanation: str,
) -> dict[str, str]:
    """One message per participant; wording depends on win, loss or draw."""
    if winner_id is None:
        message = f"Your battle ended in a draw. {explanation}"
        return {challenger_id: message, opponent_id: message}

    won = f"You won the battle! {explanation} You claimed your opponent's card!"
    lost = f"You lost the battle. {explanation} Your card was claimed by the winner."
    return {
        challenger_id: won if winner_id == challenger_id else lost,
        opponent_id: won if winner_id == opponent_id else lost,
    }


def result_from_battle(battle: BattleDB, already_resolved: bool) -> ResolutionResult:
    """Rebuild a resolution result from a completed battle row."""
    if battle.result is None:
        msg = f"Completed battle {battle.id} has no stored result"
        raise RuntimeError(msg)
    stored = BattleResult.from_dict(battle.result)
    return ResolutionResult(
        battle_id=battle.id,
        outcome=stored.outcome,
        reason=stored.reason,
        margin=stored.margin,
        explanation=stored.explanation,
        winner_id=battle.winner_id,
        loser_id=battle.loser_id,
        winner_card_id=battle.winner_card_id,
        loser_card_id=battle.loser_card_id,
        already_resolved=already_resolved,
    )


class BattleResolver:
    """
    Resolves battles exactly once under concurrent and repeated calls.

    Each ``resolve`` call owns the transaction of the session it is given:
    it commits on success and rolls back on every failure, so a failed or
    abandoned call leaves the battle unchanged.
    """

    def __init__(self, broadcaster: Broadcaster | None = None):
        self.broadcaster = broadcaster

    async def resolve(self, session: AsyncSession, battle_id: str) -> ResolutionResult:
        """
        Resolve a battle.

        Raises:
            BattleNotFoundError: If the battle does not exist.
            InvalidStateError: If the battle is not ready for resolution.
            MissingCardDataError: If a selected card cannot be loaded or has
                changed owner.
        """
        try:
            return await self._resolve(session, battle_id)
        except KnownError:
            await session.rollback()
            raise

    async def _resolve(self, session: AsyncSession, battle_id: str) -> ResolutionResult:
        battle = await self._reload(session, battle_id)

        if battle.status == BattleStatus.COMPLETED.value:
            logger.debug("Battle %s already completed", battle_id)
            return result_from_battle(battle, already_resolved=True)

        if battle.status == BattleStatus.ACTIVE.value and await both_selected(session, battle_id):
            await transition(session, battle_id, BattleStatus.ACTIVE, BattleStatus.CARDS_REVEALED)
            battle = await self._reload(session, battle_id)
            if battle.status == BattleStatus.COMPLETED.value:
                return result_from_battle(battle, already_resolved=True)

        if not can_trigger_resolution(BattleStatus(battle.status)):
            raise InvalidStateError(battle_id, current=battle.status, expected="cards_revealed")

        challenger_card, opponent_card = await self._load_cards(session, battle)

        outcome = compute_outcome(challenger_card, opponent_card)

        winner_id: str | None = None
        loser_id: str | None = None
        winner_card_id: str | None = None
        loser_card_id: str | None = None
        if outcome.result == DuelResult.WIN_A:
            winner_id, loser_id = battle.challenger_id, battle.opponent_id
            winner_card_id, loser_card_id = challenger_card.id, opponent_card.id
        elif outcome.result == DuelResult.WIN_B:
            winner_id, loser_id = battle.opponent_id, battle.challenger_id
            winner_card_id, loser_card_id = opponent_card.id, challenger_card.id

        stored = BattleResult(
            outcome=BattleOutcome.DRAW if outcome.is_draw else BattleOutcome.VICTORY,
            reason=outcome.reason,
            margin=outcome.margin,
            challenger_total=challenger_card.attributes.total(),
            opponent_total=opponent_card.attributes.total(),
            explanation=outcome.explanation,
        )

        try:
            await complete_battle(
                session,
                battle_id,
                winner_id=winner_id,
                loser_id=loser_id,
                winner_card_id=winner_card_id,
                loser_card_id=loser_card_id,
                result=stored,
            )
        except ConcurrentResolutionLost:
            await session.rollback()
            logger.info("Battle %s was resolved by another caller", battle_id)
            battle = await self._reload(session, battle_id)
            if battle.status != BattleStatus.COMPLETED.value:
                raise InvalidStateError(
                    battle_id, current=battle.status, expected="cards_revealed"
                ) from None
            return result_from_battle(battle, already_resolved=True)

        if winner_id is not None and loser_id is not None and loser_card_id is not None:
            moved = await reassign_card_owner(session, loser_card_id, loser_id, winner_id)
            if not moved:
                raise MissingCardDataError(battle_id, loser_card_id, "card changed owner")
            await add_transfer_record(
                session,
                card_id=loser_card_id,
                previous_owner_id=loser_id,
                new_owner_id=winner_id,
                battle_id=battle_id,
            )

        await add_notifications(
            session,
            battle_id,
            build_notifications(
                battle.challenger_id, battle.opponent_id, winner_id, outcome.explanation
            ),
        )
        await session.commit()

        logger.info(
            "Resolved battle %s: %s (winner=%s, margin=%d)",
            battle_id,
            stored.outcome.value,
            winner_id,
            stored.margin,
        )

        result = ResolutionResult(
            battle_id=battle_id,
            outcome=stored.outcome,
            reason=stored.reason,
            margin=stored.margin,
            explanation=stored.explanation,
            winner_id=winner_id,
            loser_id=loser_id,
            winner_card_id=winner_card_id,
            loser_card_id=loser_card_id,
        )

        if self.broadcaster is not None:
            await broadcast(
                self.broadcaster,
                battle_id,
                BATTLE_RESOLVED,
                {
                    "battle_id": battle_id,
                    "winner_id": winner_id,
                    "loser_id": loser_id,
                    "battle_result": stored.to_dict(),
                },
            )

        return result

    @staticmethod
    async def _reload(session: AsyncSession, battle_id: str) -> BattleDB:
        battle = await get_battle(session, battle_id)
        if battle is None:
            raise BattleNotFoundError(battle_id)
        return battle

    @staticmethod
    async def _load_cards(session: AsyncSession, battle: BattleDB) -> tuple[Card, Card]:
        """Load (challenger card, opponent card), checking each is still its selector's."""
        selections: dict[str, BattleSelectionDB] = {s.player_id: s for s in battle.selections}
        ordered = []
        for player_id in (battle.challenger_id, battle.opponent_id):
            selection = selections.get(player_id)
            if selection is None:
                raise MissingCardDataError(battle.id, None, f"no selection for {player_id}")
            ordered.append(selection)

        cards = await get_cards(session, [s.card_id for s in ordered])

        loaded: list[Card] = []
        for selection in ordered:
            db_card = cards.get(selection.card_id)
            if db_card is None:
                raise MissingCardDataError(battle.id, selection.card_id, "card not found")
            if db_card.owner_id != selection.player_id:
                raise MissingCardDataError(
                    battle.id, selection.card_id, "card no longer owned by its selector"
                )
            if db_card.kind not in {kind.value for kind in CardKind}:
                raise MissingCardDataError(
                    battle.id, selection.card_id, f"unknown card kind '{db_card.kind}'"
                )
            loaded.append(card_to_model(db_card))

        return loaded[0], loaded[1]
