"""
Selection Store.

Each participant commits exactly one card per battle. A slot is set-once:
re-submitting the same card is accepted as a no-op, a different card is
rejected with ALREADY_SELECTED. The second accepted selection reveals the
battle (``selecting -> active -> cards_revealed``) in the same transaction.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cardarena.db.operations import (
    add_selection,
    card_in_open_battle,
    get_card,
    get_selection,
    lock_card,
)
from cardarena.models.battle import BattleStatus
from cardarena.models.card import CardKind
from cardarena.models.failure import FailureKind, InvalidStateError, SelectionRejectedError
from cardarena.services.battle_state import can_select_card, load_battle, reveal_if_ready
from cardarena.services.broadcaster import CARD_SELECTED, CARDS_REVEALED, Broadcaster, broadcast

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SelectionReceipt:
    """Result of an accepted selection."""

    battle_id: str
    player_id: str
    card_id: str
    status: BattleStatus
    recorded: bool
    both_selected: bool


async def _check_card(session: AsyncSession, battle_id: str, player_id: str, card_id: str) -> None:
    card = await get_card(session, card_id)
    if card is None:
        raise SelectionRejectedError(FailureKind.INVALID_CARD, detail="Card does not exist")
    if card.owner_id != player_id:
        raise SelectionRejectedError(FailureKind.INVALID_CARD, detail="You do not own this card")
    if card.kind not in {kind.value for kind in CardKind}:
        raise SelectionRejectedError(
            FailureKind.INVALID_CARD, detail=f"Card kind '{card.kind}' cannot battle"
        )
    if not await lock_card(session, card_id, player_id):
        raise SelectionRejectedError(FailureKind.INVALID_CARD, detail="You do not own this card")
    if await card_in_open_battle(session, card_id, exclude_battle_id=battle_id):
        raise SelectionRejectedError(
            FailureKind.INVALID_CARD, detail="Card is already committed to another battle"
        )


async def submit_selection(
    session: AsyncSession,
    battle_id: str,
    player_id: str,
    card_id: str,
    broadcaster: Broadcaster | None = None,
) -> SelectionReceipt:
    """
    Record a participant's card choice and commit.

    Raises:
        BattleNotFoundError: If the battle does not exist.
        SelectionRejectedError: NOT_PARTICIPANT, ALREADY_SELECTED or INVALID_CARD.
        InvalidStateError: If the battle is not accepting selections.
    """
    battle = await load_battle(session, battle_id, for_update=True)

    if not (player_id == battle.challenger_id or player_id == battle.opponent_id):
        raise SelectionRejectedError(FailureKind.NOT_PARTICIPANT)

    existing = await get_selection(session, battle_id, player_id)
    if existing is not None:
        if existing.card_id != card_id:
            raise SelectionRejectedError(FailureKind.ALREADY_SELECTED)
        return SelectionReceipt(
            battle_id=battle_id,
            player_id=player_id,
            card_id=card_id,
            status=BattleStatus(battle.status),
            recorded=False,
            both_selected=len(battle.selections) == 2,
        )

    if not can_select_card(BattleStatus(battle.status)):
        raise InvalidStateError(battle_id, current=battle.status, expected="selecting")

    await _check_card(session, battle_id, player_id, card_id)

    try:
        await add_selection(session, battle_id, player_id, card_id)
    except IntegrityError:
        # Lost a race against a duplicate submission from the same player
        await session.rollback()
        existing = await get_selection(session, battle_id, player_id)
        if existing is None or existing.card_id != card_id:
            raise SelectionRejectedError(FailureKind.ALREADY_SELECTED) from None
        battle = await load_battle(session, battle_id)
        return SelectionReceipt(
            battle_id=battle_id,
            player_id=player_id,
            card_id=card_id,
            status=BattleStatus(battle.status),
            recorded=False,
            both_selected=len(battle.selections) == 2,
        )

    revealed = await reveal_if_ready(session, battle_id)
    await session.commit()

    battle = await load_battle(session, battle_id)
    both = len(battle.selections) == 2
    logger.info(
        "Player %s selected card %s in battle %s (both selected: %s)",
        player_id,
        card_id,
        battle_id,
        both,
    )

    if broadcaster is not None:
        await broadcast(
            broadcaster,
            battle_id,
            CARD_SELECTED,
            {"battle_id": battle_id, "player_id": player_id, "both_selected": both},
        )
        if revealed:
            await broadcast(
                broadcaster,
                battle_id,
                CARDS_REVEALED,
                {"battle_id": battle_id, "status": battle.status},
            )

    return SelectionReceipt(
        battle_id=battle_id,
        player_id=player_id,
        card_id=card_id,
        status=BattleStatus(battle.status),
        recorded=True,
        both_selected=both,
    )
