"""
Battle State Machine.

    pending -> selecting -> active -> cards_revealed -> completed

Every transition is applied as a compare-and-swap on the battle's status,
so concurrent callers can attempt the same transition and exactly one of
them succeeds. ``completed`` is terminal.

The ``selecting -> active -> cards_revealed`` steps share one guard (both
selections present) and are applied together when the second selection
arrives. ``cards_revealed -> completed`` belongs to the resolution engine.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from cardarena.db.operations import count_selections, get_battle, transition_status
from cardarena.models.battle import BattleStatus
from cardarena.models.db import BattleDB
from cardarena.models.failure import BattleNotFoundError

logger = logging.getLogger(__name__)

TRANSITIONS: dict[BattleStatus, tuple[BattleStatus, ...]] = {
    BattleStatus.PENDING: (BattleStatus.SELECTING,),
    BattleStatus.SELECTING: (BattleStatus.ACTIVE,),
    BattleStatus.ACTIVE: (BattleStatus.CARDS_REVEALED,),
    BattleStatus.CARDS_REVEALED: (BattleStatus.COMPLETED,),
    BattleStatus.COMPLETED: (),
}

REQUIRED_SELECTIONS = 2


def can_transition(current: BattleStatus, new: BattleStatus) -> bool:
    """Check if the lifecycle allows moving from ``current`` to ``new``."""
    return new in TRANSITIONS[current]


def can_select_card(status: BattleStatus) -> bool:
    return status == BattleStatus.SELECTING


def can_trigger_resolution(status: BattleStatus) -> bool:
    return status == BattleStatus.CARDS_REVEALED


async def transition(
    session: AsyncSession,
    battle_id: str,
    expected: BattleStatus,
    new: BattleStatus,
) -> bool:
    """
    Apply one lifecycle transition as a compare-and-swap.

    Returns False if the battle was no longer in ``expected``.

    Raises:
        ValueError: If ``expected -> new`` is not a lifecycle edge.
    """
    if not can_transition(expected, new):
        msg = f"Illegal battle transition: {expected.value} -> {new.value}"
        raise ValueError(msg)

    swapped = await transition_status(session, battle_id, expected, new)
    if swapped:
        logger.debug("Battle %s: %s -> %s", battle_id, expected.value, new.value)
    return swapped


async def load_battle(session: AsyncSession, battle_id: str, for_update: bool = False) -> BattleDB:
    """
    Load a battle, starting selection on first access.

    A ``pending`` battle whose two participants are bound moves to
    ``selecting`` here.

    Raises:
        BattleNotFoundError: If the battle does not exist.
    """
    battle = await get_battle(session, battle_id, for_update=for_update)
    if battle is None:
        raise BattleNotFoundError(battle_id)

    if (
        battle.status == BattleStatus.PENDING.value
        and battle.challenger_id
        and battle.opponent_id
    ):
        await transition(session, battle_id, BattleStatus.PENDING, BattleStatus.SELECTING)
        battle = await get_battle(session, battle_id, for_update=for_update)
        if battle is None:
            raise BattleNotFoundError(battle_id)

    return battle


async def both_selected(session: AsyncSession, battle_id: str) -> bool:
    return await count_selections(session, battle_id) == REQUIRED_SELECTIONS


async def reveal_if_ready(session: AsyncSession, battle_id: str) -> bool:
    """
    Move a battle with both selections on to ``cards_revealed``.

    Handles battles found in either ``selecting`` or ``active``. Returns True
    if this call performed the reveal.
    """
    if not await both_selected(session, battle_id):
        return False

    await transition(session, battle_id, BattleStatus.SELECTING, BattleStatus.ACTIVE)
    return await transition(session, battle_id, BattleStatus.ACTIVE, BattleStatus.CARDS_REVEALED)
