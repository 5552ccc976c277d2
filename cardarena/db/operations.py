"""
Database CRUD operations.

Provides async functions for cards, battles, selections, ownership
transfers and notifications. Battle status changes go through
``transition_status`` / ``complete_battle``, which are conditional updates
on the expected previous status.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from cardarena.models.battle import (
    Battle,
    BattleResult,
    BattleStatus,
    Selection,
    TransferRecord,
)
from cardarena.models.card import Attributes, Card, CardKind
from cardarena.models.db import (
    BattleDB,
    BattleNotificationDB,
    BattleSelectionDB,
    CardTransferDB,
    PlayerCardDB,
)
from cardarena.models.failure import ConcurrentResolutionLost

# Statuses in which a selected card is still committed to its battle
OPEN_STATUSES = (
    BattleStatus.PENDING.value,
    BattleStatus.SELECTING.value,
    BattleStatus.ACTIVE.value,
    BattleStatus.CARDS_REVEALED.value,
)

# --- Card Operations ---


async def create_card(
    session: AsyncSession,
    owner_id: str,
    name: str,
    kind: CardKind,
    attributes: Attributes,
) -> PlayerCardDB:
    """Create a card owned by ``owner_id``."""
    card = PlayerCardDB(
        owner_id=owner_id,
        name=name,
        kind=kind.value,
        strength=attributes.strength,
        dexterity=attributes.dexterity,
        intelligence=attributes.intelligence,
    )
    session.add(card)
    await session.flush()
    return card


async def get_card(session: AsyncSession, card_id: str) -> PlayerCardDB | None:
    """Get a card by id. Returns None if it does not exist."""
    result = await session.execute(
        select(PlayerCardDB)
        .where(PlayerCardDB.id == card_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_cards(session: AsyncSession, card_ids: list[str]) -> dict[str, PlayerCardDB]:
    """Get several cards at once, keyed by id. Missing ids are absent."""
    if not card_ids:
        return {}
    result = await session.execute(
        select(PlayerCardDB)
        .where(PlayerCardDB.id.in_(card_ids))
        .execution_options(populate_existing=True)
    )
    return {card.id: card for card in result.scalars().all()}


async def list_player_cards(session: AsyncSession, owner_id: str) -> list[PlayerCardDB]:
    """Get all cards currently owned by a player."""
    result = await session.execute(
        select(PlayerCardDB)
        .where(PlayerCardDB.owner_id == owner_id)
        .order_by(PlayerCardDB.created_at, PlayerCardDB.id)
    )
    return list(result.scalars().all())


async def reassign_card_owner(
    session: AsyncSession, card_id: str, expected_owner_id: str, new_owner_id: str
) -> bool:
    """
    Move a card to a new owner if it still belongs to ``expected_owner_id``.

    Returns True if exactly one card was updated.
    """
    result = await session.execute(
        update(PlayerCardDB)
        .where(PlayerCardDB.id == card_id, PlayerCardDB.owner_id == expected_owner_id)
        .values(owner_id=new_owner_id)
        .execution_options(synchronize_session=False)
    )
    # rowcount is available on UPDATE results; type stubs incomplete for async
    return int(result.rowcount) == 1  # type: ignore[attr-defined]


async def lock_card(session: AsyncSession, card_id: str, owner_id: str) -> bool:
    """
    Take the write lock on a card still owned by ``owner_id``.

    The lock is held until the transaction ends, so checks that follow it
    see every selection committed by an earlier holder. Returns False if the
    card is missing or has another owner.
    """
    result = await session.execute(
        update(PlayerCardDB)
        .where(PlayerCardDB.id == card_id, PlayerCardDB.owner_id == owner_id)
        .values(owner_id=PlayerCardDB.owner_id)
        .execution_options(synchronize_session=False)
    )
    return int(result.rowcount) == 1  # type: ignore[attr-defined]


async def card_in_open_battle(
    session: AsyncSession, card_id: str, exclude_battle_id: str | None = None
) -> bool:
    """Check if a card is selected in any battle that has not completed."""
    stmt = (
        select(func.count())
        .select_from(BattleSelectionDB)
        .join(BattleDB, BattleDB.id == BattleSelectionDB.battle_id)
        .where(BattleSelectionDB.card_id == card_id, BattleDB.status.in_(OPEN_STATUSES))
    )
    if exclude_battle_id is not None:
        stmt = stmt.where(BattleDB.id != exclude_battle_id)
    result = await session.execute(stmt)
    return int(result.scalar_one()) > 0


def card_to_model(card: PlayerCardDB) -> Card:
    """Convert a database card to a domain model."""
    return Card(
        id=card.id,
        owner_id=card.owner_id,
        name=card.name,
        kind=CardKind(card.kind),
        attributes=Attributes(
            strength=card.strength,
            dexterity=card.dexterity,
            intelligence=card.intelligence,
        ),
    )


# --- Battle Operations ---


async def create_battle(session: AsyncSession, challenger_id: str, opponent_id: str) -> BattleDB:
    """Create a battle between two bound participants, starting in ``pending``."""
    battle = BattleDB(
        challenger_id=challenger_id,
        opponent_id=opponent_id,
        status=BattleStatus.PENDING.value,
        selections=[],
    )
    session.add(battle)
    await session.flush()
    return battle


async def get_battle(
    session: AsyncSession, battle_id: str, for_update: bool = False
) -> BattleDB | None:
    """
    Get a battle with its selections.

    Always re-reads the row so status changes made through conditional
    updates (or by other sessions) are visible. With ``for_update`` the row
    is locked until the transaction ends (ignored by SQLite).
    """
    stmt = (
        select(BattleDB)
        .where(BattleDB.id == battle_id)
        .options(selectinload(BattleDB.selections))
        .execution_options(populate_existing=True)
    )
    if for_update:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def list_player_battles(
    session: AsyncSession, player_id: str, limit: int = 50
) -> list[BattleDB]:
    """Get a player's battles, newest first."""
    result = await session.execute(
        select(BattleDB)
        .where((BattleDB.challenger_id == player_id) | (BattleDB.opponent_id == player_id))
        .options(selectinload(BattleDB.selections))
        .order_by(BattleDB.created_at.desc(), BattleDB.id)
        .limit(limit)
    )
    return list(result.scalars().all())


async def list_resolvable_battle_ids(session: AsyncSession, limit: int = 50) -> list[str]:
    """
    Get ids of battles that have both selections but are not completed.

    These are the battles a background sweep should try to resolve.
    """
    selection_count = (
        select(func.count())
        .select_from(BattleSelectionDB)
        .where(BattleSelectionDB.battle_id == BattleDB.id)
        .scalar_subquery()
    )
    result = await session.execute(
        select(BattleDB.id)
        .where(
            BattleDB.status.in_(
                (BattleStatus.ACTIVE.value, BattleStatus.CARDS_REVEALED.value)
            ),
            selection_count == 2,
        )
        .order_by(BattleDB.created_at)
        .limit(limit)
    )
    return list(result.scalars().all())


async def transition_status(
    session: AsyncSession,
    battle_id: str,
    expected: BattleStatus,
    new: BattleStatus,
) -> bool:
    """
    Compare-and-swap a battle's status.

    Returns True if the battle was in ``expected`` and is now in ``new``.
    """
    result = await session.execute(
        update(BattleDB)
        .where(BattleDB.id == battle_id, BattleDB.status == expected.value)
        .values(status=new.value)
        .execution_options(synchronize_session=False)
    )
    return int(result.rowcount) == 1  # type: ignore[attr-defined]


async def complete_battle(
    session: AsyncSession,
    battle_id: str,
    *,
    winner_id: str | None,
    loser_id: str | None,
    winner_card_id: str | None,
    loser_card_id: str | None,
    result: BattleResult,
) -> datetime:
    """
    Move a battle from ``cards_revealed`` to ``completed`` and store its result.

    Raises:
        ConcurrentResolutionLost: If the battle was no longer in
            ``cards_revealed`` (another caller completed it first).

    Returns:
        The completion timestamp written to the battle.
    """
    completed_at = datetime.now(UTC)
    values: dict[str, Any] = {
        "status": BattleStatus.COMPLETED.value,
        "winner_id": winner_id,
        "loser_id": loser_id,
        "winner_card_id": winner_card_id,
        "loser_card_id": loser_card_id,
        "result": result.to_dict(),
        "completed_at": completed_at,
    }
    cursor = await session.execute(
        update(BattleDB)
        .where(
            BattleDB.id == battle_id,
            BattleDB.status == BattleStatus.CARDS_REVEALED.value,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if int(cursor.rowcount) != 1:  # type: ignore[attr-defined]
        raise ConcurrentResolutionLost(battle_id)
    return completed_at


def battle_to_model(battle: BattleDB) -> Battle:
    """Convert a database battle to a domain model."""
    return Battle(
        id=battle.id,
        challenger_id=battle.challenger_id,
        opponent_id=battle.opponent_id,
        status=BattleStatus(battle.status),
        created_at=battle.created_at,
        winner_id=battle.winner_id,
        loser_id=battle.loser_id,
        winner_card_id=battle.winner_card_id,
        loser_card_id=battle.loser_card_id,
        result=BattleResult.from_dict(battle.result) if battle.result else None,
        completed_at=battle.completed_at,
        selections=[selection_to_model(s) for s in battle.selections],
    )


# --- Selection Operations ---


async def add_selection(
    session: AsyncSession, battle_id: str, player_id: str, card_id: str
) -> BattleSelectionDB:
    """
    Record a player's card for a battle.

    Raises IntegrityError if the player already has a selection.
    """
    selection = BattleSelectionDB(battle_id=battle_id, player_id=player_id, card_id=card_id)
    session.add(selection)
    await session.flush()
    return selection


async def get_selection(
    session: AsyncSession, battle_id: str, player_id: str
) -> BattleSelectionDB | None:
    """Get one player's selection for a battle."""
    result = await session.execute(
        select(BattleSelectionDB).where(
            BattleSelectionDB.battle_id == battle_id,
            BattleSelectionDB.player_id == player_id,
        )
    )
    return result.scalar_one_or_none()


async def count_selections(session: AsyncSession, battle_id: str) -> int:
    """Number of players who have selected a card for a battle."""
    result = await session.execute(
        select(func.count())
        .select_from(BattleSelectionDB)
        .where(BattleSelectionDB.battle_id == battle_id)
    )
    return int(result.scalar_one())


def selection_to_model(selection: BattleSelectionDB) -> Selection:
    """Convert a database selection to a domain model."""
    return Selection(
        battle_id=selection.battle_id,
        player_id=selection.player_id,
        card_id=selection.card_id,
        submitted_at=selection.submitted_at,
    )


# --- Transfer Operations ---


async def add_transfer_record(
    session: AsyncSession,
    card_id: str,
    previous_owner_id: str,
    new_owner_id: str,
    battle_id: str,
) -> CardTransferDB:
    """Append an ownership transfer record."""
    record = CardTransferDB(
        card_id=card_id,
        previous_owner_id=previous_owner_id,
        new_owner_id=new_owner_id,
        battle_id=battle_id,
    )
    session.add(record)
    await session.flush()
    return record


async def list_battle_transfers(session: AsyncSession, battle_id: str) -> list[CardTransferDB]:
    """Get the transfer records written for a battle."""
    result = await session.execute(
        select(CardTransferDB)
        .where(CardTransferDB.battle_id == battle_id)
        .order_by(CardTransferDB.id)
    )
    return list(result.scalars().all())


def transfer_to_model(record: CardTransferDB) -> TransferRecord:
    """Convert a database transfer record to a domain model."""
    return TransferRecord(
        card_id=record.card_id,
        previous_owner_id=record.previous_owner_id,
        new_owner_id=record.new_owner_id,
        battle_id=record.battle_id,
        transferred_at=record.transferred_at,
    )


# --- Notification Operations ---


async def add_notifications(
    session: AsyncSession, battle_id: str, messages: dict[str, str]
) -> list[BattleNotificationDB]:
    """Insert one notification per user for a battle."""
    notifications = [
        BattleNotificationDB(battle_id=battle_id, user_id=user_id, message=message)
        for user_id, message in messages.items()
    ]
    session.add_all(notifications)
    await session.flush()
    return notifications


async def list_notifications(
    session: AsyncSession, user_id: str, unread_only: bool = False
) -> list[BattleNotificationDB]:
    """Get a user's notifications, newest first."""
    stmt = select(BattleNotificationDB).where(BattleNotificationDB.user_id == user_id)
    if unread_only:
        stmt = stmt.where(BattleNotificationDB.is_read.is_(False))
    result = await session.execute(
        stmt.order_by(BattleNotificationDB.created_at.desc(), BattleNotificationDB.id.desc())
    )
    return list(result.scalars().all())


async def mark_notification_read(
    session: AsyncSession, notification_id: int
) -> BattleNotificationDB | None:
    """
    Mark a notification as read.

    Returns None if the notification does not exist.
    """
    notification = await session.get(BattleNotificationDB, notification_id)
    if notification is None:
        return None
    notification.is_read = True
    await session.flush()
    return notification
