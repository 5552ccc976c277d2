"""
SQLAlchemy ORM models for persistent storage.

Models mirror the dataclass models but add database persistence.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _new_id() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class PlayerCardDB(Base):
    """
    A collectible card owned by a player.

    Only ``owner_id`` changes after creation, and only through a battle
    transfer.
    """

    __tablename__ = "player_cards"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    owner_id: Mapped[str] = mapped_column(String(255), index=True)
    name: Mapped[str] = mapped_column(String(255))
    kind: Mapped[str] = mapped_column(String(32))
    strength: Mapped[int] = mapped_column(Integer, default=0)
    dexterity: Mapped[int] = mapped_column(Integer, default=0)
    intelligence: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<PlayerCardDB(id={self.id}, name={self.name}, owner={self.owner_id})>"


class BattleDB(Base):
    """
    One duel instance.

    ``status`` is only ever changed through conditional updates that name
    the expected previous status.
    """

    __tablename__ = "battles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    challenger_id: Mapped[str] = mapped_column(String(255), index=True)
    opponent_id: Mapped[str] = mapped_column(String(255), index=True)
    status: Mapped[str] = mapped_column(String(32), index=True)

    winner_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    loser_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    winner_card_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    loser_card_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    # Structured result payload, see BattleResult
    result: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    selections: Mapped[list["BattleSelectionDB"]] = relationship(
        back_populates="battle", order_by="BattleSelectionDB.id"
    )

    def __repr__(self) -> str:
        return f"<BattleDB(id={self.id}, status={self.status})>"


class BattleSelectionDB(Base):
    """
    A player's card choice for one battle.

    The unique constraint makes each (battle, player) slot set-once.
    """

    __tablename__ = "battle_selections"
    __table_args__ = (UniqueConstraint("battle_id", "player_id", name="uq_battle_player"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    battle_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("battles.id", ondelete="CASCADE"), index=True
    )
    player_id: Mapped[str] = mapped_column(String(255))
    card_id: Mapped[str] = mapped_column(String(36), ForeignKey("player_cards.id"), index=True)
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    battle: Mapped["BattleDB"] = relationship(back_populates="selections")

    def __repr__(self) -> str:
        return f"<BattleSelectionDB(battle={self.battle_id}, player={self.player_id})>"


class CardTransferDB(Base):
    """
    Append-only audit record of a card changing owner after a battle.

    At most one transfer exists per battle.
    """

    __tablename__ = "card_transfers"
    __table_args__ = (UniqueConstraint("battle_id", name="uq_transfer_battle"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    card_id: Mapped[str] = mapped_column(String(36), ForeignKey("player_cards.id"), index=True)
    previous_owner_id: Mapped[str] = mapped_column(String(255))
    new_owner_id: Mapped[str] = mapped_column(String(255))
    battle_id: Mapped[str] = mapped_column(String(36), ForeignKey("battles.id"))
    transferred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<CardTransferDB(card={self.card_id}, battle={self.battle_id})>"


class BattleNotificationDB(Base):
    """User-facing message about a battle outcome."""

    __tablename__ = "battle_notifications"
    __table_args__ = (UniqueConstraint("battle_id", "user_id", name="uq_notification_battle_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    battle_id: Mapped[str] = mapped_column(String(36), ForeignKey("battles.id"), index=True)
    user_id: Mapped[str] = mapped_column(String(255), index=True)
    message: Mapped[str] = mapped_column(Text)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<BattleNotificationDB(battle={self.battle_id}, user={self.user_id})>"
