"""Tests for the resolution engine."""

import asyncio

import pytest
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cardarena.db.operations import (
    create_card,
    get_battle,
    get_card,
    list_battle_transfers,
    list_notifications,
)
from cardarena.models.battle import BattleOutcome, BattleStatus, OutcomeReason
from cardarena.models.card import Attributes, CardKind
from cardarena.models.db import (
    BattleDB,
    BattleNotificationDB,
    BattleSelectionDB,
    PlayerCardDB,
)
from cardarena.models.failure import (
    BattleNotFoundError,
    InvalidStateError,
    MissingCardDataError,
)
from cardarena.services.battles import start_battle
from cardarena.services.broadcaster import BATTLE_RESOLVED
from cardarena.services.resolution import BattleResolver, build_notifications
from cardarena.services.selection import submit_selection


class TestBuildNotifications:
    def test_winner_and_loser_messages(self) -> None:
        messages = build_notifications("alice", "bob", "bob", "Speed outwits!")

        assert messages["bob"].startswith("You won the battle!")
        assert messages["alice"].startswith("You lost the battle.")
        assert "Speed outwits!" in messages["alice"]

    def test_draw_message(self) -> None:
        messages = build_notifications("alice", "bob", None, "Equal!")

        assert messages["alice"] == messages["bob"]
        assert "draw" in messages["alice"]


class TestResolve:
    async def test_same_kind_higher_primary_wins(
        self, session: AsyncSession, make_card, make_ready_battle, broadcaster
    ) -> None:
        """Ranger dex 30 vs Ranger dex 35: the opponent wins and takes the card."""
        alice_card = await make_card("alice", CardKind.GALACTIC_RANGER, dexterity=30)
        bob_card = await make_card("bob", CardKind.GALACTIC_RANGER, dexterity=35)
        battle_id = await make_ready_battle(alice_card, bob_card)

        result = await BattleResolver(broadcaster).resolve(session, battle_id)

        assert result.outcome == BattleOutcome.VICTORY
        assert result.reason == OutcomeReason.PRIMARY_ATTRIBUTE
        assert result.margin == 5
        assert result.winner_id == "bob"
        assert result.loser_id == "alice"
        assert result.transferred_card_id == alice_card.id
        assert result.already_resolved is False

        moved = await get_card(session, alice_card.id)
        assert moved is not None
        assert moved.owner_id == "bob"

        transfers = await list_battle_transfers(session, battle_id)
        assert len(transfers) == 1
        assert transfers[0].previous_owner_id == "alice"
        assert transfers[0].new_owner_id == "bob"

        assert broadcaster.names()[-1] == BATTLE_RESOLVED

    async def test_type_advantage(
        self, session: AsyncSession, make_card, make_ready_battle
    ) -> None:
        """Void Sorcerer beats Space Marine whatever the attributes."""
        alice_card = await make_card("alice", CardKind.SPACE_MARINE, strength=100)
        bob_card = await make_card("bob", CardKind.VOID_SORCERER, intelligence=1)
        battle_id = await make_ready_battle(alice_card, bob_card)

        result = await BattleResolver().resolve(session, battle_id)

        assert result.winner_id == "bob"
        assert result.reason == OutcomeReason.TYPE_ADVANTAGE
        assert result.explanation == "Void Sorcerer's mystical powers overwhelm Space Marine!"

    async def test_completed_battle_state(
        self, session: AsyncSession, make_card, make_ready_battle
    ) -> None:
        alice_card = await make_card("alice", CardKind.SPACE_MARINE, strength=25)
        bob_card = await make_card("bob", CardKind.GALACTIC_RANGER, dexterity=30)
        battle_id = await make_ready_battle(alice_card, bob_card)

        await BattleResolver().resolve(session, battle_id)

        battle = await get_battle(session, battle_id)
        assert battle is not None
        assert battle.status == BattleStatus.COMPLETED.value
        assert battle.winner_id == "alice"
        assert battle.loser_id == "bob"
        assert battle.winner_card_id == alice_card.id
        assert battle.loser_card_id == bob_card.id
        assert battle.completed_at is not None
        assert battle.result is not None
        assert battle.result["outcome"] == "victory"
        assert battle.result["challenger_total"] == 45
        assert battle.result["opponent_total"] == 50
        assert {s.card_id for s in battle.selections} == {alice_card.id, bob_card.id}

    async def test_selection_rows_untouched(
        self, session: AsyncSession, make_card, make_ready_battle
    ) -> None:
        """Resolving reads the selections but never writes them."""
        alice_card = await make_card("alice", CardKind.SPACE_MARINE)
        bob_card = await make_card("bob", CardKind.GALACTIC_RANGER)
        battle_id = await make_ready_battle(alice_card, bob_card)
        rows = select(
            BattleSelectionDB.id,
            BattleSelectionDB.player_id,
            BattleSelectionDB.card_id,
            BattleSelectionDB.submitted_at,
        ).where(BattleSelectionDB.battle_id == battle_id)
        before = (await session.execute(rows)).all()

        await BattleResolver().resolve(session, battle_id)

        after = (await session.execute(rows)).all()
        assert len(before) == 2
        assert after == before

    async def test_notifications_written(
        self, session: AsyncSession, make_card, make_ready_battle
    ) -> None:
        alice_card = await make_card("alice", CardKind.SPACE_MARINE)
        bob_card = await make_card("bob", CardKind.GALACTIC_RANGER)
        battle_id = await make_ready_battle(alice_card, bob_card)

        await BattleResolver().resolve(session, battle_id)

        alice_notes = await list_notifications(session, "alice")
        bob_notes = await list_notifications(session, "bob")
        assert len(alice_notes) == 1
        assert len(bob_notes) == 1
        assert alice_notes[0].message.startswith("You won the battle!")
        assert bob_notes[0].message.startswith("You lost the battle.")

    async def test_draw_moves_no_card(
        self, session: AsyncSession, make_card, make_ready_battle
    ) -> None:
        """Void Sorcerer int 20 vs int 20 is a draw and nothing changes hands."""
        alice_card = await make_card("alice", CardKind.VOID_SORCERER, intelligence=20)
        bob_card = await make_card("bob", CardKind.VOID_SORCERER, intelligence=20)
        battle_id = await make_ready_battle(alice_card, bob_card)

        result = await BattleResolver().resolve(session, battle_id)

        assert result.outcome == BattleOutcome.DRAW
        assert result.winner_id is None
        assert result.loser_id is None
        assert result.transferred_card_id is None
        assert await list_battle_transfers(session, battle_id) == []
        for card, owner in ((alice_card, "alice"), (bob_card, "bob")):
            stored = await get_card(session, card.id)
            assert stored is not None
            assert stored.owner_id == owner

        battle = await get_battle(session, battle_id)
        assert battle is not None
        assert battle.status == BattleStatus.COMPLETED.value
        assert battle.result is not None
        assert battle.result["outcome"] == "draw"

    async def test_repeat_calls_return_stored_result(
        self, session: AsyncSession, make_card, make_ready_battle, broadcaster
    ) -> None:
        alice_card = await make_card("alice", CardKind.SPACE_MARINE)
        bob_card = await make_card("bob", CardKind.VOID_SORCERER)
        battle_id = await make_ready_battle(alice_card, bob_card)
        resolver = BattleResolver(broadcaster)

        first = await resolver.resolve(session, battle_id)
        second = await resolver.resolve(session, battle_id)
        third = await resolver.resolve(session, battle_id)

        assert first.already_resolved is False
        assert second.already_resolved is True
        assert third.already_resolved is True
        assert second.winner_id == first.winner_id
        assert second.transferred_card_id == first.transferred_card_id
        assert second.explanation == first.explanation
        assert len(await list_battle_transfers(session, battle_id)) == 1
        assert len(await list_notifications(session, "alice")) == 1
        assert broadcaster.names().count(BATTLE_RESOLVED) == 1

    async def test_selecting_battle_not_ready(self, session: AsyncSession, make_card) -> None:
        card = await make_card("alice", CardKind.SPACE_MARINE)
        battle = await start_battle(session, "alice", "bob")
        await session.commit()
        await submit_selection(session, battle.id, "alice", card.id)

        with pytest.raises(InvalidStateError):
            await BattleResolver().resolve(session, battle.id)

        stored = await get_battle(session, battle.id)
        assert stored is not None
        assert stored.status == BattleStatus.SELECTING.value

    async def test_pending_battle_not_started_by_resolve(self, session: AsyncSession) -> None:
        """The error reports the stored status and the battle stays pending."""
        battle = await start_battle(session, "alice", "bob")
        await session.commit()

        with pytest.raises(InvalidStateError) as exc_info:
            await BattleResolver().resolve(session, battle.id)

        assert exc_info.value.current == BattleStatus.PENDING.value
        stored = await get_battle(session, battle.id)
        assert stored is not None
        assert stored.status == BattleStatus.PENDING.value

    async def test_missing_battle(self, session: AsyncSession) -> None:
        with pytest.raises(BattleNotFoundError):
            await BattleResolver().resolve(session, "nonexistent")

    async def test_card_changed_owner_leaves_battle_unchanged(
        self, session: AsyncSession, make_card, make_ready_battle
    ) -> None:
        """A selected card that moved away aborts resolution without writes."""
        alice_card = await make_card("alice", CardKind.SPACE_MARINE)
        bob_card = await make_card("bob", CardKind.VOID_SORCERER)
        battle_id = await make_ready_battle(alice_card, bob_card)
        await session.execute(
            update(PlayerCardDB).where(PlayerCardDB.id == bob_card.id).values(owner_id="carol")
        )
        await session.commit()

        with pytest.raises(MissingCardDataError):
            await BattleResolver().resolve(session, battle_id)

        battle = await get_battle(session, battle_id)
        assert battle is not None
        assert battle.status == BattleStatus.CARDS_REVEALED.value
        assert battle.winner_id is None
        assert await list_battle_transfers(session, battle_id) == []
        stored = await get_card(session, alice_card.id)
        assert stored is not None
        assert stored.owner_id == "alice"

    async def test_resolves_battle_left_active(
        self, session: AsyncSession, make_card, make_ready_battle
    ) -> None:
        """A battle stuck in ``active`` with both selections is revealed and resolved."""
        alice_card = await make_card("alice", CardKind.SPACE_MARINE)
        bob_card = await make_card("bob", CardKind.GALACTIC_RANGER)
        battle_id = await make_ready_battle(alice_card, bob_card)
        await session.execute(
            update(BattleDB)
            .where(BattleDB.id == battle_id)
            .values(status=BattleStatus.ACTIVE.value)
        )
        await session.commit()

        result = await BattleResolver().resolve(session, battle_id)

        assert result.winner_id == "alice"

    async def test_broadcast_failure_keeps_resolution(
        self, session: AsyncSession, make_card, make_ready_battle, failing_broadcaster
    ) -> None:
        alice_card = await make_card("alice", CardKind.SPACE_MARINE)
        bob_card = await make_card("bob", CardKind.GALACTIC_RANGER)
        battle_id = await make_ready_battle(alice_card, bob_card)

        result = await BattleResolver(failing_broadcaster).resolve(session, battle_id)

        assert result.already_resolved is False
        battle = await get_battle(session, battle_id)
        assert battle is not None
        assert battle.status == BattleStatus.COMPLETED.value


class TestConcurrentResolve:
    async def test_concurrent_calls_apply_once(self, file_session_factory, broadcaster) -> None:
        """Many simultaneous resolves produce one transfer and one notification pair."""
        async with file_session_factory() as session:
            alice_card = await create_card(
                session, "alice", "Ranger", CardKind.GALACTIC_RANGER, Attributes(dexterity=30)
            )
            bob_card = await create_card(
                session, "bob", "Marine", CardKind.SPACE_MARINE, Attributes(strength=25)
            )
            battle = await start_battle(session, "alice", "bob")
            await session.commit()
        for player_id, card_id in (("alice", alice_card.id), ("bob", bob_card.id)):
            async with file_session_factory() as session:
                await submit_selection(session, battle.id, player_id, card_id)

        resolver = BattleResolver(broadcaster)

        async def attempt():
            async with file_session_factory() as session:
                return await resolver.resolve(session, battle.id)

        results = await asyncio.gather(*(attempt() for _ in range(5)))

        assert sum(1 for r in results if not r.already_resolved) == 1
        assert {r.winner_id for r in results} == {"bob"}
        assert {r.transferred_card_id for r in results} == {alice_card.id}

        async with file_session_factory() as session:
            assert len(await list_battle_transfers(session, battle.id)) == 1
            notifications = await session.execute(
                select(BattleNotificationDB).where(BattleNotificationDB.battle_id == battle.id)
            )
            assert len(notifications.scalars().all()) == 2
            card = await get_card(session, alice_card.id)
            assert card is not None
            assert card.owner_id == "bob"
        assert broadcaster.names().count(BATTLE_RESOLVED) == 1
