from collections.abc import AsyncGenerator
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from cardarena.db.database import get_session, get_session_factory
from cardarena.db.operations import create_card
from cardarena.main import app
from cardarena.models.card import Attributes, CardKind
from cardarena.models.db import Base, PlayerCardDB
from cardarena.services.battles import start_battle
from cardarena.services.broadcaster import get_broadcaster
from cardarena.services.selection import submit_selection


class RecordingBroadcaster:
    """In-memory broadcaster that keeps every published event."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.events: list[tuple[str, str, dict[str, Any]]] = []

    async def publish(self, battle_id: str, event: str, payload: dict[str, Any]) -> None:
        if self.fail:
            raise ConnectionError("broadcast channel unavailable")
        self.events.append((battle_id, event, payload))

    async def ping(self) -> bool:
        return not self.fail

    async def close(self) -> None:
        return None

    def names(self) -> list[str]:
        return [event for _, event, _ in self.events]


@pytest.fixture
async def async_engine():
    """Create an in-memory SQLite engine for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def file_session_factory(tmp_path):
    """File-backed SQLite so concurrent sessions use separate connections."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'battles.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def broadcaster() -> RecordingBroadcaster:
    return RecordingBroadcaster()


@pytest.fixture
async def client(session_factory, broadcaster):
    """Provide an async test client with overridden database session and broadcaster."""

    async def override_get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_broadcaster] = lambda: broadcaster

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def failing_broadcaster() -> RecordingBroadcaster:
    return RecordingBroadcaster(fail=True)


@pytest.fixture
def make_card(session_factory):
    """Factory that inserts and commits a card for a player."""

    async def _make(
        owner_id: str,
        kind: CardKind,
        strength: int = 10,
        dexterity: int = 10,
        intelligence: int = 10,
    ) -> PlayerCardDB:
        async with session_factory() as session:
            card = await create_card(
                session,
                owner_id=owner_id,
                name=kind.display_name,
                kind=kind,
                attributes=Attributes(
                    strength=strength, dexterity=dexterity, intelligence=intelligence
                ),
            )
            await session.commit()
            return card

    return _make


@pytest.fixture
def make_ready_battle(session_factory):
    """Factory that starts a battle and submits both cards, leaving it ``cards_revealed``."""

    async def _make(challenger_card: PlayerCardDB, opponent_card: PlayerCardDB) -> str:
        async with session_factory() as session:
            battle = await start_battle(
                session, challenger_card.owner_id, opponent_card.owner_id
            )
            await session.commit()
        for card in (challenger_card, opponent_card):
            async with session_factory() as session:
                await submit_selection(session, battle.id, card.owner_id, card.id)
        return battle.id

    return _make
