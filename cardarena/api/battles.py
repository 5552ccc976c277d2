"""
Battle API endpoints.

Creates battles, accepts card selections and resolves battles. The resolve
endpoint is one of several triggers (client polling, the background sweep,
manual retries) and may be called any number of times for the same battle.
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cardarena.api.errors import to_http_exception
from cardarena.db import list_battle_transfers, transfer_to_model
from cardarena.db.database import get_session, get_session_factory
from cardarena.jobs.resolve_pending import run_resolution_sweep
from cardarena.models.battle import (
    Battle,
    BattleOutcome,
    BattleStatus,
    OutcomeReason,
    ResolutionResult,
)
from cardarena.models.failure import KnownError
from cardarena.services.battles import battle_history, fetch_battle, start_battle
from cardarena.services.broadcaster import Broadcaster, get_broadcaster
from cardarena.services.resolution import BattleResolver
from cardarena.services.selection import submit_selection

router = APIRouter(tags=["battles"])


def get_resolver(
    broadcaster: Annotated[Broadcaster, Depends(get_broadcaster)],
) -> BattleResolver:
    """Dependency that provides a resolver wired to the broadcaster."""
    return BattleResolver(broadcaster)


class BattleCreateRequest(BaseModel):
    """Request model for starting a battle from an accepted challenge."""

    challenger_id: str = Field(..., min_length=1)
    opponent_id: str = Field(..., min_length=1)


class SelectionRequest(BaseModel):
    """Request model for committing a card to a battle."""

    player_id: str = Field(..., min_length=1)
    card_id: str = Field(..., min_length=1)


class SelectionView(BaseModel):
    """A participant's selection; the card stays hidden until resolution."""

    player_id: str
    card_id: str | None = None
    submitted_at: datetime
    is_hidden: bool


class BattleResultView(BaseModel):
    """Structured result of a completed battle."""

    outcome: BattleOutcome
    reason: OutcomeReason
    margin: int
    challenger_total: int
    opponent_total: int
    explanation: str


class BattleResponse(BaseModel):
    """Response model for a single battle."""

    id: str
    challenger_id: str
    opponent_id: str
    status: BattleStatus
    winner_id: str | None = None
    loser_id: str | None = None
    winner_card_id: str | None = None
    loser_card_id: str | None = None
    result: BattleResultView | None = None
    created_at: datetime
    completed_at: datetime | None = None
    selections: list[SelectionView] = Field(default_factory=list)


class BattleListResponse(BaseModel):
    """Response model for a player's battle history."""

    player_id: str
    battles: list[BattleResponse]
    count: int


class SelectionResponse(BaseModel):
    """Response model for an accepted selection."""

    battle_id: str
    player_id: str
    status: BattleStatus
    accepted: bool = True
    recorded: bool = Field(
        ...,
        description="False when the same card had already been submitted",
    )
    both_selected: bool


class ResolutionResponse(BaseModel):
    """Response model for a resolution call."""

    battle_id: str
    outcome: BattleOutcome
    reason: OutcomeReason
    margin: int
    explanation: str
    winner_id: str | None = None
    loser_id: str | None = None
    winner_card_id: str | None = None
    loser_card_id: str | None = None
    transferred_card_id: str | None = None
    already_resolved: bool = False


class TransferView(BaseModel):
    """One ownership transfer record."""

    card_id: str
    previous_owner_id: str
    new_owner_id: str
    battle_id: str
    transferred_at: datetime


class TransferListResponse(BaseModel):
    """Response model for a battle's transfer records."""

    battle_id: str
    transfers: list[TransferView]


class SweepResponse(BaseModel):
    """Response model for a resolution sweep."""

    resolved: list[str]
    total: int


def battle_response(battle: Battle) -> BattleResponse:
    # Cards stay hidden until the battle completes
    hidden = not battle.is_completed()
    result = None
    if battle.result is not None:
        result = BattleResultView(
            outcome=battle.result.outcome,
            reason=battle.result.reason,
            margin=battle.result.margin,
            challenger_total=battle.result.challenger_total,
            opponent_total=battle.result.opponent_total,
            explanation=battle.result.explanation,
        )
    return BattleResponse(
        id=battle.id,
        challenger_id=battle.challenger_id,
        opponent_id=battle.opponent_id,
        status=battle.status,
        winner_id=battle.winner_id,
        loser_id=battle.loser_id,
        winner_card_id=battle.winner_card_id,
        loser_card_id=battle.loser_card_id,
        result=result,
        created_at=battle.created_at,
        completed_at=battle.completed_at,
        selections=[
            SelectionView(
                player_id=s.player_id,
                card_id=None if hidden else s.card_id,
                submitted_at=s.submitted_at,
                is_hidden=hidden,
            )
            for s in battle.selections
        ],
    )


def resolution_response(result: ResolutionResult) -> ResolutionResponse:
    return ResolutionResponse(
        battle_id=result.battle_id,
        outcome=result.outcome,
        reason=result.reason,
        margin=result.margin,
        explanation=result.explanation,
        winner_id=result.winner_id,
        loser_id=result.loser_id,
        winner_card_id=result.winner_card_id,
        loser_card_id=result.loser_card_id,
        transferred_card_id=result.transferred_card_id,
        already_resolved=result.already_resolved,
    )


@router.post("/battles", response_model=BattleResponse, status_code=status.HTTP_201_CREATED)
async def create_battle(
    request: BattleCreateRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> BattleResponse:
    """Start a battle between two players once a challenge is accepted."""
    try:
        battle = await start_battle(session, request.challenger_id, request.opponent_id)
    except KnownError as e:
        raise to_http_exception(e) from e
    return battle_response(battle)


@router.post("/battles/sweep", response_model=SweepResponse)
async def sweep_battles(
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
    broadcaster: Annotated[Broadcaster, Depends(get_broadcaster)],
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
) -> SweepResponse:
    """
    Resolve every battle that has both selections but is not completed.

    Manual trigger for the background sweep job.
    """
    results = await run_resolution_sweep(
        session_factory=session_factory,
        broadcaster=broadcaster,
        limit=limit,
    )
    resolved = [battle_id for battle_id, r in results.items() if not r.already_resolved]
    return SweepResponse(resolved=resolved, total=len(resolved))


@router.get("/battles/{battle_id}", response_model=BattleResponse)
async def get_battle(
    battle_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> BattleResponse:
    """Get a battle's status, participants and result if completed."""
    try:
        battle = await fetch_battle(session, battle_id)
    except KnownError as e:
        raise to_http_exception(e) from e
    return battle_response(battle)


@router.get("/players/{player_id}/battles", response_model=BattleListResponse)
async def get_player_battles(
    player_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
) -> BattleListResponse:
    """Get a player's battle history, newest first."""
    battles = [battle_response(b) for b in await battle_history(session, player_id, limit)]
    return BattleListResponse(player_id=player_id, battles=battles, count=len(battles))


@router.post("/battles/{battle_id}/selections", response_model=SelectionResponse)
async def select_card(
    battle_id: str,
    request: SelectionRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
    broadcaster: Annotated[Broadcaster, Depends(get_broadcaster)],
) -> SelectionResponse:
    """
    Commit a participant's card for a battle.

    Re-submitting the same card is accepted; a different card is rejected.
    """
    try:
        receipt = await submit_selection(
            session, battle_id, request.player_id, request.card_id, broadcaster
        )
    except KnownError as e:
        raise to_http_exception(e) from e
    return SelectionResponse(
        battle_id=receipt.battle_id,
        player_id=receipt.player_id,
        status=receipt.status,
        recorded=receipt.recorded,
        both_selected=receipt.both_selected,
    )


@router.post("/battles/{battle_id}/resolve", response_model=ResolutionResponse)
async def resolve_battle(
    battle_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
    resolver: Annotated[BattleResolver, Depends(get_resolver)],
) -> ResolutionResponse:
    """
    Resolve a battle.

    Safe to call repeatedly: once a battle is completed every call returns
    the same stored result.
    """
    try:
        result = await resolver.resolve(session, battle_id)
    except KnownError as e:
        raise to_http_exception(e) from e
    return resolution_response(result)


@router.get("/battles/{battle_id}/transfers", response_model=TransferListResponse)
async def get_battle_transfers(
    battle_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> TransferListResponse:
    """Get the card ownership transfers caused by a battle."""
    try:
        await fetch_battle(session, battle_id)
    except KnownError as e:
        raise to_http_exception(e) from e
    transfers = [
        TransferView(
            card_id=record.card_id,
            previous_owner_id=record.previous_owner_id,
            new_owner_id=record.new_owner_id,
            battle_id=record.battle_id,
            transferred_at=record.transferred_at,
        )
        for record in map(transfer_to_model, await list_battle_transfers(session, battle_id))
    ]
    return TransferListResponse(battle_id=battle_id, transfers=transfers)
