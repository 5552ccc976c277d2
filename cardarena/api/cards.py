"""
Card API endpoints.

Registers cards (the pack-opening seam) and exposes card lookups.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from cardarena.api.errors import to_http_exception
from cardarena.db import card_to_model, list_player_cards
from cardarena.db.database import get_session
from cardarena.models.card import Attributes, Card, CardKind
from cardarena.models.failure import KnownError
from cardarena.services.cards import fetch_card, register_card

router = APIRouter(tags=["cards"])


class AttributesModel(BaseModel):
    """Strength / dexterity / intelligence triple."""

    strength: int = Field(..., ge=0)
    dexterity: int = Field(..., ge=0)
    intelligence: int = Field(..., ge=0)


class CardCreateRequest(BaseModel):
    """Request model for registering a card."""

    owner_id: str = Field(..., min_length=1)
    kind: CardKind
    attributes: AttributesModel
    name: str | None = Field(
        default=None,
        description="Display name; defaults to the kind's name",
    )


class CardResponse(BaseModel):
    """Response model for a single card."""

    id: str
    owner_id: str
    name: str
    kind: CardKind
    attributes: AttributesModel
    primary_attribute: str


class CardListResponse(BaseModel):
    """Response model for a player's cards."""

    owner_id: str
    cards: list[CardResponse]
    count: int


def card_response(card: Card) -> CardResponse:
    return CardResponse(
        id=card.id,
        owner_id=card.owner_id,
        name=card.name,
        kind=card.kind,
        attributes=AttributesModel(**card.attributes.as_dict()),
        primary_attribute=card.primary_attribute.value,
    )


@router.post("/cards", response_model=CardResponse, status_code=status.HTTP_201_CREATED)
async def create_card(
    request: CardCreateRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CardResponse:
    """Register a card for a player."""
    try:
        card = await register_card(
            session,
            owner_id=request.owner_id,
            kind=request.kind,
            attributes=Attributes(**request.attributes.model_dump()),
            name=request.name,
        )
    except KnownError as e:
        raise to_http_exception(e) from e
    return card_response(card)


@router.get("/cards/{card_id}", response_model=CardResponse)
async def get_card(
    card_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CardResponse:
    """Get a card, including its current owner."""
    try:
        card = await fetch_card(session, card_id)
    except KnownError as e:
        raise to_http_exception(e) from e
    return card_response(card)


@router.get("/players/{player_id}/cards", response_model=CardListResponse)
async def get_player_cards(
    player_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CardListResponse:
    """Get every card a player currently owns."""
    cards = [card_response(card_to_model(c)) for c in await list_player_cards(session, player_id)]
    return CardListResponse(owner_id=player_id, cards=cards, count=len(cards))
