"""
Card registration and lookup.

Cards normally come from pack opening; this is the seam through which
they enter the battle service.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from cardarena.config import MAX_ATTRIBUTE_VALUE, MIN_ATTRIBUTE_VALUE
from cardarena.db.operations import card_to_model, create_card, get_card
from cardarena.models.card import Attributes, Card, CardKind
from cardarena.models.failure import CardNotFoundError, InvalidCardDataError


def validate_attributes(attributes: Attributes) -> list[str]:
    """Return a list of problems with an attribute triple (empty if valid)."""
    errors: list[str] = []
    for name, value in attributes.as_dict().items():
        if not MIN_ATTRIBUTE_VALUE <= value <= MAX_ATTRIBUTE_VALUE:
            errors.append(
                f"{name.capitalize()} must be between "
                f"{MIN_ATTRIBUTE_VALUE} and {MAX_ATTRIBUTE_VALUE}"
            )
    return errors


async def register_card(
    session: AsyncSession,
    owner_id: str,
    kind: CardKind,
    attributes: Attributes,
    name: str | None = None,
) -> Card:
    """
    Create a card for a player.

    Raises:
        InvalidCardDataError: If any attribute is out of range.
    """
    errors = validate_attributes(attributes)
    if errors:
        raise InvalidCardDataError("; ".join(errors))

    db_card = await create_card(
        session,
        owner_id=owner_id,
        name=name or kind.display_name,
        kind=kind,
        attributes=attributes,
    )
    return card_to_model(db_card)


async def fetch_card(session: AsyncSession, card_id: str) -> Card:
    """
    Get a card by id.

    Raises:
        CardNotFoundError: If the card does not exist.
    """
    db_card = await get_card(session, card_id)
    if db_card is None:
        raise CardNotFoundError(card_id)
    return card_to_model(db_card)
