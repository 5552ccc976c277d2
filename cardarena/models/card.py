"""
Card Attribute Model.

Defines the closed set of card kinds, the attribute triple every card
carries, and the fixed tables the outcome calculator reads:

    Void Sorcerer  beats  Space Marine
    Space Marine   beats  Galactic Ranger
    Galactic Ranger beats Void Sorcerer

Each kind also has one primary attribute used to break same-kind duels.
"""

from dataclasses import dataclass
from enum import Enum


class CardKind(str, Enum):
    """The closed set of battle-capable card kinds."""

    SPACE_MARINE = "space_marine"
    GALACTIC_RANGER = "galactic_ranger"
    VOID_SORCERER = "void_sorcerer"

    @property
    def display_name(self) -> str:
        return KIND_DISPLAY_NAMES[self]


class Attribute(str, Enum):
    """The three attributes of the card triple."""

    STRENGTH = "strength"
    DEXTERITY = "dexterity"
    INTELLIGENCE = "intelligence"


KIND_DISPLAY_NAMES: dict[CardKind, str] = {
    CardKind.SPACE_MARINE: "Space Marine",
    CardKind.GALACTIC_RANGER: "Galactic Ranger",
    CardKind.VOID_SORCERER: "Void Sorcerer",
}

# Maps each kind to the single kind it defeats
BEATS: dict[CardKind, CardKind] = {
    CardKind.VOID_SORCERER: CardKind.SPACE_MARINE,
    CardKind.SPACE_MARINE: CardKind.GALACTIC_RANGER,
    CardKind.GALACTIC_RANGER: CardKind.VOID_SORCERER,
}

PRIMARY_ATTRIBUTE: dict[CardKind, Attribute] = {
    CardKind.SPACE_MARINE: Attribute.STRENGTH,
    CardKind.GALACTIC_RANGER: Attribute.DEXTERITY,
    CardKind.VOID_SORCERER: Attribute.INTELLIGENCE,
}

# Flavor text for a type-advantage win, keyed by the winning kind
ADVANTAGE_FLAVOR: dict[CardKind, str] = {
    CardKind.VOID_SORCERER: "mystical powers overwhelm",
    CardKind.SPACE_MARINE: "brute strength overcomes",
    CardKind.GALACTIC_RANGER: "speed outwits",
}


def beats(kind: CardKind, other: CardKind) -> bool:
    """Check if ``kind`` has type advantage over ``other``."""
    return BEATS[kind] == other


@dataclass(frozen=True, slots=True)
class Attributes:
    """
    The attribute triple of a card.

    All values are non-negative integers.
    """

    strength: int = 0
    dexterity: int = 0
    intelligence: int = 0

    def get(self, attribute: Attribute) -> int:
        return int(getattr(self, attribute.value))

    def total(self) -> int:
        return self.strength + self.dexterity + self.intelligence

    def as_dict(self) -> dict[str, int]:
        return {
            "strength": self.strength,
            "dexterity": self.dexterity,
            "intelligence": self.intelligence,
        }


@dataclass(frozen=True, slots=True)
class Card:
    """
    A unique collectible card.

    Attributes:
        id: Card identifier
        owner_id: Current owner; changes only through a battle transfer
        name: Display name
        kind: Card kind used for type advantage
        attributes: Strength / dexterity / intelligence triple
    """

    id: str
    owner_id: str
    name: str
    kind: CardKind
    attributes: Attributes

    @property
    def primary_attribute(self) -> Attribute:
        return PRIMARY_ATTRIBUTE[self.kind]

    @property
    def primary_value(self) -> int:
        return self.attributes.get(self.primary_attribute)
