"""
CardArena services.

Battle lifecycle, card selection, outcome calculation and resolution.
"""

from cardarena.services.battle_state import (
    TRANSITIONS,
    can_select_card,
    can_transition,
    can_trigger_resolution,
    load_battle,
    reveal_if_ready,
    transition,
)
from cardarena.services.battles import battle_history, fetch_battle, start_battle
from cardarena.services.broadcaster import (
    BATTLE_RESOLVED,
    CARD_SELECTED,
    CARDS_REVEALED,
    Broadcaster,
    LoggingBroadcaster,
    RedisBroadcaster,
    broadcast,
    close_broadcaster,
    get_broadcaster,
)
from cardarena.services.cards import fetch_card, register_card, validate_attributes
from cardarena.services.outcome import DuelResult, Outcome, compute_outcome
from cardarena.services.resolution import BattleResolver, build_notifications
from cardarena.services.selection import SelectionReceipt, submit_selection

__all__ = [
    "BATTLE_RESOLVED",
    "CARDS_REVEALED",
    "CARD_SELECTED",
    "TRANSITIONS",
    "BattleResolver",
    "Broadcaster",
    "DuelResult",
    "LoggingBroadcaster",
    "Outcome",
    "RedisBroadcaster",
    "SelectionReceipt",
    "battle_history",
    "broadcast",
    "build_notifications",
    "can_select_card",
    "can_transition",
    "can_trigger_resolution",
    "close_broadcaster",
    "compute_outcome",
    "fetch_battle",
    "fetch_card",
    "get_broadcaster",
    "load_battle",
    "register_card",
    "reveal_if_ready",
    "start_battle",
    "submit_selection",
    "transition",
    "validate_attributes",
]
