from cardarena.db.database import close_db, get_session, get_session_factory, init_db
from cardarena.db.operations import (
    add_notifications,
    add_selection,
    add_transfer_record,
    battle_to_model,
    card_in_open_battle,
    card_to_model,
    complete_battle,
    count_selections,
    create_battle,
    create_card,
    get_battle,
    get_card,
    get_cards,
    get_selection,
    list_battle_transfers,
    list_notifications,
    list_player_battles,
    list_player_cards,
    list_resolvable_battle_ids,
    lock_card,
    mark_notification_read,
    reassign_card_owner,
    selection_to_model,
    transfer_to_model,
    transition_status,
)

__all__ = [
    "add_notifications",
    "add_selection",
    "add_transfer_record",
    "battle_to_model",
    "card_in_open_battle",
    "card_to_model",
    "close_db",
    "complete_battle",
    "count_selections",
    "create_battle",
    "create_card",
    "get_battle",
    "get_card",
    "get_cards",
    "get_selection",
    "get_session",
    "get_session_factory",
    "init_db",
    "list_battle_transfers",
    "list_notifications",
    "list_player_battles",
    "list_player_cards",
    "list_resolvable_battle_ids",
    "lock_card",
    "mark_notification_read",
    "reassign_card_owner",
    "selection_to_model",
    "transfer_to_model",
    "transition_status",
]
