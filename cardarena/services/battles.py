"""
Battle creation and read access.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from cardarena.db.operations import battle_to_model, create_battle, list_player_battles
from cardarena.models.battle import Battle
from cardarena.models.failure import InvalidBattleError
from cardarena.services.battle_state import load_battle


async def start_battle(session: AsyncSession, challenger_id: str, opponent_id: str) -> Battle:
    """
    Create a battle for an accepted challenge.

    Raises:
        InvalidBattleError: If a participant is missing or both are the same player.
    """
    challenger_id = challenger_id.strip()
    opponent_id = opponent_id.strip()
    if not challenger_id or not opponent_id:
        raise InvalidBattleError("A battle needs both a challenger and an opponent")
    if challenger_id == opponent_id:
        raise InvalidBattleError("A player cannot battle themselves")

    db_battle = await create_battle(session, challenger_id, opponent_id)
    return battle_to_model(db_battle)


async def fetch_battle(session: AsyncSession, battle_id: str) -> Battle:
    """
    Get a battle by id.

    First access moves a ``pending`` battle to ``selecting``; the caller
    commits.

    Raises:
        BattleNotFoundError: If the battle does not exist.
    """
    db_battle = await load_battle(session, battle_id)
    return battle_to_model(db_battle)


async def battle_history(session: AsyncSession, player_id: str, limit: int = 50) -> list[Battle]:
    """A player's battles, newest first."""
    return [battle_to_model(b) for b in await list_player_battles(session, player_id, limit)]
