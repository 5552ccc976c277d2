"""
Scheduled job to resolve battles whose selections are complete.

Stands in for the database trigger that fires when the second card is
selected: it finds battles with both selections that are not yet completed
and resolves each one. Safe to run alongside client-triggered resolution,
since the resolver absorbs duplicate calls.
Can be run as a standalone script or called from a scheduler.
"""

import asyncio
import logging

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cardarena.config import settings
from cardarena.db.database import async_session_factory, close_db
from cardarena.db.operations import list_resolvable_battle_ids
from cardarena.models.battle import ResolutionResult
from cardarena.models.failure import KnownError
from cardarena.services.broadcaster import Broadcaster, close_broadcaster, get_broadcaster
from cardarena.services.resolution import BattleResolver

logger = logging.getLogger(__name__)


async def resolve_with_retry(
    session_factory: async_sessionmaker[AsyncSession],
    resolver: BattleResolver,
    battle_id: str,
    max_attempts: int,
) -> ResolutionResult | None:
    """
    Resolve one battle, retrying transient store errors.

    Each attempt runs in a fresh session. Returns None if the battle could
    not be resolved.
    """
    for attempt in range(1, max_attempts + 1):
        try:
            async with session_factory() as session:
                return await resolver.resolve(session, battle_id)
        except KnownError as e:
            logger.warning("Cannot resolve battle %s: %s", battle_id, e.message)
            return None
        except OperationalError as e:
            logger.warning(
                "Transient error resolving battle %s (attempt %d/%d): %s",
                battle_id,
                attempt,
                max_attempts,
                e,
            )
    logger.error("Giving up on battle %s after %d attempts", battle_id, max_attempts)
    return None


async def run_resolution_sweep(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    broadcaster: Broadcaster | None = None,
    limit: int | None = None,
    max_attempts: int | None = None,
) -> dict[str, ResolutionResult]:
    """
    Resolve every battle that has both selections but is not completed.

    Args:
        session_factory: Session factory (defaults to the application's)
        broadcaster: Event channel for ``battle_resolved``
        limit: Max battles per sweep
        max_attempts: Attempts per battle on transient errors

    Returns:
        Dict mapping battle id to its resolution result
    """
    session_factory = session_factory or async_session_factory
    limit = limit or settings.sweep_batch_size
    max_attempts = max_attempts or settings.resolve_max_attempts
    resolver = BattleResolver(broadcaster)

    async with session_factory() as session:
        battle_ids = await list_resolvable_battle_ids(session, limit=limit)

    logger.info("Found %d battles awaiting resolution", len(battle_ids))

    results: dict[str, ResolutionResult] = {}
    for battle_id in battle_ids:
        result = await resolve_with_retry(session_factory, resolver, battle_id, max_attempts)
        if result is not None:
            results[battle_id] = result

    resolved = sum(1 for r in results.values() if not r.already_resolved)
    logger.info("Resolution sweep complete. Resolved %d of %d battles", resolved, len(battle_ids))
    return results


async def _run() -> None:
    try:
        await run_resolution_sweep(broadcaster=get_broadcaster())
    finally:
        await close_broadcaster()
        await close_db()


def main() -> None:
    """CLI entry point for running a resolution sweep."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(_run())


if __name__ == "__main__":
    main()
