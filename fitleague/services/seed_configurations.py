"""
Configuration seed data for the FitLeague scoring engine.

Run as a module to insert the default runtime tunables:

    python -m fitleague.services.seed_configurations
"""

import json
import asyncio
from fitleague.config import Config
from fitleague.constants import CacheConstants
from fitleague.database.models import Configuration
from fitleague.database.database import Database

INITIAL_CONFIGS = {
    # Scoring
    'scoring.auto_approve_hours': Config.AUTO_APPROVE_HOURS,

    # Leaderboard
    'leaderboard.settled_delay_days': Config.SETTLED_DELAY_DAYS,
    'leaderboard.individual_limit': Config.LEADERBOARD_INDIVIDUAL_LIMIT,
    'leaderboard.compute_timeout_seconds': Config.LEADERBOARD_TIMEOUT_SECONDS,

    # Cache
    'cache.leaderboard_ttl_seconds': CacheConstants.DEFAULT_CACHE_TTL,
    'cache.leaderboard_max_size': CacheConstants.MAX_CACHE_SIZE,
}

async def seed_configurations(db: Database = None):
    """Insert or update every initial configuration value."""
    owns_db = db is None
    if owns_db:
        db = Database()
        await db.initialize()
    
    try:
        async with db.transaction() as session:
            for key, value in INITIAL_CONFIGS.items():
                await session.merge(Configuration(key=key, value=json.dumps(value)))
        print(f"Seeded {len(INITIAL_CONFIGS)} configuration parameters")
    finally:
        if owns_db:
            await db.close()

if __name__ == "__main__":
    asyncio.run(seed_configurations())
