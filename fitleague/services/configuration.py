"""
League tunables backed by the configurations table.

The keys are the ones seeded by ``seed_configurations``: auto-approval age,
settled-window delay, leaderboard limits and cache sizing. Values are stored
as JSON, cached in memory and every change is written to the audit log.
"""

import json
import logging
from numbers import Number
from typing import Any, Dict, Optional

from sqlalchemy import select

from fitleague.database.models import AuditLog, Configuration
from fitleague.services.base import BaseService
from fitleague.services.seed_configurations import INITIAL_CONFIGS
from fitleague.utils.errors import ValidationError

logger = logging.getLogger(__name__)


class ConfigurationService(BaseService):
    """Runtime league tunables with an in-memory cache and audit trail."""

    def __init__(self, session_factory):
        super().__init__(session_factory)
        self._cache: Dict[str, Any] = {}

    async def load_all(self):
        """Reload every stored tunable; rows with unreadable JSON are skipped"""
        async def _load() -> Dict[str, Any]:
            values = {}
            async with self.get_session() as session:
                result = await session.execute(select(Configuration))
                for row in result.scalars().all():
                    try:
                        values[row.key] = json.loads(row.value)
                    except json.JSONDecodeError:
                        logger.warning(f"Invalid JSON for config key '{row.key}', skipping")
            return values

        self._cache = await self.execute_with_retry(_load)
        logger.info(f"Loaded {len(self._cache)} league tunables")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Stored value for a tunable.

        Falls back to ``default`` and then to the seeded value, so services
        work against an empty table.
        """
        if key in self._cache:
            return self._cache[key]
        if default is not None:
            return default
        return INITIAL_CONFIGS.get(key)

    async def set(self, key: str, value: Any, user_id: int) -> Optional[Any]:
        """
        Change a tunable and record who changed it.

        Args:
            key: One of the seeded keys, e.g. 'scoring.auto_approve_hours'
            value: Positive number
            user_id: Discord user ID for the audit trail

        Returns:
            The previous stored value, or None

        Raises:
            ValidationError: Unknown key or a value that is not a positive number
        """
        if key not in INITIAL_CONFIGS:
            raise ValidationError(f"Unknown setting '{key}'", "key")
        if isinstance(value, bool) or not isinstance(value, Number) or value <= 0:
            raise ValidationError(f"'{key}' must be a positive number", key)

        async def _store() -> Optional[Any]:
            async with self.get_session() as session:
                row = await session.scalar(select(Configuration).where(Configuration.key == key))
                previous = None
                if row is None:
                    session.add(Configuration(key=key, value=json.dumps(value)))
                else:
                    try:
                        previous = json.loads(row.value)
                    except json.JSONDecodeError:
                        previous = {"error": "invalid JSON", "raw": row.value}
                    row.value = json.dumps(value)

                session.add(AuditLog(
                    user_id=user_id,
                    action='config_set',
                    details=json.dumps({'key': key, 'old_value': previous, 'new_value': value}),
                ))
                return previous

        previous = await self.execute_with_retry(_store)
        logger.info(f"User {user_id} set {key} = {value} (was {previous})")
        await self.load_all()
        return previous
