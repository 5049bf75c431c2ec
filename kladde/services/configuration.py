"""
Configuration management service for the Kegelkladde.

Provides runtime settings (starting cash balance, per-gameday contribution)
persisted as JSON in the configurations table, with in-memory caching.
"""

import json
import logging
from decimal import Decimal
from typing import Any, Dict
from sqlalchemy import select

from kladde.config import Config
from kladde.database.models import Configuration
from kladde.services.base import BaseService
from kladde.utils.money import to_money

logger = logging.getLogger(__name__)

STARTING_BALANCE_KEY = 'kasse.starting_balance'
CONTRIBUTION_KEY = 'kladde.contribution'

class ConfigurationService(BaseService):
    """Manages runtime settings with simple caching."""
    
    def __init__(self, session_factory):
        super().__init__(session_factory)
        self._cache: Dict[str, Any] = {}
    
    async def load_all(self):
        """Load all configurations from database into memory."""
        new_cache = {}
        async with self.get_session() as session:
            result = await session.execute(select(Configuration))
            for config in result.scalars().all():
                try:
                    new_cache[config.key] = json.loads(config.value)
                except json.JSONDecodeError:
                    logger.warning(f"Invalid JSON for config key '{config.key}', skipping")
                    continue
        
        self._cache = new_cache
        logger.info(f"Loaded {len(self._cache)} configuration parameters")
    
    def get(self, key: str, default: Any = None) -> Any:
        return self._cache.get(key, default)
    
    def get_money(self, key: str, default: Decimal) -> Decimal:
        """Get a currency setting; amounts are stored as strings to keep them exact."""
        value = self._cache.get(key)
        if value is None:
            return to_money(default)
        return to_money(value)
    
    @property
    def starting_balance(self) -> Decimal:
        return self.get_money(STARTING_BALANCE_KEY, Decimal('0.00'))
    
    @property
    def contribution(self) -> Decimal:
        return self.get_money(CONTRIBUTION_KEY, Config.DEFAULT_CONTRIBUTION)
    
    async def set(self, key: str, value: Any):
        """
        Set configuration value and persist to database.
        
        Args:
            key: Configuration key
            value: Configuration value (Decimals are stored as strings)
        """
        if isinstance(value, Decimal):
            value = str(value)
        
        async with self.get_session() as session:
            config = await session.get(Configuration, key)
            if config:
                config.value = json.dumps(value)
            else:
                session.add(Configuration(key=key, value=json.dumps(value)))
        
        logger.info(f"Configuration '{key}' set to {value!r}")
        await self.load_all()
    
    async def set_starting_balance(self, amount: Any) -> Decimal:
        amount = to_money(amount)
        await self.set(STARTING_BALANCE_KEY, amount)
        return amount
