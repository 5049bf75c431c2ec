"""
Services package for the Kegelkladde.
"""

from .base import BaseService
from .cash_balance_service import CashBalanceService
from .configuration import ConfigurationService
from .edit_locks import EditLockService, InMemoryEditLockService, RedisEditLockService, create_edit_lock_service
from .gameday_service import GamedayService
from .ranking_service import RankingService
from .settlement_service import SettlementService
from .statistics_service import StatisticsService

__all__ = [
    'BaseService', 'CashBalanceService', 'ConfigurationService', 'EditLockService',
    'InMemoryEditLockService', 'RedisEditLockService', 'create_edit_lock_service',
    'GamedayService', 'RankingService', 'SettlementService', 'StatisticsService',
]
