"""
Settlement service: per-member amounts owed for a gameday.

The settlement is never stored; it is recomputed from the attendance rows on
every request.
"""

import logging
from typing import List

from kladde.data_models.settlement import SettlementLine
from kladde.database.models import Gameday
from kladde.operations.attendance_operations import AttendanceOperations
from kladde.services.base import BaseService
from kladde.utils.exceptions import NotFoundError
from kladde.utils.settlement import SettlementCalculator

logger = logging.getLogger(__name__)


class SettlementService(BaseService):
    def __init__(self, database):
        super().__init__(database.session_factory)
        self.attendance_ops = AttendanceOperations(database)

    async def compute_settlement(self, gameday_id: int) -> List[SettlementLine]:
        """
        Settle every member of a gameday, in club order.

        Raises:
            NotFoundError: If the gameday does not exist
        """
        async with self.get_session() as session:
            if await session.get(Gameday, gameday_id) is None:
                raise NotFoundError("Spieltag", gameday_id)
            records, custom_values = await self.attendance_ops.snapshot(gameday_id, session=session)

        return SettlementCalculator.calculate(records, custom_values)

    async def compute_member_settlement(self, gameday_id: int, member_id: int) -> SettlementLine:
        for line in await self.compute_settlement(gameday_id):
            if line.member_id == member_id:
                return line
        raise NotFoundError("Attendance", f"{gameday_id}/{member_id}")
