"""
Attendance Operations Module

Data access for the per-(gameday, member) attendance store and the custom game
values that belong to it. Every method accepts an optional session so that
services can compose several operations into one transaction.
"""

import json
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kladde.data_models.settlement import AttendanceRecord, CustomGameAmount
from kladde.database.models import Attendance, CustomGameValue, Member
from kladde.utils.exceptions import NotFoundError
from kladde.utils.logger import setup_logger
from kladde.utils.money import ZERO, to_money

logger = setup_logger(__name__)


class AttendanceOperations:
    """Read and write access to attendance rows keyed by (gameday_id, member_id)."""

    def __init__(self, database):
        self.db = database
        self.logger = logger

    @asynccontextmanager
    async def _get_session_context(self, session: Optional[AsyncSession] = None):
        """
        Provides a session context. Uses the provided session if available,
        otherwise creates and manages a new session.
        """
        if session:
            yield session
        else:
            async with self.db.get_session() as new_session:
                yield new_session

    async def get_records(self, gameday_id: int, session: Optional[AsyncSession] = None) -> List[Attendance]:
        """Get all attendance rows of a gameday in club order"""
        async with self._get_session_context(session) as s:
            result = await s.execute(
                select(Attendance)
                .join(Member, Member.id == Attendance.member_id)
                .where(Attendance.gameday_id == gameday_id)
                .order_by(Member.sort_position, Member.id)
            )
            return list(result.scalars().all())

    async def get_record(self, gameday_id: int, member_id: int,
                         session: Optional[AsyncSession] = None) -> Attendance:
        """
        Get one attendance row.

        Raises:
            NotFoundError: If the member has no row on this gameday
        """
        async with self._get_session_context(session) as s:
            record = await s.get(Attendance, (gameday_id, member_id))
            if record is None:
                raise NotFoundError("Attendance", f"{gameday_id}/{member_id}")
            return record

    async def create_records(self, gameday_id: int, carryovers: Dict[int, Decimal], contribution: Decimal,
                             session: AsyncSession) -> List[Attendance]:
        """Insert the initial row of every member for a new gameday"""
        records = []
        for member_id, carryover in carryovers.items():
            record = Attendance(
                gameday_id=gameday_id,
                member_id=member_id,
                present=False,
                triclops=0,
                alle9=0,
                kranz=0,
                pudel=0,
                penalties=ZERO,
                contribution=to_money(contribution),
                va=ZERO,
                monte=ZERO,
                aussteigen=ZERO,
                sechs_tage=ZERO,
                monte_extra=False,
                monte_tiebreak=0,
                aussteigen_tiebreak=0,
                struck_games=None,
                carryover=to_money(carryover),
                paid=ZERO,
            )
            session.add(record)
            records.append(record)
        await session.flush()
        self.logger.debug(f"Created {len(records)} attendance rows for gameday {gameday_id}")
        return records

    async def get_custom_values(self, gameday_id: int,
                                session: Optional[AsyncSession] = None) -> List[CustomGameAmount]:
        async with self._get_session_context(session) as s:
            result = await s.execute(
                select(CustomGameValue).where(CustomGameValue.gameday_id == gameday_id)
            )
            return [
                CustomGameAmount(value.member_id, value.custom_game_id, value.amount)
                for value in result.scalars().all()
            ]

    async def upsert_custom_value(self, gameday_id: int, member_id: int, custom_game_id: int,
                                  amount: Decimal, session: AsyncSession) -> CustomGameValue:
        value = await session.get(CustomGameValue, (gameday_id, member_id, custom_game_id))
        if value is None:
            value = CustomGameValue(
                gameday_id=gameday_id,
                member_id=member_id,
                custom_game_id=custom_game_id,
                amount=amount
            )
            session.add(value)
        else:
            value.amount = amount
        await session.flush()
        return value

    async def snapshot(self, gameday_id: int,
                       session: Optional[AsyncSession] = None) -> Tuple[List[AttendanceRecord], List[CustomGameAmount]]:
        """Immutable view of a gameday's rows and custom game values for the calculators"""
        async with self._get_session_context(session) as s:
            records = await self.get_records(gameday_id, session=s)
            custom_values = await self.get_custom_values(gameday_id, session=s)
            return [AttendanceRecord.from_model(record) for record in records], custom_values

    @staticmethod
    def encode_struck_games(keys: Iterable[str]) -> Optional[str]:
        keys = sorted(set(keys))
        return json.dumps(keys) if keys else None
