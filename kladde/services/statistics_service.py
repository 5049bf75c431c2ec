"""
Statistics service: attendance and marker figures per member.
"""

import logging
from collections import defaultdict
from typing import Dict

from sqlalchemy import select

from kladde.data_models.statistics import ClubStatistics, MemberStatistics
from kladde.database.models import Attendance, Gameday, GamedayStatus
from kladde.operations.member_operations import MemberOperations
from kladde.services.base import BaseService
from kladde.utils.money import ZERO, round2

logger = logging.getLogger(__name__)


class StatisticsService(BaseService):
    def __init__(self, database):
        super().__init__(database.session_factory)
        self.member_ops = MemberOperations(database)

    async def get_club_statistics(self, active_only: bool = True) -> ClubStatistics:
        """
        Per-member lifetime statistics in club order.

        Marker counts only include gamedays the member was present on;
        contributions and penalties count every row.
        """
        async with self.get_session() as session:
            members = await self.member_ops.get_ordered_members(active_only=active_only, session=session)
            initial_values = await self.member_ops.get_initial_values(session=session)

            result = await session.execute(select(Gameday.status))
            statuses = list(result.scalars().all())

            result = await session.execute(select(Attendance))
            totals: Dict[int, dict] = defaultdict(lambda: {
                'attended': 0, 'rows': 0, 'alle9': 0, 'kranz': 0, 'triclops': 0, 'pudel': 0,
                'contributions': ZERO, 'penalties': ZERO,
            })
            for attendance in result.scalars().all():
                member_totals = totals[attendance.member_id]
                member_totals['rows'] += 1
                member_totals['contributions'] += attendance.contribution or ZERO
                member_totals['penalties'] += attendance.penalties or ZERO
                if attendance.present:
                    member_totals['attended'] += 1
                    for marker in ('alle9', 'kranz', 'triclops', 'pudel'):
                        member_totals[marker] += getattr(attendance, marker) or 0

        member_statistics = []
        for member in members:
            member_totals = totals[member.id]
            initial = initial_values.get(member.id)
            member_statistics.append(MemberStatistics(
                member_id=member.id,
                display_name=member.display_name,
                gamedays_attended=member_totals['attended'],
                gamedays_total=member_totals['rows'],
                alle9=member_totals['alle9'] + (initial.initial_alle9 if initial else 0),
                kranz=member_totals['kranz'] + (initial.initial_kranz if initial else 0),
                triclops=member_totals['triclops'],
                pudel=member_totals['pudel'],
                contributions=round2(member_totals['contributions']),
                penalties=round2(member_totals['penalties']),
            ))

        return ClubStatistics(
            total_gamedays=len(statuses),
            archived_gamedays=sum(1 for status in statuses if status == GamedayStatus.ARCHIVED),
            members=member_statistics,
        )

    async def get_member_statistics(self, member_id: int) -> MemberStatistics:
        await self.member_ops.get_member(member_id)
        statistics = await self.get_club_statistics(active_only=False)
        for member_statistics in statistics.members:
            if member_statistics.member_id == member_id:
                return member_statistics
