"""
Statistics service tests
"""

from decimal import Decimal

import pytest

from kladde.services.statistics_service import StatisticsService
from kladde.utils.exceptions import NotFoundError


class TestClubStatistics:
    async def test_markers_only_count_when_present(self, db, gameday_service, member_ops, members):
        anna, bernd, _ = members
        await member_ops.set_initial_values(anna.id, {'initial_alle9': 12, 'initial_kranz': 3})

        first = await gameday_service.create_gameday('2026-02-20')
        await gameday_service.update_attendance(first.id, anna.id, {'present': True, 'alle9': 2, 'pudel': 1})
        await gameday_service.update_attendance(first.id, bernd.id, {'kranz': 4})
        second = await gameday_service.create_gameday('2026-03-06')
        await gameday_service.update_attendance(second.id, anna.id, {'present': True, 'kranz': 1})
        for _ in range(3):
            await gameday_service.advance_status(second.id)

        statistics = await StatisticsService(db).get_club_statistics()

        assert statistics.total_gamedays == 2
        assert statistics.archived_gamedays == 1
        by_member = {member.member_id: member for member in statistics.members}

        assert by_member[anna.id].gamedays_attended == 2
        assert by_member[anna.id].alle9 == 14
        assert by_member[anna.id].kranz == 4
        assert by_member[anna.id].pudel == 1
        assert by_member[anna.id].attendance_rate == 1.0

        # Bernd's Kranz was entered while absent
        assert by_member[bernd.id].kranz == 0
        assert by_member[bernd.id].gamedays_total == 2
        assert by_member[bernd.id].attendance_rate == 0.0
        assert by_member[bernd.id].contributions == Decimal('8.00')

    async def test_inactive_members_hidden_by_default(self, db, member_ops, members):
        await member_ops.deactivate_member(members[1].id)
        service = StatisticsService(db)

        active = await service.get_club_statistics()
        everyone = await service.get_club_statistics(active_only=False)

        assert [member.display_name for member in active.members] == ['Anna', 'Carla']
        assert [member.display_name for member in everyone.members] == ['Anna', 'Bernd', 'Carla']


class TestMemberStatistics:
    async def test_single_member(self, db, gameday_service, members):
        gameday = await gameday_service.create_gameday('2026-02-20')
        await gameday_service.update_attendance(gameday.id, members[2].id, {'present': False})

        statistics = await StatisticsService(db).get_member_statistics(members[2].id)

        assert statistics.display_name == 'Carla'
        assert statistics.gamedays_attended == 0
        assert statistics.penalties == Decimal('0.00')

    async def test_unknown_member(self, db, members):
        with pytest.raises(NotFoundError):
            await StatisticsService(db).get_member_statistics(999)
