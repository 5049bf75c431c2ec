"""
Gameday service tests against a temporary SQLite database
"""

from datetime import date
from decimal import Decimal

import pytest

from kladde.database.models import GamedayStatus
from kladde.operations.attendance_operations import AttendanceOperations
from kladde.services.cash_balance_service import CashBalanceService
from kladde.services.settlement_service import SettlementService
from kladde.utils.exceptions import (
    ConcurrencyConflict, FieldNotEditableError, InvalidTransitionError, NotFoundError, ValidationError
)


async def _record(db, gameday_id, member_id):
    return await AttendanceOperations(db).get_record(gameday_id, member_id)


class TestCreateGameday:
    async def test_one_row_per_active_member(self, db, gameday_service, members, member_ops):
        await member_ops.deactivate_member(members[2].id)
        gameday = await gameday_service.create_gameday('20.02.2026', note='  Auftakt  ')

        assert gameday.match_date == date(2026, 2, 20)
        assert gameday.note == 'Auftakt'
        assert gameday.gameday_status == GamedayStatus.NOT_STARTED

        records = await AttendanceOperations(db).get_records(gameday.id)
        assert [record.member_id for record in records] == [members[0].id, members[1].id]
        for record in records:
            assert record.present is False
            assert record.contribution == Decimal('4.00')
            assert record.carryover == Decimal('0.00')

    async def test_configured_contribution(self, db, gameday_service, config_service, members):
        await config_service.set('kladde.contribution', Decimal('5.50'))
        gameday = await gameday_service.create_gameday('2026-02-20')
        record = await _record(db, gameday.id, members[0].id)
        assert record.contribution == Decimal('5.50')

    async def test_unparseable_date(self, gameday_service, members):
        with pytest.raises(ValidationError) as exc_info:
            await gameday_service.create_gameday('next friday')
        assert exc_info.value.field == 'match_date'
        assert await gameday_service.list_gamedays() == []

    async def test_next_match_date(self, gameday_service, members):
        assert await gameday_service.next_match_date() == date(2026, 2, 20)
        await gameday_service.create_gameday('2026-03-06')
        assert await gameday_service.next_match_date() == date(2026, 3, 20)

    async def test_carryover_from_previous_gameday(self, db, gameday_service, members, member_ops):
        anna, bernd, _ = members
        first = await gameday_service.create_gameday('2026-02-20')
        await gameday_service.update_attendance(first.id, anna.id, {'present': True, 'va': '1,30', 'paid': '4'})
        await gameday_service.update_attendance(first.id, bernd.id, {'paid': '4,50'})

        newcomer = await member_ops.create_member("Dieter")
        second = await gameday_service.create_gameday('2026-03-06')

        assert (await _record(db, second.id, anna.id)).carryover == Decimal('1.30')
        assert (await _record(db, second.id, bernd.id)).carryover == Decimal('-0.50')
        assert (await _record(db, second.id, newcomer.id)).carryover == Decimal('0.00')

    async def test_previous_is_latest_earlier_date(self, db, gameday_service, members):
        anna = members[0]
        later = await gameday_service.create_gameday('2026-03-20')
        await gameday_service.update_attendance(later.id, anna.id, {'paid': '1'})
        earlier = await gameday_service.create_gameday('2026-03-06')
        await gameday_service.update_attendance(earlier.id, anna.id, {'paid': '2'})

        # Seeded from 03-06, not from the later 03-20 gameday
        middle = await gameday_service.create_gameday('2026-03-13')
        assert (await _record(db, middle.id, anna.id)).carryover == Decimal('2.00')


class TestStatus:
    async def test_advance_to_archived_and_stop(self, gameday_service, members):
        gameday = await gameday_service.create_gameday('2026-02-20')
        statuses = [await gameday_service.advance_status(gameday.id) for _ in range(3)]
        assert statuses[-1] == GamedayStatus.ARCHIVED

        with pytest.raises(InvalidTransitionError):
            await gameday_service.advance_status(gameday.id)
        assert (await gameday_service.get_gameday(gameday.id)).gameday_status == GamedayStatus.ARCHIVED

    async def test_revert_from_not_started(self, gameday_service, members):
        gameday = await gameday_service.create_gameday('2026-02-20')
        with pytest.raises(InvalidTransitionError):
            await gameday_service.revert_status(gameday.id)

    async def test_unknown_gameday(self, gameday_service):
        with pytest.raises(NotFoundError):
            await gameday_service.advance_status(999)


class TestUpdateAttendance:
    async def test_settlement_allows_only_paid(self, db, gameday_service, members):
        anna = members[0]
        gameday = await gameday_service.create_gameday('2026-02-20')
        await gameday_service.advance_status(gameday.id)
        await gameday_service.advance_status(gameday.id)

        with pytest.raises(FieldNotEditableError):
            await gameday_service.update_attendance(gameday.id, anna.id, {'present': True})

        line = await gameday_service.update_attendance(gameday.id, anna.id, {'paid': '4'})
        assert line.paid == Decimal('4.00')
        assert line.remaining == Decimal('0.00')

    async def test_archived_rejects_everything(self, gameday_service, members):
        gameday = await gameday_service.create_gameday('2026-02-20')
        for _ in range(3):
            await gameday_service.advance_status(gameday.id)
        with pytest.raises(FieldNotEditableError):
            await gameday_service.update_attendance(gameday.id, members[0].id, {'paid': '4'})

    async def test_returns_recomputed_settlement(self, gameday_service, members):
        anna, bernd, _ = members
        gameday = await gameday_service.create_gameday('2026-02-20')
        await gameday_service.update_attendance(gameday.id, anna.id, {'present': True, 'alle9': 2})
        line = await gameday_service.update_attendance(gameday.id, bernd.id, {'present': True, 'pudel': 1})

        # 4,00 contribution + 0,10 pudel + 0,20 for Anna's two alle 9
        assert line.amount_owed == Decimal('4.30')

    async def test_negative_marker_rejected_before_write(self, db, gameday_service, members):
        anna = members[0]
        gameday = await gameday_service.create_gameday('2026-02-20')
        with pytest.raises(ValidationError) as exc_info:
            await gameday_service.update_attendance(gameday.id, anna.id, {'present': True, 'kranz': -1})
        assert exc_info.value.field == 'kranz'
        assert (await _record(db, gameday.id, anna.id)).present is False

    async def test_out_of_range_values_clamped(self, db, gameday_service, members):
        anna = members[0]
        gameday = await gameday_service.create_gameday('2026-02-20')
        await gameday_service.update_attendance(
            gameday.id, anna.id, {'triclops': 5000, 'penalties': '-2', 'monte': '20000'}
        )
        record = await _record(db, gameday.id, anna.id)
        assert record.triclops == 999
        assert record.penalties == Decimal('0.00')
        assert record.monte == Decimal('9999.00')

    async def test_unknown_and_read_only_fields(self, gameday_service, members):
        gameday = await gameday_service.create_gameday('2026-02-20')
        with pytest.raises(ValidationError):
            await gameday_service.update_attendance(gameday.id, members[0].id, {'carryover': '5'})
        with pytest.raises(ValidationError):
            await gameday_service.update_attendance(gameday.id, members[0].id, {'alle10': 1})

    @pytest.mark.parametrize("value", ['abc', 'nan', 'inf', '-Infinity'])
    async def test_non_numeric_currency_rejected(self, db, gameday_service, members, value):
        anna = members[0]
        gameday = await gameday_service.create_gameday('2026-02-20')
        await gameday_service.update_attendance(gameday.id, anna.id, {'paid': '3'})

        with pytest.raises(ValidationError) as exc_info:
            await gameday_service.update_attendance(gameday.id, anna.id, {'alle9': 1, 'paid': value})
        assert exc_info.value.field == 'paid'

        record = await _record(db, gameday.id, anna.id)
        assert record.paid == Decimal('3.00')
        assert record.alle9 == 0

    @pytest.mark.parametrize("value", ['nan', 'inf', float('inf'), 'zwei'])
    async def test_non_numeric_count_rejected(self, db, gameday_service, members, value):
        gameday = await gameday_service.create_gameday('2026-02-20')
        with pytest.raises(ValidationError):
            await gameday_service.update_attendance(gameday.id, members[0].id, {'kranz': value})
        assert (await _record(db, gameday.id, members[0].id)).kranz == 0

    async def test_non_finite_custom_game_value_rejected(self, db, gameday_service, members):
        gameday = await gameday_service.create_gameday('2026-02-20')
        custom_game = await gameday_service.add_custom_game(gameday.id, 'Fuchsjagd')
        with pytest.raises(ValidationError):
            await gameday_service.set_custom_game_value(custom_game.id, members[0].id, 'NaN')
        values = await AttendanceOperations(db).get_custom_values(gameday.id)
        assert all(value.amount == Decimal('0.00') for value in values)

    async def test_absence_penalty(self, db, gameday_service, members):
        anna = members[0]
        gameday = await gameday_service.create_gameday('2026-02-20')

        await gameday_service.update_attendance(gameday.id, anna.id, {'present': True})
        assert (await _record(db, gameday.id, anna.id)).penalties == Decimal('0.00')

        await gameday_service.update_attendance(gameday.id, anna.id, {'present': False})
        assert (await _record(db, gameday.id, anna.id)).penalties == Decimal('1.00')

        await gameday_service.update_attendance(gameday.id, anna.id, {'present': True})
        assert (await _record(db, gameday.id, anna.id)).penalties == Decimal('0.00')

    async def test_explicit_penalties_win_over_heuristic(self, db, gameday_service, members):
        anna = members[0]
        gameday = await gameday_service.create_gameday('2026-02-20')
        await gameday_service.update_attendance(gameday.id, anna.id, {'present': True})
        await gameday_service.update_attendance(gameday.id, anna.id, {'present': False, 'penalties': '0'})
        assert (await _record(db, gameday.id, anna.id)).penalties == Decimal('0.00')

    async def test_single_monte_extra_holder(self, db, gameday_service, members):
        anna, bernd, _ = members
        gameday = await gameday_service.create_gameday('2026-02-20')
        await gameday_service.update_attendance(gameday.id, anna.id, {'monte_extra': True})
        await gameday_service.update_attendance(gameday.id, bernd.id, {'monte_extra': 'ja'})

        assert (await _record(db, gameday.id, anna.id)).monte_extra is False
        assert (await _record(db, gameday.id, bernd.id)).monte_extra is True

    async def test_stale_version_conflict(self, db, gameday_service, members):
        anna = members[0]
        gameday = await gameday_service.create_gameday('2026-02-20')
        version = (await _record(db, gameday.id, anna.id)).version

        await gameday_service.update_attendance(gameday.id, anna.id, {'alle9': 1}, expected_version=version)
        with pytest.raises(ConcurrencyConflict):
            await gameday_service.update_attendance(gameday.id, anna.id, {'alle9': 2}, expected_version=version)
        assert (await _record(db, gameday.id, anna.id)).alle9 == 1

    async def test_unknown_member_row(self, gameday_service, members):
        gameday = await gameday_service.create_gameday('2026-02-20')
        with pytest.raises(NotFoundError):
            await gameday_service.update_attendance(gameday.id, 999, {'paid': '1'})


class TestStruckGames:
    async def test_toggle(self, db, gameday_service, members):
        anna = members[0]
        gameday = await gameday_service.create_gameday('2026-02-20')

        assert await gameday_service.toggle_struck_game(gameday.id, anna.id, 'monte') == frozenset({'monte'})
        assert (await _record(db, gameday.id, anna.id)).struck_game_keys == frozenset({'monte'})
        assert await gameday_service.toggle_struck_game(gameday.id, anna.id, 'monte') == frozenset()

    async def test_unknown_game(self, gameday_service, members):
        gameday = await gameday_service.create_gameday('2026-02-20')
        with pytest.raises(ValidationError):
            await gameday_service.toggle_struck_game(gameday.id, members[0].id, 'kegelrobbe')


class TestCustomGames:
    async def test_values_initialised_and_settled(self, db, gameday_service, members):
        anna = members[0]
        gameday = await gameday_service.create_gameday('2026-02-20')
        custom_game = await gameday_service.add_custom_game(gameday.id, 'Fuchsjagd')

        values = await AttendanceOperations(db).get_custom_values(gameday.id)
        assert len(values) == len(members)
        assert all(value.amount == Decimal('0.00') for value in values)

        await gameday_service.update_attendance(gameday.id, anna.id, {'present': True})
        line = await gameday_service.set_custom_game_value(custom_game.id, anna.id, '0,70')
        assert line.custom_game_total == Decimal('0.70')

        line = await gameday_service.update_attendance(
            gameday.id, anna.id, {'custom_game_values': {custom_game.id: '0.20'}}
        )
        assert line.custom_game_total == Decimal('0.20')

    async def test_sort_order_and_rename(self, gameday_service, members):
        gameday = await gameday_service.create_gameday('2026-02-20')
        first = await gameday_service.add_custom_game(gameday.id, 'Fuchsjagd')
        second = await gameday_service.add_custom_game(gameday.id, 'Tannenbaum')
        assert (first.sort_order, second.sort_order) == (0, 1)

        await gameday_service.rename_custom_game(first.id, 'Hasenjagd')
        names = [game.name for game in await gameday_service.list_custom_games(gameday.id)]
        assert names == ['Hasenjagd', 'Tannenbaum']

    async def test_name_validation(self, gameday_service, members):
        gameday = await gameday_service.create_gameday('2026-02-20')
        with pytest.raises(ValidationError):
            await gameday_service.add_custom_game(gameday.id, '   ')
        with pytest.raises(ValidationError):
            await gameday_service.add_custom_game(gameday.id, 'x' * 31)

    async def test_locked_after_in_progress(self, gameday_service, members):
        gameday = await gameday_service.create_gameday('2026-02-20')
        custom_game = await gameday_service.add_custom_game(gameday.id, 'Fuchsjagd')
        await gameday_service.advance_status(gameday.id)
        await gameday_service.advance_status(gameday.id)

        with pytest.raises(FieldNotEditableError):
            await gameday_service.add_custom_game(gameday.id, 'Zu spät')
        with pytest.raises(FieldNotEditableError):
            await gameday_service.delete_custom_game(custom_game.id)
        with pytest.raises(FieldNotEditableError):
            await gameday_service.set_custom_game_value(custom_game.id, members[0].id, '1')

    async def test_delete_removes_values(self, db, gameday_service, members):
        gameday = await gameday_service.create_gameday('2026-02-20')
        custom_game = await gameday_service.add_custom_game(gameday.id, 'Fuchsjagd')
        await gameday_service.delete_custom_game(custom_game.id)

        assert await AttendanceOperations(db).get_custom_values(gameday.id) == []
        assert await gameday_service.list_custom_games(gameday.id) == []


class TestEntriesAndDeletion:
    async def test_entries_follow_status(self, gameday_service, members):
        gameday = await gameday_service.create_gameday('2026-02-20')
        with pytest.raises(ValidationError):
            await gameday_service.add_entry(gameday.id, 'gift', 'Spende', '5')

        for _ in range(2):
            await gameday_service.advance_status(gameday.id)
        entry = await gameday_service.add_entry(gameday.id, 'income', 'Spende', '5')
        assert entry.amount == Decimal('5.00')

        await gameday_service.advance_status(gameday.id)
        with pytest.raises(FieldNotEditableError):
            await gameday_service.delete_entry(entry.id)

    async def test_delete_gameday_removes_children(self, db, gameday_service, members):
        gameday = await gameday_service.create_gameday('2026-02-20')
        await gameday_service.add_custom_game(gameday.id, 'Fuchsjagd')
        await gameday_service.add_entry(gameday.id, 'cost', 'Bahn', '30')

        await gameday_service.delete_gameday(gameday.id)

        assert await gameday_service.list_gamedays() == []
        assert await AttendanceOperations(db).get_records(gameday.id) == []
        with pytest.raises(NotFoundError):
            await SettlementService(db).compute_settlement(gameday.id)


class TestSettlementService:
    async def test_whole_gameday_in_club_order(self, db, gameday_service, members):
        anna, bernd, carla = members
        gameday = await gameday_service.create_gameday('2026-02-20')
        await gameday_service.update_attendance(gameday.id, anna.id, {'present': True, 'kranz': 1})
        await gameday_service.update_attendance(gameday.id, bernd.id, {'present': True, 'monte': '0,50'})

        lines = await SettlementService(db).compute_settlement(gameday.id)

        assert [line.member_id for line in lines] == [anna.id, bernd.id, carla.id]
        assert [line.amount_owed for line in lines] == [Decimal('4.00'), Decimal('4.60'), Decimal('4.00')]

    async def test_single_member(self, db, gameday_service, members):
        gameday = await gameday_service.create_gameday('2026-02-20')
        await gameday_service.update_attendance(gameday.id, members[1].id, {'paid': '10'})

        line = await SettlementService(db).compute_member_settlement(gameday.id, members[1].id)
        assert line.remaining == Decimal('-6.00')

        with pytest.raises(NotFoundError):
            await SettlementService(db).compute_member_settlement(gameday.id, 999)


class TestLaneCost:
    async def test_set_and_clear(self, db, gameday_service, config_service, members):
        gameday = await gameday_service.create_gameday('2026-02-20')
        assert gameday.lane_cost is None

        await gameday_service.set_lane_cost(gameday.id, '45,50')
        assert (await gameday_service.get_gameday(gameday.id)).lane_cost == Decimal('45.50')

        # Informational only
        balance = await CashBalanceService(db, config_service).compute_cash_balance()
        assert balance.balance == Decimal('0.00')

        await gameday_service.set_lane_cost(gameday.id, '')
        assert (await gameday_service.get_gameday(gameday.id)).lane_cost is None

    async def test_invalid_amount_and_archived(self, gameday_service, members):
        gameday = await gameday_service.create_gameday('2026-02-20')
        await gameday_service.set_lane_cost(gameday.id, '40')

        with pytest.raises(ValidationError):
            await gameday_service.set_lane_cost(gameday.id, 'nan')
        assert (await gameday_service.get_gameday(gameday.id)).lane_cost == Decimal('40.00')

        for _ in range(3):
            await gameday_service.advance_status(gameday.id)
        with pytest.raises(FieldNotEditableError):
            await gameday_service.set_lane_cost(gameday.id, '50')
