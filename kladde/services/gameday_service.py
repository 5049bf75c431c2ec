"""
Gameday service for the Kegelkladde.

Owns the write path of a gameday: creation with carryover seeding, the status
lifecycle, attendance updates, struck side games, custom games and manual
income/cost entries. Every write validates its input completely before the
first row is touched and runs in a single transaction.
"""

import logging
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Union
from sqlalchemy import delete, func, select

from kladde.config import Config
from kladde.data_models.settlement import SettlementLine
from kladde.database.models import (
    Attendance, CustomGame, CustomGameValue, EntryType, Gameday, GamedayEntry,
    GamedayStatus, MARKER_KEYS, SIDE_GAME_KEYS
)
from kladde.operations.attendance_operations import AttendanceOperations
from kladde.operations.member_operations import MemberOperations
from kladde.services.base import BaseService
from kladde.utils.carryover import CarryoverPropagator
from kladde.utils.date_parser import parse_date
from kladde.utils.exceptions import ConcurrencyConflict, NotFoundError, ValidationError
from kladde.utils.gameday_status import GamedayStatusMachine, OPEN_FIELDS
from kladde.utils.money import ZERO, clamp_count, clamp_money, parse_money, round2
from kladde.utils.settlement import SettlementCalculator

logger = logging.getLogger(__name__)

NOTE_MAX_LENGTH = 120
CUSTOM_GAME_NAME_MAX_LENGTH = 30
ENTRY_NAME_MAX_LENGTH = 100
MAX_TIEBREAK_RANK = 99
ABSENCE_PENALTY = Decimal('1.00')

BOOLEAN_FIELDS = ('present', 'monte_extra')
TIEBREAK_FIELDS = ('monte_tiebreak', 'aussteigen_tiebreak')
CURRENCY_FIELDS = ('penalties', 'paid') + SIDE_GAME_KEYS

_TRUE_STRINGS = {'1', 'true', 'yes', 'ja', 'on', 'x'}
_FALSE_STRINGS = {'0', 'false', 'no', 'nein', 'off', ''}


def _parse_bool(field: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise ValidationError(field, f"not a boolean: {value!r}")


def _parse_count(field: str, value: Any, maximum: int) -> int:
    """Non-negative integer, clamped to maximum. Negative or unparseable input is rejected."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return 0
    if isinstance(value, bool):
        raise ValidationError(field, f"not a number: {value!r}")
    try:
        count = int(value)
    except (TypeError, ValueError, OverflowError):
        try:
            count = int(round2(value))
        except (InvalidOperation, TypeError, ValueError):
            raise ValidationError(field, f"not a number: {value!r}")
    if count < 0:
        raise ValidationError(field, "must not be negative")
    return clamp_count(count, 0, maximum)


def _parse_currency(field: str, value: Any) -> Decimal:
    """Currency in 0..9999; out-of-range amounts are clamped, text that is no number is rejected."""
    try:
        amount = parse_money(value)
    except ValueError:
        raise ValidationError(field, f"not a currency amount: {value!r}")
    return clamp_money(amount, ZERO, Config.MAX_CURRENCY_AMOUNT)


def _parse_struck_games(value: Any) -> frozenset:
    if value is None:
        return frozenset()
    if isinstance(value, str):
        value = [key.strip() for key in value.split(',') if key.strip()]
    keys = frozenset(value)
    unknown = keys - set(SIDE_GAME_KEYS)
    if unknown:
        raise ValidationError('struck_games', f"unknown side games {sorted(unknown)}")
    return keys


class GamedayService(BaseService):
    """Gameday lifecycle and attendance writes"""

    def __init__(self, database, config_service=None):
        super().__init__(database.session_factory)
        self.db = database
        self.config_service = config_service
        self.attendance_ops = AttendanceOperations(database)
        self.member_ops = MemberOperations(database)

    @property
    def contribution(self) -> Decimal:
        if self.config_service is not None:
            return self.config_service.contribution
        return Config.DEFAULT_CONTRIBUTION

    # Gamedays

    async def create_gameday(self, match_date: Union[str, date], note: Optional[str] = None) -> Gameday:
        """
        Create a gameday with one attendance row per active member.

        The carryover of every row is the member's remaining balance on the
        latest gameday dated strictly before the new one.

        Raises:
            ValidationError: If the date cannot be parsed
        """
        match_date = parse_date(match_date, "match_date")
        note = (note or '').strip()[:NOTE_MAX_LENGTH] or None

        async with self.get_session() as session:
            result = await session.execute(
                select(Gameday)
                .where(Gameday.match_date < match_date)
                .order_by(Gameday.match_date.desc(), Gameday.id.desc())
                .limit(1)
            )
            previous = result.scalar_one_or_none()

            previous_records = previous_custom_values = None
            if previous is not None:
                previous_records, previous_custom_values = await self.attendance_ops.snapshot(
                    previous.id, session=session
                )

            members = await self.member_ops.get_ordered_members(active_only=True, session=session)
            carryovers = CarryoverPropagator.seed_carryovers(
                [member.id for member in members], previous_records, previous_custom_values
            )

            gameday = Gameday(match_date=match_date, note=note, status=GamedayStatus.NOT_STARTED.value,
                              lane_cost=None)
            session.add(gameday)
            await session.flush()

            await self.attendance_ops.create_records(gameday.id, carryovers, self.contribution, session)

        logger.info(
            f"Created gameday {gameday.id} on {match_date} with {len(carryovers)} members "
            f"(previous gameday: {previous.id if previous else None})"
        )
        return gameday

    async def next_match_date(self) -> date:
        """Suggested date for the next gameday: two weeks after the last one"""
        async with self.get_session() as session:
            result = await session.execute(select(func.max(Gameday.match_date)))
            last = result.scalar()
        if last is None:
            return Config.FIRST_GAMEDAY
        return last + timedelta(days=Config.GAMEDAY_INTERVAL_DAYS)

    async def list_gamedays(self) -> List[Gameday]:
        """All gamedays, newest first"""
        async with self.get_session() as session:
            result = await session.execute(
                select(Gameday).order_by(Gameday.match_date.desc(), Gameday.id.desc())
            )
            return list(result.scalars().all())

    async def get_gameday(self, gameday_id: int) -> Gameday:
        gameday = await self.db.get_gameday(gameday_id)
        if gameday is None:
            raise NotFoundError("Spieltag", gameday_id)
        return gameday

    async def delete_gameday(self, gameday_id: int):
        """Remove a gameday together with all rows that belong to it"""
        async with self.get_session() as session:
            gameday = await self._require_gameday(session, gameday_id)
            await session.execute(delete(CustomGameValue).where(CustomGameValue.gameday_id == gameday_id))
            await session.execute(delete(CustomGame).where(CustomGame.gameday_id == gameday_id))
            await session.execute(delete(GamedayEntry).where(GamedayEntry.gameday_id == gameday_id))
            await session.execute(delete(Attendance).where(Attendance.gameday_id == gameday_id))
            await session.delete(gameday)

        logger.info(f"Deleted gameday {gameday_id} ({gameday.match_date})")

    async def set_lane_cost(self, gameday_id: int, amount: Any) -> Gameday:
        """
        Record the lane rental of a gameday; blank clears it.

        The amount is shown with the gameday only. Booking it into the cash
        takes a cost entry.
        """
        lane_cost = None
        if not (amount is None or (isinstance(amount, str) and not amount.strip())):
            lane_cost = _parse_currency('lane_cost', amount)

        async with self.get_session() as session:
            gameday = await self._require_gameday(session, gameday_id)
            GamedayStatusMachine.ensure_entries_editable(gameday.gameday_status)
            gameday.lane_cost = lane_cost

        logger.info(f"Gameday {gameday_id}: lane cost set to {lane_cost}")
        return gameday

    async def advance_status(self, gameday_id: int) -> GamedayStatus:
        """
        Move the gameday one step forward.

        Raises:
            InvalidTransitionError: If the gameday is archived
        """
        async with self.get_session() as session:
            gameday = await self._require_gameday(session, gameday_id)
            old_status = gameday.gameday_status
            new_status = GamedayStatusMachine.advance(old_status)
            gameday.status = new_status.value

        logger.info(f"Gameday {gameday_id} status {old_status.name} -> {new_status.name}")
        return new_status

    async def revert_status(self, gameday_id: int) -> GamedayStatus:
        """
        Move the gameday one step back.

        Raises:
            InvalidTransitionError: If the gameday has not started
        """
        async with self.get_session() as session:
            gameday = await self._require_gameday(session, gameday_id)
            old_status = gameday.gameday_status
            new_status = GamedayStatusMachine.revert(old_status)
            gameday.status = new_status.value

        logger.info(f"Gameday {gameday_id} status {old_status.name} -> {new_status.name}")
        return new_status

    # Attendance

    async def update_attendance(self, gameday_id: int, member_id: int, changes: Dict[str, Any],
                                expected_version: Optional[int] = None) -> SettlementLine:
        """
        Apply field changes to one attendance row and return the member's new settlement.

        Args:
            gameday_id: Gameday of the row
            member_id: Member of the row
            changes: field -> value; custom_game_values maps custom game id -> amount
            expected_version: Row version the caller last read, None to skip the check

        Raises:
            ValidationError: Unknown field or malformed value
            FieldNotEditableError: Field not writable in the gameday's status
            NotFoundError: Unknown gameday, row or custom game
            ConcurrencyConflict: Row changed since expected_version
        """
        cleaned = self._validate_changes(changes)

        async with self.get_session() as session:
            gameday = await self._require_gameday(session, gameday_id)
            GamedayStatusMachine.ensure_writable(gameday.gameday_status, cleaned.keys())

            record = await self.attendance_ops.get_record(gameday_id, member_id, session=session)
            if expected_version is not None and record.version != expected_version:
                raise ConcurrencyConflict(
                    'update_attendance',
                    f"row {gameday_id}/{member_id} is at version {record.version}, expected {expected_version}"
                )

            custom_values = cleaned.pop('custom_game_values', None)
            if custom_values:
                await self._write_custom_values(session, gameday_id, member_id, custom_values)

            if 'present' in cleaned and 'penalties' not in cleaned and cleaned['present'] != record.present:
                penalty = self._absence_penalty(record.penalties, cleaned['present'])
                if penalty is not None:
                    cleaned['penalties'] = penalty

            if cleaned.get('monte_extra'):
                await self._clear_monte_extra(session, gameday_id, member_id)

            for field, value in cleaned.items():
                if field == 'struck_games':
                    record.struck_games = AttendanceOperations.encode_struck_games(value)
                else:
                    setattr(record, field, value)

            await session.flush()
            line = await self._settlement_line(session, gameday_id, member_id)

        logger.debug(f"Attendance {gameday_id}/{member_id} updated: {sorted(changes)}")
        return line

    async def toggle_struck_game(self, gameday_id: int, member_id: int, game_key: str) -> frozenset:
        """Strike or unstrike one side game of a member; returns the new set of struck keys"""
        if game_key not in SIDE_GAME_KEYS:
            raise ValidationError('game_key', f"unknown side game {game_key!r}")

        async with self.get_session() as session:
            gameday = await self._require_gameday(session, gameday_id)
            GamedayStatusMachine.ensure_writable(gameday.gameday_status, ['struck_games'])

            record = await self.attendance_ops.get_record(gameday_id, member_id, session=session)
            keys = set(record.struck_game_keys)
            if game_key in keys:
                keys.discard(game_key)
            else:
                keys.add(game_key)
            record.struck_games = AttendanceOperations.encode_struck_games(keys)

        return frozenset(keys)

    # Custom games

    async def add_custom_game(self, gameday_id: int, name: str) -> CustomGame:
        """Add a custom game with a zero stake for every active member"""
        name = self._validate_custom_game_name(name)

        async with self.get_session() as session:
            gameday = await self._require_gameday(session, gameday_id)
            GamedayStatusMachine.ensure_custom_games_editable(gameday.gameday_status)

            result = await session.execute(
                select(func.max(CustomGame.sort_order)).where(CustomGame.gameday_id == gameday_id)
            )
            current_max = result.scalar()
            custom_game = CustomGame(
                gameday_id=gameday_id,
                name=name,
                sort_order=0 if current_max is None else current_max + 1
            )
            session.add(custom_game)
            await session.flush()

            members = await self.member_ops.get_ordered_members(active_only=True, session=session)
            for member in members:
                session.add(CustomGameValue(
                    gameday_id=gameday_id,
                    member_id=member.id,
                    custom_game_id=custom_game.id,
                    amount=ZERO
                ))

        logger.info(f"Gameday {gameday_id}: added custom game {custom_game.id} '{name}'")
        return custom_game

    async def rename_custom_game(self, custom_game_id: int, name: str) -> CustomGame:
        name = self._validate_custom_game_name(name)

        async with self.get_session() as session:
            custom_game = await self._require_custom_game(session, custom_game_id)
            gameday = await self._require_gameday(session, custom_game.gameday_id)
            GamedayStatusMachine.ensure_custom_games_editable(gameday.gameday_status)
            custom_game.name = name

        return custom_game

    async def delete_custom_game(self, custom_game_id: int):
        async with self.get_session() as session:
            custom_game = await self._require_custom_game(session, custom_game_id)
            gameday = await self._require_gameday(session, custom_game.gameday_id)
            GamedayStatusMachine.ensure_custom_games_editable(gameday.gameday_status)

            await session.execute(
                delete(CustomGameValue).where(CustomGameValue.custom_game_id == custom_game_id)
            )
            await session.delete(custom_game)

        logger.info(f"Gameday {custom_game.gameday_id}: deleted custom game {custom_game_id}")

    async def list_custom_games(self, gameday_id: int) -> List[CustomGame]:
        async with self.get_session() as session:
            result = await session.execute(
                select(CustomGame)
                .where(CustomGame.gameday_id == gameday_id)
                .order_by(CustomGame.sort_order, CustomGame.id)
            )
            return list(result.scalars().all())

    async def set_custom_game_value(self, custom_game_id: int, member_id: int, amount: Any) -> SettlementLine:
        amount = _parse_currency('custom_game_values', amount)

        async with self.get_session() as session:
            custom_game = await self._require_custom_game(session, custom_game_id)
            gameday = await self._require_gameday(session, custom_game.gameday_id)
            GamedayStatusMachine.ensure_writable(gameday.gameday_status, ['custom_game_values'])

            await self.attendance_ops.get_record(gameday.id, member_id, session=session)
            await self.attendance_ops.upsert_custom_value(
                gameday.id, member_id, custom_game_id, amount, session
            )
            line = await self._settlement_line(session, gameday.id, member_id)

        return line

    # Income / cost entries

    async def add_entry(self, gameday_id: int, entry_type: Union[str, EntryType], name: str,
                        amount: Any) -> GamedayEntry:
        try:
            entry_type = EntryType(entry_type)
        except ValueError:
            raise ValidationError('entry_type', f"must be 'income' or 'cost', got {entry_type!r}")
        name = (name or '').strip()
        if not name:
            raise ValidationError('name', 'must not be empty', "❌ Bezeichnung darf nicht leer sein.")
        amount = _parse_currency('amount', amount)

        async with self.get_session() as session:
            gameday = await self._require_gameday(session, gameday_id)
            GamedayStatusMachine.ensure_entries_editable(gameday.gameday_status)

            result = await session.execute(
                select(func.max(GamedayEntry.sort_order)).where(GamedayEntry.gameday_id == gameday_id)
            )
            current_max = result.scalar()
            entry = GamedayEntry(
                gameday_id=gameday_id,
                entry_type=entry_type,
                name=name[:ENTRY_NAME_MAX_LENGTH],
                amount=amount,
                sort_order=0 if current_max is None else current_max + 1
            )
            session.add(entry)

        logger.info(f"Gameday {gameday_id}: added {entry_type.value} entry '{entry.name}' ({amount})")
        return entry

    async def delete_entry(self, entry_id: int):
        async with self.get_session() as session:
            entry = await session.get(GamedayEntry, entry_id)
            if entry is None:
                raise NotFoundError("Eintrag", entry_id)
            gameday = await self._require_gameday(session, entry.gameday_id)
            GamedayStatusMachine.ensure_entries_editable(gameday.gameday_status)
            await session.delete(entry)

        logger.info(f"Gameday {entry.gameday_id}: deleted entry {entry_id}")

    # Helpers

    @staticmethod
    async def _require_gameday(session, gameday_id: int) -> Gameday:
        gameday = await session.get(Gameday, gameday_id)
        if gameday is None:
            raise NotFoundError("Spieltag", gameday_id)
        return gameday

    @staticmethod
    async def _require_custom_game(session, custom_game_id: int) -> CustomGame:
        custom_game = await session.get(CustomGame, custom_game_id)
        if custom_game is None:
            raise NotFoundError("Spiel", custom_game_id)
        return custom_game

    @staticmethod
    def _validate_custom_game_name(name: str) -> str:
        name = (name or '').strip()
        if not name:
            raise ValidationError('name', 'must not be empty', "❌ Spielname darf nicht leer sein.")
        if len(name) > CUSTOM_GAME_NAME_MAX_LENGTH:
            raise ValidationError(
                'name', f"longer than {CUSTOM_GAME_NAME_MAX_LENGTH} characters",
                f"❌ Spielname darf höchstens {CUSTOM_GAME_NAME_MAX_LENGTH} Zeichen haben."
            )
        return name

    @staticmethod
    def _validate_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
        """Parse every change up front; nothing is written when one of them is malformed"""
        cleaned = {}
        for field, value in changes.items():
            if field not in OPEN_FIELDS:
                raise ValidationError(field, 'unknown or read-only field')
            if field in BOOLEAN_FIELDS:
                cleaned[field] = _parse_bool(field, value)
            elif field in MARKER_KEYS:
                cleaned[field] = _parse_count(field, value, Config.MAX_MARKER_COUNT)
            elif field in TIEBREAK_FIELDS:
                cleaned[field] = _parse_count(field, value, MAX_TIEBREAK_RANK)
            elif field in CURRENCY_FIELDS:
                cleaned[field] = _parse_currency(field, value)
            elif field == 'struck_games':
                cleaned[field] = _parse_struck_games(value)
            elif field == 'custom_game_values':
                if not isinstance(value, dict):
                    raise ValidationError(field, 'must map custom game id to amount')
                parsed = {}
                for custom_game_id, amount in value.items():
                    try:
                        custom_game_id = int(custom_game_id)
                    except (TypeError, ValueError):
                        raise ValidationError(field, f"invalid custom game id {custom_game_id!r}")
                    parsed[custom_game_id] = _parse_currency(field, amount)
                cleaned[field] = parsed
        return cleaned

    @staticmethod
    def _absence_penalty(current_penalties: Decimal, present: bool) -> Optional[Decimal]:
        """Absent members pay 1,00 €; the fee is waived again when they turn up after all"""
        current = round2(current_penalties or ZERO)
        if not present and current == ZERO:
            return ABSENCE_PENALTY
        if present and current == ABSENCE_PENALTY:
            return ZERO
        return None

    async def _clear_monte_extra(self, session, gameday_id: int, member_id: int):
        # Only one member per gameday holds the Monte extra point
        result = await session.execute(
            select(Attendance).where(
                Attendance.gameday_id == gameday_id,
                Attendance.member_id != member_id,
                Attendance.monte_extra == True
            )
        )
        for other in result.scalars().all():
            other.monte_extra = False

    async def _write_custom_values(self, session, gameday_id: int, member_id: int, values: Dict[int, Decimal]):
        for custom_game_id, amount in values.items():
            custom_game = await self._require_custom_game(session, custom_game_id)
            if custom_game.gameday_id != gameday_id:
                raise NotFoundError("Spiel", custom_game_id)
            await self.attendance_ops.upsert_custom_value(gameday_id, member_id, custom_game_id, amount, session)

    async def _settlement_line(self, session, gameday_id: int, member_id: int) -> SettlementLine:
        records, custom_values = await self.attendance_ops.snapshot(gameday_id, session=session)
        for line in SettlementCalculator.calculate(records, custom_values):
            if line.member_id == member_id:
                return line
        raise NotFoundError("Attendance", f"{gameday_id}/{member_id}")
