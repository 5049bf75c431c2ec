from sqlalchemy import (
    Column, Integer, String, DateTime, Date, Boolean, Text,
    ForeignKey, Enum as SQLEnum, UniqueConstraint, Index
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func
from sqlalchemy.types import TypeDecorator
from decimal import Decimal
from enum import Enum, IntEnum
import json

from kladde.utils.money import CENT, to_money

Base = declarative_base()

class MoneyType(TypeDecorator):
    """Currency column stored as integer cents, returned as a two-place Decimal."""
    impl = Integer
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return int(to_money(value) * 100)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return (Decimal(value) / 100).quantize(CENT)

class GamedayStatus(IntEnum):
    NOT_STARTED = 0
    IN_PROGRESS = 1
    SETTLEMENT = 2
    ARCHIVED = 3

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]

_STATUS_LABELS = {
    GamedayStatus.NOT_STARTED: "Noch nicht begonnen",
    GamedayStatus.IN_PROGRESS: "Gut Holz!",
    GamedayStatus.SETTLEMENT: "Abrechnung",
    GamedayStatus.ARCHIVED: "Archiv",
}

class RankingType(Enum):
    MONTE = "monte"
    MEDAILLEN = "medaillen"

class EntryType(Enum):
    INCOME = "income"
    COST = "cost"

# Side games stored directly on the attendance row
SIDE_GAME_KEYS = ('va', 'monte', 'aussteigen', 'sechs_tage')
MARKER_KEYS = ('triclops', 'alle9', 'kranz', 'pudel')

class Member(Base):
    """Read-only view of the external member directory."""
    __tablename__ = 'members'

    id = Column(Integer, primary_key=True)
    display_name = Column(String(100), nullable=False)
    sort_position = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=func.now())

    def __repr__(self):
        return f"<Member(id={self.id}, name='{self.display_name}')>"

class Gameday(Base):
    __tablename__ = 'gamedays'

    id = Column(Integer, primary_key=True)
    match_date = Column(Date, nullable=False, index=True)
    note = Column(String(120), nullable=True)
    status = Column(Integer, nullable=False, default=GamedayStatus.NOT_STARTED.value)
    lane_cost = Column(MoneyType, nullable=True)  # Shown on the gameday, not booked into the cash

    created_at = Column(DateTime, default=func.now())

    @property
    def gameday_status(self) -> GamedayStatus:
        return GamedayStatus(self.status)

    def __repr__(self):
        return f"<Gameday(id={self.id}, date={self.match_date}, status={self.status})>"

class Attendance(Base):
    """One row per (gameday, member): presence, markers, side games and payment."""
    __tablename__ = 'attendance'

    gameday_id = Column(Integer, ForeignKey('gamedays.id', ondelete='CASCADE'), primary_key=True)
    member_id = Column(Integer, ForeignKey('members.id', ondelete='CASCADE'), primary_key=True, index=True)

    present = Column(Boolean, nullable=False, default=False)

    # Marker counts
    triclops = Column(Integer, nullable=False, default=0)
    alle9 = Column(Integer, nullable=False, default=0)
    kranz = Column(Integer, nullable=False, default=0)
    pudel = Column(Integer, nullable=False, default=0)

    penalties = Column(MoneyType, nullable=False, default=Decimal('0.00'))
    contribution = Column(MoneyType, nullable=False, default=Decimal('0.00'))

    # Side games
    va = Column(MoneyType, nullable=False, default=Decimal('0.00'))
    monte = Column(MoneyType, nullable=False, default=Decimal('0.00'))
    aussteigen = Column(MoneyType, nullable=False, default=Decimal('0.00'))
    sechs_tage = Column(MoneyType, nullable=False, default=Decimal('0.00'))
    monte_extra = Column(Boolean, nullable=False, default=False)
    monte_tiebreak = Column(Integer, nullable=False, default=0)
    aussteigen_tiebreak = Column(Integer, nullable=False, default=0)
    struck_games = Column(Text, nullable=True)  # JSON list of side-game keys

    carryover = Column(MoneyType, nullable=False, default=Decimal('0.00'))
    paid = Column(MoneyType, nullable=False, default=Decimal('0.00'))

    # Optimistic concurrency counter
    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {'version_id_col': version}

    @property
    def struck_game_keys(self) -> frozenset:
        if not self.struck_games:
            return frozenset()
        try:
            return frozenset(json.loads(self.struck_games))
        except (ValueError, TypeError):
            return frozenset()

    def __repr__(self):
        return f"<Attendance(gameday={self.gameday_id}, member={self.member_id}, present={self.present})>"

class CustomGame(Base):
    __tablename__ = 'custom_games'

    id = Column(Integer, primary_key=True)
    gameday_id = Column(Integer, ForeignKey('gamedays.id', ondelete='CASCADE'), nullable=False, index=True)
    name = Column(String(30), nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<CustomGame(id={self.id}, name='{self.name}')>"

class CustomGameValue(Base):
    __tablename__ = 'custom_game_values'

    gameday_id = Column(Integer, ForeignKey('gamedays.id', ondelete='CASCADE'), primary_key=True)
    member_id = Column(Integer, ForeignKey('members.id', ondelete='CASCADE'), primary_key=True)
    custom_game_id = Column(Integer, ForeignKey('custom_games.id', ondelete='CASCADE'), primary_key=True)
    amount = Column(MoneyType, nullable=False, default=Decimal('0.00'))

class GamedayEntry(Base):
    """Manual income or cost line item of a gameday."""
    __tablename__ = 'gameday_entries'

    id = Column(Integer, primary_key=True)
    gameday_id = Column(Integer, ForeignKey('gamedays.id', ondelete='CASCADE'), nullable=False, index=True)
    entry_type = Column(SQLEnum(EntryType), nullable=False)
    name = Column(String(100), nullable=False)
    amount = Column(MoneyType, nullable=False, default=Decimal('0.00'))
    sort_order = Column(Integer, nullable=False, default=0)

class Expense(Base):
    __tablename__ = 'expenses'

    id = Column(Integer, primary_key=True)
    amount = Column(MoneyType, nullable=False)
    description = Column(String(200), nullable=False)
    expense_date = Column(Date, nullable=False, index=True)

    created_at = Column(DateTime, default=func.now())

class Configuration(Base):
    """JSON-valued runtime settings."""
    __tablename__ = 'configurations'

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

class MemberInitialValue(Base):
    """Round-zero seeds entered by an administrator."""
    __tablename__ = 'member_initial_values'

    member_id = Column(Integer, ForeignKey('members.id', ondelete='CASCADE'), primary_key=True)

    initial_alle9 = Column(Integer, nullable=False, default=0)
    initial_kranz = Column(Integer, nullable=False, default=0)
    initial_carryover = Column(MoneyType, nullable=False, default=Decimal('0.00'))
    initial_monte_points = Column(Integer, nullable=False, default=0)
    initial_medaillen_points = Column(Integer, nullable=False, default=0)
    initial_monte_siege = Column(Integer, nullable=False, default=0)
    initial_medaillen_siege = Column(Integer, nullable=False, default=0)

class RoundWin(Base):
    """Audit trail of completed ranking rounds."""
    __tablename__ = 'round_wins'

    id = Column(Integer, primary_key=True)
    ranking_type = Column(SQLEnum(RankingType), nullable=False)
    round_number = Column(Integer, nullable=False)
    winner_member_id = Column(Integer, ForeignKey('members.id'), nullable=False)
    winning_gameday_id = Column(Integer, nullable=False)  # No FK: survives gameday deletion
    winning_score = Column(Integer, nullable=False)
    standings_json = Column(Text, nullable=False)
    detected_at = Column(DateTime, default=func.now())

    __table_args__ = (
        UniqueConstraint('ranking_type', 'round_number', name='uq_round_wins_type_round'),
        Index('idx_round_wins_type_round', 'ranking_type', 'round_number'),
    )

    @property
    def standings(self) -> list:
        return json.loads(self.standings_json)

    def __repr__(self):
        return f"<RoundWin(type={self.ranking_type}, round={self.round_number}, winner={self.winner_member_id})>"
