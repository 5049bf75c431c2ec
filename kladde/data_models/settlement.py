"""
Settlement data models.

Provides immutable data transfer objects decoupling the settlement and ranking
calculations from the ORM rows they are computed from.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import FrozenSet, List, Optional

from kladde.utils.money import ZERO


@dataclass(frozen=True)
class AttendanceRecord:
    """Snapshot of one attendance row."""
    member_id: int
    present: bool = False
    triclops: int = 0
    alle9: int = 0
    kranz: int = 0
    pudel: int = 0
    penalties: Decimal = ZERO
    contribution: Decimal = ZERO
    va: Optional[Decimal] = ZERO
    monte: Optional[Decimal] = ZERO
    aussteigen: Optional[Decimal] = ZERO
    sechs_tage: Optional[Decimal] = ZERO
    monte_extra: bool = False
    monte_tiebreak: Optional[int] = 0
    aussteigen_tiebreak: Optional[int] = 0
    struck_games: FrozenSet[str] = frozenset()
    carryover: Decimal = ZERO
    paid: Decimal = ZERO

    @classmethod
    def from_model(cls, attendance) -> 'AttendanceRecord':
        """Build a snapshot from an ``Attendance`` ORM row."""
        return cls(
            member_id=attendance.member_id,
            present=bool(attendance.present),
            triclops=attendance.triclops or 0,
            alle9=attendance.alle9 or 0,
            kranz=attendance.kranz or 0,
            pudel=attendance.pudel or 0,
            penalties=attendance.penalties if attendance.penalties is not None else ZERO,
            contribution=attendance.contribution if attendance.contribution is not None else ZERO,
            va=attendance.va,
            monte=attendance.monte,
            aussteigen=attendance.aussteigen,
            sechs_tage=attendance.sechs_tage,
            monte_extra=bool(attendance.monte_extra),
            monte_tiebreak=attendance.monte_tiebreak,
            aussteigen_tiebreak=attendance.aussteigen_tiebreak,
            struck_games=attendance.struck_game_keys,
            carryover=attendance.carryover if attendance.carryover is not None else ZERO,
            paid=attendance.paid if attendance.paid is not None else ZERO,
        )


@dataclass(frozen=True)
class CustomGameAmount:
    """One member's stake in a custom game."""
    member_id: int
    custom_game_id: int
    amount: Decimal


@dataclass(frozen=True)
class SettlementLine:
    """What one member owes for one gameday."""
    member_id: int
    amount_owed: Decimal
    paid: Decimal
    remaining: Decimal
    present: bool
    marker_cost: Decimal = ZERO
    pudel_cost: Decimal = ZERO
    game_cost: Decimal = ZERO
    custom_game_total: Decimal = ZERO
    carryover: Decimal = ZERO


@dataclass(frozen=True)
class CashBalance:
    """Club cash balance and the sums it is made of."""
    starting_balance: Decimal
    total_paid: Decimal
    total_income: Decimal
    total_costs: Decimal
    total_expenses: Decimal
    balance: Decimal


@dataclass(frozen=True)
class EntryItem:
    id: int
    name: str
    amount: Decimal


@dataclass(frozen=True)
class GamedayCashBalance:
    """Cash balance as seen from one gameday."""
    gameday_id: int
    previous_balance: Decimal
    gameday_paid: Decimal
    gameday_income: Decimal
    gameday_costs: Decimal
    balance: Decimal
    income_items: List[EntryItem] = field(default_factory=list)
    cost_items: List[EntryItem] = field(default_factory=list)
