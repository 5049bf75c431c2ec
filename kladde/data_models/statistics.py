"""
Statistics data models.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List

from kladde.utils.money import ZERO


@dataclass(frozen=True)
class MemberStatistics:
    """Lifetime figures of one member. alle9 and kranz include the legacy seeds."""
    member_id: int
    display_name: str
    gamedays_attended: int = 0
    gamedays_total: int = 0
    alle9: int = 0
    kranz: int = 0
    triclops: int = 0
    pudel: int = 0
    contributions: Decimal = ZERO
    penalties: Decimal = ZERO

    @property
    def attendance_rate(self) -> float:
        if not self.gamedays_total:
            return 0.0
        return self.gamedays_attended / self.gamedays_total


@dataclass(frozen=True)
class ClubStatistics:
    total_gamedays: int
    archived_gamedays: int
    members: List[MemberStatistics] = field(default_factory=list)
