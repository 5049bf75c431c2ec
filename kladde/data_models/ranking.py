"""
Ranking data models for the Monte and Medaillen round rankings.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional, Tuple

from kladde.data_models.settlement import AttendanceRecord


@dataclass(frozen=True)
class RankedMember:
    member_id: int
    display_name: str


@dataclass(frozen=True)
class MemberSeed:
    """Round-zero state of one member (MemberInitialValue)."""
    member_id: int
    monte_points: int = 0
    medaillen_points: int = 0
    monte_wins: int = 0
    medaillen_wins: int = 0

    @classmethod
    def from_model(cls, initial_value) -> 'MemberSeed':
        return cls(
            member_id=initial_value.member_id,
            monte_points=initial_value.initial_monte_points or 0,
            medaillen_points=initial_value.initial_medaillen_points or 0,
            monte_wins=initial_value.initial_monte_siege or 0,
            medaillen_wins=initial_value.initial_medaillen_siege or 0,
        )


@dataclass(frozen=True)
class GamedaySnapshot:
    """All attendance records of one gameday, as replayed by the ranking engine."""
    gameday_id: int
    match_date: date
    records: Tuple[AttendanceRecord, ...] = ()


@dataclass(frozen=True)
class PointAward:
    """Points one member earned on one gameday."""
    gameday_id: int
    points: int
    medal: Optional[str] = None  # "gold" / "silver" for Medaillen


@dataclass(frozen=True)
class StandingEntry:
    """Single ranking row."""
    rank: int
    member_id: int
    display_name: str
    total: int
    wins: int
    gold: int = 0
    silver: int = 0
    carried_in: int = 0  # Seeded points included in total
    history: Tuple[PointAward, ...] = ()

    def to_snapshot(self) -> dict:
        return {
            'rank': self.rank,
            'member_id': self.member_id,
            'display_name': self.display_name,
            'total': self.total,
            'wins': self.wins,
            'gold': self.gold,
            'silver': self.silver,
            'carried_in': self.carried_in,
        }


@dataclass(frozen=True)
class RoundWinSnapshot:
    """A completed round: who won, where, and the standings at that moment."""
    ranking_type: str
    round_number: int
    winner_member_id: int
    winning_gameday_id: int
    winning_score: int
    standings: List[dict] = field(default_factory=list)
    detected_at: Optional[datetime] = None


@dataclass(frozen=True)
class RankingResult:
    """Outcome of a full replay."""
    ranking_type: str
    standings: List[StandingEntry]
    round_wins: List[RoundWinSnapshot]
    rounds_completed: int


@dataclass(frozen=True)
class RankingView:
    """Current standings plus the persisted round history (newest round first)."""
    ranking_type: str
    standings: List[StandingEntry]
    history: List[RoundWinSnapshot]
