"""
Round-based ranking engine for the Monte and Medaillen lists.

The standings are never stored: every request replays all gamedays in
chronological order, starting from the administrator-entered seeds. Whenever a
member reaches the round threshold the round is closed, a snapshot of the
standings is taken and all totals start again from zero.

Scoring rules live in RoundScorer strategies:
- MonteScorer: placement points 10/6/4/3/2/1 for the cheapest Monte stakes
  below the 2,00 € cutoff, plus one bonus point for the extra-point holder
- MedaillenScorer: gold (2) and silver (1) for the two lowest Aussteigen stakes
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence
import logging

from kladde.config import Config
from kladde.data_models.ranking import (
    GamedaySnapshot, MemberSeed, PointAward, RankedMember, RankingResult,
    RoundWinSnapshot, StandingEntry
)
from kladde.data_models.settlement import AttendanceRecord
from kladde.database.models import RankingType

logger = logging.getLogger(__name__)


@dataclass
class _MemberState:
    """Mutable running state of one member during a replay"""
    member_id: int
    display_name: str
    position: int
    total: int = 0
    carried_in: int = 0  # Seeded points still part of the current round
    wins: int = 0
    gold: int = 0
    silver: int = 0
    history: List[PointAward] = field(default_factory=list)

    def reset_round(self):
        self.total = 0
        self.carried_in = 0
        self.gold = 0
        self.silver = 0
        self.history = []


class RoundScorer(ABC):
    """
    Abstract base class for per-gameday scoring rules.

    Each scorer decides which members earn points on a gameday and how a
    round is seeded and tie-broken.
    """

    ranking_type: RankingType
    win_threshold: int

    @abstractmethod
    def score_gameday(self, gameday: GamedaySnapshot, order: Dict[int, int]) -> Dict[int, PointAward]:
        """
        Calculate the points earned on one gameday.

        Args:
            gameday: Snapshot with all attendance records of the gameday
            order: member_id -> club position, used as last tie-break

        Returns:
            Dictionary mapping member_id to the PointAward (members without points omitted)
        """
        pass

    @abstractmethod
    def seed_points(self, seed: MemberSeed) -> int:
        pass

    @abstractmethod
    def seed_wins(self, seed: MemberSeed) -> int:
        pass

    @abstractmethod
    def secondary_key(self, state: _MemberState) -> int:
        """Standings tie-break after the total (higher is better)"""
        pass

    @staticmethod
    def _participants(gameday: GamedaySnapshot, game: str) -> List[AttendanceRecord]:
        """Present, non-struck members with a usable stake for the given side game"""
        participants = []
        for record in gameday.records:
            if not record.present or game in record.struck_games:
                continue
            if getattr(record, game) is None:
                logger.warning(
                    f"Gameday {gameday.gameday_id}: member {record.member_id} has no {game} amount, skipping"
                )
                continue
            participants.append(record)
        return participants

    @staticmethod
    def _order_key(game: str, tiebreak: str, order: Dict[int, int]):
        def key(record: AttendanceRecord):
            return (
                getattr(record, game),
                getattr(record, tiebreak) or 0,
                order.get(record.member_id, len(order)),
                record.member_id,
            )
        return key


class MonteScorer(RoundScorer):
    ranking_type = RankingType.MONTE

    def __init__(self, points: Sequence[int] = Config.MONTE_POINTS, cutoff=Config.MONTE_CUTOFF,
                 win_threshold: int = Config.MONTE_WIN_THRESHOLD):
        self.points = tuple(points)
        self.cutoff = cutoff
        self.win_threshold = win_threshold

    def score_gameday(self, gameday: GamedaySnapshot, order: Dict[int, int]) -> Dict[int, PointAward]:
        participants = self._participants(gameday, 'monte')

        # Monte was not played on this gameday
        if not any(record.monte > 0 for record in participants):
            return {}

        eligible = sorted(
            (record for record in participants if record.monte < self.cutoff),
            key=self._order_key('monte', 'monte_tiebreak', order)
        )

        awards = {}
        for place, record in enumerate(eligible):
            points = self.points[place] if place < len(self.points) else 0
            if record.monte_extra:
                points += 1
            if points > 0:
                awards[record.member_id] = PointAward(gameday.gameday_id, points)

        # The extra point is also earned above the cutoff, without placement points
        for record in participants:
            if record.monte >= self.cutoff and record.monte_extra:
                awards[record.member_id] = PointAward(gameday.gameday_id, 1)

        return awards

    def seed_points(self, seed: MemberSeed) -> int:
        return seed.monte_points

    def seed_wins(self, seed: MemberSeed) -> int:
        return seed.monte_wins

    def secondary_key(self, state: _MemberState) -> int:
        return state.wins


class MedaillenScorer(RoundScorer):
    ranking_type = RankingType.MEDAILLEN

    def __init__(self, gold_points: int = Config.MEDAILLEN_GOLD_POINTS,
                 silver_points: int = Config.MEDAILLEN_SILVER_POINTS,
                 win_threshold: int = Config.MEDAILLEN_WIN_THRESHOLD):
        self.gold_points = gold_points
        self.silver_points = silver_points
        self.win_threshold = win_threshold

    def score_gameday(self, gameday: GamedaySnapshot, order: Dict[int, int]) -> Dict[int, PointAward]:
        participants = self._participants(gameday, 'aussteigen')

        if len(participants) < 2 or not any(record.aussteigen > 0 for record in participants):
            return {}

        ordered = sorted(participants, key=self._order_key('aussteigen', 'aussteigen_tiebreak', order))
        gold, silver = ordered[0], ordered[1]
        return {
            gold.member_id: PointAward(gameday.gameday_id, self.gold_points, 'gold'),
            silver.member_id: PointAward(gameday.gameday_id, self.silver_points, 'silver'),
        }

    def seed_points(self, seed: MemberSeed) -> int:
        return seed.medaillen_points

    def seed_wins(self, seed: MemberSeed) -> int:
        return seed.medaillen_wins

    def secondary_key(self, state: _MemberState) -> int:
        return state.gold


class RankingEngine:
    """Replays gamedays through a RoundScorer, closing rounds at the win threshold"""

    def __init__(self, scorer: RoundScorer):
        self.scorer = scorer

    def replay(self, members: Iterable[RankedMember], seeds: Optional[Dict[int, MemberSeed]],
               gamedays: Iterable[GamedaySnapshot]) -> RankingResult:
        """
        Fold all gamedays into standings and round wins.

        Args:
            members: Members in club order
            seeds: member_id -> MemberSeed (round-zero state)
            gamedays: Gamedays in any order; replayed by (date, id)

        Returns:
            RankingResult with current standings and every round completed during the replay
        """
        seeds = seeds or {}
        states: Dict[int, _MemberState] = {}
        for position, member in enumerate(members):
            states[member.member_id] = _MemberState(member.member_id, member.display_name, position)
        order = {member_id: state.position for member_id, state in states.items()}

        seeded_rounds = 0
        for member_id, seed in seeds.items():
            seeded_rounds += self.scorer.seed_wins(seed)
            state = states.get(member_id)
            if state is None:
                continue
            state.total = state.carried_in = self.scorer.seed_points(seed)
            state.wins = self.scorer.seed_wins(seed)

        round_wins: List[RoundWinSnapshot] = []
        for gameday in sorted(gamedays, key=lambda g: (g.match_date, g.gameday_id)):
            awards = self.scorer.score_gameday(gameday, order)
            for member_id, award in awards.items():
                state = states.get(member_id)
                if state is None:
                    logger.debug(f"Gameday {gameday.gameday_id}: member {member_id} not ranked, award ignored")
                    continue
                state.total += award.points
                state.history.append(award)
                if award.medal == 'gold':
                    state.gold += 1
                elif award.medal == 'silver':
                    state.silver += 1

            round_win = self._close_round_if_won(states, gameday, seeded_rounds + len(round_wins) + 1)
            if round_win:
                round_wins.append(round_win)

        standings = [
            entry for entry in self._standings(states.values())
            if entry.total > 0 or entry.wins > 0
        ]
        return RankingResult(
            ranking_type=self.scorer.ranking_type.value,
            standings=standings,
            round_wins=round_wins,
            rounds_completed=len(round_wins),
        )

    def _close_round_if_won(self, states: Dict[int, _MemberState], gameday: GamedaySnapshot,
                            round_number: int) -> Optional[RoundWinSnapshot]:
        if not any(state.total >= self.scorer.win_threshold for state in states.values()):
            return None

        top_score = max(state.total for state in states.values())
        leaders = [state for state in states.values() if state.total == top_score]
        if len(leaders) > 1:
            logger.warning(
                f"{self.scorer.ranking_type.value} round {round_number}: {len(leaders)} members tied at "
                f"{top_score} on gameday {gameday.gameday_id}, first in club order wins"
            )
        winner = min(leaders, key=lambda state: state.position)
        winner.wins += 1

        snapshot = [
            entry.to_snapshot() for entry in self._standings(states.values())
            if entry.total > 0
        ]
        logger.info(
            f"{self.scorer.ranking_type.value} round {round_number} won by member {winner.member_id} "
            f"with {top_score} points on gameday {gameday.gameday_id}"
        )

        for state in states.values():
            state.reset_round()

        return RoundWinSnapshot(
            ranking_type=self.scorer.ranking_type.value,
            round_number=round_number,
            winner_member_id=winner.member_id,
            winning_gameday_id=gameday.gameday_id,
            winning_score=top_score,
            standings=snapshot,
        )

    def _standings(self, states: Iterable[_MemberState]) -> List[StandingEntry]:
        ordered = sorted(
            states,
            key=lambda state: (-state.total, -self.scorer.secondary_key(state), state.position)
        )
        entries = []
        previous_key = None
        rank = 0
        for index, state in enumerate(ordered):
            key = (state.total, self.scorer.secondary_key(state))
            if key != previous_key:
                rank = index + 1
                previous_key = key
            entries.append(StandingEntry(
                rank=rank,
                member_id=state.member_id,
                display_name=state.display_name,
                total=state.total,
                wins=state.wins,
                gold=state.gold,
                silver=state.silver,
                carried_in=state.carried_in,
                history=tuple(state.history),
            ))
        return entries
