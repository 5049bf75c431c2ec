"""
Ranking service for the Monte and Medaillen lists.

Loads members, round-zero seeds and every gameday in one session, replays them
through the RankingEngine and records the rounds completed during the replay
as RoundWin rows. Recording is idempotent: a round already stored under the
same (ranking type, round number) is overwritten with the recomputed values.
"""

import json
import logging
from collections import defaultdict
from typing import Dict, List

from sqlalchemy import select

from kladde.data_models.ranking import (
    GamedaySnapshot, MemberSeed, RankedMember, RankingResult, RankingView, RoundWinSnapshot
)
from kladde.data_models.settlement import AttendanceRecord
from kladde.database.models import Attendance, Gameday, MemberInitialValue, RankingType, RoundWin
from kladde.operations.member_operations import MemberOperations
from kladde.services.base import BaseService
from kladde.utils.ranking_engine import MedaillenScorer, MonteScorer, RankingEngine, RoundScorer

logger = logging.getLogger(__name__)


class RankingService(BaseService):
    """Current standings and round history, recomputed on every request."""

    def __init__(self, database, scorers: Dict[RankingType, RoundScorer] = None):
        super().__init__(database.session_factory)
        self.member_ops = MemberOperations(database)
        self.scorers = scorers or {
            RankingType.MONTE: MonteScorer(),
            RankingType.MEDAILLEN: MedaillenScorer(),
        }

    async def get_monte_standings(self) -> RankingView:
        return await self.get_standings(RankingType.MONTE)

    async def get_medaillen_standings(self) -> RankingView:
        return await self.get_standings(RankingType.MEDAILLEN)

    async def get_standings(self, ranking_type) -> RankingView:
        """
        Replay all gamedays for one ranking.

        Args:
            ranking_type: RankingType or its value ('monte' / 'medaillen')

        Returns:
            RankingView with current standings and the round history, newest round first
        """
        ranking_type = RankingType(ranking_type)
        engine = RankingEngine(self.scorers[ranking_type])

        async with self.get_session() as session:
            members, seeds, gamedays = await self._load_replay_input(session)
            result = engine.replay(members, seeds, gamedays)
            seeded_rounds = sum(engine.scorer.seed_wins(seed) for seed in seeds.values())
            await self._record_round_wins(session, ranking_type, result, seeded_rounds)
            history = await self._load_history(session, ranking_type)

        return RankingView(ranking_type=ranking_type.value, standings=result.standings, history=history)

    async def _load_replay_input(self, session):
        # Inactive members keep their history, so every member takes part in the replay
        member_rows = await self.member_ops.get_ordered_members(active_only=False, session=session)
        members = [RankedMember(member.id, member.display_name) for member in member_rows]

        result = await session.execute(select(MemberInitialValue))
        seeds = {initial.member_id: MemberSeed.from_model(initial) for initial in result.scalars().all()}

        result = await session.execute(select(Gameday).order_by(Gameday.match_date, Gameday.id))
        gameday_rows = list(result.scalars().all())

        result = await session.execute(select(Attendance))
        records_by_gameday: Dict[int, List[AttendanceRecord]] = defaultdict(list)
        for attendance in result.scalars().all():
            records_by_gameday[attendance.gameday_id].append(AttendanceRecord.from_model(attendance))

        gamedays = [
            GamedaySnapshot(gameday.id, gameday.match_date, tuple(records_by_gameday.get(gameday.id, ())))
            for gameday in gameday_rows
        ]
        return members, seeds, gamedays

    async def _record_round_wins(self, session, ranking_type: RankingType, result: RankingResult,
                                 seeded_rounds: int = 0):
        existing_rows = await session.execute(
            select(RoundWin).where(RoundWin.ranking_type == ranking_type)
        )
        existing = {row.round_number: row for row in existing_rows.scalars().all()}

        derived_numbers = set()
        for round_win in result.round_wins:
            derived_numbers.add(round_win.round_number)
            standings_json = json.dumps(round_win.standings)
            row = existing.get(round_win.round_number)
            if row is None:
                session.add(RoundWin(
                    ranking_type=ranking_type,
                    round_number=round_win.round_number,
                    winner_member_id=round_win.winner_member_id,
                    winning_gameday_id=round_win.winning_gameday_id,
                    winning_score=round_win.winning_score,
                    standings_json=standings_json,
                ))
                logger.info(
                    f"Recorded {ranking_type.value} round {round_win.round_number}: "
                    f"member {round_win.winner_member_id} with {round_win.winning_score} points"
                )
            elif (row.winner_member_id, row.winning_gameday_id, row.winning_score, row.standings_json) != (
                    round_win.winner_member_id, round_win.winning_gameday_id,
                    round_win.winning_score, standings_json):
                row.winner_member_id = round_win.winner_member_id
                row.winning_gameday_id = round_win.winning_gameday_id
                row.winning_score = round_win.winning_score
                row.standings_json = standings_json
                logger.info(f"Updated {ranking_type.value} round {round_win.round_number} after recomputation")

        # Rounds up to seeded_rounds were won before the kladde existed and are never derived
        stale = [number for number in existing if number > seeded_rounds and number not in derived_numbers]
        if stale:
            logger.warning(
                f"{ranking_type.value}: stored rounds {sorted(stale)} are no longer produced by the replay"
            )

        await session.flush()

    async def _load_history(self, session, ranking_type: RankingType) -> List[RoundWinSnapshot]:
        result = await session.execute(
            select(RoundWin)
            .where(RoundWin.ranking_type == ranking_type)
            .order_by(RoundWin.round_number.desc())
        )
        return [
            RoundWinSnapshot(
                ranking_type=ranking_type.value,
                round_number=row.round_number,
                winner_member_id=row.winner_member_id,
                winning_gameday_id=row.winning_gameday_id,
                winning_score=row.winning_score,
                standings=row.standings,
                detected_at=row.detected_at,
            )
            for row in result.scalars().all()
        ]
