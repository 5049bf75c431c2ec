"""
Unit tests for the Monte and Medaillen replay
"""

from datetime import date, timedelta
from decimal import Decimal

from kladde.data_models.ranking import GamedaySnapshot, MemberSeed, RankedMember
from kladde.utils.ranking_engine import MedaillenScorer, MonteScorer, RankingEngine
from tests.conftest import make_record

MEMBERS = [RankedMember(i, name) for i, name in enumerate(["Anna", "Bernd", "Carla", "Dirk", "Eva"], start=1)]
ORDER = {member.member_id: position for position, member in enumerate(MEMBERS)}


def monte_gameday(gameday_id, amounts, tiebreaks=None, extra=None, match_date=None, overrides=None):
    tiebreaks = tiebreaks or [0] * len(amounts)
    overrides = overrides or {}
    records = []
    for member_id, (amount, tiebreak) in enumerate(zip(amounts, tiebreaks), start=1):
        fields = dict(monte=Decimal(amount), monte_tiebreak=tiebreak, monte_extra=(member_id == extra))
        fields.update(overrides.get(member_id, {}))
        records.append(make_record(member_id, **fields))
    return GamedaySnapshot(gameday_id, match_date or date(2026, 2, 20), tuple(records))


def medaillen_gameday(gameday_id, amounts, match_date=None):
    records = tuple(
        make_record(member_id, aussteigen=Decimal(amount))
        for member_id, amount in enumerate(amounts, start=1)
    )
    return GamedaySnapshot(gameday_id, match_date or date(2026, 2, 20), records)


def points(awards):
    return {member_id: award.points for member_id, award in awards.items()}


class TestMonteScorer:
    """Placement points below the 2,00 € cutoff"""

    def test_placement_with_tiebreak(self):
        gameday = monte_gameday(1, ['0.50', '0.50', '1.00', '1.90', '2.10'], tiebreaks=[0, 1, 0, 0, 0])
        awards = MonteScorer().score_gameday(gameday, ORDER)
        assert points(awards) == {1: 10, 2: 6, 3: 4, 4: 3}

    def test_tiebreak_rank_decides_equal_amounts(self):
        gameday = monte_gameday(1, ['0.50', '0.50'], tiebreaks=[2, 1])
        assert points(MonteScorer().score_gameday(gameday, ORDER)) == {2: 10, 1: 6}

    def test_extra_point_above_cutoff(self):
        gameday = monte_gameday(1, ['0.50', '0.50', '1.00', '1.90', '2.10'], tiebreaks=[0, 1, 0, 0, 0], extra=5)
        assert points(MonteScorer().score_gameday(gameday, ORDER))[5] == 1

    def test_extra_point_on_top_of_placement(self):
        gameday = monte_gameday(1, ['0.50', '1.00'], extra=2)
        assert points(MonteScorer().score_gameday(gameday, ORDER)) == {1: 10, 2: 7}

    def test_not_played_when_no_positive_amount(self):
        gameday = monte_gameday(1, ['0.00', '0.00', '0.00'], extra=1)
        assert MonteScorer().score_gameday(gameday, ORDER) == {}

    def test_struck_and_absent_members_excluded(self):
        gameday = monte_gameday(
            1, ['0.10', '0.20', '0.30'],
            overrides={1: {'struck_games': frozenset({'monte'})}, 2: {'present': False}}
        )
        assert points(MonteScorer().score_gameday(gameday, ORDER)) == {3: 10}

    def test_missing_amount_skipped(self):
        gameday = monte_gameday(1, ['0.10', '0.20'], overrides={1: {'monte': None}})
        assert points(MonteScorer().score_gameday(gameday, ORDER)) == {2: 10}

    def test_beyond_sixth_place_scores_nothing(self):
        members = [RankedMember(i, f"M{i}") for i in range(1, 9)]
        order = {member.member_id: i for i, member in enumerate(members)}
        gameday = monte_gameday(1, [f"0.{i}0" for i in range(1, 9)])
        assert points(MonteScorer().score_gameday(gameday, order)) == {1: 10, 2: 6, 3: 4, 4: 3, 5: 2, 6: 1}


class TestMedaillenScorer:
    def test_gold_and_silver(self):
        awards = MedaillenScorer().score_gameday(medaillen_gameday(1, ['0.00', '0.10']), ORDER)
        assert points(awards) == {1: 2, 2: 1}
        assert awards[1].medal == 'gold'
        assert awards[2].medal == 'silver'

    def test_single_participant_scores_nothing(self):
        gameday = GamedaySnapshot(1, date(2026, 2, 20), (
            make_record(1, aussteigen=Decimal('0.10')),
            make_record(2, present=False, aussteigen=Decimal('0.00')),
        ))
        assert MedaillenScorer().score_gameday(gameday, ORDER) == {}

    def test_not_played_when_all_zero(self):
        assert MedaillenScorer().score_gameday(medaillen_gameday(1, ['0.00', '0.00', '0.00']), ORDER) == {}

    def test_equal_amounts_fall_back_to_club_order(self):
        awards = MedaillenScorer().score_gameday(medaillen_gameday(1, ['0.30', '0.20', '0.20']), ORDER)
        assert points(awards) == {2: 2, 3: 1}


class TestRankingEngineReplay:
    def test_standings_accumulate(self):
        gamedays = [
            monte_gameday(1, ['0.50', '1.00', '0.00']),
            monte_gameday(2, ['1.00', '0.50', '0.00'], match_date=date(2026, 3, 6)),
        ]
        result = RankingEngine(MonteScorer()).replay(MEMBERS, {}, gamedays)

        # A stake of 0,00 is the cheapest and wins the gameday
        totals = {entry.member_id: entry.total for entry in result.standings}
        assert totals == {1: 10, 2: 10, 3: 20}
        # Equal totals and wins share the rank, club order decides the listing
        assert [(entry.rank, entry.member_id) for entry in result.standings] == [(1, 3), (2, 1), (2, 2)]
        assert result.round_wins == []

    def test_round_completion_from_seed(self):
        seeds = {1: MemberSeed(1, monte_points=95), 2: MemberSeed(2, monte_wins=2)}
        gamedays = [
            monte_gameday(1, ['0.50', '1.00']),
            monte_gameday(2, ['1.00', '0.50'], match_date=date(2026, 3, 6)),
        ]
        result = RankingEngine(MonteScorer()).replay(MEMBERS, seeds, gamedays)

        [round_win] = result.round_wins
        assert round_win.round_number == 3
        assert round_win.winner_member_id == 1
        assert round_win.winning_gameday_id == 1
        assert round_win.winning_score == 105
        assert [row['member_id'] for row in round_win.standings] == [1, 2]
        assert round_win.standings[0]['carried_in'] == 95

        # Totals restarted after gameday 1
        entries = {entry.member_id: entry for entry in result.standings}
        assert entries[1].total == 6
        assert entries[1].wins == 1
        assert entries[2].total == 10
        assert entries[2].wins == 2

    def test_replay_sorts_by_date_then_id(self):
        late = monte_gameday(1, ['0.50', '1.00'], match_date=date(2026, 3, 6))
        early = monte_gameday(2, ['1.00', '0.50'])
        seeds = {2: MemberSeed(2, monte_points=92)}
        result = RankingEngine(MonteScorer()).replay(MEMBERS, seeds, [late, early])
        # Bernd reaches 102 on the earlier gameday 2
        assert result.round_wins[0].winning_gameday_id == 2
        assert result.round_wins[0].winner_member_id == 2

    def test_equal_leaders_first_in_club_order_wins(self):
        seeds = {1: MemberSeed(1, medaillen_points=40), 2: MemberSeed(2, medaillen_points=41)}
        gameday = medaillen_gameday(1, ['0.00', '0.30', '0.10'])
        result = RankingEngine(MedaillenScorer()).replay(MEMBERS, seeds, [gameday])
        # Anna 40 + 2, Bernd 41 + 0, Carla 1
        assert result.round_wins[0].winner_member_id == 1

        tied = {1: MemberSeed(1, medaillen_points=41), 2: MemberSeed(2, medaillen_points=40)}
        gameday = medaillen_gameday(1, ['0.10', '0.00', '0.30'])
        result = RankingEngine(MedaillenScorer()).replay(MEMBERS, tied, [gameday])
        # Both at 42 after the gameday: Anna is first in club order
        assert result.round_wins[0].winner_member_id == 1

    def test_medaillen_secondary_key_is_gold(self):
        gamedays = [
            medaillen_gameday(1, ['0.00', '0.10', '0.20']),
            medaillen_gameday(2, ['0.20', '0.10', '0.00'], match_date=date(2026, 3, 6)),
            medaillen_gameday(3, ['0.50', '0.00', '0.10'], match_date=date(2026, 3, 20)),
        ]
        result = RankingEngine(MedaillenScorer()).replay(MEMBERS, {}, gamedays)
        # Anna 2, Bernd 1+1+2 = 4, Carla 2+1 = 3
        assert [entry.member_id for entry in result.standings] == [2, 3, 1]

        gamedays = [
            medaillen_gameday(1, ['0.00', '0.10']),
            medaillen_gameday(2, ['0.20', '0.10', '0.00'], match_date=date(2026, 3, 6)),
        ]
        result = RankingEngine(MedaillenScorer()).replay(MEMBERS, {}, gamedays)
        # Anna 2 (1 gold), Bernd 2 (2 silver), Carla 2 (1 gold): gold count before club order
        assert [entry.member_id for entry in result.standings] == [1, 3, 2]

    def test_multiple_rounds_numbered_consecutively(self):
        gamedays = [
            monte_gameday(i, ['0.10', '0.20'], match_date=date(2026, 1, 1) + timedelta(days=14 * i))
            for i in range(1, 21)
        ]
        result = RankingEngine(MonteScorer()).replay(MEMBERS, {}, gamedays)
        # Anna earns 10 per gameday: rounds close on gamedays 10 and 20
        assert [(rw.round_number, rw.winning_gameday_id) for rw in result.round_wins] == [(1, 10), (2, 20)]
        assert result.rounds_completed == 2
