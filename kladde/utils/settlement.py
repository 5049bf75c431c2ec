"""
Per-gameday cost splitting.

Markers (alle 9, Kranz, Triclops) are paid by every *other* present member at
0,10 € per unit; Pudel are paid by the scorer. Present members additionally
pay their side-game and custom-game stakes. Absent members only owe their
contribution, penalties and carryover.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from kladde.config import Config
from kladde.data_models.settlement import AttendanceRecord, CustomGameAmount, SettlementLine
from kladde.utils.money import ZERO, round2, to_money

SHARED_MARKERS = ('alle9', 'kranz', 'triclops')
SIDE_GAMES = ('va', 'monte', 'aussteigen', 'sechs_tage')


class SettlementCalculator:
    """Computes amount owed and remaining balance for every member of a gameday"""

    @staticmethod
    def marker_totals(records: Iterable[AttendanceRecord]) -> Dict[str, int]:
        """Sum each shared marker over the present members"""
        totals = {marker: 0 for marker in SHARED_MARKERS}
        for record in records:
            if record.present:
                for marker in SHARED_MARKERS:
                    totals[marker] += getattr(record, marker) or 0
        return totals

    @staticmethod
    def custom_game_totals(custom_values: Iterable[CustomGameAmount]) -> Dict[int, Decimal]:
        totals = defaultdict(lambda: ZERO)
        for value in custom_values:
            totals[value.member_id] = round2(totals[value.member_id] + to_money(value.amount))
        return dict(totals)

    @staticmethod
    def marker_cost(record: AttendanceRecord, totals: Dict[str, int],
                    price: Decimal = Config.MARKER_PRICE) -> Decimal:
        """What a present member pays for the markers scored by everyone else"""
        if not record.present:
            return ZERO
        cost = ZERO
        for marker in SHARED_MARKERS:
            others = totals[marker] - (getattr(record, marker) or 0)
            cost += round2(others * price)
        return round2(cost)

    @staticmethod
    def calculate_line(record: AttendanceRecord, totals: Dict[str, int],
                       custom_game_total: Decimal = ZERO) -> SettlementLine:
        """
        Settle a single member.

        Args:
            record: The member's attendance snapshot
            totals: Shared marker totals of the gameday (see marker_totals)
            custom_game_total: Sum of the member's custom game stakes

        Returns:
            SettlementLine with amount owed, paid and remaining
        """
        contribution = to_money(record.contribution)
        penalties = to_money(record.penalties)
        carryover = to_money(record.carryover)
        paid = to_money(record.paid)

        if record.present:
            pudel_cost = round2((record.pudel or 0) * Config.MARKER_PRICE)
            marker_cost = SettlementCalculator.marker_cost(record, totals)
            game_cost = round2(sum((to_money(getattr(record, game)) for game in SIDE_GAMES), ZERO))
            custom_total = to_money(custom_game_total)
            amount_owed = round2(
                contribution + penalties + pudel_cost + marker_cost + game_cost + custom_total + carryover
            )
        else:
            pudel_cost = marker_cost = game_cost = custom_total = ZERO
            amount_owed = round2(contribution + penalties + carryover)

        return SettlementLine(
            member_id=record.member_id,
            amount_owed=amount_owed,
            paid=paid,
            remaining=round2(amount_owed - paid),
            present=bool(record.present),
            marker_cost=marker_cost,
            pudel_cost=pudel_cost,
            game_cost=game_cost,
            custom_game_total=custom_total,
            carryover=carryover,
        )

    @staticmethod
    def calculate(records: Iterable[AttendanceRecord],
                  custom_values: Optional[Iterable[CustomGameAmount]] = None) -> List[SettlementLine]:
        """Settle every record of one gameday, preserving input order"""
        records = list(records)
        totals = SettlementCalculator.marker_totals(records)
        custom_totals = SettlementCalculator.custom_game_totals(custom_values or [])
        return [
            SettlementCalculator.calculate_line(record, totals, custom_totals.get(record.member_id, ZERO))
            for record in records
        ]

    @staticmethod
    def remaining_by_member(records: Iterable[AttendanceRecord],
                            custom_values: Optional[Iterable[CustomGameAmount]] = None) -> Dict[int, Decimal]:
        return {
            line.member_id: line.remaining
            for line in SettlementCalculator.calculate(records, custom_values)
        }
