from decimal import Decimal
from typing import Dict, Iterable, Optional

from kladde.data_models.settlement import AttendanceRecord, CustomGameAmount
from kladde.utils.money import ZERO
from kladde.utils.settlement import SettlementCalculator


class CarryoverPropagator:
    """Seeds a new gameday's carryover from the previous gameday's remaining balances"""

    @staticmethod
    def seed_carryovers(active_member_ids: Iterable[int],
                        previous_records: Optional[Iterable[AttendanceRecord]] = None,
                        previous_custom_values: Optional[Iterable[CustomGameAmount]] = None) -> Dict[int, Decimal]:
        """
        Compute the carryover of every active member for a new gameday.

        Args:
            active_member_ids: Members that get a row on the new gameday
            previous_records: Attendance of the preceding gameday, None if there is none
            previous_custom_values: Custom game stakes of the preceding gameday

        Returns:
            Mapping member_id -> carryover; 0,00 for members without a previous row
        """
        remaining = {}
        if previous_records is not None:
            remaining = SettlementCalculator.remaining_by_member(previous_records, previous_custom_values)
        return {member_id: remaining.get(member_id, ZERO) for member_id in active_member_ids}
