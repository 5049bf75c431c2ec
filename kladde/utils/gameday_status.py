from typing import FrozenSet, Iterable

from kladde.database.models import GamedayStatus, SIDE_GAME_KEYS, MARKER_KEYS
from kladde.utils.exceptions import InvalidTransitionError, FieldNotEditableError

# Everything a member row exposes for writing while the gameday is open.
# carryover and contribution are assigned at creation only.
OPEN_FIELDS = frozenset(
    ('present', 'penalties', 'paid', 'monte_extra', 'monte_tiebreak',
     'aussteigen_tiebreak', 'struck_games', 'custom_game_values')
    + MARKER_KEYS
    + SIDE_GAME_KEYS
)

class GamedayStatusMachine:
    """Four-state gameday lifecycle and the attendance fields each state allows to change"""

    EDITABLE_FIELDS = {
        GamedayStatus.NOT_STARTED: OPEN_FIELDS,
        GamedayStatus.IN_PROGRESS: OPEN_FIELDS,
        GamedayStatus.SETTLEMENT: frozenset(('paid',)),
        GamedayStatus.ARCHIVED: frozenset(),
    }

    @staticmethod
    def advance(status: GamedayStatus) -> GamedayStatus:
        """
        Move one step forward in the lifecycle

        Raises:
            InvalidTransitionError: If the gameday is already archived
        """
        status = GamedayStatus(status)
        if status == GamedayStatus.ARCHIVED:
            raise InvalidTransitionError(status, 'advance')
        return GamedayStatus(status + 1)

    @staticmethod
    def revert(status: GamedayStatus) -> GamedayStatus:
        """
        Move one step back in the lifecycle

        Raises:
            InvalidTransitionError: If the gameday has not started yet
        """
        status = GamedayStatus(status)
        if status == GamedayStatus.NOT_STARTED:
            raise InvalidTransitionError(status, 'revert')
        return GamedayStatus(status - 1)

    @staticmethod
    def editable_fields(status: GamedayStatus) -> FrozenSet[str]:
        return GamedayStatusMachine.EDITABLE_FIELDS[GamedayStatus(status)]

    @staticmethod
    def is_editable(status: GamedayStatus, field: str) -> bool:
        return field in GamedayStatusMachine.editable_fields(status)

    @staticmethod
    def ensure_writable(status: GamedayStatus, fields: Iterable[str]):
        """Raise FieldNotEditableError for the first field the status does not allow"""
        for field in fields:
            if not GamedayStatusMachine.is_editable(status, field):
                raise FieldNotEditableError(field, GamedayStatus(status))

    @staticmethod
    def custom_games_editable(status: GamedayStatus) -> bool:
        return GamedayStatus(status) <= GamedayStatus.IN_PROGRESS

    @staticmethod
    def ensure_custom_games_editable(status: GamedayStatus):
        if not GamedayStatusMachine.custom_games_editable(status):
            raise FieldNotEditableError('custom_games', GamedayStatus(status))

    @staticmethod
    def ensure_entries_editable(status: GamedayStatus):
        if GamedayStatus(status) == GamedayStatus.ARCHIVED:
            raise FieldNotEditableError('entries', GamedayStatus(status))
