"""
Command layer wiring tests; no Discord connection is made
"""

from kladde.cogs.kladde import ATTENDANCE_FIELD_CHOICES, INITIAL_VALUE_CHOICES, KladdeCog
from kladde.operations.member_operations import INITIAL_COUNT_FIELDS
from kladde.services.edit_locks import InMemoryEditLockService
from kladde.utils.gameday_status import OPEN_FIELDS


class FakeBot:
    def __init__(self, db, config_service):
        self.db = db
        self.config_service = config_service
        self.edit_locks = InMemoryEditLockService()


class TestKladdeCog:
    async def test_commands_registered(self, db, config_service):
        cog = KladdeCog(FakeBot(db, config_service))
        names = {command.name for command in cog.get_app_commands()}

        assert {
            'spieltag-neu', 'spieltage', 'spieltag-status', 'spieltag-loeschen', 'spieltag-bahnmiete',
            'eintragen', 'streichen', 'spiel-neu', 'spiel-umbenennen', 'spiel-loeschen', 'spiel-wert',
            'startwerte', 'abrechnung', 'kasse', 'eintrag', 'ausgabe', 'anfangsbestand',
            'monte', 'medaillen', 'statistik',
        } <= names

    def test_choices_match_writable_fields(self):
        assert {choice.value for choice in ATTENDANCE_FIELD_CHOICES} <= OPEN_FIELDS
        assert {choice.value for choice in INITIAL_VALUE_CHOICES} == set(INITIAL_COUNT_FIELDS)
