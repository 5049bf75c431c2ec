"""
Shared fixtures: a fresh SQLite database file per test and a small club.
"""

import pytest
import pytest_asyncio

from kladde.data_models.settlement import AttendanceRecord
from kladde.database.database import Database
from kladde.operations.member_operations import MemberOperations
from kladde.services.configuration import ConfigurationService
from kladde.services.gameday_service import GamedayService


@pytest_asyncio.fixture
async def db(tmp_path):
    # One file per test; an in-memory SQLite database would not be shared between connections
    database = Database(f"sqlite:///{tmp_path / 'kladde_test.db'}")
    await database.initialize()
    yield database
    await database.close()


@pytest_asyncio.fixture
async def config_service(db):
    service = ConfigurationService(db.session_factory)
    await service.load_all()
    return service


@pytest.fixture
def member_ops(db):
    return MemberOperations(db)


@pytest_asyncio.fixture
async def members(member_ops):
    """Anna, Bernd and Carla in club order"""
    return [
        await member_ops.create_member("Anna"),
        await member_ops.create_member("Bernd"),
        await member_ops.create_member("Carla"),
    ]


@pytest.fixture
def gameday_service(db, config_service):
    return GamedayService(db, config_service)


def make_record(member_id, **fields) -> AttendanceRecord:
    """Attendance snapshot with everything zero unless given"""
    fields.setdefault('present', True)
    return AttendanceRecord(member_id=member_id, **fields)
