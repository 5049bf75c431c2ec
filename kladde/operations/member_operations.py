"""
Member Operations Module

The member directory itself is owned elsewhere; the core only needs the club
order of the active members. This module offers the few write helpers needed
to seed that directory and to maintain the administrator-entered round-zero
values (MemberInitialValue).
"""

from contextlib import asynccontextmanager
from typing import Dict, Iterable, List, Optional
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from kladde.database.models import Member, MemberInitialValue
from kladde.utils.exceptions import NotFoundError, ValidationError
from kladde.utils.logger import setup_logger
from kladde.utils.money import to_money

logger = setup_logger(__name__)

INITIAL_COUNT_FIELDS = (
    'initial_alle9', 'initial_kranz',
    'initial_monte_points', 'initial_medaillen_points',
    'initial_monte_siege', 'initial_medaillen_siege',
)


class MemberOperations:
    """Club member ordering and round-zero seeds."""

    def __init__(self, database):
        """Initialize with database instance"""
        self.db = database
        self.logger = logger

    @asynccontextmanager
    async def _get_session_context(self, session: Optional[AsyncSession] = None):
        """
        Provides a session context. Uses the provided session if available,
        otherwise creates and manages a new session.
        """
        if session:
            yield session
        else:
            async with self.db.get_session() as new_session:
                yield new_session

    async def create_member(self, display_name: str, sort_position: Optional[int] = None,
                            session: Optional[AsyncSession] = None) -> Member:
        """
        Add a member at the end of the club order (or at the given position).

        Raises:
            ValidationError: If the name is blank
        """
        name = (display_name or '').strip()
        if not name:
            raise ValidationError('display_name', 'must not be empty', "❌ Name darf nicht leer sein.")

        async with self._get_session_context(session) as s:
            if sort_position is None:
                result = await s.execute(select(func.max(Member.sort_position)))
                current_max = result.scalar()
                sort_position = 0 if current_max is None else current_max + 1

            member = Member(display_name=name[:100], sort_position=sort_position, is_active=True)
            s.add(member)
            if not session:  # Only commit if we manage the session
                await s.commit()
            else:
                await s.flush()

            self.logger.info(f"Created member {member.id} '{member.display_name}' at position {sort_position}")
            return member

    async def get_member(self, member_id: int, session: Optional[AsyncSession] = None) -> Member:
        async with self._get_session_context(session) as s:
            member = await s.get(Member, member_id)
            if member is None:
                raise NotFoundError("Mitglied", member_id)
            return member

    async def get_ordered_members(self, active_only: bool = True,
                                  session: Optional[AsyncSession] = None) -> List[Member]:
        """Members in club order (sort_position, then id)"""
        async with self._get_session_context(session) as s:
            query = select(Member).order_by(Member.sort_position, Member.id)
            if active_only:
                query = query.where(Member.is_active == True)
            result = await s.execute(query)
            return list(result.scalars().all())

    async def set_member_order(self, member_ids: Iterable[int], session: Optional[AsyncSession] = None):
        """Assign sort positions 0..n-1 in the given order"""
        member_ids = list(member_ids)
        if len(set(member_ids)) != len(member_ids):
            raise ValidationError('member_order', 'contains duplicates')

        async with self._get_session_context(session) as s:
            for position, member_id in enumerate(member_ids):
                member = await s.get(Member, member_id)
                if member is None:
                    raise NotFoundError("Mitglied", member_id)
                member.sort_position = position
            if not session:
                await s.commit()
            else:
                await s.flush()

    async def deactivate_member(self, member_id: int, session: Optional[AsyncSession] = None) -> Member:
        """Inactive members get no row on future gamedays; history is untouched"""
        async with self._get_session_context(session) as s:
            member = await s.get(Member, member_id)
            if member is None:
                raise NotFoundError("Mitglied", member_id)
            member.is_active = False
            if not session:
                await s.commit()
            else:
                await s.flush()
            self.logger.info(f"Deactivated member {member_id}")
            return member

    async def set_initial_values(self, member_id: int, values: Dict[str, object],
                                 session: Optional[AsyncSession] = None) -> MemberInitialValue:
        """
        Create or update the round-zero seeds of a member.

        Args:
            member_id: Member to seed
            values: Any of the initial_* fields; counts must be non-negative integers

        Raises:
            ValidationError: On unknown fields or negative / non-integer counts
            NotFoundError: If the member does not exist
        """
        cleaned = {}
        for field, value in values.items():
            if field == 'initial_carryover':
                cleaned[field] = to_money(value)
                continue
            if field not in INITIAL_COUNT_FIELDS:
                raise ValidationError(field, 'unknown field')
            try:
                count = int(value)
            except (TypeError, ValueError):
                raise ValidationError(field, 'must be an integer')
            if count < 0:
                raise ValidationError(field, 'must not be negative')
            cleaned[field] = count

        async with self._get_session_context(session) as s:
            if await s.get(Member, member_id) is None:
                raise NotFoundError("Mitglied", member_id)

            initial = await s.get(MemberInitialValue, member_id)
            if initial is None:
                initial = MemberInitialValue(
                    member_id=member_id,
                    initial_alle9=0,
                    initial_kranz=0,
                    initial_carryover=to_money(0),
                    initial_monte_points=0,
                    initial_medaillen_points=0,
                    initial_monte_siege=0,
                    initial_medaillen_siege=0,
                )
                s.add(initial)
            for field, value in cleaned.items():
                setattr(initial, field, value)

            if not session:
                await s.commit()
            else:
                await s.flush()

            self.logger.info(f"Initial values of member {member_id} set: {cleaned}")
            return initial

    async def get_initial_values(self, session: Optional[AsyncSession] = None) -> Dict[int, MemberInitialValue]:
        async with self._get_session_context(session) as s:
            result = await s.execute(select(MemberInitialValue))
            return {initial.member_id: initial for initial in result.scalars().all()}
