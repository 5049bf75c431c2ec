"""
Base service class for the Kegelkladde services.

Provides async database session management. Storage-level write conflicts are
translated into ConcurrencyConflict for the caller to retry; the services
themselves never retry.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from kladde.utils.exceptions import ConcurrencyConflict

logger = logging.getLogger(__name__)

class BaseService:
    """Base class for all services with async database session management."""
    
    def __init__(self, session_factory):
        """
        Initialize base service with session factory.
        
        Args:
            session_factory: Async session factory from Database class
        """
        self.session_factory = session_factory
    
    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide a transactional scope for async database operations."""
        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except (StaleDataError, IntegrityError) as e:
            await session.rollback()
            logger.warning(f"Write conflict in {type(self).__name__}: {e}")
            raise ConcurrencyConflict(type(self).__name__, str(e)) from e
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
