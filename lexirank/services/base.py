"""
Base service class for LexiRank.

Provides async database session management and retry logic for all service
layer operations.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Callable, Any, Optional
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lexirank.config import Config
from lexirank.utils.exceptions import DatabaseError, TransactionError

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
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
    
    async def execute_with_retry(self, func: Callable, operation: str, max_retries: Optional[int] = None) -> Any:
        """
        Run a transaction function, retrying when the store is locked or busy.
        
        Args:
            func: Async callable that opens and commits its own session
            operation: Name used in logs and errors
            max_retries: Attempts before giving up (default Config.DB_MAX_RETRIES)
            
        Raises:
            TransactionError: If every attempt hit a transient database error
            DatabaseError: On any other database failure
        """
        if max_retries is None:
            max_retries = Config.DB_MAX_RETRIES
        
        for attempt in range(max_retries):
            try:
                return await func()
            except OperationalError as e:
                if attempt == max_retries - 1:
                    logger.error(f"{operation} failed after {max_retries} attempts: {e}")
                    raise TransactionError(operation, max_retries)
                # Exponential backoff with cap at 1 second
                await asyncio.sleep(min(0.1 * (2 ** attempt), 1.0))
                logger.warning(f"Retry attempt {attempt + 1} for {operation}: {e}")
            except IntegrityError:
                raise
            except SQLAlchemyError as e:
                logger.error(f"Database error during {operation}: {e}")
                raise DatabaseError(operation, str(e))
