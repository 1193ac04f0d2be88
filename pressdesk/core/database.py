# pressdesk/core/database.py
"""
Database connection manager for PressDesk.
Handles async PostgreSQL connections with pooling, retry logic, and transactions.

One DatabaseManager is created per process by PublishingRuntime.init() and
handed to every repository that needs it:

    db = DatabaseManager(settings.database_url)
    await db.connect()
    row = await db.fetch_one("SELECT * FROM articles WHERE id = $1", article_id)
    ...
    await db.disconnect()

Retries here only cover transient *database* failures. Outbound WordPress
calls are never retried.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, List, Optional

import asyncpg

logger = logging.getLogger(__name__)

__all__ = [
    'DatabaseManager',
    'DatabaseNotConnected',
]

# Retry configuration
MAX_RETRIES = 3
RETRY_DELAY_BASE = 0.1  # Base delay in seconds (exponential backoff)

# Transient errors that should trigger retry
TRANSIENT_ERRORS = (
    asyncpg.PostgresConnectionError,
    asyncpg.InterfaceError,
    asyncpg.InternalClientError,
    ConnectionResetError,
    ConnectionRefusedError,
    TimeoutError,
)


class DatabaseNotConnected(RuntimeError):
    """Raised when a query is issued before connect() or after disconnect()."""


class DatabaseManager:
    """
    Manages the database connection pool and query execution.

    Never create direct asyncpg connections elsewhere; go through this manager
    so every request shares the same pool.
    """

    def __init__(self, dsn: str, min_size: int = 2, max_size: int = 10,
                 command_timeout: float = 60):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self.pool: Optional[asyncpg.Pool] = None
        self._connect_lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self.pool is not None

    async def connect(self) -> None:
        """Initialize database connection pool."""
        async with self._connect_lock:
            if self.pool is not None:
                return
            try:
                self.pool = await asyncpg.create_pool(
                    self.dsn,
                    min_size=self.min_size,
                    max_size=self.max_size,
                    command_timeout=self.command_timeout,
                )
                logger.info("✅ Database connection pool established")
            except Exception as e:
                logger.error(f"❌ Failed to create database pool: {e}")
                raise

    async def disconnect(self) -> None:
        """Close database connection pool."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            logger.info("🔌 Database connection pool closed")

    async def get_connection(self) -> asyncpg.Connection:
        """Get database connection from pool."""
        if not self.pool:
            raise DatabaseNotConnected("DatabaseManager.connect() has not been called")
        return await self.pool.acquire()

    async def release_connection(self, conn: asyncpg.Connection) -> None:
        """Release connection back to pool."""
        if self.pool:
            await self.pool.release(conn)

    # =========================================================================
    # Query Execution with Retry Logic
    # =========================================================================

    async def _execute_with_retry(
        self,
        operation: str,
        query: str,
        args: tuple,
        fetch_method: str
    ) -> Any:
        """
        Execute a database operation with automatic retry on transient failures.

        Args:
            operation: Description for logging (e.g., "fetch_one", "execute")
            query: SQL query string
            args: Query parameters
            fetch_method: Method to call on connection ("fetch", "fetchrow", "execute")

        Returns:
            Query results
        """
        last_error = None

        for attempt in range(MAX_RETRIES):
            conn = None
            try:
                conn = await self.get_connection()

                if fetch_method == "fetch":
                    return await conn.fetch(query, *args)
                if fetch_method == "fetchrow":
                    return await conn.fetchrow(query, *args)
                if fetch_method == "execute":
                    return await conn.execute(query, *args)
                raise ValueError(f"Unknown fetch method: {fetch_method}")

            except TRANSIENT_ERRORS as e:
                last_error = e

                if attempt < MAX_RETRIES - 1:
                    delay = RETRY_DELAY_BASE * (2 ** attempt)
                    logger.warning(
                        f"⚠️ Database {operation} failed (attempt {attempt + 1}/{MAX_RETRIES}), "
                        f"retrying in {delay:.2f}s: {e}"
                    )
                    await asyncio.sleep(delay)
                else:
                    logger.error(f"❌ Database {operation} failed after {MAX_RETRIES} attempts: {e}")

            except Exception as e:
                # Non-transient error - don't retry
                logger.error(f"❌ Database {operation} error: {e}")
                raise

            finally:
                if conn:
                    await self.release_connection(conn)

        raise last_error

    async def fetch_one(self, query: str, *args) -> Optional[asyncpg.Record]:
        """Fetch single row from query."""
        return await self._execute_with_retry("fetch_one", query, args, "fetchrow")

    async def fetch_all(self, query: str, *args) -> List[asyncpg.Record]:
        """Fetch all rows from query."""
        return await self._execute_with_retry("fetch_all", query, args, "fetch")

    async def execute(self, query: str, *args) -> str:
        """Execute query without returning results."""
        return await self._execute_with_retry("execute", query, args, "execute")

    # =========================================================================
    # Transaction Support
    # =========================================================================

    @asynccontextmanager
    async def transaction(self):
        """
        Context manager for database transactions.

        Usage:
            async with db.transaction() as conn:
                await conn.execute("INSERT INTO article_publishing ...")
                await conn.execute("UPDATE articles ...")
                # Both succeed or both rollback on error
        """
        conn = await self.get_connection()
        tx = conn.transaction()

        try:
            await tx.start()
            logger.debug("🔒 Transaction started")
            yield conn
            await tx.commit()
            logger.debug("✅ Transaction committed")

        except BaseException as e:
            await tx.rollback()
            logger.warning(f"↩️ Transaction rolled back: {e!r}")
            raise

        finally:
            await self.release_connection(conn)

    # =========================================================================
    # Health Check
    # =========================================================================

    async def health_check(self) -> dict:
        """
        Check database connectivity and pool status.

        Returns:
            dict with status, pool_size, and any error info
        """
        try:
            result = await self.fetch_one("SELECT 1 as ok, NOW() as server_time")

            pool_info = {}
            if self.pool:
                pool_info = {
                    "pool_size": self.pool.get_size(),
                    "pool_free": self.pool.get_idle_size(),
                    "pool_used": self.pool.get_size() - self.pool.get_idle_size(),
                    "pool_min": self.pool.get_min_size(),
                    "pool_max": self.pool.get_max_size(),
                }

            return {
                "status": "healthy",
                "connected": True,
                "server_time": result["server_time"].isoformat() if result else None,
                **pool_info
            }

        except Exception as e:
            logger.error(f"❌ Database health check failed: {e}")
            return {
                "status": "unhealthy",
                "connected": False,
                "error": str(e)
            }
