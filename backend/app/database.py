"""Store access: one explicitly owned async engine and its connection pool.

Buffered reads borrow a pooled connection for a single round trip. Streaming
exports check out a dedicated :class:`StreamLease` that pins one pool slot for
the lifetime of the export and must be released by its owner.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import RowMapping
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, AsyncResult, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.sql import Executable

from .config import Settings
from .errors import StoreError, driver_message
from .telemetry import instrument_stage

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def store_error(exc: SQLAlchemyError) -> StoreError:
    logger.error("Store call failed: %s", exc)
    return StoreError(driver_message(exc))


def build_engine(url: Any, *, pool_size: int = 20, pool_timeout: float | None = None, echo: bool = False) -> AsyncEngine:
    # Fixed capacity; waiters queue without a depth cap or timeout.
    return create_async_engine(
        url,
        pool_size=pool_size,
        max_overflow=0,
        pool_timeout=pool_timeout,
        pool_pre_ping=True,
        echo=echo,
    )


class RowCursor:
    """Async iterator over a server-side result, yielding row mappings."""

    def __init__(self, result: AsyncResult) -> None:
        self._result = result
        self._rows = result.mappings()

    def __aiter__(self) -> RowCursor:
        return self

    async def __anext__(self) -> RowMapping:
        try:
            return await self._rows.__anext__()
        except SQLAlchemyError as exc:
            raise store_error(exc) from exc

    async def close(self) -> None:
        await self._result.close()


class StreamLease:
    """A connection checked out of the pool for one streaming export."""

    def __init__(self, connection: AsyncConnection, *, batch_size: int) -> None:
        self._connection = connection
        self._batch_size = batch_size

    async def open_cursor(self, statement: Executable) -> RowCursor:
        try:
            result = await self._connection.stream(
                statement,
                execution_options={"yield_per": self._batch_size},
            )
        except SQLAlchemyError as exc:
            raise store_error(exc) from exc
        return RowCursor(result)

    async def release(self) -> None:
        await self._connection.close()


class PlaceStore:
    def __init__(self, engine: AsyncEngine, *, stream_batch_size: int = 500) -> None:
        self.engine = engine
        self.stream_batch_size = stream_batch_size

    @classmethod
    def from_settings(cls, settings: Settings) -> PlaceStore:
        engine = build_engine(
            settings.sqlalchemy_url,
            pool_size=settings.db_pool_size,
            pool_timeout=settings.db_pool_timeout,
        )
        return cls(engine, stream_batch_size=settings.stream_batch_size)

    @instrument_stage("db")
    async def fetch_all(self, statement: Executable, params: Mapping[str, Any] | None = None) -> Sequence[RowMapping]:
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(statement, params)
                return result.mappings().all()
        except SQLAlchemyError as exc:
            raise store_error(exc) from exc

    @instrument_stage("db")
    async def fetch_scalar(self, statement: Executable, params: Mapping[str, Any] | None = None) -> Any:
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(statement, params)
                return result.scalar_one()
        except SQLAlchemyError as exc:
            raise store_error(exc) from exc

    async def checkout(self) -> StreamLease:
        try:
            connection = await self.engine.connect()
        except SQLAlchemyError as exc:
            raise store_error(exc) from exc
        return StreamLease(connection, batch_size=self.stream_batch_size)

    async def ping(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as exc:
            logger.error("Database connection failed: %s", exc)
            return False
        return True

    async def wait_until_ready(self, attempts: int, delay_seconds: float) -> bool:
        for attempt in range(1, attempts + 1):
            if await self.ping():
                logger.info("Database connected successfully")
                return True
            remaining = attempts - attempt
            if remaining > 0:
                logger.warning(
                    "Database connection failed. Retrying in %s seconds... (%s retries left)",
                    delay_seconds,
                    remaining,
                )
                await asyncio.sleep(delay_seconds)
        return False

    async def dispose(self) -> None:
        await self.engine.dispose()
