"""NDJSON export of filtered places over a dedicated store connection.

An export moves through ``ACQUIRE -> EXECUTE -> STREAMING`` and ends in
exactly one of ``COMPLETE``, ``FAILED`` or ``ABORTED``. Whatever the ending,
the checked-out lease is released exactly once: every terminal path funnels
into :meth:`PlaceExport._release`, which is guarded by a flag and shielded
from cancellation.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncGenerator, AsyncIterator, Mapping
from enum import Enum
from typing import Any, Protocol

from anyio import CancelScope
from pydantic import ValidationError as PydanticValidationError
from starlette.background import BackgroundTask
from starlette.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from ..errors import StoreError
from ..filters import FilterSpec
from ..queries import stream_places
from ..schemas import PlaceRecord

logger = logging.getLogger(__name__)

NDJSON_MEDIA_TYPE = "application/x-ndjson"


class ExportState(str, Enum):
    PENDING = "pending"
    ACQUIRE = "acquire"
    EXECUTE = "execute"
    STREAMING = "streaming"
    COMPLETE = "complete"
    FAILED = "failed"
    ABORTED = "aborted"


TERMINAL_STATES = frozenset({ExportState.COMPLETE, ExportState.FAILED, ExportState.ABORTED})


class Cursor(Protocol):
    def __aiter__(self) -> AsyncIterator[Mapping[str, Any]]: ...

    async def close(self) -> None: ...


class Lease(Protocol):
    async def open_cursor(self, statement: Any) -> Cursor: ...

    async def release(self) -> None: ...


class LeaseSource(Protocol):
    async def checkout(self) -> Lease: ...


def encode_line(payload: Mapping[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False) + "\n"


def encode_place(row: Mapping[str, Any]) -> str:
    try:
        return PlaceRecord.model_validate(dict(row)).model_dump_json() + "\n"
    except PydanticValidationError as exc:
        logger.error("Place row %s failed to serialize: %s", row.get("id"), exc)
        raise StoreError(f"Place row {row.get('id')} could not be serialized") from exc


def meta_line(total_streamed: int) -> str:
    return encode_line({"_meta": {"total_streamed": total_streamed, "complete": True}})


def error_line(message: str) -> str:
    return encode_line({"_error": message})


class PlaceExport:
    def __init__(self, store: LeaseSource, spec: FilterSpec, *, limit: int = 0) -> None:
        self._store = store
        self.spec = spec
        self.limit = limit
        self.state = ExportState.PENDING
        self.delivered = 0
        self._lease: Lease | None = None
        self._cursor: Cursor | None = None
        self._released = False
        self._lines: AsyncGenerator[str, None] | None = None

    @property
    def released(self) -> bool:
        return self._released

    async def open(self) -> None:
        """Check out a lease and start the cursor query.

        Failures here surface as :class:`StoreError` before any response
        bytes are sent; the lease, if obtained, is already released.
        """
        self.state = ExportState.ACQUIRE
        try:
            self._lease = await self._store.checkout()
            self.state = ExportState.EXECUTE
            self._cursor = await self._lease.open_cursor(stream_places(self.spec, limit=self.limit))
        except BaseException:
            self.state = ExportState.FAILED
            await self._release()
            raise

    def lines(self) -> AsyncGenerator[str, None]:
        if self._lines is None:
            self._lines = self._generate()
        return self._lines

    async def _generate(self) -> AsyncGenerator[str, None]:
        if self._cursor is None:
            raise RuntimeError("PlaceExport.open() must complete before streaming")

        self.state = ExportState.STREAMING
        try:
            try:
                async for row in self._cursor:
                    line = encode_place(row)
                    self.delivered += 1
                    yield line
            except StoreError as exc:
                self.state = ExportState.FAILED
                logger.error("Place export failed after %s row(s): %s", self.delivered, exc.message)
                yield error_line(exc.message)
                return

            self.state = ExportState.COMPLETE
            logger.info("Place export complete: %s row(s) streamed", self.delivered)
            yield meta_line(self.delivered)
        finally:
            if self.state is ExportState.STREAMING:
                self.state = ExportState.ABORTED
                logger.info("Place export aborted by consumer after %s row(s)", self.delivered)
            await self._release()

    async def aclose(self) -> None:
        """Tear down the export from the consumer side; safe to call repeatedly."""
        if self._lines is not None:
            await self._lines.aclose()
        if self.state not in TERMINAL_STATES:
            self.state = ExportState.ABORTED
            logger.info("Place export closed before streaming finished")
        await self._release()

    async def _release(self) -> None:
        if self._released or self._lease is None:
            return
        self._released = True
        with CancelScope(shield=True):
            try:
                if self._cursor is not None:
                    await self._cursor.close()
            except StoreError as exc:
                logger.warning("Closing export cursor failed: %s", exc.message)
            except Exception:
                logger.exception("Closing export cursor failed")
            finally:
                await self._lease.release()


class NDJSONResponse(StreamingResponse):
    """Stream a :class:`PlaceExport`, closing it however the response ends."""

    media_type = NDJSON_MEDIA_TYPE

    def __init__(self, export: PlaceExport, background: BackgroundTask | None = None) -> None:
        super().__init__(
            export.lines(),
            media_type=NDJSON_MEDIA_TYPE,
            headers={"X-Content-Type-Options": "nosniff"},
            background=background,
        )
        self.export = export

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            with CancelScope(shield=True):
                await self.export.aclose()
