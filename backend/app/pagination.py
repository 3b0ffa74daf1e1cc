from __future__ import annotations

import re
from dataclasses import dataclass

DEFAULT_LIMIT = 100
MAX_LIMIT = 10_000

_LEADING_INTEGER = re.compile(r"\s*([+-]?\d+)")


@dataclass(frozen=True)
class PageWindow:
    limit: int = DEFAULT_LIMIT
    offset: int = 0


def _leading_integer(raw: str | None) -> int | None:
    if raw is None:
        return None
    match = _LEADING_INTEGER.match(raw)
    if match is None:
        return None
    return int(match.group(1))


def parse_limit(raw: str | None) -> int:
    value = _leading_integer(raw)
    if not value:
        value = DEFAULT_LIMIT
    return min(max(1, value), MAX_LIMIT)


def parse_offset(raw: str | None) -> int:
    value = _leading_integer(raw)
    if value is None or value < 0:
        return 0
    return value


def parse_stream_limit(raw: str | None) -> int:
    value = _leading_integer(raw)
    if value is None or value < 0:
        return 0
    return value


def parse_page_window(limit: str | None, offset: str | None) -> PageWindow:
    return PageWindow(limit=parse_limit(limit), offset=parse_offset(offset))


def build_pagination(window: PageWindow, count: int, total: int) -> dict[str, int | bool]:
    return {
        "limit": window.limit,
        "offset": window.offset,
        "count": count,
        "total": total,
        "has_more": window.offset + count < total,
    }
