"""Translate raw query parameters into bound, typed WHERE-clause predicates.

Rules are held in a static table evaluated in declaration order, which fixes
the order of both predicates and bound parameters. Keys absent from the table
are dropped. Column names only ever come from the table, and user values only
ever travel as bound parameters.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sqlalchemy import Table
from sqlalchemy.sql.elements import ColumnElement

from .errors import ValidationError

_INTEGER_PATTERN = re.compile(r"[+-]?\d+")
LIKE_ESCAPE = "\\"


class Operator(str, Enum):
    EQ = "eq"
    GTE = "gte"
    LTE = "lte"
    LIKE = "like"


@dataclass(frozen=True)
class ParseResult:
    value: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class Predicate:
    column: str
    operator: Operator
    value: Any

    def to_clause(self, table: Table) -> ColumnElement[bool]:
        column = table.c[self.column]
        if self.operator is Operator.EQ:
            return column == self.value
        if self.operator is Operator.GTE:
            return column >= self.value
        if self.operator is Operator.LTE:
            return column <= self.value
        return column.ilike(self.value, escape=LIKE_ESCAPE)


@dataclass(frozen=True)
class FilterRule:
    key: str
    column: str
    operator: Operator
    parse: Callable[[str], ParseResult]


@dataclass(frozen=True)
class FilterSpec:
    predicates: tuple[Predicate, ...] = ()
    applied: dict[str, str] = field(default_factory=dict)

    @property
    def params(self) -> tuple[Any, ...]:
        return tuple(predicate.value for predicate in self.predicates)

    def clauses(self, table: Table) -> list[ColumnElement[bool]]:
        return [predicate.to_clause(table) for predicate in self.predicates]


def parse_text(raw: str) -> ParseResult:
    return ParseResult(value=raw)


def parse_integer(raw: str) -> ParseResult:
    candidate = raw.strip()
    if not _INTEGER_PATTERN.fullmatch(candidate):
        return ParseResult(error=f"expected an integer, got {raw!r}")
    return ParseResult(value=int(candidate))


def parse_decimal(raw: str) -> ParseResult:
    try:
        value = float(raw.strip())
    except ValueError:
        return ParseResult(error=f"expected a number, got {raw!r}")
    if not math.isfinite(value):
        return ParseResult(error=f"expected a finite number, got {raw!r}")
    return ParseResult(value=value)


def escape_like(raw: str) -> str:
    return (
        raw.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def parse_substring(raw: str) -> ParseResult:
    return ParseResult(value=f"%{escape_like(raw)}%")


def _equality(key: str) -> FilterRule:
    return FilterRule(key, key, Operator.EQ, parse_text)


FILTER_RULES: tuple[FilterRule, ...] = (
    _equality("city"),
    _equality("state"),
    _equality("type"),
    _equality("county_code"),
    _equality("county"),
    _equality("borough"),
    _equality("place_id"),
    _equality("country"),
    _equality("country_code"),
    FilterRule("reviews", "reviews", Operator.EQ, parse_integer),
    FilterRule("rating", "rating", Operator.EQ, parse_decimal),
    FilterRule("reviews_min", "reviews", Operator.GTE, parse_integer),
    FilterRule("reviews_max", "reviews", Operator.LTE, parse_integer),
    FilterRule("rating_min", "rating", Operator.GTE, parse_decimal),
    FilterRule("rating_max", "rating", Operator.LTE, parse_decimal),
    FilterRule("name_contains", "name", Operator.LIKE, parse_substring),
)

FILTER_KEYS: frozenset[str] = frozenset(rule.key for rule in FILTER_RULES)


def build_filter_spec(query: Mapping[str, str]) -> FilterSpec:
    """Build a :class:`FilterSpec` from raw query parameters.

    Blank values are treated as absent. Every malformed numeric value is
    reported together in a single :class:`ValidationError`.
    """
    predicates: list[Predicate] = []
    applied: dict[str, str] = {}
    errors: list[str] = []

    for rule in FILTER_RULES:
        raw = query.get(rule.key)
        if raw is None or not raw.strip():
            continue
        parsed = rule.parse(raw)
        if not parsed.ok:
            errors.append(f"{rule.key}: {parsed.error}")
            continue
        predicates.append(Predicate(rule.column, rule.operator, parsed.value))
        applied[rule.key] = raw

    if errors:
        raise ValidationError("Invalid filter value(s): " + "; ".join(errors))

    return FilterSpec(predicates=tuple(predicates), applied=applied)
