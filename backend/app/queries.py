from __future__ import annotations

from sqlalchemy import Select, func, select

from .filters import FilterSpec
from .models import Place

places_table = Place.__table__

PLACE_COLUMNS: tuple[str, ...] = (
    "id",
    "place_id",
    "name",
    "site",
    "type",
    "phone",
    "full_address",
    "borough",
    "street",
    "city",
    "state",
    "county",
    "county_code",
    "latitude",
    "longitude",
    "rating",
    "reviews",
    "working_hours",
    "about",
)


def _projection() -> Select:
    return select(*(places_table.c[name] for name in PLACE_COLUMNS))


def _filtered(statement: Select, spec: FilterSpec) -> Select:
    clauses = spec.clauses(places_table)
    if clauses:
        statement = statement.where(*clauses)
    return statement


def select_places(spec: FilterSpec, *, limit: int, offset: int) -> Select:
    return _filtered(_projection(), spec).order_by(places_table.c.id.asc()).limit(limit).offset(offset)


def count_places(spec: FilterSpec) -> Select:
    return _filtered(select(func.count().label("total")).select_from(places_table), spec)


def stream_places(spec: FilterSpec, *, limit: int = 0) -> Select:
    """Row-fetch statement for cursor streaming; ``limit`` of 0 means no cap."""
    statement = _filtered(_projection(), spec).order_by(places_table.c.id.asc())
    if limit > 0:
        statement = statement.limit(limit)
    return statement
