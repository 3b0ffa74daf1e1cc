"""Whole-table aggregate statistics.

Each aggregation ignores request filters. Ties within a top-10 list come back
in whatever order the store produces; no tie-break is applied.
"""

from __future__ import annotations

from sqlalchemy import Select, func, select

from ..database import PlaceStore
from ..queries import places_table
from ..schemas import CityCount, CountyCodeCount, StatsView, TypeCount

TOP_N = 10


def _top_values(column_name: str) -> Select:
    column = places_table.c[column_name]
    count = func.count().label("count")
    return (
        select(column, count)
        .where(column.is_not(None))
        .group_by(column)
        .order_by(count.desc())
        .limit(TOP_N)
    )


def total_places_statement() -> Select:
    return select(func.count().label("total")).select_from(places_table)


async def collect_stats(store: PlaceStore) -> StatsView:
    total = await store.fetch_scalar(total_places_statement())
    cities = await store.fetch_all(_top_values("city"))
    types = await store.fetch_all(_top_values("type"))
    county_codes = await store.fetch_all(_top_values("county_code"))

    return StatsView(
        total_places=int(total or 0),
        top_cities=[CityCount(city=row["city"], count=row["count"]) for row in cities],
        top_types=[TypeCount(type=row["type"], count=row["count"]) for row in types],
        top_county_codes=[
            CountyCodeCount(county_code=row["county_code"], count=row["count"]) for row in county_codes
        ],
    )
