from __future__ import annotations

import pytest

from app.errors import StoreError
from app.filters import FilterSpec, build_filter_spec
from app.pagination import PageWindow
from app.services.place_service import count_matching, list_places
from app.services.stats_service import collect_stats


@pytest.mark.asyncio
async def test_review_range_returns_closed_interval(store) -> None:
    spec = build_filter_spec({"reviews_min": "40", "reviews_max": "60"})
    response = await list_places(store, spec, PageWindow())

    assert sorted(place.reviews for place in response.data) == [45, 60]
    assert response.filters_applied == {"reviews_min": "40", "reviews_max": "60"}


@pytest.mark.asyncio
async def test_inverted_range_returns_no_rows(store) -> None:
    spec = build_filter_spec({"rating_min": "4.5", "rating_max": "3"})
    response = await list_places(store, spec, PageWindow())

    assert response.data == []
    assert response.pagination.total == 0
    assert response.pagination.has_more is False


@pytest.mark.asyncio
async def test_rows_come_back_in_id_order_with_pagination(store) -> None:
    response = await list_places(store, FilterSpec(), PageWindow(limit=2, offset=1))

    assert [place.id for place in response.data] == [2, 3]
    assert response.pagination.total == 5
    assert response.pagination.has_more is True


@pytest.mark.asyncio
async def test_last_page_has_no_more(store) -> None:
    total = await count_matching(store, FilterSpec())
    response = await list_places(store, FilterSpec(), PageWindow(limit=1, offset=total - 1))

    assert response.pagination.count == 1
    assert response.pagination.has_more is False


@pytest.mark.asyncio
async def test_count_matches_list_total(store) -> None:
    spec = build_filter_spec({"city": "New York", "rating_min": "4"})
    listed = await list_places(store, spec, PageWindow(limit=1))
    counted = await count_matching(store, spec)

    assert counted == listed.pagination.total == 2


@pytest.mark.asyncio
async def test_name_contains_matches_wildcards_literally(store) -> None:
    spec = build_filter_spec({"name_contains": "100%"})
    response = await list_places(store, spec, PageWindow())
    assert [place.name for place in response.data] == ["Pizza_Palace 100%"]

    underscore = await list_places(store, build_filter_spec({"name_contains": "a_P"}), PageWindow())
    assert [place.id for place in underscore.data] == [4]


@pytest.mark.asyncio
async def test_projection_omits_country_columns(store) -> None:
    response = await list_places(store, build_filter_spec({"country_code": "CA"}), PageWindow())

    assert [place.name for place in response.data] == ["Mystery Spot"]
    assert "country_code" not in response.data[0].model_dump()


@pytest.mark.asyncio
async def test_stats_ignore_nulls_and_rank_by_count(store) -> None:
    stats = await collect_stats(store)

    assert stats.total_places == 5
    assert stats.top_cities[0].city == "New York"
    assert stats.top_cities[0].count == 2
    assert {entry.city for entry in stats.top_cities} == {"New York", "Brooklyn", "Austin"}
    assert stats.top_types[0].type == "Pizza restaurant"
    assert stats.top_county_codes[0].county_code == "061"
    assert sum(entry.count for entry in stats.top_county_codes) == 4


@pytest.mark.asyncio
async def test_store_failures_surface_as_store_error(tmp_path) -> None:
    from app.database import PlaceStore, build_engine

    broken = PlaceStore(build_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}", pool_size=1))
    try:
        with pytest.raises(StoreError):
            await count_matching(broken, FilterSpec())
    finally:
        await broken.dispose()


@pytest.mark.asyncio
async def test_name_contains_ignores_case(store) -> None:
    response = await list_places(store, build_filter_spec({"name_contains": "PIZZA"}), PageWindow())
    assert [place.id for place in response.data] == [1, 4]
