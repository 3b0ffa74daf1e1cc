from __future__ import annotations

import logging

from ..database import PlaceStore
from ..filters import FilterSpec
from ..pagination import PageWindow, build_pagination
from ..queries import count_places, select_places
from ..schemas import CountResponse, CountView, PaginationView, PlaceRecord, PlacesResponse
from ..telemetry import get_current_trace

logger = logging.getLogger(__name__)


def _record_trace_results(result_count: int) -> None:
    trace = get_current_trace()
    if trace is None:
        return
    trace.set_result_count(result_count)


async def count_matching(store: PlaceStore, spec: FilterSpec) -> int:
    total = await store.fetch_scalar(count_places(spec))
    return int(total or 0)


async def list_places(store: PlaceStore, spec: FilterSpec, window: PageWindow) -> PlacesResponse:
    rows = await store.fetch_all(select_places(spec, limit=window.limit, offset=window.offset))
    total = await count_matching(store, spec)

    places = [PlaceRecord.model_validate(dict(row)) for row in rows]
    _record_trace_results(len(places))
    logger.debug("Listed %s of %s places with %s predicate(s)", len(places), total, len(spec.predicates))

    return PlacesResponse(
        data=places,
        pagination=PaginationView(**build_pagination(window, len(places), total)),
        filters_applied=spec.applied,
    )


async def count_places_response(store: PlaceStore, spec: FilterSpec) -> CountResponse:
    total = await count_matching(store, spec)
    _record_trace_results(total)
    return CountResponse(data=CountView(count=total), filters_applied=spec.applied)
