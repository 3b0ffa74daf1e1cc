from fastapi import APIRouter, Depends, Request

from ..auth import require_api_token
from ..database import PlaceStore
from ..filters import build_filter_spec
from ..pagination import parse_page_window, parse_stream_limit
from ..schemas import CountResponse, ErrorResponse, PlacesResponse, StatsResponse
from ..services.export_service import NDJSONResponse, PlaceExport
from ..services.place_service import count_places_response, list_places
from ..services.stats_service import collect_stats

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}

router = APIRouter(
    prefix="/api/v1",
    tags=["places"],
    dependencies=[Depends(require_api_token)],
    responses=ERROR_RESPONSES,
)


def get_store(request: Request) -> PlaceStore:
    return request.app.state.store


@router.get("/places", response_model=PlacesResponse)
async def get_places(request: Request, store: PlaceStore = Depends(get_store)) -> PlacesResponse:
    spec = build_filter_spec(request.query_params)
    window = parse_page_window(request.query_params.get("limit"), request.query_params.get("offset"))
    return await list_places(store, spec, window)


@router.get("/places/count", response_model=CountResponse)
async def get_places_count(request: Request, store: PlaceStore = Depends(get_store)) -> CountResponse:
    spec = build_filter_spec(request.query_params)
    return await count_places_response(store, spec)


@router.get(
    "/places/stream",
    response_class=NDJSONResponse,
    responses={200: {"content": {"application/x-ndjson": {}}}},
)
async def stream_places(request: Request, store: PlaceStore = Depends(get_store)) -> NDJSONResponse:
    spec = build_filter_spec(request.query_params)
    export = PlaceExport(store, spec, limit=parse_stream_limit(request.query_params.get("limit")))
    await export.open()
    return NDJSONResponse(export)


@router.get("/stats", response_model=StatsResponse)
@router.get("/places/stats", response_model=StatsResponse, include_in_schema=False)
async def get_stats(store: PlaceStore = Depends(get_store)) -> StatsResponse:
    return StatsResponse(data=await collect_stats(store))
