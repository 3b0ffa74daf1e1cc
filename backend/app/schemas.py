from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class PlaceRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    place_id: str
    name: str | None = None
    site: str | None = None
    type: str | None = None
    phone: str | None = None
    full_address: str | None = None
    borough: str | None = None
    street: str | None = None
    city: str | None = None
    state: str | None = None
    county: str | None = None
    county_code: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    rating: float | None = None
    reviews: int | None = None
    working_hours: str | None = None
    about: str | None = None


class PaginationView(BaseModel):
    limit: int
    offset: int
    count: int
    total: int
    has_more: bool


class PlacesResponse(BaseModel):
    success: bool = True
    data: list[PlaceRecord]
    pagination: PaginationView
    filters_applied: dict[str, str] = Field(default_factory=dict)


class CountView(BaseModel):
    count: int


class CountResponse(BaseModel):
    success: bool = True
    data: CountView
    filters_applied: dict[str, str] = Field(default_factory=dict)


class CityCount(BaseModel):
    city: str
    count: int


class TypeCount(BaseModel):
    type: str
    count: int


class CountyCodeCount(BaseModel):
    county_code: str
    count: int


class StatsView(BaseModel):
    total_places: int
    top_cities: list[CityCount]
    top_types: list[TypeCount]
    top_county_codes: list[CountyCodeCount]


class StatsResponse(BaseModel):
    success: bool = True
    data: StatsView


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    message: str


class HealthResponse(BaseModel):
    status: str
    database: str
    timestamp: datetime


class ServiceInfoResponse(BaseModel):
    name: str
    version: str
    description: str
    endpoints: dict[str, str]
