from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


TravelMode = Literal["WALK", "BUS", "TRAIN", "SUBWAY", "TAXI"]
InstructionType = Literal["direct", "transit", "transit_walk"]
ResponseType = Literal["PUBLIC_TRANSPORT", "DIRECT_ROUTING", "ERROR"]
RouteMode = Literal["PUBLIC_TRANSPORT", "WALK", "DRIVE"]
RequestedMode = Literal["PUBLIC_TRANSPORT", "WALK", "DRIVE", "CYCLE", "AUTO"]
InstructionFormat = Literal["detailed", "simple", "navigation"]

# GeoJSON position order: (lng, lat)
Position = Tuple[float, float]


class Coordinates(BaseModel):
    """Geographic coordinates in WGS84."""
    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float


class Bounds(BaseModel):
    model_config = ConfigDict(frozen=True)

    north: float
    south: float
    east: float
    west: float


class Location(BaseModel):
    """A resolved place (geocoding result or user supplied coordinates)."""
    latitude: float
    longitude: float
    name: Optional[str] = None
    address: Optional[str] = None
    postal_code: Optional[str] = None

    @property
    def coordinates(self) -> Coordinates:
        return Coordinates(lat=self.latitude, lng=self.longitude)


# ---------------------------------------------------------------------------
# Canonical journey model
# ---------------------------------------------------------------------------


class StopDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    stop_code: Optional[str] = None
    coordinates: Optional[Coordinates] = None


class EstimatedContext(BaseModel):
    """Advisory, non-authoritative annotations for one instruction."""
    model_config = ConfigDict(frozen=True)

    area: str
    time_of_day: str
    weather_note: str
    landmark: Optional[str] = None
    safety_note: Optional[str] = None
    accessibility_info: Optional[str] = None


class ParsedInstruction(BaseModel):
    """One provider-agnostic step of a journey.

    Built once by the instruction normalizer from a single raw leg, walk step or
    instruction tuple. Context enrichment returns copies; the model itself is frozen.
    """
    model_config = ConfigDict(frozen=True)

    step: int = Field(..., ge=1)
    type: InstructionType
    mode: TravelMode
    distance: float = Field(default=0.0, ge=0)
    duration: Optional[float] = Field(default=None, ge=0)
    coordinates: Optional[Coordinates] = None
    instruction: str = Field(..., min_length=1)

    direction: Optional[str] = None
    street_name: Optional[str] = None

    # Transit legs only
    service: Optional[str] = None
    operator: Optional[str] = None
    from_stop: Optional[StopDescriptor] = None
    to_stop: Optional[StopDescriptor] = None
    intermediate_stops: Optional[List[StopDescriptor]] = None

    estimated_context: Optional[EstimatedContext] = None


class JourneySummary(BaseModel):
    response_type: ResponseType
    total_time: Optional[float] = None
    total_distance: Optional[float] = None
    total_cost: Optional[float] = None
    walk_distance: Optional[float] = None
    transfers: Optional[int] = None
    fare: Optional[str] = None
    instruction_count: int = 0
    polyline_count: int = 0


# ---------------------------------------------------------------------------
# Geometry / visualization
# ---------------------------------------------------------------------------


class LineString(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["LineString"] = "LineString"
    coordinates: List[Position]


class DecodedPolyline(BaseModel):
    model_config = ConfigDict(frozen=True)

    coordinates: List[Position]
    bounds: Bounds


class PolylineData(BaseModel):
    encoded: str
    decoded: DecodedPolyline
    geojson: LineString
    coordinate_count: int


class StepMarker(BaseModel):
    step: int
    coordinates: Position
    instruction: str


class Visualization(BaseModel):
    bounds: Optional[Bounds] = None
    step_markers: List[StepMarker] = Field(default_factory=list)
    route_geometry: List[LineString] = Field(default_factory=list)


class JourneyResult(BaseModel):
    """Output of the journey pipeline for one raw routing response."""
    route_found: bool
    summary: JourneySummary
    instructions: List[ParsedInstruction] = Field(default_factory=list)
    formatted_instructions: List[str] = Field(default_factory=list)
    polylines: List[PolylineData] = Field(default_factory=list)
    visualization: Visualization = Field(default_factory=Visualization)


# ---------------------------------------------------------------------------
# Request-scoped options (built once at the tool boundary)
# ---------------------------------------------------------------------------


class RouteOptions(BaseModel):
    """Options forwarded to the routing provider."""
    model_config = ConfigDict(frozen=True)

    mode: RouteMode = "PUBLIC_TRANSPORT"
    max_walk_distance: int = Field(default=1000, ge=100, le=2000)
    departure_time: Optional[datetime] = None
    arrival_time: Optional[datetime] = None
    num_itineraries: int = Field(default=3, ge=1, le=5)


class JourneyPreferences(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_walk_distance: int = Field(default=1000, ge=100, le=2000)
    fastest: bool = True
    cheapest: bool = False
    minimize_transfers: bool = True
    accessibility_required: bool = False
    weather_aware: bool = True


class OutputOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    include_instructions: bool = True
    include_polylines: bool = True
    include_alternatives: bool = True
    include_context: bool = True
    instruction_format: InstructionFormat = "detailed"


# ---------------------------------------------------------------------------
# Weather / LTA payloads
# ---------------------------------------------------------------------------


class WeatherConditions(BaseModel):
    """Latest readings from the weather stations nearest to a location."""
    temperature_c: float
    rainfall_mm: float
    humidity_pct: float
    wind_speed_kmh: float
    wind_direction_deg: float
    location: Coordinates
    timestamp: datetime
    stations: Dict[str, str] = Field(
        default_factory=dict,
        description="Reading type -> name of the station the value was taken from.",
    )


class WeatherAdvisory(BaseModel):
    severity: Literal["low", "medium", "high"]
    type: Literal["rain", "heat", "wind", "humidity"]
    message: str
    walking_time_multiplier: float = 1.0
    preferred_modes: List[str] = Field(default_factory=list)
    avoided_areas: List[str] = Field(default_factory=list)


class BusArrival(BaseModel):
    estimated_arrival: datetime
    minutes_away: int
    load_status: Optional[str] = None
    load_description: str = "Unknown"
    wheelchair_accessible: bool = False
    bus_type: Optional[str] = None
    bus_type_description: str = "Unknown"
    coordinates: Optional[Coordinates] = None


class BusService(BaseModel):
    service_no: str
    operator: str
    next_buses: List[BusArrival] = Field(default_factory=list)


class TrainServiceAlert(BaseModel):
    line: str
    line_name: str
    status: Literal["Normal", "Disrupted"] = "Disrupted"
    direction: Optional[str] = None
    affected_stations: List[str] = Field(default_factory=list)
    free_public_bus: bool = False
    free_mrt_shuttle: bool = False
    message: Optional[str] = None


class TrafficIncident(BaseModel):
    type: str
    message: str
    coordinates: Optional[Coordinates] = None


class BusStop(BaseModel):
    code: str
    road_name: str = ""
    description: str = ""
    coordinates: Coordinates
    distance_m: Optional[int] = None


class NearbyPlace(BaseModel):
    """An address or facility found around a point (reverse geocoding, OneMap themes)."""
    name: str
    category: Optional[str] = None
    address: Optional[str] = None
    postal_code: Optional[str] = None
    coordinates: Coordinates
    distance_m: Optional[int] = None


# ---------------------------------------------------------------------------
# Comprehensive journey (tool response)
# ---------------------------------------------------------------------------


class JourneyContext(BaseModel):
    from_location: Location
    to_location: Location
    time_context: str
    weather_note: str = ""
    weather: Optional[WeatherConditions] = None
    weather_advisories: List[WeatherAdvisory] = Field(default_factory=list)
    safety_alerts: List[str] = Field(default_factory=list)


class JourneyAlternative(BaseModel):
    mode: RouteMode
    description: str
    summary: JourneySummary


class JourneyMetadata(BaseModel):
    request_time: datetime
    processing_time_ms: int
    api_calls: int
    resolved_mode: Optional[RouteMode] = None


class ComprehensiveJourney(BaseModel):
    success: bool
    journey: JourneyResult
    context: JourneyContext
    alternatives: List[JourneyAlternative] = Field(default_factory=list)
    metadata: JourneyMetadata
