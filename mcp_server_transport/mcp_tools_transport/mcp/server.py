"""MCP server (official python-sdk) exposing mcp_tools_transport tools.

This uses FastMCP from the official MCP Python SDK:
- Tools are ordinary Python functions decorated with @mcp.tool().
- Schemas are derived automatically from type hints / Pydantic models.
- Transport is streamable HTTP via Uvicorn, or stdio with ``--stdio``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

import sys
import argparse
import logging

import uvicorn
from mcp.server.fastmcp import FastMCP
from pydantic import Field

from ..core.cache import FileCache
from ..core.config import SINGAPORE_TZ, Settings
from ..core.schemas import (
    BusService,
    BusStop,
    ComprehensiveJourney,
    InstructionFormat,
    JourneyPreferences,
    Location,
    NearbyPlace,
    OutputOptions,
    RequestedMode,
)
from ..services.lta import LTAClient, nearby_bus_stops, nearby_taxis
from ..services.onemap import OneMapClient
from ..services.places import FACILITY_THEMES, bus_stop_details, find_facilities
from ..services.planner import plan_comprehensive_journey as plan_journey
from ..services.traffic import assess_traffic
from ..services.weather import WeatherClient, weather_advisories, weather_note

Latitude = Annotated[float, Field(ge=1.0, le=1.5, description="Latitude within Singapore")]
Longitude = Annotated[float, Field(ge=103.0, le=104.5, description="Longitude within Singapore")]


# ---------------------------------------------------------------------------
# MCP-Server & Tools
# ---------------------------------------------------------------------------

settings = Settings.from_env()

mcp = FastMCP(name="sg-transport", stateless_http=False)

logger = logging.getLogger("sg-transport-mcp")
logging.basicConfig(stream=sys.stderr, level=settings.log_level)


def _cache() -> FileCache:
    return FileCache(settings.cache_dir, ttl_seconds=settings.cache_duration_s)


def _onemap(cache: FileCache) -> OneMapClient:
    return OneMapClient(
        token=settings.onemap_token,
        email=settings.onemap_email,
        password=settings.onemap_password,
        cache=cache,
        timeout_s=settings.request_timeout_s,
    )


def _lta(cache: FileCache) -> LTAClient:
    return LTAClient(settings.lta_account_key, cache=cache, timeout_s=settings.request_timeout_s)


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    """ISO 8601 timestamp; naive values are read as Singapore local time."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=SINGAPORE_TZ)
    return parsed


@mcp.tool()
def plan_comprehensive_journey(
    from_location: str,
    to_location: str,
    mode: RequestedMode = "AUTO",
    departure_time: Optional[str] = None,
    arrival_time: Optional[str] = None,
    max_walk_distance: Annotated[Optional[int], Field(ge=100, le=2000)] = None,
    weather_aware: bool = True,
    fastest: bool = True,
    cheapest: bool = False,
    minimize_transfers: bool = True,
    accessibility_required: bool = False,
    num_itineraries: Annotated[int, Field(ge=1, le=5)] = 3,
    instruction_format: InstructionFormat = "detailed",
    include_instructions: bool = True,
    include_polylines: bool = True,
    include_alternatives: bool = True,
    include_context: bool = True,
) -> ComprehensiveJourney:
    """Plan a journey in Singapore with step-by-step instructions, route geometry and live context.

    Locations may be addresses, landmarks, 6-digit postal codes or "lat,lng".
    AUTO walks under 1 km, drives above 15 km and uses public transport in between.
    Public transport itineraries are ranked by the preference flags; the runners-up
    are returned as alternatives.
    """
    cache = _cache()
    return plan_journey(
        from_location,
        to_location,
        onemap=_onemap(cache),
        lta=_lta(cache) if settings.lta_account_key else None,
        weather=WeatherClient(cache=cache, timeout_s=settings.request_timeout_s),
        mode=mode,
        departure_time=_parse_time(departure_time),
        arrival_time=_parse_time(arrival_time),
        preferences=JourneyPreferences(
            max_walk_distance=max_walk_distance or settings.max_walk_distance,
            fastest=fastest,
            cheapest=cheapest,
            minimize_transfers=minimize_transfers,
            accessibility_required=accessibility_required,
            weather_aware=weather_aware,
        ),
        num_itineraries=num_itineraries,
        output=OutputOptions(
            include_instructions=include_instructions,
            include_polylines=include_polylines,
            include_alternatives=include_alternatives,
            include_context=include_context,
            instruction_format=instruction_format,
        ),
    )


@mcp.tool()
def search_location(
    query: Annotated[str, Field(min_length=1)],
    limit: Annotated[int, Field(ge=1, le=20)] = 5,
) -> List[Location]:
    """Search Singapore addresses, buildings and postal codes via OneMap (token-free)."""
    return _onemap(_cache()).search(query, limit=limit)


@mcp.tool()
def resolve_postal_code(
    postal_code: Annotated[str, Field(pattern=r"^\d{6}$", description="6-digit Singapore postal code")],
) -> Optional[Location]:
    """Exact location for a postal code, or null when OneMap has no such code."""
    return _onemap(_cache()).resolve_postal_code(postal_code)


@mcp.tool()
def reverse_geocode(
    lat: Latitude,
    lng: Longitude,
    radius_m: Annotated[int, Field(ge=0, le=500)] = 100,
) -> List[NearbyPlace]:
    """Addresses and buildings around (lat, lng), nearest first (needs OneMap credentials)."""
    return _onemap(_cache()).reverse_geocode(lat, lng, radius_m)


@mcp.tool()
def find_landmarks_and_facilities(
    lat: Latitude,
    lng: Longitude,
    radius_m: Annotated[int, Field(ge=100, le=5000)] = 1000,
    categories: Annotated[
        Optional[List[str]], Field(description=f"Any of: {', '.join(FACILITY_THEMES)}. Default: all.")
    ] = None,
    limit: Annotated[int, Field(ge=1, le=50)] = 10,
) -> Dict[str, Any]:
    """Hawker centres, libraries, parks and other public facilities near (lat, lng), per category."""
    return find_facilities(_onemap(_cache()), lat, lng, radius_m=radius_m, categories=categories, limit=limit)


@mcp.tool()
def get_weather_conditions(lat: Latitude, lng: Longitude) -> Dict[str, Any]:
    """Current weather near (lat, lng) from the nearest NEA stations, with walking advisories."""
    conditions = WeatherClient(cache=_cache(), timeout_s=settings.request_timeout_s).conditions_for(lat, lng)
    advisories = weather_advisories(conditions)
    return {
        "conditions": conditions.model_dump(mode="json"),
        "advisories": [a.model_dump() for a in advisories],
        "summary": weather_note(advisories),
    }


@mcp.tool()
def get_weather_advisory(lat: Latitude = 1.3521, lng: Longitude = 103.8198) -> Dict[str, Any]:
    """Travel advice for the current weather near (lat, lng); defaults to central Singapore."""
    conditions = WeatherClient(cache=_cache(), timeout_s=settings.request_timeout_s).conditions_for(lat, lng)
    advisories = weather_advisories(conditions)
    preferred: List[str] = []
    for a in advisories:
        preferred.extend(m for m in a.preferred_modes if m not in preferred)
    return {
        "advisories": [a.model_dump() for a in advisories],
        "summary": weather_note(advisories),
        "walking_time_multiplier": max((a.walking_time_multiplier for a in advisories), default=1.0),
        "preferred_modes": preferred,
    }


@mcp.tool()
def get_bus_arrivals(
    bus_stop_code: Annotated[str, Field(pattern=r"^\d{5}$", description="5-digit bus stop code")],
    service_no: Optional[str] = None,
) -> List[BusService]:
    """Next three buses per service at a bus stop (LTA DataMall, needs LTA_ACCOUNT_KEY)."""
    return _lta(_cache()).bus_arrivals(bus_stop_code, service_no)


@mcp.tool()
def find_bus_stops(
    lat: Latitude,
    lng: Longitude,
    radius_m: Annotated[int, Field(ge=100, le=5000)] = 500,
    limit: Annotated[int, Field(ge=1, le=50)] = 10,
) -> List[BusStop]:
    """Bus stops around (lat, lng), nearest first, with their 5-digit codes."""
    return nearby_bus_stops(_lta(_cache()).bus_stops(), lat, lng, radius_m, limit)


@mcp.tool()
def get_bus_stop_details(
    bus_stop_code: Annotated[str, Field(pattern=r"^\d{5}$", description="5-digit bus stop code")],
    include_arrivals: bool = True,
    nearby_radius_m: Annotated[int, Field(ge=100, le=1000)] = 300,
) -> Dict[str, Any]:
    """One bus stop: road, description, live arrivals and the stops within walking distance."""
    return bus_stop_details(_lta(_cache()), bus_stop_code, include_arrivals=include_arrivals, nearby_radius_m=nearby_radius_m)


@mcp.tool()
def get_train_service_status(line: Optional[str] = None) -> Dict[str, Any]:
    """MRT/LRT disruption alerts, optionally for one line code (e.g. "EWL")."""
    alerts = _lta(_cache()).train_service_alerts()
    if line:
        alerts = [a for a in alerts if a.line.upper() == line.upper()]
    return {
        "overall_status": "Disrupted" if alerts else "Normal",
        "alerts": [a.model_dump() for a in alerts],
    }


@mcp.tool()
def get_traffic_conditions(area: Optional[str] = None, road: Optional[str] = None) -> Dict[str, Any]:
    """Island-wide traffic incidents and expressway status, optionally filtered by area or road name."""
    return assess_traffic(_lta(_cache()).traffic_incidents(), area=area, road=road)


@mcp.tool()
def get_nearby_taxis(
    lat: Latitude,
    lng: Longitude,
    radius_m: Annotated[int, Field(ge=100, le=5000)] = 1000,
    limit: Annotated[int, Field(ge=1, le=50)] = 10,
) -> Dict[str, Any]:
    """Available taxis around (lat, lng), nearest first."""
    taxis = nearby_taxis(_lta(_cache()).taxi_availability(), lat, lng, radius_m, limit)
    return {"count": len(taxis), "radius_m": radius_m, "taxis": taxis}


# ---------------------------------------------------------------------------
# ASGI-App für streamable HTTP & Uvicorn-Entry-Point
# ---------------------------------------------------------------------------

# ASGI-App exportieren; der MCP-Endpunkt ist /mcp
starlette_app = mcp.streamable_http_app()  # path="/mcp"


def main() -> None:
    """Start the sg-transport MCP server via Uvicorn (streamable HTTP) or stdio."""
    parser = argparse.ArgumentParser()
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8765)
    parser.add_argument("--stdio", action="store_true", help="serve over stdio instead of HTTP")
    args = parser.parse_args()

    for missing in settings.validate():
        logger.warning("%s not set; tools that need it will fail", missing)

    if args.stdio:
        logger.info("Starting sg-transport MCP server (stdio) …")
        mcp.run()
        return

    logger.info(
        "Starting sg-transport MCP server (streamable-http) on http://%s:%d/mcp …",
        args.host,
        args.port,
    )

    uvicorn.run(
        starlette_app,
        host=args.host,
        port=args.port,
        reload=False,
        loop="asyncio",
    )


if __name__ == "__main__":
    main()
