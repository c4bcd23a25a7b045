from __future__ import annotations

import logging
import math
import time
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, TypeVar

from ..core.config import Clock, singapore_now
from ..core.errors import TransportError
from ..core.schemas import (
    ComprehensiveJourney,
    JourneyAlternative,
    JourneyContext,
    JourneyMetadata,
    JourneyPreferences,
    Location,
    OutputOptions,
    RouteMode,
    RouteOptions,
    WeatherConditions,
)
from ..utils.geo import distance_meters, is_within_singapore
from .classifier import ResponseKind, classify, transit_itineraries
from .context import time_of_day
from .instructions import parse_coordinate_string
from .journey import build_journey_result, no_route_result
from .lta import LTAClient
from .onemap import OneMapClient
from .summary import parse_fare
from .weather import WeatherClient, weather_advisories, weather_note

logger = logging.getLogger(__name__)

T = TypeVar("T")

WALK_MAX_M = 1_000
DRIVE_MIN_M = 15_000


def resolve_location(text: str, onemap: OneMapClient) -> Optional[Location]:
    """Resolve ``"lat,lng"``, a postal code, an address or a landmark name."""
    text = (text or "").strip()
    if not text:
        return None

    coords = parse_coordinate_string(text)
    if coords is not None:
        if not is_within_singapore(coords.lat, coords.lng):
            logger.warning("Coordinates outside Singapore: %s", text)
            return None
        return Location(
            latitude=coords.lat,
            longitude=coords.lng,
            name="Custom Location",
            address=f"{coords.lat:.6f}, {coords.lng:.6f}",
        )

    return onemap.geocode(text)


def select_mode(requested: str, origin: Location, destination: Location) -> RouteMode:
    """Concrete routing mode for a requested one (``AUTO`` picks by distance)."""
    if requested == "CYCLE":
        # OneMap has no cycling profile
        return "WALK"
    if requested in ("PUBLIC_TRANSPORT", "WALK", "DRIVE"):
        return requested  # type: ignore[return-value]

    meters = distance_meters(origin.coordinates, destination.coordinates)
    if meters < WALK_MAX_M:
        return "WALK"
    if meters > DRIVE_MIN_M:
        return "DRIVE"
    return "PUBLIC_TRANSPORT"


def plan_comprehensive_journey(
    from_location: str,
    to_location: str,
    onemap: OneMapClient,
    lta: Optional[LTAClient] = None,
    weather: Optional[WeatherClient] = None,
    mode: str = "AUTO",
    departure_time: Optional[datetime] = None,
    arrival_time: Optional[datetime] = None,
    preferences: JourneyPreferences = JourneyPreferences(),
    num_itineraries: int = 3,
    output: OutputOptions = OutputOptions(),
    clock: Clock = singapore_now,
) -> ComprehensiveJourney:
    """Plan a journey and wrap it with context, alternatives and metadata."""
    started = time.monotonic()
    request_time = clock()
    api_calls = 0

    logger.info("Planning journey %r -> %r (mode=%s)", from_location, to_location, mode)

    origin = resolve_location(from_location, onemap)
    destination = resolve_location(to_location, onemap)
    api_calls += sum(1 for text in (from_location, to_location) if _needs_geocoding(text))
    if origin is None:
        return _failure(f"Could not find location: {from_location}", clock, started, request_time, api_calls)
    if destination is None:
        return _failure(f"Could not find location: {to_location}", clock, started, request_time, api_calls)

    resolved = select_mode(mode, origin, destination)
    options = RouteOptions(
        mode=resolved,
        max_walk_distance=preferences.max_walk_distance,
        departure_time=departure_time,
        arrival_time=arrival_time,
        num_itineraries=num_itineraries,
    )

    try:
        raw = onemap.plan_route(origin, destination, options)
    except TransportError as e:
        logger.error("Route planning failed: %s", e)
        return _failure(str(e), clock, started, request_time, api_calls + 1, origin, destination)
    api_calls += 1

    other_itineraries: List[Dict[str, Any]] = []
    if classify(raw) is ResponseKind.TRANSIT:
        ranked = rank_itineraries(raw, preferences)[: options.num_itineraries]
        if ranked:
            raw, other_itineraries = ranked[0], ranked[1:]

    result = build_journey_result(
        raw,
        format_style=output.instruction_format,
        include_context=output.include_context,
        include_polylines=output.include_polylines,
        clock=clock,
    )
    if not result.route_found:
        return _failure(
            "No route found between the specified locations", clock, started, request_time, api_calls, origin, destination
        )
    if not output.include_instructions:
        result.formatted_instructions = []

    # Independent lookups; each one degrades on its own.
    with ThreadPoolExecutor(max_workers=3) as pool:
        weather_f = pool.submit(weather.conditions_for, origin.latitude, origin.longitude) if weather else None
        traffic_f = pool.submit(lta.traffic_incidents) if lta else None
        walk_f = None
        if output.include_alternatives and resolved != "WALK":
            walk_f = pool.submit(onemap.plan_route, origin, destination, RouteOptions(mode="WALK"))

    conditions: Optional[WeatherConditions] = _outcome(weather_f, "weather")
    incidents = _outcome(traffic_f, "traffic incidents")
    walk_raw = _outcome(walk_f, "walking alternative")
    api_calls += sum(1 for f in (weather_f, traffic_f, walk_f) if f is not None)

    advisories = weather_advisories(conditions) if conditions else []
    if not preferences.weather_aware:
        note = "Weather awareness is off."
    elif conditions is None:
        note = "Weather data unavailable; check conditions for outdoor segments"
    else:
        note = weather_note(advisories)

    safety_alerts: List[str] = []
    if incidents:
        safety_alerts.append(f"{len(incidents)} traffic incidents reported in Singapore")

    alternatives: List[JourneyAlternative] = []
    if output.include_alternatives:
        for number, itinerary in enumerate(other_itineraries, start=2):
            option = build_journey_result(itinerary, include_context=False, include_polylines=False)
            minutes = round((option.summary.total_time or 0) / 60)
            alternatives.append(
                JourneyAlternative(
                    mode="PUBLIC_TRANSPORT",
                    description=f"Public transport option {number} ({minutes} min, {option.summary.transfers or 0} transfers)",
                    summary=option.summary,
                )
            )
    if walk_raw:
        walk = build_journey_result(walk_raw, include_context=False, include_polylines=False)
        if walk.route_found:
            minutes = round((walk.summary.total_time or 0) / 60)
            alternatives.append(JourneyAlternative(mode="WALK", description=f"Walking route ({minutes} min)", summary=walk.summary))

    return ComprehensiveJourney(
        success=True,
        journey=result,
        context=JourneyContext(
            from_location=origin,
            to_location=destination,
            time_context=time_of_day(clock().hour),
            weather_note=note,
            weather=conditions if preferences.weather_aware else None,
            weather_advisories=advisories if preferences.weather_aware else [],
            safety_alerts=safety_alerts,
        ),
        alternatives=alternatives,
        metadata=JourneyMetadata(
            request_time=request_time,
            processing_time_ms=int((time.monotonic() - started) * 1000),
            api_calls=api_calls,
            resolved_mode=resolved,
        ),
    )


def _outcome(future: Optional["Future[T]"], label: str) -> Optional[T]:
    if future is None:
        return None
    try:
        return future.result()
    except TransportError as e:
        logger.warning("Failed to get %s: %s", label, e)
        return None


def _failure(
    message: str,
    clock: Clock,
    started: float,
    request_time: datetime,
    api_calls: int,
    origin: Optional[Location] = None,
    destination: Optional[Location] = None,
) -> ComprehensiveJourney:
    unknown = Location(latitude=0.0, longitude=0.0, name="Unknown")
    return ComprehensiveJourney(
        success=False,
        journey=no_route_result(),
        context=JourneyContext(
            from_location=origin or unknown,
            to_location=destination or unknown,
            time_context=time_of_day(clock().hour),
            safety_alerts=[message],
        ),
        metadata=JourneyMetadata(
            request_time=request_time,
            processing_time_ms=int((time.monotonic() - started) * 1000),
            api_calls=api_calls,
        ),
    )


def rank_itineraries(raw: Dict[str, Any], preferences: JourneyPreferences) -> List[Dict[str, Any]]:
    """Single-itinerary copies of a transit response, best first.

    Sort order: least walking when accessibility is required, then fewest
    transfers, lowest fare, shortest duration (each only if asked for), with
    walking distance as the final tie-break. Missing values sort last.
    """
    itineraries = [it for it in transit_itineraries(raw) if isinstance(it, dict)]

    def key(itinerary: Dict[str, Any]) -> Tuple[float, ...]:
        walk = _metric(itinerary.get("walkDistance"))
        keys: List[float] = []
        if preferences.accessibility_required:
            keys.append(walk)
        if preferences.minimize_transfers:
            keys.append(_metric(itinerary.get("transfers")))
        if preferences.cheapest:
            fare = itinerary.get("fare")
            keys.append(math.inf if fare is None else parse_fare(fare))
        if preferences.fastest:
            keys.append(_metric(itinerary.get("duration")))
        keys.append(walk)
        return tuple(keys)

    return [dict(raw, plan=dict(raw["plan"], itineraries=[it])) for it in sorted(itineraries, key=key)]


def _metric(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return math.inf
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.inf


def _needs_geocoding(text: str) -> bool:
    text = (text or "").strip()
    return bool(text) and parse_coordinate_string(text) is None
