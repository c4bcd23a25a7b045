"""Instruction normalization.

Turns a classified OneMap routing payload into the canonical, ordered list of
:class:`ParsedInstruction` records. Two upstream shapes are handled:

- transit itineraries (``plan.itineraries[0].legs``), where each walk leg may
  expand into several turn-by-turn sub-steps and each ride leg becomes one step;
- direct routing (``route_instructions``), a flat list of 10-field tuples::

    [direction, street, distance, "lat,lng", seconds, "150m",
     from_bearing, to_bearing, "walking"|"driving", text]

Raw payloads never leave this module: everything downstream works on the
canonical model only. Missing numbers become ``0``, missing coordinates become
``None`` and missing text is synthesized, so a sparse payload never raises.
"""
from __future__ import annotations

import math
from typing import Any, Dict, List, Optional, Sequence

from ..core.schemas import Coordinates, ParsedInstruction, StopDescriptor, TravelMode
from .classifier import ResponseKind, classify, direct_instructions, primary_itinerary

# RAIL/SUBWAY/TRAM all mean MRT or LRT in OneMap transit plans.
TRANSIT_MODES: Dict[str, TravelMode] = {
    "WALK": "WALK",
    "BUS": "BUS",
    "RAIL": "SUBWAY",
    "SUBWAY": "SUBWAY",
    "TRAM": "SUBWAY",
}

DIRECT_MODES: Dict[str, TravelMode] = {
    "walking": "WALK",
    "driving": "TAXI",
}

# Positions inside a direct-routing instruction tuple
_DIRECTION, _STREET, _DISTANCE, _COORDS, _DURATION, _DISTANCE_TEXT, _MODE, _TEXT = 0, 1, 2, 3, 4, 5, 8, 9


def normalize_instructions(raw: Optional[Dict[str, Any]], kind: Optional[ResponseKind] = None) -> List[ParsedInstruction]:
    """Return the canonical instructions for ``raw`` (empty for invalid responses)."""
    if kind is None:
        kind = classify(raw)
    if kind is ResponseKind.DIRECT:
        return _direct_instructions(raw or {})
    if kind is ResponseKind.TRANSIT:
        return _transit_instructions(raw or {})
    return []


def map_direct_mode(api_mode: Any) -> TravelMode:
    return DIRECT_MODES.get(str(api_mode or "").strip().lower(), "WALK")


def map_transit_mode(api_mode: Any) -> TravelMode:
    return TRANSIT_MODES.get(str(api_mode or "").strip().upper(), "WALK")


def parse_coordinate_string(value: Any) -> Optional[Coordinates]:
    """Parse ``"lat,lng"``; ``None`` if absent or malformed."""
    if not isinstance(value, str) or "," not in value:
        return None
    parts = value.split(",")
    if len(parts) != 2:
        return None
    try:
        lat, lng = float(parts[0]), float(parts[1])
    except ValueError:
        return None
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return None
    return Coordinates(lat=lat, lng=lng)


def format_meters(distance: float) -> str:
    return f"{int(round(distance))}m"


# ---------------------------------------------------------------------------
# Direct routing
# ---------------------------------------------------------------------------


def _direct_instructions(raw: Dict[str, Any]) -> List[ParsedInstruction]:
    out: List[ParsedInstruction] = []
    for index, tup in enumerate(direct_instructions(raw)):
        if not isinstance(tup, (list, tuple)):
            tup = []
        direction = _text(_field(tup, _DIRECTION))
        street = _text(_field(tup, _STREET))
        distance = _number(_field(tup, _DISTANCE))

        out.append(
            ParsedInstruction(
                step=index + 1,
                type="direct",
                mode=map_direct_mode(_field(tup, _MODE)),
                direction=direction,
                street_name=street,
                distance=distance,
                duration=_number(_field(tup, _DURATION)),
                coordinates=parse_coordinate_string(_field(tup, _COORDS)),
                instruction=_text(_field(tup, _TEXT)) or _direct_fallback(
                    direction, street, _text(_field(tup, _DISTANCE_TEXT)), distance
                ),
            )
        )
    return out


def _direct_fallback(direction: Optional[str], street: Optional[str], distance_text: Optional[str], distance: float) -> str:
    direction = direction or "Continue"
    dist = distance_text or format_meters(distance)
    if street:
        return f"{direction} on {street} for {dist}"
    return f"{direction} for {dist}"


# ---------------------------------------------------------------------------
# Public transport
# ---------------------------------------------------------------------------


def _transit_instructions(raw: Dict[str, Any]) -> List[ParsedInstruction]:
    legs = primary_itinerary(raw).get("legs") or []
    out: List[ParsedInstruction] = []

    for leg in legs:
        if not isinstance(leg, dict):
            continue
        if str(leg.get("mode") or "").upper() == "WALK":
            steps = [s for s in (leg.get("steps") or []) if isinstance(s, dict)]
            if steps:
                for sub in steps:
                    out.append(_walk_step(len(out) + 1, sub))
            else:
                out.append(_walk_leg(len(out) + 1, leg))
        else:
            out.append(_ride_leg(len(out) + 1, leg))

    return out


def _walk_step(step: int, sub: Dict[str, Any]) -> ParsedInstruction:
    direction = _text(sub.get("relativeDirection"))
    street = _text(sub.get("streetName"))
    distance = _number(sub.get("distance"))
    if street:
        text = f"{direction or 'Continue'} on {street} for {format_meters(distance)}"
    else:
        text = f"{direction or 'Continue'} for {format_meters(distance)}"

    return ParsedInstruction(
        step=step,
        type="transit_walk",
        mode="WALK",
        direction=direction,
        street_name=street,
        distance=distance,
        duration=_number(sub.get("duration")),
        coordinates=_point(sub),
        instruction=text,
    )


def _walk_leg(step: int, leg: Dict[str, Any]) -> ParsedInstruction:
    distance = _number(leg.get("distance"))
    to_name = _stop_name(leg.get("to")) or "destination"
    return ParsedInstruction(
        step=step,
        type="transit_walk",
        mode="WALK",
        distance=distance,
        duration=_number(leg.get("duration")),
        coordinates=_point(leg.get("from")),
        instruction=f"Walk {format_meters(distance)} to {to_name}",
    )


def _ride_leg(step: int, leg: Dict[str, Any]) -> ParsedInstruction:
    mode = map_transit_mode(leg.get("mode"))
    service = _text(leg.get("routeShortName")) or _text(leg.get("route"))
    from_stop = _stop(leg.get("from"))
    to_stop = _stop(leg.get("to"))

    text = f"Take {service or mode.title()}"
    if from_stop is not None:
        text += f" from {from_stop.name}"
    if to_stop is not None:
        text += f" to {to_stop.name}"

    intermediate: Optional[List[StopDescriptor]] = None
    if "intermediateStops" in leg:
        intermediate = [s for s in (_stop(x) for x in (leg.get("intermediateStops") or [])) if s is not None]

    return ParsedInstruction(
        step=step,
        type="transit",
        mode=mode,
        distance=_number(leg.get("distance")),
        duration=_number(leg.get("duration")),
        coordinates=from_stop.coordinates if from_stop else None,
        instruction=text,
        service=service,
        operator=_text(leg.get("agencyName")),
        from_stop=from_stop,
        to_stop=to_stop,
        intermediate_stops=intermediate,
    )


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def _field(tup: Sequence[Any], index: int) -> Any:
    return tup[index] if index < len(tup) else None


def _number(value: Any) -> float:
    """Non-negative float; anything missing or unparseable counts as 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _point(obj: Any) -> Optional[Coordinates]:
    if not isinstance(obj, dict):
        return None
    lat = obj.get("lat")
    lng = obj.get("lon", obj.get("lng"))
    try:
        lat_f, lng_f = float(lat), float(lng)
    except (TypeError, ValueError):
        return None
    if not (math.isfinite(lat_f) and math.isfinite(lng_f)):
        return None
    return Coordinates(lat=lat_f, lng=lng_f)


def _stop_name(obj: Any) -> Optional[str]:
    return _text(obj.get("name")) if isinstance(obj, dict) else None


def _stop(obj: Any) -> Optional[StopDescriptor]:
    if not isinstance(obj, dict):
        return None
    return StopDescriptor(
        name=_stop_name(obj) or "Unnamed stop",
        stop_code=_text(obj.get("stopCode")),
        coordinates=_point(obj),
    )
