from __future__ import annotations

import re
from typing import Any, Dict, Optional, Sequence

from ..core.schemas import JourneySummary, ParsedInstruction
from .classifier import ResponseKind, classify, primary_itinerary

_LEADING_NUMBER = re.compile(r"^\s*[-+]?(\d+(\.\d*)?|\.\d+)")


def parse_fare(fare: Any) -> float:
    """Numeric cost of a fare string; ``0`` for anything that isn't a number."""
    if fare is None or isinstance(fare, bool):
        return 0.0
    if isinstance(fare, (int, float)):
        return float(fare)
    m = _LEADING_NUMBER.match(str(fare))
    return float(m.group(0)) if m else 0.0


def build_summary(
    raw: Optional[Dict[str, Any]],
    instructions: Sequence[ParsedInstruction],
    polyline_count: int,
    kind: Optional[ResponseKind] = None,
) -> JourneySummary:
    if kind is None:
        kind = classify(raw)

    summary = JourneySummary(
        response_type=kind.response_type,
        instruction_count=len(instructions),
        polyline_count=polyline_count,
    )

    if kind is ResponseKind.TRANSIT:
        itinerary = primary_itinerary(raw or {})
        fare = itinerary.get("fare")
        summary.total_time = _optional_float(itinerary.get("duration"))
        summary.walk_distance = _optional_float(itinerary.get("walkDistance"))
        summary.transfers = _optional_int(itinerary.get("transfers"))
        summary.fare = None if fare is None else str(fare)
        summary.total_cost = parse_fare(fare)
        legs = [leg for leg in (itinerary.get("legs") or []) if isinstance(leg, dict)]
        if legs:
            summary.total_distance = sum(_optional_float(leg.get("distance")) or 0.0 for leg in legs)

    elif kind is ResponseKind.DIRECT:
        route_summary = (raw or {}).get("route_summary") or {}
        summary.total_time = _optional_float(route_summary.get("total_time"))
        summary.total_distance = _optional_float(route_summary.get("total_distance"))
        summary.total_cost = 0.0

    return summary


def _optional_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _optional_int(value: Any) -> Optional[int]:
    number = _optional_float(value)
    return None if number is None else int(number)
