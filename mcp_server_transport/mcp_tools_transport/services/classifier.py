from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional


class ResponseKind(str, Enum):
    """Shape of a raw OneMap routing payload."""
    TRANSIT = "TRANSIT"
    DIRECT = "DIRECT"
    INVALID = "INVALID"

    @property
    def response_type(self) -> str:
        return _RESPONSE_TYPES[self]


_RESPONSE_TYPES = {
    ResponseKind.TRANSIT: "PUBLIC_TRANSPORT",
    ResponseKind.DIRECT: "DIRECT_ROUTING",
    ResponseKind.INVALID: "ERROR",
}


def classify(raw: Optional[Dict[str, Any]]) -> ResponseKind:
    """Tag a raw routing response before anything reads its fields.

    Transit itineraries win over instruction tuples if a payload carries both.
    """
    if not raw or not isinstance(raw, dict):
        return ResponseKind.INVALID
    if transit_itineraries(raw):
        return ResponseKind.TRANSIT
    if direct_instructions(raw):
        return ResponseKind.DIRECT
    return ResponseKind.INVALID


def transit_itineraries(raw: Dict[str, Any]) -> List[Dict[str, Any]]:
    plan = raw.get("plan")
    if not isinstance(plan, dict):
        return []
    itineraries = plan.get("itineraries")
    return itineraries if isinstance(itineraries, list) else []


def direct_instructions(raw: Dict[str, Any]) -> List[Any]:
    instructions = raw.get("route_instructions")
    return instructions if isinstance(instructions, list) else []


def primary_itinerary(raw: Dict[str, Any]) -> Dict[str, Any]:
    """First (best) itinerary of a transit response, or an empty dict."""
    itineraries = transit_itineraries(raw)
    first = itineraries[0] if itineraries else None
    return first if isinstance(first, dict) else {}
