"""Lookups around a point: bus stops, OneMap theme facilities."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Sequence

from ..core.errors import TransportError
from ..core.schemas import NearbyPlace
from .lta import LTAClient, nearby_bus_stops
from .onemap import OneMapClient

logger = logging.getLogger(__name__)

# Category -> OneMap theme query name
FACILITY_THEMES = {
    "hawker_centres": "hawkercentre",
    "libraries": "libraries",
    "museums": "museum",
    "parks": "nationalparks",
    "hospitals": "moh_hospitals",
    "community_clubs": "communityclubs",
}


def find_facilities(
    onemap: OneMapClient,
    lat: float,
    lng: float,
    radius_m: int = 1000,
    categories: Optional[Sequence[str]] = None,
    limit: int = 10,
) -> Dict[str, Any]:
    """Facilities per category within ``radius_m``; a failing theme is skipped, not raised."""
    wanted = list(categories or FACILITY_THEMES)
    unknown = [c for c in wanted if c not in FACILITY_THEMES]
    if unknown:
        raise ValueError(f"Unknown facility categories: {', '.join(unknown)}")

    with ThreadPoolExecutor(max_workers=len(wanted)) as pool:
        futures = {c: pool.submit(onemap.theme_features, FACILITY_THEMES[c], lat, lng, radius_m) for c in wanted}

    found: Dict[str, List[NearbyPlace]] = {}
    failed: List[str] = []
    for category, future in futures.items():
        try:
            found[category] = future.result()[:limit]
        except TransportError as e:
            logger.warning("Failed to get %s near %s,%s: %s", category, lat, lng, e)
            failed.append(category)

    return {
        "radius_m": radius_m,
        "total": sum(len(v) for v in found.values()),
        "categories": {c: [p.model_dump() for p in places] for c, places in found.items()},
        "unavailable": failed,
    }


def bus_stop_details(lta: LTAClient, code: str, include_arrivals: bool = True, nearby_radius_m: int = 300) -> Dict[str, Any]:
    """A bus stop with its live arrivals and the other stops around it."""
    stops = lta.bus_stops()
    stop = next((s for s in stops if s.code == code), None)
    if stop is None:
        raise ValueError(f"Bus stop {code} not found")

    arrivals = []
    if include_arrivals:
        try:
            arrivals = lta.bus_arrivals(code)
        except TransportError as e:
            logger.warning("Failed to get arrivals for bus stop %s: %s", code, e)

    nearby = [
        s
        for s in nearby_bus_stops(stops, stop.coordinates.lat, stop.coordinates.lng, nearby_radius_m, limit=11)
        if s.code != code
    ][:10]
    return {
        "stop": stop.model_dump(),
        "services": [a.model_dump(mode="json") for a in arrivals],
        "nearby_stops": [s.model_dump() for s in nearby],
    }
