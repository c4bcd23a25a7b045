from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from ..core.errors import MalformedPolylineError
from ..core.schemas import ParsedInstruction, PolylineData, StepMarker, Visualization
from ..utils import polyline
from .classifier import ResponseKind, classify, primary_itinerary

logger = logging.getLogger(__name__)


def extract_polylines(raw: Optional[Dict[str, Any]], kind: Optional[ResponseKind] = None) -> List[PolylineData]:
    """Decode every route geometry in a routing response.

    Direct routing carries one ``route_geometry``; transit plans carry one
    ``legGeometry.points`` per leg. Geometries that fail to decode are skipped.
    """
    if kind is None:
        kind = classify(raw)

    encoded: List[str] = []
    if kind is ResponseKind.DIRECT:
        geometry = (raw or {}).get("route_geometry")
        if geometry:
            encoded.append(str(geometry))
    elif kind is ResponseKind.TRANSIT:
        for leg in primary_itinerary(raw or {}).get("legs") or []:
            if not isinstance(leg, dict):
                continue
            points = (leg.get("legGeometry") or {}).get("points")
            if points:
                encoded.append(str(points))

    out: List[PolylineData] = []
    for index, enc in enumerate(encoded):
        try:
            decoded = polyline.decode(enc)
        except MalformedPolylineError as e:
            logger.warning("Skipping route geometry %d: %s", index, e)
            continue
        out.append(
            PolylineData(
                encoded=enc,
                decoded=decoded,
                geojson=polyline.to_line_geometry(decoded.coordinates),
                coordinate_count=len(decoded.coordinates),
            )
        )
    return out


def step_markers(instructions: Sequence[ParsedInstruction]) -> List[StepMarker]:
    return [
        StepMarker(
            step=inst.step,
            coordinates=(inst.coordinates.lng, inst.coordinates.lat),
            instruction=inst.instruction,
        )
        for inst in instructions
        if inst.coordinates is not None
    ]


def build_visualization(polylines: Sequence[PolylineData], instructions: Sequence[ParsedInstruction]) -> Visualization:
    return Visualization(
        bounds=polylines[0].decoded.bounds if polylines else None,
        step_markers=step_markers(instructions),
        route_geometry=[p.geojson for p in polylines],
    )
