from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from ..core.config import Clock, singapore_now
from ..core.schemas import JourneyResult, JourneySummary, Visualization
from .classifier import ResponseKind, classify
from .context import enrich_instructions
from .formatting import format_instructions
from .instructions import normalize_instructions
from .summary import build_summary
from .visualization import build_visualization, extract_polylines

logger = logging.getLogger(__name__)


def build_journey_result(
    raw: Optional[Dict[str, Any]],
    format_style: str = "detailed",
    include_context: bool = True,
    include_polylines: bool = True,
    clock: Clock = singapore_now,
) -> JourneyResult:
    """Run the full pipeline over one raw routing response.

    classify -> normalize -> (enrich) -> summarize -> format -> visualize.
    A ``None``/empty/unrecognized response, or one that yields no steps, comes
    back as ``route_found=False`` instead of raising.
    """
    kind = classify(raw)
    if kind is ResponseKind.INVALID:
        return no_route_result()

    instructions = normalize_instructions(raw, kind)
    if not instructions:
        logger.info("Routing response (%s) produced no instructions", kind.value)
        result = no_route_result()
        result.summary = build_summary(raw, instructions, 0, kind)
        return result

    polylines = extract_polylines(raw, kind) if include_polylines else []
    summary = build_summary(raw, instructions, len(polylines), kind)

    if include_context:
        instructions = enrich_instructions(instructions, clock)

    return JourneyResult(
        route_found=True,
        summary=summary,
        instructions=instructions,
        formatted_instructions=format_instructions(instructions, format_style),
        polylines=polylines,
        visualization=build_visualization(polylines, instructions),
    )


def no_route_result() -> JourneyResult:
    return JourneyResult(
        route_found=False,
        summary=JourneySummary(response_type="ERROR", instruction_count=0, polyline_count=0),
        visualization=Visualization(),
    )
