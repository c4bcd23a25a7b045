"""mcp_tools_transport package

Purpose:
- Turn raw OneMap routing responses into a provider-agnostic journey: typed
  instructions, advisory context, summary, formatted text and map geometry.
- Wrap that pipeline with live Singapore data (LTA DataMall, NEA weather) and
  expose it via an MCP server (official python-sdk / FastMCP), so an LLM can call tools.

Structure:
- core/: schemas, config, errors + caching
- services/: journey pipeline, upstream clients, planner, traffic assessment
- utils/: pure helpers (geo math, polyline codec)
- mcp/: FastMCP server + tool wiring
"""

from .core.schemas import (  # noqa: F401
    ComprehensiveJourney,
    Coordinates,
    JourneyResult,
    JourneySummary,
    Location,
    ParsedInstruction,
)
from .services.journey import build_journey_result  # noqa: F401
