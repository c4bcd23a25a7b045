from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from ..core.config import Clock, singapore_now
from ..core.schemas import TrafficIncident

EXPRESSWAYS = ["PIE", "ECP", "CTE", "AYE", "BKE", "KPE", "SLE", "TPE"]

_ALTERNATIVES = {
    "pie": "Consider ECP or CTE as alternatives",
    "ecp": "Consider PIE or Marine Parade Road",
    "cte": "Consider PIE or Thomson Road",
    "aye": "Consider West Coast Highway or Clementi Road",
}

_SUMMARIES = {
    "smooth": "Traffic is flowing smoothly",
    "light": "Light traffic conditions",
    "moderate": "Moderate traffic with some congestion",
    "heavy": "Heavy traffic with significant delays",
}


def overall_condition(incident_count: int) -> str:
    if incident_count == 0:
        return "smooth"
    if incident_count <= 2:
        return "light"
    if incident_count <= 5:
        return "moderate"
    return "heavy"


def is_major(incident: TrafficIncident) -> bool:
    msg = incident.message.lower()
    return any(word in msg for word in ("accident", "breakdown", "road closure", "flood"))


def severity(incident: TrafficIncident) -> str:
    msg = incident.message.lower()
    if "road closure" in msg or "flood" in msg:
        return "severe"
    if "accident" in msg or "breakdown" in msg:
        return "moderate"
    return "minor"


def estimated_delay(incident: TrafficIncident) -> str:
    level = severity(incident)
    if level == "severe":
        return "30+ minutes"
    if level == "moderate":
        msg = incident.message.lower()
        if "lane" in msg and "blocked" in msg:
            return "15-30 minutes"
        return "10-20 minutes"
    return "5-10 minutes"


def alternative_routes(incident: TrafficIncident) -> List[str]:
    msg = incident.message.lower()
    for road, hint in _ALTERNATIVES.items():
        if road in msg:
            return [hint]
    return ["Use alternative roads and local routes"]


def assess_traffic(
    incidents: Sequence[TrafficIncident],
    area: Optional[str] = None,
    road: Optional[str] = None,
    clock: Clock = singapore_now,
) -> Dict[str, Any]:
    """Summarize DataMall traffic incidents, optionally filtered by area/road text."""
    filtered = [
        i
        for i in incidents
        if (not area or area.lower() in i.message.lower()) and (not road or road.lower() in i.message.lower())
    ]
    condition = overall_condition(len(filtered))
    major = [i for i in filtered if is_major(i)]

    return {
        "overall_condition": condition,
        "area": area or "Island-wide",
        "road": road or "All roads",
        "summary": _summary(condition, len(filtered)),
        "major_incidents": [
            {
                "type": i.type,
                "message": i.message,
                "coordinates": i.coordinates.model_dump() if i.coordinates else None,
                "severity": severity(i),
                "estimated_delay": estimated_delay(i),
                "alternative_routes": alternative_routes(i),
            }
            for i in major
        ],
        "all_incidents": [i.model_dump() for i in filtered],
        "recommendations": _recommendations(condition, len(major), clock().hour),
        "expressway_summary": _expressway_summary(filtered),
        "timestamp": clock().isoformat(),
    }


def _summary(condition: str, count: int) -> str:
    base = _SUMMARIES.get(condition, "Traffic conditions unknown")
    if count == 0:
        return f"{base} - no incidents reported"
    if count == 1:
        return f"{base} - 1 incident reported"
    return f"{base} - {count} incidents reported"


def _recommendations(condition: str, major_count: int, hour: int) -> List[str]:
    recs: List[str] = []
    if condition == "smooth":
        recs.append("Traffic is flowing smoothly across the network")
    elif condition == "light":
        recs.append("Light traffic conditions - good time to travel")
    elif condition == "moderate":
        recs.append("Moderate traffic with some congestion - allow extra time for your journey")
        recs.append("Consider using public transport for city center destinations")
    else:
        recs.append("Heavy traffic conditions - significant delays expected")
        recs.append("Strongly consider public transport or delay non-essential trips")

    if major_count:
        recs.append(f"{major_count} major incident{'s' if major_count > 1 else ''} affecting traffic")
        recs.append("Check alternative routes before departing")

    if 7 <= hour <= 9 or 17 <= hour <= 20:
        recs.append("Peak hour traffic - expect longer journey times")
    elif hour >= 22 or hour <= 6:
        recs.append("Off-peak hours - generally lighter traffic")
    return recs


def _expressway_summary(incidents: Sequence[TrafficIncident]) -> Dict[str, Dict[str, Any]]:
    status: Dict[str, Dict[str, Any]] = {}
    for xway in EXPRESSWAYS:
        hits = [i for i in incidents if xway.lower() in i.message.lower()]
        status[xway] = {
            "condition": "clear" if not hits else ("light" if len(hits) == 1 else "congested"),
            "incidents": len(hits),
            "major_issues": sum(1 for i in hits if is_major(i)),
        }
    return status
