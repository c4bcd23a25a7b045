from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from ..core.config import Clock, singapore_now
from ..core.schemas import Coordinates, EstimatedContext, ParsedInstruction

WEATHER_NOTE = "Check weather conditions for outdoor segments"
ACCESSIBILITY_NOTE = "Check for wheelchair accessibility at transit stops"
NIGHT_SAFETY_NOTE = "Well-lit area recommended for night travel"
DAY_SAFETY_NOTE = "Safe area for travel"

DEFAULT_AREA = "Singapore"
UNKNOWN_AREA = "Unknown"


@dataclass(frozen=True)
class AreaBox:
    name: str
    lat_min: float
    lat_max: float
    lng_min: float
    lng_max: float

    def contains(self, point: Coordinates) -> bool:
        return self.lat_min <= point.lat <= self.lat_max and self.lng_min <= point.lng <= self.lng_max


# Coarse rectangles, first match wins.
AREAS: List[AreaBox] = [
    AreaBox("Punggol/Sengkang", 1.38, 1.45, 103.89, 103.95),
    AreaBox("Novena/Toa Payoh", 1.31, 1.33, 103.84, 103.86),
    AreaBox("Chinatown/CBD", 1.27, 1.29, 103.84, 103.86),
    AreaBox("Jurong", 1.29, 1.31, 103.77, 103.79),
    AreaBox("Orchard/Somerset", 1.30, 1.32, 103.81, 103.83),
]

LANDMARKS: Dict[str, str] = {
    "Punggol/Sengkang": "Near Punggol Waterway",
    "Novena/Toa Payoh": "Near Novena Medical Hub",
    "Chinatown/CBD": "Near Marina Bay",
    "Jurong": "Near Jurong Lake District",
    "Orchard/Somerset": "Near Orchard Road Shopping",
}


def area_for(point: Coordinates) -> str:
    """Approximate area name for a coordinate.

    Stand-in for a reverse-geocoding lookup; keep callers going through this function.
    """
    for box in AREAS:
        if box.contains(point):
            return box.name
    return DEFAULT_AREA


def landmark_for(area: str) -> str:
    return LANDMARKS.get(area, "")


def time_of_day(hour: int) -> str:
    if 7 <= hour <= 9:
        return "Morning Peak"
    if 17 <= hour <= 19:
        return "Evening Peak"
    if hour >= 23 or hour <= 5:
        return "Late Night"
    return "Off Peak"


def safety_note(hour: int) -> str:
    if hour >= 22 or hour <= 6:
        return NIGHT_SAFETY_NOTE
    return DAY_SAFETY_NOTE


def context_for(coordinates: Optional[Coordinates], now: datetime) -> EstimatedContext:
    hour = now.hour
    if coordinates is None:
        return EstimatedContext(area=UNKNOWN_AREA, time_of_day=time_of_day(hour), weather_note=WEATHER_NOTE)

    area = area_for(coordinates)
    return EstimatedContext(
        area=area,
        time_of_day=time_of_day(hour),
        weather_note=WEATHER_NOTE,
        landmark=landmark_for(area),
        safety_note=safety_note(hour),
        accessibility_info=ACCESSIBILITY_NOTE,
    )


def enrich_instructions(instructions: Sequence[ParsedInstruction], clock: Clock = singapore_now) -> List[ParsedInstruction]:
    """Return copies of ``instructions`` with advisory context attached.

    The clock is read once so every step of a journey shares one time bucket.
    """
    now = clock()
    return [
        inst.model_copy(update={"estimated_context": context_for(inst.coordinates, now)})
        for inst in instructions
    ]
