from __future__ import annotations

"""Weather service (data.gov.sg real-time readings, token-free).

NEA publishes one reading set per metric, each from its own station network:
rain gauges are dense, thermometers and anemometers sparse. For a location we
therefore pick the nearest station *per metric* and read its latest value.

Each metric is fetched independently (in parallel); a failed metric falls
back to a typical Singapore value instead of failing the whole lookup, and
the returned ``stations`` map tells which values are real.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Tuple

import requests

from ..core.cache import FileCache
from ..core.config import Clock, singapore_now
from ..core.errors import APIError
from ..core.schemas import Coordinates, WeatherAdvisory, WeatherConditions
from ..utils.geo import haversine_m

logger = logging.getLogger(__name__)

BASE_URL = "https://api-open.data.gov.sg/v2/real-time/api"
READINGS_TTL_S = 300
KNOTS_TO_KMH = 1.852

# metric -> (endpoint, typical value used when no reading is available)
METRICS: Dict[str, Tuple[str, float]] = {
    "rainfall": ("rainfall", 0.0),
    "temperature": ("air-temperature", 30.0),
    "humidity": ("relative-humidity", 70.0),
    "wind_speed": ("wind-speed", 5.0),
    "wind_direction": ("wind-direction", 0.0),
}


class WeatherClient:
    def __init__(
        self,
        cache: Optional[FileCache] = None,
        timeout_s: int = 10,
        clock: Clock = singapore_now,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.cache = cache
        self.timeout_s = timeout_s
        self.clock = clock
        self.session = session or requests.Session()

    def readings(self, metric: str) -> Dict[str, Any]:
        """Raw ``data`` block (stations, readings, readingUnit) for one metric."""
        endpoint, _ = METRICS[metric]
        key = f"weather:{endpoint}:latest"
        if self.cache:
            return self.cache.get_or_set(key, lambda: self._fetch(endpoint), ttl_seconds=READINGS_TTL_S)
        return self._fetch(endpoint)

    def conditions_for(self, lat: float, lng: float) -> WeatherConditions:
        with ThreadPoolExecutor(max_workers=len(METRICS)) as pool:
            futures = {metric: pool.submit(self.readings, metric) for metric in METRICS}

        values: Dict[str, float] = {}
        stations: Dict[str, str] = {}
        for metric, future in futures.items():
            default = METRICS[metric][1]
            try:
                data = future.result()
            except APIError as e:
                logger.warning("Weather metric %s unavailable: %s", metric, e)
                values[metric] = default
                continue

            reading = nearest_reading(data, lat, lng)
            if reading is None:
                values[metric] = default
                continue
            value, station_name = reading
            if metric == "wind_speed" and "knot" in str(data.get("readingUnit", "")).lower():
                value = round(value * KNOTS_TO_KMH, 1)
            values[metric] = value
            stations[metric] = station_name

        return WeatherConditions(
            temperature_c=values["temperature"],
            rainfall_mm=values["rainfall"],
            humidity_pct=values["humidity"],
            wind_speed_kmh=values["wind_speed"],
            wind_direction_deg=values["wind_direction"],
            location=Coordinates(lat=lat, lng=lng),
            timestamp=self.clock(),
            stations=stations,
        )

    def _fetch(self, endpoint: str) -> Dict[str, Any]:
        url = f"{BASE_URL}/{endpoint}"
        logger.debug("Weather request: GET %s", url)
        try:
            r = self.session.get(url, headers={"Accept": "application/json"}, timeout=self.timeout_s)
        except requests.RequestException as e:
            raise APIError(f"Weather request failed: {e}", code="WEATHER_API_ERROR") from e

        if r.status_code >= 400:
            # Try to surface the API's own error message
            try:
                err = r.json()
                reason = err.get("errorMsg") if isinstance(err, dict) else None
            except ValueError:
                reason = None
            extra = f" Reason: {reason}" if reason else ""
            raise APIError(f"Weather API error ({r.status_code}).{extra}", code="WEATHER_API_ERROR", status_code=r.status_code)

        try:
            payload = r.json()
        except ValueError as e:
            raise APIError(f"Weather API returned invalid JSON: {e}", code="WEATHER_API_ERROR") from e
        data = payload.get("data") if isinstance(payload, dict) else None
        return data if isinstance(data, dict) else {}


def nearest_reading(data: Dict[str, Any], lat: float, lng: float) -> Optional[Tuple[float, str]]:
    """Latest value from the station closest to (lat, lng) that reported one."""
    readings = data.get("readings") or []
    if not readings:
        return None
    latest = readings[-1].get("data") or []
    values = {d.get("stationId"): d.get("value") for d in latest if d.get("value") is not None}

    best: Optional[Tuple[float, float, str]] = None
    for station in data.get("stations") or []:
        sid = station.get("id")
        if sid not in values:
            continue
        loc = station.get("location") or station.get("labelLocation") or {}
        try:
            d = haversine_m(lat, lng, float(loc["latitude"]), float(loc["longitude"]))
            value = float(values[sid])
        except (KeyError, TypeError, ValueError):
            continue
        if best is None or d < best[0]:
            best = (d, value, str(station.get("name") or sid))

    if best is None:
        return None
    return best[1], best[2]


def weather_advisories(conditions: WeatherConditions) -> List[WeatherAdvisory]:
    advisories: List[WeatherAdvisory] = []

    rain = conditions.rainfall_mm
    if rain > 10:
        advisories.append(
            WeatherAdvisory(
                severity="high",
                type="rain",
                message=f"Heavy rain detected ({rain}mm). Allow extra time for walking and prefer covered routes.",
                walking_time_multiplier=1.5,
                preferred_modes=["MRT", "Covered Bus Stops"],
                avoided_areas=["Open walkways", "Uncovered bus stops"],
            )
        )
    elif rain > 2.5:
        advisories.append(
            WeatherAdvisory(
                severity="medium",
                type="rain",
                message=f"Light to moderate rain ({rain}mm). Consider covered walkways.",
                walking_time_multiplier=1.2,
                preferred_modes=["MRT"],
            )
        )

    temp = conditions.temperature_c
    if temp > 32:
        advisories.append(
            WeatherAdvisory(
                severity="high",
                type="heat",
                message=f"Very hot weather ({temp}°C). Minimize walking time and stay hydrated.",
                walking_time_multiplier=1.3,
                preferred_modes=["Air-conditioned transport"],
                avoided_areas=["Long outdoor walks"],
            )
        )
    elif temp > 30:
        advisories.append(
            WeatherAdvisory(
                severity="medium",
                type="heat",
                message=f"Hot weather ({temp}°C). Consider air-conditioned transport.",
                walking_time_multiplier=1.1,
                preferred_modes=["MRT", "Air-conditioned buses"],
            )
        )

    if conditions.humidity_pct > 85:
        advisories.append(
            WeatherAdvisory(
                severity="medium",
                type="humidity",
                message=f"Very humid conditions ({conditions.humidity_pct}%). Consider shorter walking segments.",
                walking_time_multiplier=1.1,
                preferred_modes=["Air-conditioned transport"],
            )
        )

    if conditions.wind_speed_kmh > 20:
        advisories.append(
            WeatherAdvisory(
                severity="medium",
                type="wind",
                message=f"Strong winds ({conditions.wind_speed_kmh} km/h). Be cautious near tall buildings.",
                walking_time_multiplier=1.1,
                preferred_modes=["Underground passages"],
                avoided_areas=["Open areas", "High-rise corridors"],
            )
        )

    return advisories


def weather_note(advisories: List[WeatherAdvisory]) -> str:
    if not advisories:
        return "No weather advisories for outdoor segments"
    return "; ".join(a.message for a in advisories)
