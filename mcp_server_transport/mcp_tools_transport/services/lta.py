"""LTA DataMall client (bus arrivals, train alerts, taxis, traffic incidents)."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests

from ..core.cache import FileCache
from ..core.config import Clock, singapore_now
from ..core.errors import APIError, ConfigurationError, RateLimitError
from ..core.schemas import BusArrival, BusService, BusStop, Coordinates, TrafficIncident, TrainServiceAlert
from ..utils.geo import haversine_m

logger = logging.getLogger(__name__)

BASE_URL = "https://datamall2.mytransport.sg/ltaodataservice"

BUS_ARRIVAL_TTL_S = 30
TRAIN_ALERTS_TTL_S = 60
TAXI_TTL_S = 30
TRAFFIC_TTL_S = 120
BUS_STOPS_TTL_S = 3600

PAGE_SIZE = 500
MAX_PAGES = 20

OPERATORS = {
    "SBST": "SBS Transit",
    "SMRT": "SMRT Buses",
    "TTS": "Tower Transit Singapore",
    "GAS": "Go-Ahead Singapore",
}

LINES = {
    "EWL": "East West Line",
    "NSL": "North South Line",
    "CCL": "Circle Line",
    "DTL": "Downtown Line",
    "NEL": "North East Line",
    "TEL": "Thomson-East Coast Line",
    "BPL": "Bukit Panjang LRT",
    "SLRT": "Sengkang LRT",
    "PLRT": "Punggol LRT",
}

LOADS = {"SEA": "Seats Available", "SDA": "Standing Available", "LSD": "Limited Standing"}
BUS_TYPES = {"SD": "Single Deck", "DD": "Double Deck", "BD": "Bendy Bus"}


class LTAClient:
    def __init__(
        self,
        account_key: Optional[str],
        cache: Optional[FileCache] = None,
        timeout_s: int = 30,
        clock: Clock = singapore_now,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.account_key = account_key
        self.cache = cache
        self.timeout_s = timeout_s
        self.clock = clock
        self.session = session or requests.Session()

    # ------------------------------------------------------------------
    # Buses
    # ------------------------------------------------------------------

    def bus_arrivals(self, bus_stop_code: str, service_no: Optional[str] = None) -> List[BusService]:
        params = {"BusStopCode": bus_stop_code}
        if service_no:
            params["ServiceNo"] = service_no
        data = self._cached(
            f"lta:bus_arrival:{bus_stop_code}:{service_no or 'all'}",
            lambda: self._get("/v3/BusArrival", params),
            BUS_ARRIVAL_TTL_S,
        )
        return self._bus_services(data)

    def bus_stops(self) -> List[BusStop]:
        """Every bus stop in Singapore (~5000, paged)."""
        rows = self._cached("lta:bus_stops", lambda: self._get_all("/BusStops"), BUS_STOPS_TTL_S)
        stops: List[BusStop] = []
        for row in rows or []:
            point = _coords(row.get("Latitude"), row.get("Longitude"))
            if point is None or not row.get("BusStopCode"):
                continue
            stops.append(
                BusStop(
                    code=str(row["BusStopCode"]),
                    road_name=str(row.get("RoadName") or ""),
                    description=str(row.get("Description") or ""),
                    coordinates=point,
                )
            )
        return stops

    def _bus_services(self, data: Dict[str, Any]) -> List[BusService]:
        now = self.clock()
        services: List[BusService] = []
        for svc in data.get("Services") or []:
            arrivals = [
                a for a in (self._bus_arrival(svc.get(k), now) for k in ("NextBus", "NextBus2", "NextBus3")) if a is not None
            ]
            if not arrivals:
                continue
            operator = svc.get("Operator") or ""
            services.append(
                BusService(
                    service_no=str(svc.get("ServiceNo") or ""),
                    operator=OPERATORS.get(operator, operator),
                    next_buses=arrivals,
                )
            )
        return services

    @staticmethod
    def _bus_arrival(bus: Optional[Dict[str, Any]], now: datetime) -> Optional[BusArrival]:
        if not bus or not bus.get("EstimatedArrival"):
            return None
        try:
            eta = datetime.fromisoformat(bus["EstimatedArrival"])
        except ValueError:
            logger.warning("Unparseable bus arrival time: %r", bus["EstimatedArrival"])
            return None
        if eta.tzinfo is None:
            eta = eta.replace(tzinfo=now.tzinfo)

        load = bus.get("Load") or None
        bus_type = bus.get("Type") or None
        return BusArrival(
            estimated_arrival=eta,
            minutes_away=max(0, int((eta - now).total_seconds() // 60)),
            load_status=load,
            load_description=LOADS.get(load or "", load or "Unknown"),
            wheelchair_accessible=bus.get("Feature") == "WAB",
            bus_type=bus_type,
            bus_type_description=BUS_TYPES.get(bus_type or "", bus_type or "Unknown"),
            coordinates=_coords(bus.get("Latitude"), bus.get("Longitude")),
        )

    # ------------------------------------------------------------------
    # Trains
    # ------------------------------------------------------------------

    def train_service_alerts(self) -> List[TrainServiceAlert]:
        data = self._cached("lta:train_alerts", lambda: self._get("/TrainServiceAlerts", {}), TRAIN_ALERTS_TTL_S)
        body = data.get("value", data)
        if not isinstance(body, dict) or body.get("Status") == 1:
            return []

        messages = [m.get("Content") for m in (body.get("Message") or []) if isinstance(m, dict) and m.get("Content")]
        alerts: List[TrainServiceAlert] = []
        for seg in body.get("AffectedSegments") or []:
            line = seg.get("Line") or ""
            alerts.append(
                TrainServiceAlert(
                    line=line,
                    line_name=LINES.get(line, line),
                    status="Disrupted",
                    direction=seg.get("Direction"),
                    affected_stations=[s.strip() for s in (seg.get("Stations") or "").split(",") if s.strip()],
                    free_public_bus=bool(seg.get("FreePublicBus")) and seg.get("FreePublicBus") != "N",
                    free_mrt_shuttle=bool(seg.get("FreeMRTShuttle")) and seg.get("FreeMRTShuttle") != "N",
                    message=messages[0] if messages else None,
                )
            )
        return alerts

    # ------------------------------------------------------------------
    # Taxis / traffic
    # ------------------------------------------------------------------

    def taxi_availability(self) -> List[Coordinates]:
        rows = self._cached("lta:taxi_availability", lambda: self._get_all("/Taxi-Availability"), TAXI_TTL_S)
        points = (_coords(row.get("Latitude"), row.get("Longitude")) for row in rows or [])
        return [p for p in points if p is not None]

    def traffic_incidents(self) -> List[TrafficIncident]:
        rows = self._cached("lta:traffic_incidents", lambda: self._get_all("/TrafficIncidents"), TRAFFIC_TTL_S)
        return [
            TrafficIncident(
                type=str(row.get("Type") or "Unknown"),
                message=str(row.get("Message") or ""),
                coordinates=_coords(row.get("Latitude"), row.get("Longitude")),
            )
            for row in rows or []
        ]

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    def _cached(self, key: str, fetch, ttl_seconds: int):
        if self.cache:
            return self.cache.get_or_set(key, fetch, ttl_seconds=ttl_seconds)
        return fetch()

    def _get_all(self, path: str) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        for page in range(MAX_PAGES):
            batch = self._get(path, {"$skip": page * PAGE_SIZE}).get("value") or []
            rows.extend(batch)
            if len(batch) < PAGE_SIZE:
                break
        return rows

    def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if not self.account_key:
            raise ConfigurationError("LTA_ACCOUNT_KEY is not configured")

        url = f"{BASE_URL}{path}"
        logger.debug("LTA request: GET %s %s", url, params)
        try:
            r = self.session.get(
                url,
                params=params,
                headers={"AccountKey": self.account_key, "Accept": "application/json"},
                timeout=self.timeout_s,
            )
        except requests.RequestException as e:
            raise APIError(f"LTA request failed: {e}", code="LTA_API_ERROR") from e

        if r.status_code == 429:
            raise RateLimitError("LTA API rate limit exceeded")
        if r.status_code == 401:
            raise APIError("Invalid LTA API key", code="LTA_AUTH_ERROR", status_code=401)
        if r.status_code >= 500:
            raise APIError(f"LTA API server error ({r.status_code})", code="LTA_SERVER_ERROR", status_code=r.status_code)
        if r.status_code >= 400:
            raise APIError(f"LTA API error ({r.status_code})", code="LTA_API_ERROR", status_code=r.status_code)

        try:
            data = r.json()
        except ValueError as e:
            raise APIError(f"LTA returned invalid JSON: {e}", code="LTA_API_ERROR") from e
        return data if isinstance(data, dict) else {}


def _coords(lat: Any, lng: Any) -> Optional[Coordinates]:
    """DataMall reports unknown positions as empty strings or zeros."""
    try:
        lat_f, lng_f = float(lat), float(lng)
    except (TypeError, ValueError):
        return None
    if not lat_f or not lng_f:
        return None
    return Coordinates(lat=lat_f, lng=lng_f)


def nearby_taxis(taxis: List[Coordinates], lat: float, lng: float, radius_m: float, limit: int = 10) -> List[Dict[str, Any]]:
    """Available taxis within ``radius_m`` of (lat, lng), nearest first."""
    hits = []
    for taxi in taxis:
        d = haversine_m(lat, lng, taxi.lat, taxi.lng)
        if d <= radius_m:
            hits.append({"coordinates": taxi.model_dump(), "distance_m": round(d)})
    hits.sort(key=lambda h: h["distance_m"])
    return hits[:limit]


def nearby_bus_stops(stops: List[BusStop], lat: float, lng: float, radius_m: float, limit: int = 10) -> List[BusStop]:
    """Bus stops within ``radius_m`` of (lat, lng), nearest first, with ``distance_m`` set."""
    hits = []
    for stop in stops:
        d = round(haversine_m(lat, lng, stop.coordinates.lat, stop.coordinates.lng))
        if d <= radius_m:
            hits.append(stop.model_copy(update={"distance_m": d}))
    hits.sort(key=lambda s: s.distance_m)
    return hits[:limit]
