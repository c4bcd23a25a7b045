"""OneMap client (Singapore Land Authority).

Geocoding/search is public; routing needs an access token, either a static
``ONEMAP_TOKEN`` or one obtained with ``ONEMAP_EMAIL``/``ONEMAP_PASSWORD`` and
kept until its expiry timestamp.
"""
from __future__ import annotations

import logging
import re
import time
from typing import Any, Dict, List, Optional

import requests

from ..core.cache import FileCache
from ..core.config import SINGAPORE_TZ, Clock, singapore_now
from ..core.errors import APIError, ConfigurationError, RateLimitError, TransportError
from ..core.schemas import Coordinates, Location, NearbyPlace, RouteOptions
from ..utils.geo import haversine_m

logger = logging.getLogger(__name__)

BASE_URL = "https://www.onemap.gov.sg/api"
SEARCH_URL = f"{BASE_URL}/common/elastic/search"
ROUTE_URL = f"{BASE_URL}/public/routingsvc/route"
TOKEN_URL = f"{BASE_URL}/auth/post/getToken"
REVGEOCODE_URL = f"{BASE_URL}/public/revgeocode"
THEME_URL = f"{BASE_URL}/public/themesvc/retrieveTheme"

GEOCODE_TTL_S = 3600
ROUTE_TTL_S = 300
THEME_TTL_S = 3600

ROUTE_TYPES = {"PUBLIC_TRANSPORT": "pt", "WALK": "walk", "DRIVE": "drive"}

_POSTAL_CODE = re.compile(r"^\d{6}$")
_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")


def is_postal_code(text: str) -> bool:
    return bool(_POSTAL_CODE.match(text.strip()))


class OneMapClient:
    def __init__(
        self,
        token: Optional[str] = None,
        email: Optional[str] = None,
        password: Optional[str] = None,
        cache: Optional[FileCache] = None,
        timeout_s: int = 30,
        clock: Clock = singapore_now,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.static_token = token
        self.email = email
        self.password = password
        self.cache = cache
        self.timeout_s = timeout_s
        self.clock = clock
        self.session = session or requests.Session()
        self._token: Optional[str] = None
        self._token_expiry: float = 0.0

    # ------------------------------------------------------------------
    # Search / geocoding
    # ------------------------------------------------------------------

    def search(self, query: str, limit: int = 5) -> List[Location]:
        """Search addresses, buildings and postal codes."""
        query = query.strip()
        if not query:
            return []

        key = f"onemap:search:{query.lower()}"
        if self.cache:
            results = self.cache.get_or_set(key, lambda: self._search_raw(query), ttl_seconds=GEOCODE_TTL_S)
        else:
            results = self._search_raw(query)

        return [loc for loc in (_location_from_result(r) for r in results or []) if loc is not None][:limit]

    def geocode(self, query: str) -> Optional[Location]:
        """Best match for ``query`` or ``None``. Lookup failures are logged, not raised."""
        try:
            results = self.search(query, limit=1)
        except TransportError as e:
            logger.warning("Geocoding failed for %r: %s", query, e)
            return None
        if not results:
            logger.warning("No geocoding results found for: %s", query)
            return None
        return results[0]

    def resolve_postal_code(self, postal_code: str) -> Optional[Location]:
        """Location whose postal code is exactly ``postal_code``."""
        if not is_postal_code(postal_code):
            raise ValueError(f"Not a 6-digit Singapore postal code: {postal_code!r}")
        code = postal_code.strip()
        for loc in self.search(code, limit=10):
            if loc.postal_code == code:
                return loc
        logger.warning("Postal code %s not found", code)
        return None

    def reverse_geocode(self, lat: float, lng: float, radius_m: int = 100) -> List[NearbyPlace]:
        """Addresses within ``radius_m`` of (lat, lng), nearest first."""
        key = f"onemap:revgeocode:{lat:.5f},{lng:.5f}:{radius_m}"
        params = {"location": f"{lat},{lng}", "buffer": radius_m, "addressType": "All"}
        rows = self._cached(key, lambda: self._authorized_get(REVGEOCODE_URL, params).get("GeocodeInfo") or [], GEOCODE_TTL_S)

        places = [p for p in (_place_from_geocode(row, lat, lng) for row in rows) if p is not None]
        places.sort(key=lambda p: p.distance_m or 0)
        return places

    def theme_features(self, query_name: str, lat: float, lng: float, radius_m: int = 1000) -> List[NearbyPlace]:
        """Features of a OneMap theme (e.g. ``hawkercentre``) within ``radius_m`` of (lat, lng)."""
        # ~111 km per degree; the box is trimmed to a circle below
        deg = radius_m / 111_000
        extents = f"{lat - deg},{lng - deg},{lat + deg},{lng + deg}"
        key = f"onemap:theme:{query_name}:{extents}"
        params = {"queryName": query_name, "extents": extents}
        rows = self._cached(key, lambda: self._authorized_get(THEME_URL, params).get("SrchResults") or [], THEME_TTL_S)

        places = []
        for row in rows:
            place = _place_from_theme(row, query_name, lat, lng)
            if place is not None and (place.distance_m or 0) <= radius_m:
                places.append(place)
        places.sort(key=lambda p: p.distance_m or 0)
        return places

    def _search_raw(self, query: str) -> List[Dict[str, Any]]:
        data = self._get(SEARCH_URL, params={"searchVal": query, "returnGeom": "Y", "getAddrDetails": "Y", "pageNum": 1})
        if not data.get("found") or not data.get("results"):
            return []
        return list(data["results"])

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def plan_route(self, origin: Location, destination: Location, options: RouteOptions) -> Optional[Dict[str, Any]]:
        """Raw routing payload for ``options.mode``, or ``None`` when no route exists."""
        key = (
            f"onemap:route:{origin.latitude:.6f},{origin.longitude:.6f}:"
            f"{destination.latitude:.6f},{destination.longitude:.6f}:"
            f"{options.mode}:{options.max_walk_distance}:{options.num_itineraries}"
        )
        # Time-specific requests bypass the cache.
        if self.cache and options.departure_time is None and options.arrival_time is None:
            return self.cache.get_or_set(key, lambda: self._plan_route(origin, destination, options), ttl_seconds=ROUTE_TTL_S)
        return self._plan_route(origin, destination, options)

    def _plan_route(self, origin: Location, destination: Location, options: RouteOptions) -> Optional[Dict[str, Any]]:
        params: Dict[str, Any] = {
            "start": f"{origin.latitude},{origin.longitude}",
            "end": f"{destination.latitude},{destination.longitude}",
            "routeType": ROUTE_TYPES.get(options.mode, "pt"),
        }

        if options.mode == "PUBLIC_TRANSPORT":
            when = options.arrival_time or options.departure_time or self.clock()
            if when.tzinfo is not None:
                when = when.astimezone(SINGAPORE_TZ)
            params.update(
                {
                    "mode": "TRANSIT",
                    "maxWalkDistance": options.max_walk_distance,
                    "numItineraries": options.num_itineraries,
                    "date": when.strftime("%m-%d-%Y"),
                    "time": when.strftime("%H:%M:%S"),
                    "arriveBy": "true" if options.arrival_time is not None else "false",
                }
            )

        data = self._get(ROUTE_URL, params=params, headers={"Authorization": self._access_token()})

        status = data.get("status")
        if status not in (None, 0, 200):
            logger.warning("OneMap routing failed (status=%s): %s", status, data.get("status_message"))
            return None

        itineraries = (data.get("plan") or {}).get("itineraries") or []
        if not itineraries and not data.get("route_instructions"):
            logger.warning("No route found from %s to %s (%s)", params["start"], params["end"], options.mode)
            return None
        return data

    # ------------------------------------------------------------------
    # HTTP / auth
    # ------------------------------------------------------------------

    def _cached(self, key: str, fetch, ttl_seconds: int):
        if self.cache:
            return self.cache.get_or_set(key, fetch, ttl_seconds=ttl_seconds)
        return fetch()

    def _authorized_get(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        return self._get(url, params=params, headers={"Authorization": self._access_token()})

    def _access_token(self) -> str:
        if self.static_token:
            return self.static_token
        if self._token and self._token_expiry > time.time():
            return self._token
        if not (self.email and self.password):
            raise ConfigurationError("OneMap credentials not configured (ONEMAP_TOKEN or ONEMAP_EMAIL/ONEMAP_PASSWORD)")

        logger.info("Refreshing OneMap access token")
        try:
            r = self.session.post(TOKEN_URL, json={"email": self.email, "password": self.password}, timeout=self.timeout_s)
        except requests.RequestException as e:
            raise APIError(f"OneMap authentication failed: {e}", code="AUTH_FAILED", status_code=401) from e
        if r.status_code >= 400:
            raise APIError(f"OneMap authentication failed ({r.status_code})", code="AUTH_FAILED", status_code=401)

        try:
            payload = r.json()
            self._token = str(payload["access_token"])
            self._token_expiry = float(payload.get("expiry_timestamp") or (time.time() + 3600))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise APIError("OneMap authentication returned no usable token", code="AUTH_FAILED", status_code=401) from e
        return self._token

    def _get(self, url: str, params: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        logger.debug("OneMap request: GET %s %s", url, params)
        try:
            r = self.session.get(url, params=params, headers=headers, timeout=self.timeout_s)
        except requests.RequestException as e:
            raise APIError(f"OneMap request failed: {e}", code="ONEMAP_API_ERROR") from e

        if r.status_code == 429:
            raise RateLimitError("OneMap rate limit exceeded")
        if r.status_code >= 400:
            try:
                err = r.json()
                reason = err.get("error") if isinstance(err, dict) else None
            except ValueError:
                reason = None
            extra = f" Reason: {reason}" if reason else ""
            raise APIError(f"OneMap API error ({r.status_code}).{extra}", code="ONEMAP_API_ERROR", status_code=r.status_code)

        try:
            data = r.json()
        except ValueError as e:
            raise APIError(f"OneMap returned invalid JSON: {e}", code="ONEMAP_API_ERROR") from e
        return data if isinstance(data, dict) else {}


def _location_from_result(result: Dict[str, Any]) -> Optional[Location]:
    try:
        lat = float(result["LATITUDE"])
        lng = float(result["LONGITUDE"])
    except (KeyError, TypeError, ValueError):
        return None

    name = _clean(result.get("BUILDING")) or _clean(result.get("SEARCHVAL")) or _clean(result.get("ROAD_NAME"))
    return Location(
        latitude=lat,
        longitude=lng,
        name=name,
        address=_clean(result.get("ADDRESS")),
        postal_code=_clean(result.get("POSTAL")),
    )


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.upper() == "NIL":
        return None
    return text


def _place_from_geocode(row: Dict[str, Any], lat: float, lng: float) -> Optional[NearbyPlace]:
    try:
        point = Coordinates(lat=float(row["LATITUDE"]), lng=float(row["LONGITUDE"]))
    except (KeyError, TypeError, ValueError):
        return None

    street = " ".join(p for p in (_clean(row.get("BLOCK")), _clean(row.get("ROAD"))) if p)
    building = _clean(row.get("BUILDINGNAME"))
    if building and building.lower() == "null":
        building = None
    name = building or street
    if not name:
        return None
    return NearbyPlace(
        name=name,
        address=street or None,
        postal_code=_clean(row.get("POSTALCODE")),
        coordinates=point,
        distance_m=round(haversine_m(lat, lng, point.lat, point.lng)),
    )


def _place_from_theme(row: Dict[str, Any], category: str, lat: float, lng: float) -> Optional[NearbyPlace]:
    """Theme rows carry ``LatLng`` as ``"lat,lng"``; the first row is a count header without one."""
    name = _clean(row.get("NAME")) or _clean(row.get("DESCRIPTION"))
    numbers = _NUMBER.findall(str(row.get("LatLng") or ""))
    if not name or len(numbers) < 2:
        return None

    point = Coordinates(lat=float(numbers[0]), lng=float(numbers[1]))
    street = " ".join(p for p in (_clean(row.get("ADDRESSBLOCKHOUSENUMBER")), _clean(row.get("ADDRESSSTREETNAME"))) if p)
    return NearbyPlace(
        name=name,
        category=category,
        address=street or _clean(row.get("DESCRIPTION")),
        postal_code=_clean(row.get("ADDRESSPOSTALCODE")),
        coordinates=point,
        distance_m=round(haversine_m(lat, lng, point.lat, point.lng)),
    )
