from __future__ import annotations

from typing import List, Sequence, Tuple

from ..core.errors import MalformedPolylineError
from ..core.schemas import Coordinates, DecodedPolyline, LineString, Position
from .geo import bounding_box

PRECISION = 5


def decode(encoded: str, precision: int = PRECISION) -> DecodedPolyline:
    """Decode an encoded polyline string (Google polyline algorithm).

    Coordinates come back in GeoJSON order, ``(lng, lat)``, with the bounding
    box of all points attached.
    See: https://developers.google.com/maps/documentation/utilities/polylinealgorithm
    """
    if not encoded:
        raise MalformedPolylineError("Empty polyline")

    factor = 10 ** precision
    points: List[Tuple[float, float]] = []
    index = 0
    lat = 0
    lng = 0

    while index < len(encoded):
        dlat, index = _read_varint(encoded, index)
        dlng, index = _read_varint(encoded, index)
        lat += dlat
        lng += dlng
        points.append((lat / factor, lng / factor))

    coordinates: List[Position] = [(p_lng, p_lat) for p_lat, p_lng in points]
    bounds = bounding_box(Coordinates(lat=p_lat, lng=p_lng) for p_lat, p_lng in points)
    return DecodedPolyline(coordinates=coordinates, bounds=bounds)


def encode(points: Sequence[Tuple[float, float]], precision: int = PRECISION) -> str:
    """Encode ``(lat, lng)`` points into a polyline string."""
    factor = 10 ** precision
    out: List[str] = []
    prev_lat = 0
    prev_lng = 0
    for lat, lng in points:
        ilat = int(round(lat * factor))
        ilng = int(round(lng * factor))
        out.append(_write_varint(ilat - prev_lat))
        out.append(_write_varint(ilng - prev_lng))
        prev_lat, prev_lng = ilat, ilng
    return "".join(out)


def to_line_geometry(coordinates: Sequence[Position]) -> LineString:
    return LineString(coordinates=list(coordinates))


def _read_varint(encoded: str, index: int) -> Tuple[int, int]:
    shift = 0
    value = 0
    while True:
        if index >= len(encoded):
            raise MalformedPolylineError(f"Truncated polyline at offset {index}")
        b = ord(encoded[index]) - 63
        if b < 0 or b > 63:
            raise MalformedPolylineError(f"Invalid polyline character {encoded[index]!r} at offset {index}")
        index += 1
        value |= (b & 0x1F) << shift
        shift += 5
        if b < 0x20:
            break
    delta = ~(value >> 1) if (value & 1) else (value >> 1)
    return delta, index


def _write_varint(value: int) -> str:
    value = ~(value << 1) if value < 0 else (value << 1)
    chunks: List[str] = []
    while value >= 0x20:
        chunks.append(chr((0x20 | (value & 0x1F)) + 63))
        value >>= 5
    chunks.append(chr(value + 63))
    return "".join(chunks)
