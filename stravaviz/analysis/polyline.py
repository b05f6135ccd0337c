"""Google Encoded Polyline Algorithm Format.

Strava ships every GPS track as ``map.summary_polyline``: a run of printable
ASCII characters where each coordinate is stored as a delta from the previous
one, scaled by 1e5, zig-zag encoded, and split into 5-bit groups with 0x20 as
the continuation bit.
"""

from __future__ import annotations

from stravaviz.errors import MalformedEncodingError

PRECISION = 1e5

_OFFSET = 63
_CONTINUATION = 0x20
_CHUNK_MASK = 0x1F


def _read_varint(encoded: str, index: int) -> tuple[int, int]:
    """Decode one signed value starting at *index*; return (value, next index)."""
    result = 0
    shift = 0
    length = len(encoded)
    while True:
        if index >= length:
            raise MalformedEncodingError(
                f"polyline ends inside a value at offset {index}"
            )
        b = ord(encoded[index]) - _OFFSET
        if b < 0 or b > 0x3F:
            raise MalformedEncodingError(
                f"invalid polyline character {encoded[index]!r} at offset {index}"
            )
        index += 1
        result |= (b & _CHUNK_MASK) << shift
        shift += 5
        if b < _CONTINUATION:
            break
    delta = ~(result >> 1) if result & 1 else result >> 1
    return delta, index


def decode_polyline(encoded: str) -> list[tuple[float, float]]:
    """Decode an encoded polyline into a list of (lat, lng) tuples.

    Empty input yields an empty list. Truncated input raises
    MalformedEncodingError instead of reading past the end.
    """
    coordinates = []
    index = 0
    lat = 0
    lng = 0
    while index < len(encoded):
        dlat, index = _read_varint(encoded, index)
        lat += dlat
        dlng, index = _read_varint(encoded, index)
        lng += dlng
        coordinates.append((lat / PRECISION, lng / PRECISION))
    return coordinates


def _write_varint(value: int, out: list[str]):
    value = ~(value << 1) if value < 0 else value << 1
    while value >= _CONTINUATION:
        out.append(chr((_CONTINUATION | (value & _CHUNK_MASK)) + _OFFSET))
        value >>= 5
    out.append(chr(value + _OFFSET))


def encode_polyline(coordinates) -> str:
    """Inverse of decode_polyline for coordinates already at 1e-5 precision."""
    out: list[str] = []
    prev_lat = 0
    prev_lng = 0
    for lat, lng in coordinates:
        ilat = int(round(lat * PRECISION))
        ilng = int(round(lng * PRECISION))
        _write_varint(ilat - prev_lat, out)
        _write_varint(ilng - prev_lng, out)
        prev_lat, prev_lng = ilat, ilng
    return "".join(out)


def track_bounds(coordinates) -> tuple[tuple[float, float], tuple[float, float]] | None:
    """Return ((south, west), (north, east)) for a track, or None if empty."""
    if not coordinates:
        return None
    lats = [c[0] for c in coordinates]
    lngs = [c[1] for c in coordinates]
    return (min(lats), min(lngs)), (max(lats), max(lngs))
