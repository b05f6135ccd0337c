"""Decoded GPS tracks as GeoJSON for map rendering."""

import math

from stravaviz.analysis.polyline import decode_polyline, track_bounds
from stravaviz.errors import MalformedEncodingError

SPORT_COLORS = {
    "Ride": "#FC4C02",
    "VirtualRide": "#FC4C02",
    "Run": "#3b82f6",
    "Hike": "#10b981",
    "Walk": "#f59e0b",
    "Swim": "#0ea5e9",
    "AlpineSki": "#6366f1",
}
DEFAULT_COLOR = "#6366f1"


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance in meters between two lat/lon points."""
    R = 6371000  # Earth radius in meters
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlam = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2) ** 2
    return R * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def track_length_m(coordinates) -> float:
    return math.fsum(
        haversine_m(a[0], a[1], b[0], b[1])
        for a, b in zip(coordinates, coordinates[1:])
    )


def activity_track(activity: dict) -> list[tuple[float, float]]:
    """Decoded summary track, or [] for indoor/untracked activities."""
    encoded = (activity.get("map") or {}).get("summary_polyline")
    if not encoded:
        return []
    return decode_polyline(encoded)


def _merge_bounds(bounds, other):
    if bounds is None:
        return other
    (s1, w1), (n1, e1) = bounds
    (s2, w2), (n2, e2) = other
    return (min(s1, s2), min(w1, w2)), (max(n1, n2), max(e1, e2))


def track_collection(activities, verbose: bool = False) -> dict:
    """GeoJSON FeatureCollection of every decodable track.

    Activities without a polyline are left out; a corrupt polyline skips only
    that track. ``bounds`` covers all emitted tracks as [[s, w], [n, e]].
    """
    features = []
    bounds = None
    skipped = 0
    for a in activities:
        try:
            coords = activity_track(a)
        except MalformedEncodingError as e:
            skipped += 1
            if verbose:
                print(f"  WARN skipping track for activity {a.get('id')}: {e}")
            continue
        if len(coords) < 2:
            continue

        bounds = _merge_bounds(bounds, track_bounds(coords))
        features.append({
            "type": "Feature",
            "geometry": {
                "type": "LineString",
                # GeoJSON is lng/lat
                "coordinates": [[lng, lat] for lat, lng in coords],
            },
            "properties": {
                "id": a.get("id"),
                "name": a.get("name"),
                "type": a.get("type"),
                "start_date": a.get("start_date"),
                "distance": a.get("distance"),
                "color": SPORT_COLORS.get(a.get("type"), DEFAULT_COLOR),
                "track_length_m": round(track_length_m(coords), 1),
            },
        })

    return {
        "type": "FeatureCollection",
        "features": features,
        "bounds": [list(bounds[0]), list(bounds[1])] if bounds else None,
        "skipped": skipped,
    }
