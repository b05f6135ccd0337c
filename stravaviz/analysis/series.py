"""Per-sport time series, signature activity and the calendar frequency grid."""

from __future__ import annotations

from datetime import date, timedelta

from stravaviz.analysis.filters import parse_utc
from stravaviz.analysis.summary import MONTH_NAMES
from stravaviz.models import GridDay, PerformancePoint

GRID_MAX_DAYS = 366


def pace_min_per_km(average_speed) -> float:
    """Minutes per km from m/s; 0 when the activity did not move."""
    if average_speed and average_speed > 0:
        return (1000 / average_speed) / 60
    return 0.0


def performance_series(activities, sport: str) -> list[PerformancePoint]:
    """Running distance/elevation totals for one sport, oldest first.

    Each point also carries that activity's own pace (min/km), speed (km/h)
    and distance (km).
    """
    matching = [a for a in activities if a.get("type") == sport]
    matching.sort(key=lambda a: parse_utc(a["start_date"]))

    cum_dist = 0.0
    cum_elev = 0.0
    points = []
    for a in matching:
        distance_km = (a.get("distance") or 0) / 1000
        cum_dist += distance_km
        cum_elev += a.get("total_elevation_gain") or 0
        start = parse_utc(a["start_date"])
        speed = a.get("average_speed") or 0
        points.append(PerformancePoint(
            activity_id=a.get("id"),
            start_date=a["start_date"],
            label=f"{MONTH_NAMES[start.month - 1]} {start.day}",
            distance_km=distance_km,
            cum_distance_km=cum_dist,
            cum_elevation_m=cum_elev,
            pace_min_per_km=pace_min_per_km(speed),
            speed_kmh=speed * 3.6,
        ))
    return points


def signature_activity(activities, sport: str) -> dict | None:
    """Longest activity of *sport*; on a tie the later one in the collection wins."""
    best = None
    for a in activities:
        if a.get("type") != sport:
            continue
        if best is None or (a.get("distance") or 0) >= (best.get("distance") or 0):
            best = a
    return best


def frequency_grid(activities, today: date | None = None) -> list[GridDay]:
    """Activity count for every day from Jan 1 of this year through *today*."""
    today = today or date.today()
    per_day: dict[str, int] = {}
    for a in activities:
        day = parse_utc(a["start_date"]).date().isoformat()
        per_day[day] = per_day.get(day, 0) + 1

    start = date(today.year, 1, 1)
    grid = []
    for i in range(GRID_MAX_DAYS):
        d = start + timedelta(days=i)
        if d > today:
            break
        key = d.isoformat()
        grid.append(GridDay(date=key, count=per_day.get(key, 0)))
    return grid
