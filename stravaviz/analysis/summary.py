"""KPI totals, breakdowns and distribution views over an activity collection.

Sums use math.fsum, which is exactly rounded and therefore independent of
the order activities arrive in.
"""

from __future__ import annotations

import math

from stravaviz.analysis.filters import parse_utc, parse_wall_clock
from stravaviz.models import KpiSummary

MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
               "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

# Share (percent) below which a sport is left out of the breakdown
BREAKDOWN_MIN_PERCENT = 1.0


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def format_adaptive_distance(meters: float) -> str:
    """Kilometres with precision that shrinks as the number grows.

    550 -> "0.55", 10500 -> "10.5", 509000 -> "509", 1234000 -> "1,234".
    """
    km = meters / 1000
    if km < 1:
        return f"{km:.2f}"
    if km < 100:
        return f"{km:.1f}"
    return f"{_round_half_up(km):,}"


def format_adaptive_elevation(meters: float) -> str:
    return f"{_round_half_up(meters):,}"


def format_duration(seconds) -> str:
    """Moving time as "Hh Mm" (or "Mm" under an hour)."""
    if not seconds:
        return "0m"
    hours, rem = divmod(int(seconds), 3600)
    minutes = rem // 60
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def kpi_summary(activities) -> KpiSummary:
    activities = list(activities)
    distance = math.fsum(a.get("distance") or 0 for a in activities)
    elevation = math.fsum(a.get("total_elevation_gain") or 0 for a in activities)
    moving = sum(int(a.get("moving_time") or 0) for a in activities)
    return KpiSummary(
        count=len(activities),
        distance_m=distance,
        elevation_m=elevation,
        moving_time_s=moving,
        distance=format_adaptive_distance(distance),
        elevation=format_adaptive_elevation(elevation),
        hours=moving // 3600,
    )


def sport_breakdown(activities, min_percent: float = BREAKDOWN_MIN_PERCENT) -> list[dict]:
    """Count and share per sport type, in first-seen order.

    Meant for the year-filtered (not sport-filtered) collection. Sports whose
    share is below *min_percent* are dropped.
    """
    counts: dict[str, int] = {}
    for a in activities:
        counts[a.get("type")] = counts.get(a.get("type"), 0) + 1
    total = sum(counts.values()) or 1

    breakdown = []
    for name, value in counts.items():
        percent = value / total * 100
        if percent >= min_percent:
            breakdown.append({"name": name, "value": value, "percent": percent})
    return breakdown


def _time_bucket(hour: int) -> str:
    if 5 <= hour < 12:
        return "Morning"
    if 12 <= hour < 17:
        return "Afternoon"
    return "Evening"


def time_of_day_distribution(activities) -> list[dict]:
    """Morning / Afternoon / Evening counts by local start hour."""
    dist = {"Morning": 0, "Afternoon": 0, "Evening": 0}
    n = 0
    for a in activities:
        dist[_time_bucket(parse_wall_clock(a["start_date_local"]).hour)] += 1
        n += 1
    total = n or 1
    return [
        {"name": name, "value": value, "percent": _round_half_up(value / total * 100)}
        for name, value in dist.items()
    ]


def favorite_month(activities) -> int | None:
    """0-based month with the most activities; ties go to the earlier month."""
    counts = [0] * 12
    for a in activities:
        counts[parse_utc(a["start_date"]).month - 1] += 1
    if not any(counts):
        return None
    best = 0
    for month in range(1, 12):
        if counts[month] > counts[best]:
            best = month
    return best


def archive_snapshot(activities) -> dict:
    """Headline numbers for the whole archive."""
    activities = list(activities)
    kpis = kpi_summary(activities)
    month = favorite_month(activities)
    longest = max((a.get("distance") or 0 for a in activities), default=None)
    return {
        "count": kpis.count,
        "distance": kpis.distance,
        "elevation": kpis.elevation,
        "favorite_month": MONTH_NAMES[month] if month is not None else "N/A",
        "longest": format_adaptive_distance(longest) if longest is not None else "0",
    }
