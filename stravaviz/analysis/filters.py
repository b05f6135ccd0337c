"""Year / sport selection over an activity collection."""

from __future__ import annotations

from datetime import datetime, timezone

from stravaviz.models import ALL


def parse_utc(value: str) -> datetime:
    """Parse a Strava ISO-8601 timestamp into an aware UTC datetime."""
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_wall_clock(value: str) -> datetime:
    """Parse ``start_date_local`` as naive wall-clock time.

    Strava suffixes local times with 'Z' even though they are not UTC, so
    any offset is dropped rather than applied.
    """
    return datetime.fromisoformat(value.replace("Z", "+00:00")).replace(tzinfo=None)


def activity_year(activity: dict) -> int:
    return parse_utc(activity["start_date"]).year


def _normalize_year(year):
    if year is None or year == ALL:
        return ALL
    return int(year)


def filter_activities(activities, year=ALL, sports=(ALL,)) -> list[dict]:
    """Keep activities matching both the year and the sport selection.

    *year* is a calendar year (int or numeric string) or "ALL"; *sports* is a
    collection of ``type`` values, where containing "ALL" disables the sport
    predicate.
    """
    year = _normalize_year(year)
    sports = set(sports or (ALL,))
    any_sport = ALL in sports

    selected = []
    for a in activities:
        if year != ALL and activity_year(a) != year:
            continue
        if not any_sport and a.get("type") not in sports:
            continue
        selected.append(a)
    return selected


def year_options(activities) -> list:
    """Distinct years present, newest first, with "ALL" prepended."""
    years = sorted({activity_year(a) for a in activities}, reverse=True)
    return [ALL] + years


def sport_options(activities) -> list:
    """Distinct sport types present, alphabetical, with "ALL" prepended."""
    return [ALL] + sorted({a["type"] for a in activities if a.get("type")})


def toggle_sport(selection, sport: str) -> list[str]:
    """Multi-select toggle for the sport filter.

    Picking "ALL" resets the selection; picking a sport adds or removes it,
    and removing the last one falls back to "ALL".
    """
    if sport == ALL:
        return [ALL]
    current = [s for s in selection if s != ALL]
    if sport in current:
        remaining = [s for s in current if s != sport]
        return remaining or [ALL]
    return current + [sport]


def focus_sport(selection, default: str = "Run") -> str:
    """Sport shown in the performance views: first explicit pick, else *default*."""
    explicit = [s for s in selection if s != ALL]
    return explicit[0] if explicit else default
