"""Assemble every derived view for one filter selection.

Nothing here is cached: each call recomputes from the collection it is given.
"""

from dataclasses import asdict

from stravaviz.analysis.filters import (
    filter_activities, focus_sport, sport_options, year_options,
)
from stravaviz.analysis.polyline import decode_polyline
from stravaviz.analysis.series import frequency_grid, performance_series, signature_activity
from stravaviz.analysis.summary import (
    archive_snapshot, kpi_summary, sport_breakdown, time_of_day_distribution,
)
from stravaviz.errors import MalformedEncodingError
from stravaviz.models import ALL


def _signature_view(activity):
    if activity is None:
        return None
    encoded = (activity.get("map") or {}).get("summary_polyline")
    try:
        track = decode_polyline(encoded) if encoded else []
    except MalformedEncodingError:
        track = []
    return {
        "id": activity.get("id"),
        "name": activity.get("name"),
        "distance": activity.get("distance"),
        "start_date": activity.get("start_date"),
        "track": [list(c) for c in track],
    }


def build_dashboard(activities, year=ALL, sports=(ALL,), today=None) -> dict:
    """KPIs, facets, per-sport series and distributions for a selection.

    The sport breakdown is computed on the year-filtered collection so every
    sport stays visible regardless of the sport selection.
    """
    activities = list(activities)
    selected = filter_activities(activities, year=year, sports=sports)
    by_year = filter_activities(activities, year=year)
    sport = focus_sport(sports)

    return {
        "filters": {"year": year, "sports": list(sports), "focus_sport": sport},
        "facets": {"years": year_options(activities), "sports": sport_options(activities)},
        "kpis": asdict(kpi_summary(selected)),
        "snapshot": archive_snapshot(activities),
        "frequency": [asdict(d) for d in frequency_grid(selected, today=today)],
        "performance": [asdict(p) for p in performance_series(selected, sport)],
        "signature": _signature_view(signature_activity(selected, sport)),
        "breakdown": sport_breakdown(by_year),
        "time_of_day": time_of_day_distribution(selected),
    }
