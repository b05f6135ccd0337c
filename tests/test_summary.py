import math

import pytest
from conftest import make_activity

from stravaviz.analysis.summary import (
    archive_snapshot, favorite_month, format_adaptive_distance, format_adaptive_elevation,
    format_duration, kpi_summary, sport_breakdown, time_of_day_distribution,
)


@pytest.mark.parametrize("meters, expected", [
    (550, "0.55"),
    (10_500, "10.5"),
    (509_000, "509"),
    (1_234_400, "1,234"),
    (0, "0.00"),
    (99_940, "99.9"),
])
def test_format_adaptive_distance(meters, expected):
    assert format_adaptive_distance(meters) == expected


def test_format_adaptive_elevation_groups_and_rounds():
    assert format_adaptive_elevation(12_345.5) == "12,346"
    assert format_adaptive_elevation(-3.2) == "-3"


def test_format_duration():
    assert format_duration(0) == "0m"
    assert format_duration(59 * 60) == "59m"
    assert format_duration(2 * 3600 + 5 * 60 + 30) == "2h 5m"


def test_kpi_summary_totals():
    activities = [
        make_activity(1, distance=5000.5, total_elevation_gain=10.25, moving_time=1800),
        make_activity(2, distance=12000.25, total_elevation_gain=-2.0, moving_time=3600),
        make_activity(3, distance=0.1, total_elevation_gain=0.0, moving_time=1799),
    ]
    kpis = kpi_summary(activities)
    assert kpis.count == 3
    assert kpis.distance_m == math.fsum(a["distance"] for a in activities)
    assert kpis.elevation_m == pytest.approx(8.25)
    assert kpis.moving_time_s == 7199
    assert kpis.hours == 1
    assert kpis.distance == "17.0"
    assert kpis.elevation == "8"


def test_kpi_summary_is_order_independent():
    activities = [make_activity(i, distance=0.1 * i + 1e6 * (i % 2)) for i in range(1, 50)]
    assert kpi_summary(activities).distance_m == kpi_summary(list(reversed(activities))).distance_m


def test_kpi_summary_empty():
    kpis = kpi_summary([])
    assert (kpis.count, kpis.distance, kpis.elevation, kpis.hours) == (0, "0.00", "0", 0)


def test_sport_breakdown_drops_sports_under_one_percent():
    activities = [make_activity(i, type="Run") for i in range(150)]
    activities += [make_activity(1000 + i, type="Ride") for i in range(49)]
    activities.append(make_activity(2000, type="Yoga"))

    breakdown = sport_breakdown(activities)
    names = [b["name"] for b in breakdown]
    assert names == ["Run", "Ride"]
    assert breakdown[0]["value"] == 150
    assert breakdown[0]["percent"] == pytest.approx(75.0)

    excluded = 1 / len(activities) * 100
    assert sum(b["percent"] for b in breakdown) + excluded == pytest.approx(100.0)


def test_sport_breakdown_keeps_exactly_one_percent():
    activities = [make_activity(i, type="Run") for i in range(99)] + [make_activity(500, type="Swim")]
    assert [b["name"] for b in sport_breakdown(activities)] == ["Run", "Swim"]


def test_sport_breakdown_empty():
    assert sport_breakdown([]) == []


def test_time_of_day_buckets_by_local_hour():
    activities = [
        make_activity(1, start_date_local="2024-01-01T04:59:00Z"),
        make_activity(2, start_date_local="2024-01-01T05:00:00Z"),
        make_activity(3, start_date_local="2024-01-01T11:59:00Z"),
        make_activity(4, start_date_local="2024-01-01T12:00:00Z"),
        make_activity(5, start_date_local="2024-01-01T16:59:00Z"),
        make_activity(6, start_date_local="2024-01-01T17:00:00Z"),
    ]
    dist = {d["name"]: d for d in time_of_day_distribution(activities)}
    assert dist["Morning"]["value"] == 2
    assert dist["Afternoon"]["value"] == 2
    assert dist["Evening"]["value"] == 2
    assert dist["Morning"]["percent"] == 33


def test_time_of_day_rounds_half_up():
    activities = [
        make_activity(1, start_date_local="2024-01-01T08:00:00Z"),
        make_activity(2, start_date_local="2024-01-01T20:00:00Z"),
        make_activity(3, start_date_local="2024-01-01T21:00:00Z"),
        make_activity(4, start_date_local="2024-01-01T22:00:00Z"),
        make_activity(5, start_date_local="2024-01-01T23:00:00Z"),
        make_activity(6, start_date_local="2024-01-01T23:30:00Z"),
        make_activity(7, start_date_local="2024-01-01T23:45:00Z"),
        make_activity(8, start_date_local="2024-01-01T00:10:00Z"),
    ]
    dist = {d["name"]: d["percent"] for d in time_of_day_distribution(activities)}
    assert dist == {"Morning": 13, "Afternoon": 0, "Evening": 88}


def test_time_of_day_empty_has_all_buckets():
    assert [d["name"] for d in time_of_day_distribution([])] == ["Morning", "Afternoon", "Evening"]


def test_favorite_month():
    activities = [
        make_activity(1, start_date="2024-03-01T08:00:00Z"),
        make_activity(2, start_date="2023-03-15T08:00:00Z"),
        make_activity(3, start_date="2024-07-01T08:00:00Z"),
    ]
    assert favorite_month(activities) == 2


def test_favorite_month_tie_goes_to_earlier_month():
    activities = [
        make_activity(1, start_date="2024-09-01T08:00:00Z"),
        make_activity(2, start_date="2024-02-01T08:00:00Z"),
    ]
    assert favorite_month(activities) == 1
    assert favorite_month([]) is None


def test_archive_snapshot():
    activities = [
        make_activity(1, distance=42_195, start_date="2024-04-21T08:00:00Z"),
        make_activity(2, distance=5_000, start_date="2024-04-22T08:00:00Z"),
    ]
    snap = archive_snapshot(activities)
    assert snap["count"] == 2
    assert snap["longest"] == "42.2"
    assert snap["favorite_month"] == "Apr"
    assert archive_snapshot([])["favorite_month"] == "N/A"
