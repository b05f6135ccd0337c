from dataclasses import dataclass, field
from typing import Optional

# Activities themselves stay plain dicts in the Strava summary-activity shape
# so that export reproduces the API schema exactly.

ALL = "ALL"


@dataclass
class SyncProgress:
    percent: float = 0.0
    status: str = ""
    count: int = 0
    page: Optional[int] = None
    done: bool = False
    result: Optional["SyncResult"] = None


@dataclass
class SyncResult:
    activities: list = field(default_factory=list)
    pages_requested: int = 0
    estimate: int = 0
    truncated: bool = False
    cancelled: bool = False
    retries: int = 0


@dataclass
class KpiSummary:
    count: int = 0
    distance_m: float = 0.0
    elevation_m: float = 0.0
    moving_time_s: int = 0
    distance: str = "0.00"
    elevation: str = "0"
    hours: int = 0


@dataclass
class PerformancePoint:
    activity_id: Optional[int] = None
    start_date: str = ""
    label: str = ""
    distance_km: float = 0.0
    cum_distance_km: float = 0.0
    cum_elevation_m: float = 0.0
    pace_min_per_km: float = 0.0
    speed_kmh: float = 0.0


@dataclass
class GridDay:
    date: str = ""
    count: int = 0
