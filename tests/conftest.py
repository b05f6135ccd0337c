import pytest

from stravaviz.archive import ActivityStore


def make_activity(id, type="Run", distance=5000.0, start_date="2024-03-10T07:30:00Z",
                  start_date_local=None, moving_time=1500, total_elevation_gain=20.0,
                  average_speed=3.33, polyline=None, name=None):
    activity = {
        "id": id,
        "name": name or f"Activity {id}",
        "distance": distance,
        "moving_time": moving_time,
        "elapsed_time": moving_time + 60,
        "total_elevation_gain": total_elevation_gain,
        "type": type,
        "sport_type": type,
        "start_date": start_date,
        "start_date_local": start_date_local or start_date,
        "average_speed": average_speed,
        "max_speed": average_speed * 1.5,
    }
    if polyline is not None:
        activity["map"] = {"id": f"a{id}", "summary_polyline": polyline, "resource_state": 2}
    return activity


class FakeProtocol:
    """Stands in for stravalib's ApiV3: records calls, replays scripted responses."""

    def __init__(self, pages=None, athlete=None, stats=None, errors=None, endless_page=None):
        self.pages = pages or []
        self.athlete = athlete if athlete is not None else {"id": 42}
        self.stats = stats
        self.errors = errors or {}
        self.endless_page = endless_page
        self.calls = []

    def get(self, url, **params):
        self.calls.append((url, params))
        key = (url, params.get("page"))
        queued = self.errors.get(key) or self.errors.get(url)
        if queued:
            raise queued.pop(0)
        if url == "/athlete":
            return self.athlete
        if url.startswith("/athletes/"):
            if self.stats is None:
                raise KeyError("no stats scripted")
            return self.stats
        if url == "/athlete/activities":
            if self.endless_page is not None:
                return self.endless_page
            page = params["page"]
            return self.pages[page - 1] if page <= len(self.pages) else []
        raise AssertionError(f"unexpected url {url}")

    def page_calls(self):
        return [params["page"] for url, params in self.calls if url == "/athlete/activities"]


class FakeClient:
    def __init__(self, protocol):
        self.protocol = protocol


@pytest.fixture
def config(tmp_path):
    return {
        "paths": {"db": str(tmp_path / "stravaviz.db")},
        "strava": {"access_token": "test-token"},
        "sync": {"max_retries": 2, "retry_backoff_s": 0},
    }


@pytest.fixture
def store(config):
    return ActivityStore(config)
