"""Strava API sync — fetch the full activity history page by page.

Pages are requested strictly one after another so progress stays monotonic
and the page bound means something. Nothing is written here; the caller
merges the result into the archive.
"""

import json
import sys
import time as time_mod
from pathlib import Path

import requests
from stravalib import Client, exc

from stravaviz.config import sync_settings
from stravaviz.errors import AuthError, TransportError
from stravaviz.models import SyncProgress, SyncResult

ACTIVITIES_PATH = "/athlete/activities"
ATHLETE_PATH = "/athlete"
STATS_PATH = "/athletes/{id}/stats"

# Lifetime totals summed for the progress estimate
ESTIMATE_TOTALS = ("all_run_totals", "all_ride_totals", "all_swim_totals")


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------

def resolve_access_token(config: dict) -> str:
    """Find an already-issued bearer token in config or the token file."""
    strava_cfg = config.get("strava", {}) if config else {}

    token = strava_cfg.get("access_token")
    # Unset env vars survive expandvars as a literal "$NAME"
    if token and not token.startswith("$"):
        return token

    token_path = Path(strava_cfg.get("token_file", "~/stravaviz/state/strava_tokens.json")).expanduser()
    if token_path.exists():
        with open(token_path) as f:
            tokens = json.load(f)
        if tokens.get("access_token"):
            return tokens["access_token"]

    raise AuthError(
        "No Strava access token configured. Set strava.access_token, "
        "$STRAVA_ACCESS_TOKEN, or write a token file with an access_token key."
    )


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------

def _status_of(error) -> int | None:
    response = getattr(error, "response", None)
    return getattr(response, "status_code", None)


def _is_transient(error) -> bool:
    if isinstance(error, exc.RateLimitExceeded):
        return True
    if isinstance(error, (requests.ConnectionError, requests.Timeout)):
        return True
    status = _status_of(error)
    return status is not None and (status == 429 or status >= 500)


def _translate(error, what: str) -> TransportError:
    if isinstance(error, exc.AccessUnauthorized) or _status_of(error) == 401:
        return AuthError(f"Strava rejected the access token while fetching {what}: {error}",
                         status_code=401)
    return TransportError(f"Failed to fetch {what}: {error}", status_code=_status_of(error))


# ---------------------------------------------------------------------------
# Sync client
# ---------------------------------------------------------------------------

class SyncClient:
    """Fetch a user's complete activity list from the Strava API.

    *client* defaults to a stravalib Client for *credential*; anything with a
    ``protocol.get(path, **params)`` returning decoded JSON works.
    """

    def __init__(self, credential: str | None = None, client=None,
                 page_size: int = 200, max_pages: int = 10,
                 max_retries: int = 3, retry_backoff_s: float = 2.0,
                 sleep=time_mod.sleep, verbose: bool = False):
        if client is None:
            if not credential:
                raise AuthError("An access token is required to sync from Strava")
            client = Client(access_token=credential)
        if max_pages < 1:
            raise ValueError("max_pages must be at least 1")
        self.client = client
        self.page_size = page_size
        self.max_pages = max_pages
        self.max_retries = max_retries
        self.retry_backoff_s = retry_backoff_s
        self.sleep = sleep
        self.verbose = verbose
        self.retries = 0

    @classmethod
    def from_config(cls, config: dict, verbose: bool = False, **overrides):
        settings = sync_settings(config)
        settings.update({k: v for k, v in overrides.items() if v is not None})
        return cls(
            credential=resolve_access_token(config),
            page_size=int(settings["page_size"]),
            max_pages=int(settings["max_pages"]),
            max_retries=int(settings["max_retries"]),
            retry_backoff_s=float(settings["retry_backoff_s"]),
            verbose=verbose,
        )

    def _get(self, path: str, what: str, **params):
        """GET with bounded retry on transient failures."""
        attempt = 0
        while True:
            try:
                return self.client.protocol.get(path, **params)
            except (exc.AccessUnauthorized, exc.Fault, exc.RateLimitExceeded,
                    requests.RequestException) as e:
                if not _is_transient(e) or attempt >= self.max_retries:
                    raise _translate(e, what) from e
                wait = self.retry_backoff_s * (2 ** attempt)
                server_wait = getattr(e, "timeout", None)
                if server_wait and server_wait > wait:
                    wait = server_wait
                attempt += 1
                self.retries += 1
                if self.verbose:
                    print(f"  WARN {what} failed ({e}); retry {attempt}/{self.max_retries} in {wait:.0f}s")
                self.sleep(wait)

    def estimate_total(self) -> int:
        """Lifetime run+ride+swim count, or 0 if it cannot be determined."""
        try:
            athlete = self._get(ATHLETE_PATH, "athlete profile")
            stats = self._get(STATS_PATH.format(id=athlete["id"]), "athlete stats")
            return sum(int((stats.get(key) or {}).get("count") or 0) for key in ESTIMATE_TOTALS)
        except (TransportError, KeyError, TypeError, ValueError) as e:
            if self.verbose:
                print(f"  WARN could not estimate activity count: {e}")
            return 0

    @staticmethod
    def _percent(count: int, page: int, estimate: int) -> float:
        if estimate > 0:
            return min(98.0, count / estimate * 100)
        return float(min(95, page * 5))

    def iter_fetch(self, cancel=None):
        """Pull-style sync: yield SyncProgress events, the last one with done=True.

        The final event's ``result`` holds the SyncResult. *cancel* is an
        optional threading.Event checked before each page request.
        """
        result = SyncResult()
        self.retries = 0

        yield SyncProgress(percent=0.0, status="Estimating activity count...")
        result.estimate = self.estimate_total()

        activities = []
        exhausted = False
        last_page_full = False
        for page in range(1, self.max_pages + 1):
            if cancel is not None and cancel.is_set():
                result.cancelled = True
                break

            yield SyncProgress(
                percent=self._percent(len(activities), page, result.estimate),
                status=f"Fetching page {page} ({len(activities)} activities so far)...",
                count=len(activities),
                page=page,
            )

            data = self._get(ACTIVITIES_PATH, f"activities page {page}",
                             page=page, per_page=self.page_size)
            result.pages_requested = page
            if not data:
                exhausted = True
                break
            activities.extend(data)
            last_page_full = len(data) >= self.page_size

            if self.verbose:
                print(f"  Page {page}: {len(data)} activities")

        # A short final page already marks the end of the history.
        if not exhausted and not result.cancelled and last_page_full:
            result.truncated = True
            print(f"WARN sync stopped at the {self.max_pages}-page limit; "
                  f"older activities were not fetched (raise sync.max_pages)",
                  file=sys.stderr)

        result.activities = activities
        result.retries = self.retries

        if result.cancelled:
            status = f"Cancelled after {len(activities)} activities"
        elif result.truncated:
            status = f"Synced {len(activities)} activities (page limit reached)"
        else:
            status = f"Synced {len(activities)} activities"
        yield SyncProgress(percent=100.0, status=status, count=len(activities),
                           done=True, result=result)

    def fetch_all(self, on_progress=None, cancel=None) -> SyncResult:
        """Push-style sync: call on_progress(SyncProgress) and return the result."""
        result = None
        for event in self.iter_fetch(cancel=cancel):
            if on_progress is not None:
                on_progress(event)
            if event.done:
                result = event.result
        return result


def sync_strava(config: dict, store, verbose: bool = False, max_pages: int | None = None,
                on_progress=None, cancel=None, client=None) -> dict:
    """Fetch everything from Strava and merge it into *store*.

    Sync errors propagate; nothing is committed when a page fails.
    Returns summary dict with keys: fetched, added, updated, total, pages,
    truncated, cancelled, retries.
    """
    if client is not None:
        settings = sync_settings(config)
        syncer = SyncClient(
            client=client,
            page_size=int(settings["page_size"]),
            max_pages=int(max_pages or settings["max_pages"]),
            max_retries=int(settings["max_retries"]),
            retry_backoff_s=float(settings["retry_backoff_s"]),
            verbose=verbose,
        )
    else:
        syncer = SyncClient.from_config(config, verbose=verbose, max_pages=max_pages)

    result = syncer.fetch_all(on_progress=on_progress, cancel=cancel)
    merged = store.merge_and_persist(
        result.activities,
        source="strava",
        meta={"pages": result.pages_requested, "truncated": result.truncated,
              "cancelled": result.cancelled},
    )
    return {
        "fetched": len(result.activities),
        "added": merged["added"],
        "updated": merged["updated"],
        "total": merged["total"],
        "pages": result.pages_requested,
        "truncated": result.truncated,
        "cancelled": result.cancelled,
        "retries": result.retries,
    }
