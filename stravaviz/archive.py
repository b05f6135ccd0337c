"""Local activity archive with merge-by-identity semantics.

The archive is one JSON array of Strava activity dicts kept under a fixed key
in the SQLite ``archive`` table. Every sync merges into it by ``id`` (last
write wins); an import replaces it wholesale.
"""

import json
import sys
import threading
from datetime import datetime, timezone

from stravaviz.db import ensure_schema, get_connection
from stravaviz.errors import StorageCorruptionError

ARCHIVE_KEY = "stravaviz_archive"


def _decode_snapshot(raw: str) -> list:
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise StorageCorruptionError(f"archive is not valid JSON: {e}") from e
    if not isinstance(data, list):
        raise StorageCorruptionError(
            f"archive holds a {type(data).__name__}, expected a list"
        )
    return data


class ActivityStore:
    """Owns the persisted snapshot. Construct once and pass it around."""

    def __init__(self, config=None, key: str = ARCHIVE_KEY, verbose: bool = False):
        self.config = config
        self.key = key
        self.verbose = verbose
        # Read-modify-write must not interleave (the review app syncs on a thread).
        self._lock = threading.RLock()

    def _connect(self):
        conn = get_connection(self.config)
        ensure_schema(conn)
        return conn

    def _read(self, conn) -> list:
        row = conn.execute(
            "SELECT value FROM archive WHERE key = ?", (self.key,)
        ).fetchone()
        if row is None:
            return []
        try:
            return _decode_snapshot(row[0])
        except StorageCorruptionError as e:
            print(f"WARN archive '{self.key}' unreadable, treating as empty: {e}",
                  file=sys.stderr)
            return []

    def _write(self, conn, activities: list):
        conn.execute(
            """INSERT INTO archive (key, value, updated_at)
               VALUES (?, ?, datetime('now'))
               ON CONFLICT(key)
               DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at""",
            (self.key, json.dumps(activities)),
        )

    def _record_state(self, conn, source: str, meta: dict):
        now = datetime.now(timezone.utc).isoformat()
        conn.execute(
            """INSERT INTO sync_state (source, last_sync_at, metadata_json)
               VALUES (?, ?, ?)
               ON CONFLICT(source)
               DO UPDATE SET last_sync_at=excluded.last_sync_at,
                             metadata_json=excluded.metadata_json""",
            (f"{self.key}:{source}", now, json.dumps(meta)),
        )

    def load(self) -> list:
        """Return the persisted snapshot, or [] if none exists or it is corrupt."""
        with self._lock:
            conn = self._connect()
            try:
                return self._read(conn)
            finally:
                conn.close()

    def merge_and_persist(self, new_activities, source: str = "strava",
                          meta: dict | None = None) -> dict:
        """Merge *new_activities* into the archive by id and persist.

        Existing records keep their position; unseen ids are appended in
        arrival order. Merging the same batch twice is a no-op the second
        time. Returns counts: added, updated, total.
        """
        with self._lock:
            conn = self._connect()
            try:
                merged = {}
                for act in self._read(conn):
                    merged[act.get("id")] = act

                added = 0
                updated = 0
                for act in new_activities:
                    if act["id"] in merged:
                        updated += 1
                    else:
                        added += 1
                    merged[act["id"]] = act

                snapshot = list(merged.values())
                self._write(conn, snapshot)
                state = {"received": len(new_activities), "added": added,
                         "updated": updated, "total": len(snapshot)}
                state.update(meta or {})
                self._record_state(conn, source, state)
                conn.commit()
            finally:
                conn.close()

        if self.verbose:
            print(f"[Archive] Merged {len(new_activities)} activities "
                  f"({added} new, {updated} updated, {len(snapshot)} total)")
        return {"added": added, "updated": updated, "total": len(snapshot)}

    def replace_all(self, activities) -> int:
        """Overwrite the snapshot wholesale (import path). Returns the count."""
        activities = list(activities)
        with self._lock:
            conn = self._connect()
            try:
                self._write(conn, activities)
                self._record_state(conn, "import", {"total": len(activities)})
                conn.commit()
            finally:
                conn.close()
        if self.verbose:
            print(f"[Archive] Replaced archive with {len(activities)} imported activities")
        return len(activities)

    def clear(self):
        """Remove the persisted snapshot entirely."""
        with self._lock:
            conn = self._connect()
            try:
                conn.execute("DELETE FROM archive WHERE key = ?", (self.key,))
                conn.execute("DELETE FROM sync_state WHERE source LIKE ?",
                             (f"{self.key}:%",))
                conn.commit()
            finally:
                conn.close()

    def last_sync(self, source: str = "strava") -> dict | None:
        """Return {last_sync_at, ...metadata} for the last sync/import, or None."""
        with self._lock:
            conn = self._connect()
            try:
                row = conn.execute(
                    "SELECT last_sync_at, metadata_json FROM sync_state WHERE source = ?",
                    (f"{self.key}:{source}",),
                ).fetchone()
            finally:
                conn.close()
        if not row:
            return None
        state = json.loads(row[1]) if row[1] else {}
        state["last_sync_at"] = row[0]
        return state

    @staticmethod
    def export_snapshot(activities) -> str:
        """Pretty-printed JSON for download. Does not touch the store."""
        return json.dumps(list(activities), indent=2, ensure_ascii=False)
