"""Import/export of archive snapshots as JSON documents."""

import json
from datetime import datetime, timezone
from pathlib import Path

from stravaviz.errors import ImportParseError


def parse_import_document(text: str) -> list:
    """Parse an exported (or hand-built) JSON array of activity objects.

    Only structural checks: the document must be an array and every element
    an object. Raises ImportParseError otherwise.
    """
    try:
        data = json.loads(text)
    except ValueError as e:
        raise ImportParseError(f"Import file is not valid JSON: {e}") from e
    if not isinstance(data, list):
        raise ImportParseError(
            f"Import file must contain a JSON array, got {type(data).__name__}"
        )
    for i, item in enumerate(data):
        if not isinstance(item, dict):
            raise ImportParseError(
                f"Import item #{i} is a {type(item).__name__}, expected an object"
            )
    return data


def import_file(store, path, verbose: bool = False) -> int:
    """Replace the archive with the contents of *path*. Returns the count.

    The archive is only written after the whole document parsed.
    """
    path = Path(path).expanduser()
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ImportParseError(f"Cannot read {path}: {e}") from e

    activities = parse_import_document(text)
    count = store.replace_all(activities)
    if verbose:
        print(f"Imported {count} activities from {path}")
    return count


def export_filename(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"stravaviz_export_{now.strftime('%Y-%m-%dT%H-%M-%SZ')}.json"


def export_file(store, path=None, activities=None) -> Path:
    """Write the archive (or *activities*) to *path*; default name is timestamped."""
    if activities is None:
        activities = store.load()
    path = Path(path).expanduser() if path else Path(export_filename())
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(store.export_snapshot(activities), encoding="utf-8")
    return path
