import os
from pathlib import Path

import yaml

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "config.yaml"

SYNC_DEFAULTS = {
    "page_size": 200,
    "max_pages": 10,
    "max_retries": 3,
    "retry_backoff_s": 2,
}


def _expand(value):
    """Recursively expand ~ and env vars in string values."""
    if isinstance(value, str):
        return os.path.expandvars(os.path.expanduser(value))
    if isinstance(value, dict):
        return {k: _expand(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand(v) for v in value]
    return value


def load_config(path=None):
    """Load YAML config, expanding ~ and $ENV_VARS in all string values.

    Resolution order: explicit *path*, $STRAVAVIZ_CONFIG, config/config.yaml.
    """
    if path is None and os.environ.get("STRAVAVIZ_CONFIG"):
        path = os.environ["STRAVAVIZ_CONFIG"]
    path = Path(path) if path else DEFAULT_CONFIG_PATH
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path) as f:
        raw = yaml.safe_load(f) or {}
    return _expand(raw)


def load_config_or_default(path=None):
    """Like load_config, but fall back to an empty config when no file exists."""
    try:
        return load_config(path)
    except FileNotFoundError:
        return {}


def sync_settings(config: dict | None) -> dict:
    """Sync tuning knobs with defaults filled in."""
    settings = dict(SYNC_DEFAULTS)
    if config:
        settings.update({k: v for k, v in (config.get("sync") or {}).items() if v is not None})
    return settings
