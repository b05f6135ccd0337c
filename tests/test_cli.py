import json

import pytest
import yaml
from conftest import make_activity

from stravaviz.archive import ActivityStore
from stravaviz.cli import main
from stravaviz.config import load_config, sync_settings


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    monkeypatch.setenv("STRAVAVIZ_TEST_HOME", str(tmp_path))
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({
        "paths": {"db": "$STRAVAVIZ_TEST_HOME/data/stravaviz.db"},
        "sync": {"max_pages": 3},
    }))
    return path


def test_load_config_expands_env(config_file, tmp_path):
    config = load_config(config_file)
    assert config["paths"]["db"] == f"{tmp_path}/data/stravaviz.db"
    assert sync_settings(config)["max_pages"] == 3
    assert sync_settings(config)["page_size"] == 200


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.yaml")


def test_import_export_stats_reset(config_file, tmp_path, capsys):
    source = tmp_path / "in.json"
    source.write_text(json.dumps([
        make_activity(1, distance=10_500, start_date="2024-04-01T07:00:00Z"),
        make_activity(2, type="Ride", distance=40_000, start_date="2024-04-02T17:30:00Z"),
    ]))

    main(["--config", str(config_file), "import", str(source)])
    assert "Imported 2 activities" in capsys.readouterr().out

    out_path = tmp_path / "out.json"
    main(["--config", str(config_file), "export", str(out_path)])
    assert json.loads(out_path.read_text()) == json.loads(source.read_text())

    main(["--config", str(config_file), "stats", "--sport", "Run"])
    out = capsys.readouterr().out
    assert "Activities:  1" in out
    assert "Distance:    10.5 km" in out

    main(["--config", str(config_file), "reset", "--yes"])
    store = ActivityStore(load_config(config_file))
    assert store.load() == []


def test_bad_import_exits_nonzero(config_file, tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text("{}")
    with pytest.raises(SystemExit) as info:
        main(["--config", str(config_file), "import", str(bad)])
    assert info.value.code == 1


def test_reset_requires_confirmation(config_file):
    with pytest.raises(SystemExit):
        main(["--config", str(config_file), "reset"])


def test_sync_without_token_exits_with_auth_code(config_file, tmp_path, monkeypatch):
    monkeypatch.delenv("STRAVA_ACCESS_TOKEN", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    with pytest.raises(SystemExit) as info:
        main(["--config", str(config_file), "sync"])
    assert info.value.code == 2


def test_stats_handles_signature_without_distance(config_file, tmp_path, capsys):
    run = make_activity(1, name="Untimed jog", start_date="2024-04-01T07:00:00Z")
    del run["distance"]
    source = tmp_path / "in.json"
    source.write_text(json.dumps([run]))

    main(["--config", str(config_file), "import", str(source)])
    main(["--config", str(config_file), "stats", "--sport", "Run"])
    out = capsys.readouterr().out
    assert 'Longest Run: "Untimed jog" (0.0 km, 2024-04-01)' in out
