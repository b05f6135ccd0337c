import threading
from dataclasses import asdict
from datetime import date

from flask import Flask, Response, jsonify, request

from stravaviz.analysis.dashboard import build_dashboard
from stravaviz.analysis.filters import filter_activities, sport_options, year_options
from stravaviz.analysis.summary import format_adaptive_distance, format_duration, kpi_summary
from stravaviz.analysis.tracks import track_collection
from stravaviz.archive import ActivityStore
from stravaviz.config import load_config_or_default
from stravaviz.errors import AuthError, ImportParseError, TransportError
from stravaviz.ingest.json_import import export_filename, parse_import_document
from stravaviz.models import ALL


def create_app(config=None, store=None, sync_client=None):
    """JSON API over the archive and its derived views.

    *sync_client* is an optional stravalib-compatible client used for
    /api/sync instead of one built from the configured token.
    """
    app = Flask(__name__)

    if config is None:
        config = load_config_or_default()
    if store is None:
        store = ActivityStore(config)
    app.config["STRAVAVIZ"] = config
    app.config["STORE"] = store

    # ── Helpers ──────────────────────────────────────────────────────

    def _selection():
        """(year, sports) from the query string. Raises ValueError on a bad year."""
        year = request.args.get("year", ALL)
        if year != ALL:
            try:
                year = int(year)
            except ValueError:
                raise ValueError(f"year must be a number or {ALL}, got {year!r}") from None
        sports = request.args.getlist("sport") or [ALL]
        return year, sports

    def _selected_activities():
        year, sports = _selection()
        return filter_activities(store.load(), year=year, sports=sports)

    def _bad_query(e):
        return jsonify({"ok": False, "error": str(e)}), 400

    def _list_row(a):
        return {
            "id": a.get("id"),
            "name": a.get("name"),
            "type": a.get("type"),
            "start_date": a.get("start_date"),
            "distance": format_adaptive_distance(a.get("distance") or 0),
            "moving_time": format_duration(a.get("moving_time")),
            "total_elevation_gain": a.get("total_elevation_gain"),
            "has_track": bool((a.get("map") or {}).get("summary_polyline")),
        }

    # ── Views ────────────────────────────────────────────────────────

    @app.route("/api/facets")
    def api_facets():
        activities = store.load()
        return jsonify({
            "years": year_options(activities),
            "sports": sport_options(activities),
        })

    @app.route("/api/activities")
    def api_activities():
        try:
            selected = _selected_activities()
        except ValueError as e:
            return _bad_query(e)
        selected.sort(key=lambda a: a.get("start_date") or "", reverse=True)
        return jsonify([_list_row(a) for a in selected])

    @app.route("/api/kpis")
    def api_kpis():
        try:
            selected = _selected_activities()
        except ValueError as e:
            return _bad_query(e)
        return jsonify(asdict(kpi_summary(selected)))

    @app.route("/api/stats")
    def api_stats():
        try:
            year, sports = _selection()
            today_arg = request.args.get("today")
            today = date.fromisoformat(today_arg) if today_arg else None
        except ValueError as e:
            return _bad_query(e)
        return jsonify(build_dashboard(store.load(), year=year, sports=sports, today=today))

    @app.route("/api/tracks")
    def api_tracks():
        try:
            selected = _selected_activities()
        except ValueError as e:
            return _bad_query(e)
        return jsonify(track_collection(selected))

    # ── Archive ──────────────────────────────────────────────────────

    @app.route("/api/export")
    def api_export():
        body = store.export_snapshot(store.load())
        return Response(
            body,
            mimetype="application/json",
            headers={"Content-Disposition": f"attachment; filename={export_filename()}"},
        )

    @app.route("/api/import", methods=["POST"])
    def api_import():
        try:
            activities = parse_import_document(request.get_data(as_text=True))
        except ImportParseError as e:
            return jsonify({"ok": False, "error": str(e)}), 400
        count = store.replace_all(activities)
        return jsonify({"ok": True, "count": count})

    @app.route("/api/archive", methods=["DELETE"])
    def api_clear_archive():
        store.clear()
        return jsonify({"ok": True})

    # ── Sync pipeline ────────────────────────────────────────────────

    _sync_lock = threading.Lock()
    _sync_status = {"running": False, "percent": 0.0, "status": "", "success": None,
                    "error": None, "result": None}
    _sync_cancel = threading.Event()

    @app.route("/api/sync", methods=["POST"])
    def api_sync():
        with _sync_lock:
            if _sync_status["running"]:
                return jsonify({"ok": False, "error": "Sync already running"}), 409
            _sync_status.update(running=True, percent=0.0, status="Starting...",
                                success=None, error=None, result=None)
            _sync_cancel.clear()

        def on_progress(event):
            _sync_status["percent"] = event.percent
            _sync_status["status"] = event.status

        def run_sync():
            from stravaviz.ingest.strava_sync import sync_strava

            try:
                result = sync_strava(config, store, on_progress=on_progress,
                                     cancel=_sync_cancel, client=sync_client)
                _sync_status["result"] = result
                _sync_status["success"] = True
            except AuthError as e:
                _sync_status["error"] = str(e)
                _sync_status["status"] = "Strava rejected the token; re-authenticate"
                _sync_status["success"] = False
            except TransportError as e:
                _sync_status["error"] = str(e)
                _sync_status["status"] = "Failed to fetch data"
                _sync_status["success"] = False
            except Exception as e:
                _sync_status["error"] = str(e)
                _sync_status["status"] = "Sync failed"
                _sync_status["success"] = False
            finally:
                _sync_status["running"] = False

        app.config["SYNC_THREAD"] = threading.Thread(target=run_sync, daemon=True)
        app.config["SYNC_THREAD"].start()
        return jsonify({"ok": True, "message": "Sync started"})

    @app.route("/api/sync/cancel", methods=["POST"])
    def api_sync_cancel():
        _sync_cancel.set()
        return jsonify({"ok": True, "running": _sync_status["running"]})

    @app.route("/api/sync/status")
    def api_sync_status():
        return jsonify(dict(_sync_status))

    return app
