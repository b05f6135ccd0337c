import argparse
import sys


def cmd_db_init(args):
    from stravaviz.config import load_config_or_default
    from stravaviz.db import init_db

    init_db(load_config_or_default(args.config))


def _progress_printer(verbose: bool):
    def on_progress(event):
        if verbose or event.done:
            print(f"  [{event.percent:5.1f}%] {event.status}")
    return on_progress


def cmd_sync(args):
    from stravaviz.archive import ActivityStore
    from stravaviz.config import load_config_or_default
    from stravaviz.errors import AuthError, TransportError
    from stravaviz.ingest.strava_sync import sync_strava

    config = load_config_or_default(args.config)
    store = ActivityStore(config, verbose=args.verbose)

    try:
        result = sync_strava(
            config,
            store,
            verbose=args.verbose,
            max_pages=args.max_pages,
            on_progress=_progress_printer(args.verbose),
        )
    except AuthError as e:
        print(f"ERROR {e}")
        print("Re-authenticate with Strava and update your access token.")
        sys.exit(2)
    except TransportError as e:
        print(f"ERROR Failed to fetch data: {e}")
        sys.exit(1)

    _print_sync_summary(result)


def _print_sync_summary(result: dict):
    print("\nStrava sync complete:")
    print(f"  Fetched:  {result['fetched']}")
    print(f"  New:      {result['added']}")
    print(f"  Updated:  {result['updated']}")
    print(f"  Archive:  {result['total']}")
    print(f"  Pages:    {result['pages']}")
    if result["retries"]:
        print(f"  Retries:  {result['retries']}")
    if result["truncated"]:
        print("  WARNING: page limit reached, older history was not fetched.")


def cmd_import(args):
    from stravaviz.archive import ActivityStore
    from stravaviz.config import load_config_or_default
    from stravaviz.errors import ImportParseError
    from stravaviz.ingest.json_import import import_file

    config = load_config_or_default(args.config)
    store = ActivityStore(config, verbose=args.verbose)
    try:
        count = import_file(store, args.file, verbose=args.verbose)
    except ImportParseError as e:
        print(f"ERROR {e}")
        print("Archive left unchanged.")
        sys.exit(1)
    print(f"Imported {count} activities (archive replaced).")


def cmd_export(args):
    from stravaviz.archive import ActivityStore
    from stravaviz.config import load_config_or_default
    from stravaviz.ingest.json_import import export_file

    store = ActivityStore(load_config_or_default(args.config))
    path = export_file(store, args.file)
    print(f"Exported archive to {path}")


def cmd_reset(args):
    from stravaviz.archive import ActivityStore
    from stravaviz.config import load_config_or_default

    if not args.yes:
        print("This deletes the local archive. Re-run with --yes to confirm.")
        sys.exit(1)
    ActivityStore(load_config_or_default(args.config)).clear()
    print("Archive cleared.")


def cmd_stats(args):
    from stravaviz.analysis.dashboard import build_dashboard
    from stravaviz.archive import ActivityStore
    from stravaviz.config import load_config_or_default
    from stravaviz.models import ALL

    store = ActivityStore(load_config_or_default(args.config))
    activities = store.load()
    if not activities:
        print("Archive is empty. Run 'stravaviz sync' or 'stravaviz import FILE' first.")
        return

    view = build_dashboard(activities, year=args.year or ALL, sports=args.sport or [ALL])
    kpis = view["kpis"]
    print(f"Activities:  {kpis['count']}")
    print(f"Distance:    {kpis['distance']} km")
    print(f"Elevation:   {kpis['elevation']} m")
    print(f"Moving time: {kpis['hours']} h")

    snap = view["snapshot"]
    print(f"\nArchive: {snap['count']} sessions, {snap['distance']} km, "
          f"longest {snap['longest']} km, peak month {snap['favorite_month']}")

    if view["breakdown"]:
        print("\nSports:")
        for item in view["breakdown"]:
            print(f"  {item['name']:<16} {item['value']:>5}  {item['percent']:5.1f}%")

    print("\nTime of day:")
    for item in view["time_of_day"]:
        print(f"  {item['name']:<10} {item['value']:>5}  {item['percent']:3d}%")

    sig = view["signature"]
    if sig:
        print(f"\nLongest {view['filters']['focus_sport']}: \"{sig['name']}\" "
              f"({(sig['distance'] or 0) / 1000:.1f} km, {(sig['start_date'] or '')[:10]})")


def cmd_review(args):
    from stravaviz.config import load_config_or_default
    from stravaviz.review.app import create_app

    config = load_config_or_default(args.config)
    review_cfg = config.get("review", {})
    app = create_app(config)
    app.run(host=review_cfg.get("host", "127.0.0.1"), port=int(review_cfg.get("port", 5050)))


def build_parser():
    parser = argparse.ArgumentParser(prog="stravaviz", description="StravaViz — activity archive and analytics")
    parser.add_argument("--config", help="Path to config.yaml")
    subparsers = parser.add_subparsers(dest="command")

    # db subcommand with its own subcommands
    db_parser = subparsers.add_parser("db", help="Database operations")
    db_sub = db_parser.add_subparsers(dest="db_command")
    db_init = db_sub.add_parser("init", help="Initialize the database schema")
    db_init.set_defaults(func=cmd_db_init)

    sync_parser = subparsers.add_parser("sync", help="Fetch all activities from Strava and merge them into the archive")
    sync_parser.add_argument("--max-pages", type=int, help="Override the page bound (200 activities per page)")
    sync_parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    sync_parser.set_defaults(func=cmd_sync)

    import_parser = subparsers.add_parser("import", help="Replace the archive with an exported JSON file")
    import_parser.add_argument("file", help="JSON array of activities")
    import_parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    import_parser.set_defaults(func=cmd_import)

    export_parser = subparsers.add_parser("export", help="Write the archive as pretty-printed JSON")
    export_parser.add_argument("file", nargs="?", help="Output path (default: timestamped name)")
    export_parser.set_defaults(func=cmd_export)

    reset_parser = subparsers.add_parser("reset", help="Delete the local archive")
    reset_parser.add_argument("--yes", action="store_true", help="Confirm deletion")
    reset_parser.set_defaults(func=cmd_reset)

    stats_parser = subparsers.add_parser("stats", help="Print KPIs and breakdowns")
    stats_parser.add_argument("--year", type=int, help="Calendar year (default: all)")
    stats_parser.add_argument("--sport", action="append", help="Sport type, repeatable (default: all)")
    stats_parser.set_defaults(func=cmd_stats)

    review_parser = subparsers.add_parser("review", help="Serve the JSON API")
    review_parser.set_defaults(func=cmd_review)

    return parser, db_parser


def main(argv=None):
    parser, db_parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        sys.exit(1)
    if args.command == "db" and not getattr(args, "db_command", None):
        db_parser.print_help()
        sys.exit(1)
    if hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()
        sys.exit(1)
