"""
Engagement Forecast Engine — command-line orchestrator.

Usage:
  python main.py ingest records.json               # load engagement records
  python main.py analyze --platform youtube        # current-week analysis
  python main.py benchmarks --platform tiktok      # percentile benchmarks
  python main.py predict weekly --platform youtube # run one forecast
  python main.py history --platform youtube        # saved forecasts
  python main.py growth snapshots.json --projections
  python main.py schedule --once                   # refresh every forecast
  python main.py serve                             # JSON API
"""

import argparse
import json
import logging
import signal
import sys
import threading
from datetime import datetime

import config
from benchmark_engine import benchmark_report, compare_platforms, get_benchmarks
from engagement_analyzer import analyze_engagement
from forecast_generator import TrendForecaster
from growth_projector import GrowthSnapshot, project_growth
from insight_service import create_insight_generator
from prediction_store import SQLitePredictionStore, PREDICTION_TYPES
from records import EngagementRecord, SUPPORTED_PLATFORMS, WEEK, MONTH, normalize_platform
from records.sqlite_store import SQLiteRecordStore, init_database, store_records
from scheduler import ForecastScheduler

logger = logging.getLogger("main")


def setup_logging():
    """Configure console logging with timestamps."""
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def parse_args(argv=None):
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Engagement Forecast Engine — engagement analytics and trend forecasting"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser("ingest", help="Load engagement records from a JSON file")
    ingest.add_argument("path", help="JSON array of engagement records")

    analyze = subparsers.add_parser("analyze", help="Analyze the current week or month")
    analyze.add_argument("--platform", "-p", default=None, choices=SUPPORTED_PLATFORMS)
    analyze.add_argument("--timeframe", "-t", default=WEEK, choices=[WEEK, MONTH])

    benchmarks = subparsers.add_parser("benchmarks", help="Percentile benchmarks per platform")
    benchmarks.add_argument("--platform", "-p", default=None, choices=SUPPORTED_PLATFORMS,
                            help="Omit to benchmark and compare every platform")

    predict = subparsers.add_parser("predict", help="Run one trend forecast")
    predict.add_argument("type", choices=PREDICTION_TYPES)
    predict.add_argument("--platform", "-p", required=True, choices=SUPPORTED_PLATFORMS)

    history = subparsers.add_parser("history", help="List saved forecasts, newest first")
    history.add_argument("--platform", "-p", default=None, choices=SUPPORTED_PLATFORMS)
    history.add_argument("--type", default=None, choices=PREDICTION_TYPES)
    history.add_argument("--limit", type=int, default=10)

    growth = subparsers.add_parser("growth", help="Project channel growth from snapshots")
    growth.add_argument("path", help="JSON array of growth snapshots")
    growth.add_argument("--projections", action="store_true",
                        help="Include 1/3/6/12-month projections")

    schedule = subparsers.add_parser("schedule", help="Refresh every forecast on an interval")
    schedule.add_argument("--once", action="store_true", help="Run one pass and exit")
    schedule.add_argument("--interval", type=float, default=None,
                          help="Minutes between runs (default: SCHEDULER_INTERVAL_MINUTES)")

    serve = subparsers.add_parser("serve", help="Run the JSON API")
    serve.add_argument("--host", default=config.API_HOST)
    serve.add_argument("--port", type=int, default=config.API_PORT)

    return parser.parse_args(argv)


def _print_json(data):
    print(json.dumps(data, indent=2, default=str))


def _load_json_list(path):
    with open(path, "r") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON array")
    return data


def _record_from_dict(item):
    created_at = item.get("created_at")
    if isinstance(created_at, str):
        created_at = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
    return EngagementRecord(
        content_id=str(item["content_id"]),
        platform=normalize_platform(item["platform"]),
        category=item.get("category"),
        title=item.get("title"),
        views=item.get("views", 0),
        likes=item.get("likes", 0),
        comments=item.get("comments", 0),
        shares=item.get("shares", 0),
        created_at=created_at,
        hashtags=tuple(item.get("hashtags") or ()),
    )


def cmd_ingest(args, store):
    records = [_record_from_dict(item) for item in _load_json_list(args.path)]
    inserted = store_records(records)
    _print_json({"read": len(records), "inserted": inserted})


def cmd_analyze(args, store):
    analysis = analyze_engagement(store, platform=args.platform, timeframe=args.timeframe)
    _print_json(analysis.to_dict())


def cmd_benchmarks(args, store):
    if args.platform:
        _print_json(benchmark_report(get_benchmarks(store, args.platform)))
        return
    results = [get_benchmarks(store, p) for p in SUPPORTED_PLATFORMS]
    _print_json({
        "platforms": {b.platform: benchmark_report(b) for b in results},
        "cross_platform": compare_platforms(results),
    })


def _forecaster(store):
    return TrendForecaster(
        store,
        insight_generator=create_insight_generator(),
        prediction_store=SQLitePredictionStore(),
    )


def cmd_predict(args, store):
    prediction = _forecaster(store).predict(args.type, args.platform)
    _print_json(prediction.to_dict())


def cmd_history(args, store):
    predictions = SQLitePredictionStore().list(platform=args.platform, type=args.type, limit=args.limit)
    _print_json([p.to_dict() for p in predictions])


def cmd_growth(args, store):
    history = sorted(
        (GrowthSnapshot.from_dict(item) for item in _load_json_list(args.path)),
        key=lambda s: s.date,
    )
    projection = project_growth(history, include_projections=args.projections)
    _print_json(projection.to_dict())


def cmd_schedule(args, store):
    scheduler = ForecastScheduler(_forecaster(store))
    if args.once:
        results = scheduler.run_once()
        _print_json([
            {"platform": r.platform, "type": r.prediction_type, "error": r.error,
             "source": r.prediction.source if r.prediction else None}
            for r in results
        ])
        return

    stop_event = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop_event.set())
    signal.signal(signal.SIGTERM, lambda *_: stop_event.set())
    interval = args.interval * 60 if args.interval else None
    logger.info(f"Scheduler started for {len(scheduler.jobs)} jobs (Ctrl+C to stop)")
    scheduler.run_forever(stop_event, interval_seconds=interval)


def cmd_serve(args, store):
    from api import create_app
    app = create_app(record_store=store)
    app.run(host=args.host, port=args.port)


COMMANDS = {
    "ingest": cmd_ingest,
    "analyze": cmd_analyze,
    "benchmarks": cmd_benchmarks,
    "predict": cmd_predict,
    "history": cmd_history,
    "growth": cmd_growth,
    "schedule": cmd_schedule,
    "serve": cmd_serve,
}


def main(argv=None):
    setup_logging()
    args = parse_args(argv)

    init_database()
    store = SQLiteRecordStore()

    try:
        COMMANDS[args.command](args, store)
    except config.ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(2)
    except (ValueError, KeyError, OSError) as e:
        logger.error(f"{args.command} failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
