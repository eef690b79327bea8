"""
HTTP API — Flask JSON boundary for the engagement engine.

Routes only parse parameters and serialize results; every computation
lives in the engine modules. Bad parameters answer 400, a missing
required insight-service credential answers 503.
"""

import logging

from flask import Flask, jsonify, request

import config
from benchmark_engine import benchmark_report, compare_platforms, get_benchmarks
from engagement_analyzer import analyze_engagement
from forecast_generator import TrendForecaster
from growth_projector import GrowthSnapshot, project_growth
from insight_service import create_insight_generator
from prediction_store import SQLitePredictionStore, PREDICTION_TYPES
from records import SUPPORTED_PLATFORMS, WEEK, normalize_platform
from records.sqlite_store import SQLiteRecordStore, init_database

logger = logging.getLogger(__name__)

MAX_HISTORY_LIMIT = 100


def create_app(record_store=None, insight_generator=None, prediction_store=None) -> Flask:
    """
    Build the Flask app.

    Collaborators default to the SQLite stores at config.DB_PATH and the
    environment's insight generator (created on first use).
    """
    app = Flask(__name__)

    if record_store is None:
        init_database()
        record_store = SQLiteRecordStore()
    if prediction_store is None:
        prediction_store = SQLitePredictionStore()

    services = {"insight_generator": insight_generator}

    def get_insight_generator():
        if services["insight_generator"] is None:
            services["insight_generator"] = create_insight_generator()
        return services["insight_generator"]

    def get_forecaster():
        return TrendForecaster(
            record_store,
            insight_generator=get_insight_generator(),
            prediction_store=prediction_store,
        )

    @app.errorhandler(ValueError)
    def handle_bad_request(e):
        return jsonify({"error": str(e)}), 400

    @app.errorhandler(config.ConfigurationError)
    def handle_configuration_error(e):
        logger.error(f"Insight service not configured: {e}")
        return jsonify({"error": str(e)}), 503

    @app.route("/api/engagement/analysis")
    def engagement_analysis():
        analysis = analyze_engagement(
            record_store,
            platform=request.args.get("platform") or None,
            timeframe=request.args.get("timeframe", WEEK),
            insight_generator=get_insight_generator(),
        )
        return jsonify({"success": True, "data": analysis.to_dict()})

    @app.route("/api/engagement/benchmarks")
    def engagement_benchmarks():
        platform = normalize_platform(request.args.get("platform") or None)
        if platform:
            benchmark = get_benchmarks(record_store, platform)
            return jsonify({"success": True, "data": benchmark_report(benchmark)})

        benchmarks = [get_benchmarks(record_store, p) for p in SUPPORTED_PLATFORMS]
        return jsonify({
            "success": True,
            "data": {
                "platforms": {b.platform: benchmark_report(b) for b in benchmarks},
                "cross_platform": compare_platforms(benchmarks),
            },
        })

    @app.route("/api/predictions/history")
    def prediction_history():
        prediction_type = request.args.get("type") or None
        if prediction_type and prediction_type not in PREDICTION_TYPES:
            return jsonify({"error": f"Unknown prediction type '{prediction_type}'"}), 400
        try:
            limit = int(request.args.get("limit", "10"))
        except ValueError:
            return jsonify({"error": "limit must be an integer"}), 400
        limit = max(1, min(limit, MAX_HISTORY_LIMIT))

        predictions = prediction_store.list(
            platform=normalize_platform(request.args.get("platform") or None),
            type=prediction_type,
            limit=limit,
        )
        return jsonify({
            "success": True,
            "data": [p.to_dict() for p in predictions],
            "count": len(predictions),
        })

    @app.route("/api/predictions/<prediction_type>")
    def predictions(prediction_type):
        if prediction_type not in PREDICTION_TYPES:
            return jsonify({"error": f"Unknown prediction type '{prediction_type}'"}), 404
        platform = request.args.get("platform") or None
        if not platform:
            return jsonify({"error": "platform is required"}), 400

        prediction = get_forecaster().predict(prediction_type, platform)
        return jsonify({"success": True, "data": prediction.to_dict()})

    @app.route("/api/growth/projection", methods=["POST"])
    def growth_projection():
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            body = {}
        raw_history = body.get("history")
        if not isinstance(raw_history, list) or not raw_history:
            return jsonify({"error": "history must be a non-empty list of snapshots"}), 400

        try:
            history = sorted(
                (GrowthSnapshot.from_dict(item) for item in raw_history),
                key=lambda s: s.date,
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            return jsonify({"error": f"Invalid snapshot: {e}"}), 400

        projection = project_growth(
            history,
            include_projections=bool(body.get("include_projections", False)),
        )
        return jsonify({"success": True, "data": projection.to_dict()})

    return app
