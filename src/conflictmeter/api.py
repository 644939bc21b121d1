"""HTTP surface: a single read-only score route."""

from __future__ import annotations

import asyncio
import logging

from flask import Flask, Response, jsonify

from conflictmeter.core.config import Settings, get_settings
from conflictmeter.services.pipeline import ScorePipeline, build_pipeline, cache_control_header

LOGGER = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, pipeline: ScorePipeline | None = None) -> Flask:
    settings = settings or get_settings()
    pipeline = pipeline or build_pipeline(settings)
    cache_control = cache_control_header(settings)

    app = Flask(__name__)

    @app.get("/api/score")
    def score() -> Response:
        result = asyncio.run(pipeline.get_score())
        LOGGER.debug("GET /api/score status=%d cache=%s", result.status_code, result.cache_status)
        response = jsonify(result.record.to_response())
        response.status_code = result.status_code
        response.headers["Cache-Control"] = cache_control
        return response

    return app
