"""Flask application factory.

Kept separate from `jafr_api/__init__.py` so the CLI can import
`jafr_api.analysis` and `jafr_api.abjad` without Flask.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping

from flask import Flask

from .analysis import JafrAnalyzer
from .config import Config
from .errors import JafrError
from .extensions import api
from .oracle import OpenRouterOracle, Oracle
from .routes import blp

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def create_app(config: Mapping[str, Any] | None = None, oracle: Oracle | None = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(Config)
    if config:
        app.config.update(config)

    logging.basicConfig(level=app.config["LOG_LEVEL"], format=LOG_FORMAT)
    app.json.ensure_ascii = False

    if oracle is None:
        oracle = OpenRouterOracle.from_config(app.config)
    app.extensions["jafr_oracle"] = oracle
    app.extensions["jafr_analyzer"] = JafrAnalyzer.from_config(oracle, app.config)

    api.init_app(app)
    api.register_blueprint(blp)

    @app.errorhandler(JafrError)
    def handle_jafr_error(e: JafrError):
        logger.info("Rejected request code=%s message=%s", e.code, e.message)
        return e.to_dict(), e.status_code

    # HTTPExceptions keep flask-smorest's handler (more specific match).
    @app.errorhandler(Exception)
    def handle_unexpected_error(e: Exception):
        logger.exception("Unhandled error while processing %s", type(e).__name__)
        return {"success": False, "message": "حدث خطأ أثناء معالجة الطلب", "error": str(e)}, 500

    @app.get("/")
    def index():
        return {
            "service": "Jafr Analysis API",
            "swagger_ui": "/swagger-ui",
            "openapi_json": "/openapi.json",
            "endpoints": [
                "/abjad",
                "/api/jafr/analyze",
                "/api/test-api-key",
                "/api/health",
            ],
        }

    @app.get("/api/health")
    def health():
        """
        Liveness check; does not contact the completion provider.
        """
        return {
            "status": "healthy",
            "service": "نظام الجفر الذكي المتقدم",
            "oracle_enabled": app.extensions["jafr_analyzer"].enabled,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return app
