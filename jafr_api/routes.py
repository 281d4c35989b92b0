from __future__ import annotations

import time
from datetime import datetime, timezone

from flask import current_app, request
from flask.views import MethodView
from flask_smorest import Blueprint

from . import abjad
from .analysis import AnalysisRequest, JafrAnalyzer, validate_api_key
from .errors import (
    CredentialFormatError,
    OracleAuthRejected,
    OracleError,
    OracleRateLimited,
    OracleTimeout,
)
from .oracle import Oracle
from .schemas import (
    AbjadLookupResponseSchema,
    AbjadQueryArgsSchema,
    AnalysisRequestSchema,
    AnalysisResponseSchema,
    ApiKeyTestResponseSchema,
    ApiKeyTestSchema,
)


blp = Blueprint("jafr", __name__, url_prefix="/", description="Jafr analysis endpoints")


def _analyzer() -> JafrAnalyzer:
    return current_app.extensions["jafr_analyzer"]


def _oracle() -> Oracle:
    return current_app.extensions["jafr_oracle"]


def _request_api_key(body_key: str | None = None) -> str | None:
    """Credential from X-API-Key, then `Authorization: Bearer`, then the body."""
    key = request.headers.get("X-API-Key")
    if key:
        return key
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        return auth.removeprefix("Bearer ")
    return body_key


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@blp.route("/abjad")
class AbjadLookup(MethodView):
    @blp.arguments(AbjadQueryArgsSchema, location="query")
    @blp.response(200, AbjadLookupResponseSchema)
    def get(self, args):
        text = args["text"].strip()
        result = abjad.text_value(text, detail=True)
        reduced = abjad.reduce_to_single_digit(result.total)
        return {
            "text": text,
            "total": result.total,
            "reducedValue": reduced,
            "wafqSize": abjad.wafq_size(reduced),
            "letters": [{"char": ch, "value": value} for ch, value in result.letters],
        }


@blp.route("/api/jafr/analyze")
class JafrAnalyze(MethodView):
    @blp.arguments(AnalysisRequestSchema)
    @blp.response(200, AnalysisResponseSchema)
    def post(self, payload):
        """
        Numerology of name, mother's name and question, plus the AI narrative.

        Traditional results are always returned; an oracle outage only swaps
        the narrative for placeholders.
        """
        started = time.perf_counter()
        analysis_request = AnalysisRequest.from_payload(payload)
        data = _analyzer().analyze(analysis_request, _request_api_key(payload.get("apiKey")))
        return {
            "success": True,
            "message": "تم تحليل البيانات بنجاح",
            "timestamp": _timestamp(),
            "processingTime": f"{time.perf_counter() - started:.3f} ثانية",
            "data": data,
        }


@blp.route("/api/test-api-key")
class ApiKeyTest(MethodView):
    @blp.arguments(ApiKeyTestSchema)
    @blp.response(200, ApiKeyTestResponseSchema)
    def post(self, payload):
        """
        Format check, then ask the provider whether the key is live.
        """
        analyzer = _analyzer()
        try:
            key = validate_api_key(
                payload.get("apiKey") or _request_api_key(),
                analyzer.key_prefix,
                analyzer.key_min_length,
            )
        except CredentialFormatError as e:
            return {"valid": False, "success": False, "message": e.message, "error": e.code}, 400

        try:
            info = _oracle().check_key(key)
        except OracleRateLimited as e:
            body = {
                "valid": False,
                "success": False,
                "message": e.message,
                "error": e.code,
                "retryAfter": e.retry_after,
            }
            return body, 429, {"Retry-After": str(e.retry_after)}
        except OracleTimeout as e:
            return {"valid": False, "success": False, "message": e.message, "error": e.code}, 504
        except OracleAuthRejected as e:
            return {"valid": False, "success": False, "message": e.message, "error": e.code}
        except OracleError as e:
            return {"valid": False, "success": False, "message": e.detail, "error": e.code}

        return {
            "valid": True,
            "success": True,
            "message": "تم التحقق من صحة المفتاح بنجاح",
            "data": {"name": info.name, "credits": info.credits, "expiresAt": info.expires_at},
        }
