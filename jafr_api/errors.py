"""Exception types shared by the orchestrator, the oracle client and the routes."""

from __future__ import annotations


class JafrError(Exception):
    """Request-level failure rendered as `{success: false, message, error}`."""

    status_code = 400
    code = "BAD_REQUEST"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        return {"success": False, "message": self.message, "error": self.code}


class InputValidationError(JafrError):
    code = "MISSING_FIELDS"

    def __init__(self, missing: list[str]):
        self.missing = list(missing)
        super().__init__(f"الحقول التالية مطلوبة: {'، '.join(self.missing)}")


class CredentialFormatError(JafrError):
    code = "INVALID_API_KEY_FORMAT"


class OracleError(Exception):
    """Remote completion call failed; never escapes the orchestrator."""

    code = "ORACLE_ERROR"
    message = "تعذر الحصول على التحليل المتقدم"

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.message)
        self.detail = detail or self.message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "detail": self.detail, "retryAfter": None}


class OracleTimeout(OracleError):
    code = "CONNECTION_TIMEOUT"
    message = "انتهت مهلة الاتصال بخادم OpenRouter"


class OracleRateLimited(OracleError):
    code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, retry_after: int, detail: str | None = None):
        self.retry_after = retry_after
        self.message = f"تم تجاوز الحد المسموح من الطلبات. يرجى المحاولة بعد {retry_after} ثانية."
        super().__init__(detail)

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["retryAfter"] = self.retry_after
        return payload


class OracleAuthRejected(OracleError):
    code = "INVALID_API_KEY"
    message = "مفتاح API غير صالح أو منتهي الصلاحية. يرجى التحقق من المفتاح والمحاولة مرة أخرى."


class OracleMalformedResponse(OracleError):
    code = "MALFORMED_RESPONSE"
    message = "استجابة غير متوقعة من خادم الذكاء الاصطناعي"


class OracleUnavailable(OracleError):
    code = "ORACLE_UNAVAILABLE"
    message = "فشل في الحصول على التحليل المتقدم"

    def __init__(self, detail: str | None = None, status: int | None = None):
        self.status = status
        super().__init__(detail)
