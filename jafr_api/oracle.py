"""Client for the remote chat-completion provider.

The orchestrator only sees the `Oracle` interface, so tests can hand it a
deterministic stub instead of `OpenRouterOracle`.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol

import httpx

from .errors import (
    OracleAuthRejected,
    OracleMalformedResponse,
    OracleRateLimited,
    OracleTimeout,
    OracleUnavailable,
)

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER = 60

SYSTEM_INSTRUCTION = (
    "أنت خبير في علم الجفر والتحليل العددي الإسلامي. "
    "قم بتحليل الأرقام وتقديم تفسيرات واضحة ومفيدة باللغة العربية الفصحى."
)


@dataclass(frozen=True)
class Narrative:
    text: str
    model: str | None = None
    usage: dict[str, Any] | None = None


@dataclass(frozen=True)
class KeyInfo:
    name: str
    credits: float = 0
    expires_at: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


class Oracle(Protocol):
    def generate_narrative(self, prompt: str, api_key: str) -> Narrative: ...

    def check_key(self, api_key: str) -> KeyInfo: ...


def _retry_after(response: httpx.Response) -> int:
    raw = response.headers.get("Retry-After")
    try:
        return int(raw) if raw is not None else DEFAULT_RETRY_AFTER
    except ValueError:
        return DEFAULT_RETRY_AFTER


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if body.get("message"):
            return str(body["message"])
    return f"خطأ {response.status_code}: {response.reason_phrase}"


class OpenRouterOracle:
    """
    OpenAI-compatible chat-completion client (OpenRouter by default).

    One attempt per call; a fresh httpx.Client per call so a timed-out request
    never leaves a pooled connection behind.
    """

    def __init__(
        self,
        base_url: str,
        model: str,
        *,
        timeout: float = 60.0,
        connect_timeout: float = 15.0,
        total_timeout: float | None = None,
        key_check_timeout: float = 15.0,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        referer: str | None = None,
        title: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url
        self.model = model
        self.timeout = httpx.Timeout(timeout, connect=connect_timeout)
        # Wall-clock bound for a whole call, body included.
        self.total_timeout = total_timeout if total_timeout is not None else timeout
        self.key_check_timeout = key_check_timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.referer = referer
        self.title = title
        self._transport = transport

    @classmethod
    def from_config(cls, config: Mapping[str, Any], **kwargs: Any) -> "OpenRouterOracle":
        return cls(
            config["OPENROUTER_BASE_URL"],
            config["ORACLE_MODEL"],
            timeout=config["ORACLE_TIMEOUT_SECONDS"],
            connect_timeout=config["ORACLE_CONNECT_TIMEOUT_SECONDS"],
            total_timeout=config.get("ORACLE_TOTAL_TIMEOUT_SECONDS"),
            key_check_timeout=config.get("ORACLE_KEY_CHECK_TIMEOUT_SECONDS", 15.0),
            temperature=config["ORACLE_TEMPERATURE"],
            max_tokens=config["ORACLE_MAX_TOKENS"],
            referer=config.get("APP_REFERER"),
            title=config.get("APP_TITLE"),
            **kwargs,
        )

    def _client(self, api_key: str) -> httpx.Client:
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        if self.referer:
            headers["HTTP-Referer"] = self.referer
        if self.title:
            headers["X-Title"] = self.title
        return httpx.Client(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self._transport,
        )

    def _send(self, api_key: str, method: str, path: str, *, total_timeout: float,
              **kwargs: Any) -> httpx.Response:
        """
        One request whose headers and body must all arrive within
        `total_timeout` seconds; the body is streamed so the deadline is
        checked between chunks.
        """
        deadline = time.monotonic() + total_timeout
        timeout = httpx.Timeout(
            min(self.timeout.read, total_timeout),
            connect=min(self.timeout.connect, total_timeout),
        )
        try:
            with self._client(api_key) as client:
                with client.stream(method, path, timeout=timeout, **kwargs) as streamed:
                    chunks: list[bytes] = []
                    for chunk in streamed.iter_bytes():
                        chunks.append(chunk)
                        if time.monotonic() > deadline:
                            break
                    if time.monotonic() > deadline:
                        raise OracleTimeout(f"no complete response within {total_timeout:g}s")
                    # Body is already decoded, so the rebuilt response must not decode it again.
                    headers = {k: v for k, v in streamed.headers.items() if k.lower() != "content-encoding"}
                    response = httpx.Response(
                        streamed.status_code,
                        headers=headers,
                        content=b"".join(chunks),
                        request=streamed.request,
                    )
        except httpx.TimeoutException as e:
            raise OracleTimeout(str(e) or None) from e
        except httpx.HTTPError as e:
            raise OracleUnavailable(str(e) or None) from e

        if response.status_code == 429:
            raise OracleRateLimited(_retry_after(response), _error_detail(response))
        if response.status_code in (401, 403):
            raise OracleAuthRejected(_error_detail(response))
        if response.is_error:
            raise OracleUnavailable(_error_detail(response), status=response.status_code)
        return response

    def generate_narrative(self, prompt: str, api_key: str) -> Narrative:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_INSTRUCTION},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        response = self._send(
            api_key, "POST", "/chat/completions", total_timeout=self.total_timeout, json=payload
        )

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise OracleMalformedResponse(f"unexpected completion payload: {e!r}") from e
        if not isinstance(content, str) or not content.strip():
            raise OracleMalformedResponse("empty completion content")

        logger.debug("Completion received model=%s chars=%d", data.get("model"), len(content))
        return Narrative(text=content.strip(), model=data.get("model", self.model), usage=data.get("usage"))

    def check_key(self, api_key: str) -> KeyInfo:
        """Ask the provider whether `api_key` is live (GET /auth/key)."""
        response = self._send(api_key, "GET", "/auth/key", total_timeout=self.key_check_timeout)
        try:
            body = response.json()
        except ValueError:
            body = {}
        data = body.get("data", body) if isinstance(body, dict) else {}
        if not isinstance(data, dict):
            data = {}
        return KeyInfo(
            name=data.get("name") or data.get("label") or "غير معروف",
            credits=data.get("credits") or data.get("limit_remaining") or 0,
            expires_at=data.get("expires_at"),
            raw=data,
        )
