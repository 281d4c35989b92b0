"""
Shared fixtures: one Flask app wired to a stub oracle whose behaviour each
test sets.
"""
from __future__ import annotations

import pytest

from jafr_api.analysis import JafrAnalyzer
from jafr_api.errors import OracleAuthRejected
from jafr_api.factory import create_app
from jafr_api.oracle import KeyInfo, Narrative

VALID_KEY = "sk-or-v1-" + "a" * 40


class StubOracle:
    """Deterministic oracle that counts calls and can be told to fail."""

    def __init__(self):
        self.reset()

    def reset(self):
        self.narrative_calls = 0
        self.key_checks = 0
        self.prompts: list[str] = []
        self.error: Exception | None = None
        self.text = "التحليل:\nقيم متوازنة.\nالمعنى الروحي:\nصفاء.\nالتوجيه:\nالصبر."

    def generate_narrative(self, prompt: str, api_key: str) -> Narrative:
        self.narrative_calls += 1
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return Narrative(text=self.text, model="stub/model", usage={"total_tokens": 42})

    def check_key(self, api_key: str) -> KeyInfo:
        self.key_checks += 1
        if self.error is not None:
            raise self.error
        if api_key != VALID_KEY:
            raise OracleAuthRejected("bad key")
        return KeyInfo(name="test key", credits=5.0, expires_at=None)


@pytest.fixture(scope="session")
def _stub_oracle():
    return StubOracle()


@pytest.fixture(scope="session")
def app(_stub_oracle):
    return create_app({"TESTING": True, "LOG_LEVEL": "WARNING"}, oracle=_stub_oracle)


@pytest.fixture
def oracle(_stub_oracle, app, monkeypatch):
    _stub_oracle.reset()
    monkeypatch.setitem(app.extensions, "jafr_analyzer", JafrAnalyzer.from_config(_stub_oracle, app.config))
    return _stub_oracle


@pytest.fixture
def client(app, oracle):
    return app.test_client()


@pytest.fixture
def valid_key() -> str:
    return VALID_KEY


@pytest.fixture
def sample_payload() -> dict:
    return {"name": "محمد", "mother": "فاطمة", "question": "ما هو مستقبلي المهني؟"}
