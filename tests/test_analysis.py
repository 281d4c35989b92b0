"""
Tests for the analysis orchestrator (validation, numerology, oracle fallback).
"""
from __future__ import annotations

import time

import httpx
import pytest

from jafr_api.analysis import (
    AI_UNAVAILABLE,
    AnalysisOptions,
    AnalysisRequest,
    JafrAnalyzer,
    build_prompt,
    parse_narrative,
    traditional_results,
    validate_api_key,
)
from jafr_api.config import as_flag
from jafr_api.errors import (
    CredentialFormatError,
    InputValidationError,
    OracleAuthRejected,
    OracleMalformedResponse,
    OracleRateLimited,
    OracleTimeout,
    OracleUnavailable,
)
from jafr_api.oracle import OpenRouterOracle


@pytest.fixture
def analyzer(oracle):
    return JafrAnalyzer(oracle)


@pytest.fixture
def sample_request(sample_payload) -> AnalysisRequest:
    return AnalysisRequest.from_payload(sample_payload)


class TestAnalysisRequest:
    def test_mother_name_alias(self):
        request = AnalysisRequest.from_payload({"name": "a", "motherName": " ب ", "question": "q"})
        assert request.mother == "ب"

    def test_options_default_on(self):
        options = AnalysisOptions.from_mapping(None)
        assert options.deep_analysis and options.numerology_details and options.contextual_interpretation

    def test_options_only_false_disables(self):
        options = AnalysisOptions.from_mapping({"deepAnalysis": False, "numerologyDetails": None})
        assert options.deep_analysis is False
        assert options.numerology_details is True

    def test_missing_fields_in_order(self):
        request = AnalysisRequest.from_payload({"name": "  ", "question": ""})
        assert request.missing_fields() == ["الاسم", "اسم الأم", "السؤال"]


class TestValidateApiKey:
    def test_valid_key_is_trimmed(self, valid_key):
        assert validate_api_key(f"  {valid_key}\n") == valid_key

    def test_missing(self):
        with pytest.raises(CredentialFormatError) as exc:
            validate_api_key(None)
        assert exc.value.code == "MISSING_API_KEY"

    def test_wrong_prefix(self):
        with pytest.raises(CredentialFormatError) as exc:
            validate_api_key("pk-" + "a" * 40)
        assert exc.value.code == "INVALID_API_KEY_FORMAT"
        assert "sk-" in exc.value.message

    def test_too_short(self):
        with pytest.raises(CredentialFormatError):
            validate_api_key("sk-" + "a" * 26)

    def test_minimum_length_accepted(self):
        key = "sk-" + "a" * 27
        assert validate_api_key(key) == key


class TestTraditionalResults:
    def test_totals(self, sample_request):
        results = traditional_results(sample_request)
        assert results["nameAnalysis"]["total"] == 92
        assert results["motherAnalysis"]["total"] == 135
        assert results["questionAnalysis"]["total"] == 830
        assert results["totalValue"] == 1057
        assert results["reducedValue"] == 4
        assert results["wafqSize"] == 6
        assert results["birthAnalysis"] is None

    def test_birth_date(self, sample_payload):
        request = AnalysisRequest.from_payload({**sample_payload, "birthDate": "1990-05-17"})
        birth = traditional_results(request)["birthAnalysis"]
        assert birth["total"] == 32
        assert birth["reducedValue"] == 5
        assert birth["meaning"] == "مسار حياة الحرية والتغيير"

    def test_details_toggle(self, sample_payload):
        request = AnalysisRequest.from_payload({**sample_payload, "options": {"numerologyDetails": False}})
        assert "letters" not in traditional_results(request)["nameAnalysis"]


def test_prompt_embeds_numbers(sample_request):
    prompt = build_prompt(sample_request, traditional_results(sample_request))
    for number in ("92", "135", "830", "1057", "4"):
        assert number in prompt
    assert "محمد" in prompt
    assert "المعنى الروحي:" in prompt


class TestParseNarrative:
    def test_three_sections(self):
        text = "## التحليل:\nأرقام.\n\n**المعنى الروحي:** نور.\n3. التوجيه\nاصبر."
        assert parse_narrative(text) == {"analysis": "أرقام.", "spiritualMeaning": "نور.", "guidance": "اصبر."}

    def test_unstructured_text(self):
        assert parse_narrative("  نص حر  ") == {"analysis": "نص حر", "spiritualMeaning": "", "guidance": ""}

    def test_preamble_goes_to_analysis(self):
        sections = parse_narrative("مقدمة\nالتوجيه:\nاعمل.")
        assert sections["analysis"] == "مقدمة"
        assert sections["guidance"] == "اعمل."


class TestJafrAnalyzer:
    def test_success(self, analyzer, oracle, sample_request, valid_key):
        data = analyzer.analyze(sample_request, valid_key)
        assert oracle.narrative_calls == 1
        assert data["traditionalResults"]["totalValue"] == 1057
        assert data["aiAnalysis"]["available"] is True
        assert data["aiAnalysis"]["analysis"] == "قيم متوازنة."
        assert data["aiAnalysis"]["guidance"] == "الصبر."
        assert data["aiAnalysis"]["model"] == "stub/model"
        assert data["oracleError"] is None
        assert "قيم متوازنة." in data["combinedInterpretation"]

    def test_missing_question_rejected_before_oracle(self, analyzer, oracle, valid_key):
        request = AnalysisRequest.from_payload({"name": "محمد", "mother": "فاطمة"})
        with pytest.raises(InputValidationError) as exc:
            analyzer.analyze(request, valid_key)
        assert "السؤال" in exc.value.message
        assert exc.value.missing == ["السؤال"]
        assert oracle.narrative_calls == 0

    def test_bad_prefix_makes_no_call(self, analyzer, oracle, sample_request):
        with pytest.raises(CredentialFormatError):
            analyzer.analyze(sample_request, "bad-" + "x" * 40)
        assert oracle.narrative_calls == 0

    @pytest.mark.parametrize(
        "error",
        [
            OracleTimeout(),
            OracleAuthRejected("nope"),
            OracleMalformedResponse("garbage"),
            OracleUnavailable("boom", status=502),
        ],
    )
    def test_oracle_failure_falls_back(self, analyzer, oracle, sample_request, valid_key, error):
        oracle.error = error
        data = analyzer.analyze(sample_request, valid_key)
        assert oracle.narrative_calls == 1
        assert data["traditionalResults"]["nameAnalysis"]["total"] == 92
        assert data["aiAnalysis"]["available"] is False
        assert data["aiAnalysis"]["analysis"] == AI_UNAVAILABLE["analysis"]
        assert data["aiAnalysis"]["reason"] == error.code
        assert data["oracleError"]["code"] == error.code

    def test_rate_limit_hint_is_kept(self, analyzer, oracle, sample_request, valid_key):
        oracle.error = OracleRateLimited(17)
        data = analyzer.analyze(sample_request, valid_key)
        assert data["oracleError"]["retryAfter"] == 17
        assert data["oracleError"]["code"] == "RATE_LIMIT_EXCEEDED"

    def test_deep_analysis_off_needs_no_key(self, analyzer, oracle, sample_payload):
        request = AnalysisRequest.from_payload({**sample_payload, "options": {"deepAnalysis": False}})
        data = analyzer.analyze(request, None)
        assert oracle.narrative_calls == 0
        assert data["aiAnalysis"]["reason"] == "DEEP_ANALYSIS_DISABLED"
        assert data["traditionalResults"]["reducedValue"] == 4

    def test_disabled_oracle(self, oracle, sample_request):
        data = JafrAnalyzer(oracle, enabled=False).analyze(sample_request)
        assert oracle.narrative_calls == 0
        assert data["aiAnalysis"]["reason"] == "ORACLE_DISABLED"

    def test_contextual_interpretation_off(self, analyzer, sample_payload, valid_key):
        request = AnalysisRequest.from_payload({**sample_payload, "options": {"contextualInterpretation": False}})
        assert analyzer.analyze(request, valid_key)["combinedInterpretation"] is None

    def test_placeholder_text_is_read_only(self, oracle, sample_request):
        with pytest.raises(TypeError):
            AI_UNAVAILABLE["analysis"] = "changed"
        data = JafrAnalyzer(oracle, enabled=False).analyze(sample_request)
        data["aiAnalysis"]["analysis"] = "changed"
        assert AI_UNAVAILABLE["analysis"] != "changed"

    @pytest.mark.parametrize("value", ["false", "False", "0", "no", "off", "", False])
    def test_from_config_reads_disabled_flag(self, oracle, sample_request, value):
        analyzer = JafrAnalyzer.from_config(oracle, {"ORACLE_ENABLED": value})
        assert analyzer.enabled is False
        assert analyzer.analyze(sample_request)["aiAnalysis"]["reason"] == "ORACLE_DISABLED"
        assert oracle.narrative_calls == 0

    @pytest.mark.parametrize("value", ["true", "1", "yes", True])
    def test_from_config_reads_enabled_flag(self, oracle, value):
        assert JafrAnalyzer.from_config(oracle, {"ORACLE_ENABLED": value}).enabled is True

    def test_trickling_provider_falls_back_in_time(self, sample_request, valid_key):
        class Trickle(httpx.SyncByteStream):
            def __iter__(self):
                for _ in range(80):
                    time.sleep(0.05)
                    yield b" "

        oracle = OpenRouterOracle(
            "https://openrouter.test/api/v1",
            "test/model",
            timeout=1,
            total_timeout=0.5,
            transport=httpx.MockTransport(lambda request: httpx.Response(200, stream=Trickle())),
        )

        started = time.monotonic()
        data = JafrAnalyzer(oracle).analyze(sample_request, valid_key)
        assert time.monotonic() - started < 2.0
        assert data["aiAnalysis"]["available"] is False
        assert data["aiAnalysis"]["reason"] == "CONNECTION_TIMEOUT"
        assert data["oracleError"]["code"] == "CONNECTION_TIMEOUT"
        assert data["traditionalResults"]["totalValue"] == 1057


@pytest.mark.parametrize(
    "value, expected",
    [("true", True), (" On ", True), ("false", False), ("nope", False), (1, True), (0, False), (None, False)],
)
def test_as_flag(value, expected):
    assert as_flag(value) is expected
