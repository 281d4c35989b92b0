"""Analysis orchestration: validation, local numerology, the oracle call and response shaping."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from . import abjad
from .config import as_flag
from .errors import CredentialFormatError, InputValidationError, OracleError
from .oracle import Oracle

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    ("name", "الاسم"),
    ("mother", "اسم الأم"),
    ("question", "السؤال"),
)

# Returned in place of the narrative whenever the oracle is off or fails.
AI_UNAVAILABLE: Mapping[str, str] = MappingProxyType(
    {
        "analysis": "التحليل بالذكاء الاصطناعي غير متاح حالياً. النتائج التقليدية أدناه محسوبة بالكامل.",
        "spiritualMeaning": "لا يتوفر تفسير روحي في الوقت الحالي.",
        "guidance": "يرجى المحاولة مرة أخرى لاحقاً للحصول على التوجيهات.",
    }
)

# Headings the prompt asks the model to use; parse_narrative splits on them.
SECTION_HEADINGS = (
    ("analysis", "التحليل"),
    ("spiritualMeaning", "المعنى الروحي"),
    ("guidance", "التوجيه"),
)

_HEADING_RE = re.compile(
    r"^[ \t#*\d.\-]*(" + "|".join(re.escape(title) for _, title in SECTION_HEADINGS) + r")[ \t*]*(?:[:：]|$)[*]*",
    re.MULTILINE,
)


@dataclass(frozen=True)
class AnalysisOptions:
    deep_analysis: bool = True
    numerology_details: bool = True
    contextual_interpretation: bool = True

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any] | None) -> "AnalysisOptions":
        options = options or {}
        return cls(
            deep_analysis=options.get("deepAnalysis") is not False,
            numerology_details=options.get("numerologyDetails") is not False,
            contextual_interpretation=options.get("contextualInterpretation") is not False,
        )


@dataclass(frozen=True)
class AnalysisRequest:
    name: str
    mother: str
    question: str
    birth_date: str | None = None
    options: AnalysisOptions = field(default_factory=AnalysisOptions)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "AnalysisRequest":
        return cls(
            name=(payload.get("name") or "").strip(),
            mother=(payload.get("mother") or payload.get("motherName") or "").strip(),
            question=(payload.get("question") or "").strip(),
            birth_date=(payload.get("birthDate") or "").strip() or None,
            options=AnalysisOptions.from_mapping(payload.get("options")),
        )

    def missing_fields(self) -> list[str]:
        return [label for attr, label in REQUIRED_FIELDS if not getattr(self, attr).strip()]


def validate_api_key(api_key: str | None, prefix: str = "sk-", min_length: int = 30) -> str:
    """
    Surface check of a provider credential; returns the trimmed key.

    Raises CredentialFormatError without touching the network.
    """
    key = (api_key or "").strip()
    if not key:
        raise CredentialFormatError("مفتاح API مطلوب. يرجى إدخال مفتاح API صالح.", code="MISSING_API_KEY")
    if not key.startswith(prefix):
        raise CredentialFormatError(f"تنسيق مفتاح API غير صالح. يجب أن يبدأ المفتاح بـ '{prefix}'")
    if len(key) < min_length:
        raise CredentialFormatError("مفتاح API قصير جدًا. يرجى التأكد من نسخ المفتاح بالكامل.")
    return key


def traditional_results(request: AnalysisRequest) -> dict:
    detail = request.options.numerology_details
    name_analysis = abjad.analyze_text(request.name, "name", detail=detail)
    mother_analysis = abjad.analyze_text(request.mother, "mother", detail=detail)
    question_analysis = abjad.analyze_text(request.question, "question", detail=detail)

    total = name_analysis["total"] + mother_analysis["total"] + question_analysis["total"]
    reduced = abjad.reduce_to_single_digit(total)

    results = {
        "nameAnalysis": name_analysis,
        "motherAnalysis": mother_analysis,
        "questionAnalysis": question_analysis,
        "totalValue": total,
        "reducedValue": reduced,
        "wafqSize": abjad.wafq_size(reduced),
        "birthAnalysis": None,
    }
    if request.birth_date:
        number = abjad.birth_number(request.birth_date)
        results["birthAnalysis"] = {
            "birthDate": request.birth_date,
            "total": number,
            "reducedValue": abjad.reduce_to_single_digit(number),
            "meaning": abjad.classify_meaning(number, "birth"),
        }
    return results


def build_prompt(request: AnalysisRequest, results: dict) -> str:
    lines = [
        "قم بتحليل الجفر التالي:",
        f"- الاسم: {request.name} (قيمة عددية: {results['nameAnalysis']['total']})",
        f"- اسم الأم: {request.mother} (قيمة عددية: {results['motherAnalysis']['total']})",
        f"- السؤال: {request.question} (قيمة عددية: {results['questionAnalysis']['total']})",
        f"- المجموع الكلي: {results['totalValue']}",
        f"- الرقم المختزل: {results['reducedValue']}",
        f"- حجم الوفق: {results['wafqSize']}×{results['wafqSize']}",
    ]
    birth = results.get("birthAnalysis")
    if birth:
        lines.append(f"- تاريخ الميلاد: {birth['birthDate']} (رقم الميلاد: {birth['reducedValue']})")
    lines += [
        "",
        "قدم تحليلاً شاملاً باللغة العربية الفصحى في ثلاثة أقسام بالعناوين التالية بالضبط:",
    ]
    lines += [f"{title}:" for _, title in SECTION_HEADINGS]
    lines.append("اشرح في القسم الأول القيم العددية، وفي الثاني العلاقة بين الأرقام والمعاني الروحية، "
                 "وفي الثالث التوجيهات والتوقعات المستخلصة منها.")
    return "\n".join(lines)


def parse_narrative(text: str) -> dict:
    """
    Split the model output into the three headed sections.

    Output without the expected headings lands entirely in `analysis`.
    """
    sections = {key: "" for key, _ in SECTION_HEADINGS}
    by_title = {title: key for key, title in SECTION_HEADINGS}

    matches = list(_HEADING_RE.finditer(text))
    if not matches:
        sections["analysis"] = text.strip()
        return sections

    preamble = text[: matches[0].start()].strip()
    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        key = by_title[match.group(1)]
        body = text[match.end() : end].strip()
        sections[key] = f"{sections[key]}\n{body}".strip() if sections[key] else body
    if preamble:
        sections["analysis"] = f"{preamble}\n{sections['analysis']}".strip()
    return sections


def combined_interpretation(request: AnalysisRequest, results: dict, ai_analysis: dict | None) -> str:
    parts = [
        f"الاسم «{request.name}» قيمته {results['nameAnalysis']['total']}: {results['nameAnalysis']['meaning']}.",
        f"اسم الأم «{request.mother}» قيمته {results['motherAnalysis']['total']}: {results['motherAnalysis']['meaning']}.",
        f"السؤال قيمته {results['questionAnalysis']['total']}: {results['questionAnalysis']['meaning']}.",
    ]
    birth = results.get("birthAnalysis")
    if birth:
        parts.append(f"رقم الميلاد {birth['reducedValue']}: {birth['meaning']}.")
    parts.append(
        f"المجموع الكلي {results['totalValue']} يختزل إلى {results['reducedValue']}، "
        f"ويناسبه وفق {results['wafqSize']}×{results['wafqSize']}."
    )
    if ai_analysis and ai_analysis.get("available"):
        parts.append("")
        parts += [ai_analysis[key] for key, _ in SECTION_HEADINGS if ai_analysis.get(key)]
    return "\n".join(parts)


def _placeholder(reason: str) -> dict:
    return {**AI_UNAVAILABLE, "available": False, "reason": reason, "model": None, "usage": None}


class JafrAnalyzer:
    """
    Runs one analysis: local numerology always, the oracle at most once.

    Only input and credential validation raise; oracle failures are
    downgraded to placeholder narrative plus an `oracleError` record.
    """

    def __init__(
        self,
        oracle: Oracle | None,
        *,
        enabled: bool = True,
        key_prefix: str = "sk-",
        key_min_length: int = 30,
    ):
        self.oracle = oracle
        self.enabled = enabled and oracle is not None
        self.key_prefix = key_prefix
        self.key_min_length = key_min_length

    @classmethod
    def from_config(cls, oracle: Oracle | None, config: Mapping[str, Any]) -> "JafrAnalyzer":
        return cls(
            oracle,
            enabled=as_flag(config.get("ORACLE_ENABLED", True)),
            key_prefix=config.get("API_KEY_PREFIX", "sk-"),
            key_min_length=config.get("API_KEY_MIN_LENGTH", 30),
        )

    def analyze(self, request: AnalysisRequest, api_key: str | None = None) -> dict:
        missing = request.missing_fields()
        if missing:
            raise InputValidationError(missing)

        results = traditional_results(request)

        oracle_error = None
        if not request.options.deep_analysis:
            ai_analysis = _placeholder("DEEP_ANALYSIS_DISABLED")
        elif not self.enabled:
            ai_analysis = _placeholder("ORACLE_DISABLED")
        else:
            key = validate_api_key(api_key, self.key_prefix, self.key_min_length)
            try:
                narrative = self.oracle.generate_narrative(build_prompt(request, results), key)
            except OracleError as e:
                logger.warning("Oracle call failed code=%s detail=%s", e.code, e.detail)
                ai_analysis = _placeholder(e.code)
                oracle_error = e.to_dict()
            else:
                ai_analysis = {
                    **parse_narrative(narrative.text),
                    "available": True,
                    "reason": None,
                    "model": narrative.model,
                    "usage": narrative.usage,
                }

        combined = None
        if request.options.contextual_interpretation:
            combined = combined_interpretation(request, results, ai_analysis)

        logger.info(
            "Analysis done total=%d reduced=%d ai=%s",
            results["totalValue"],
            results["reducedValue"],
            ai_analysis["available"],
        )
        return {
            "traditionalResults": results,
            "aiAnalysis": ai_analysis,
            "combinedInterpretation": combined,
            "oracleError": oracle_error,
        }
