from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType

# Abjad kabir values. Hamza-bearing alef forms and lone hamza count as alef,
# teh marbuta as heh, alef maksura as yeh.
ABJAD_VALUES: MappingProxyType[str, int] = MappingProxyType(
    {
        "ا": 1,
        "ب": 2,
        "ج": 3,
        "د": 4,
        "ه": 5,
        "و": 6,
        "ز": 7,
        "ح": 8,
        "ط": 9,
        "ي": 10,
        "ك": 20,
        "ل": 30,
        "م": 40,
        "ن": 50,
        "س": 60,
        "ع": 70,
        "ف": 80,
        "ص": 90,
        "ق": 100,
        "ر": 200,
        "ش": 300,
        "ت": 400,
        "ث": 500,
        "خ": 600,
        "ذ": 700,
        "ض": 800,
        "ظ": 900,
        "غ": 1000,

        # Variant glyphs.
        "أ": 1,
        "إ": 1,
        "آ": 1,
        "ء": 1,
        "ة": 5,
        "ى": 10,
    }
)

NO_DESCRIPTION = "لا يوجد وصف متوفر"

MEANINGS: MappingProxyType[str, MappingProxyType[int, str]] = MappingProxyType(
    {
        "name": MappingProxyType(
            {
                1: "قائد طبيعي، مستقل، مبتكر",
                2: "ديبلوماسي، متعاون، حساس",
                3: "مبدع، معبر، اجتماعي",
                4: "منظم، عملي، موثوق",
                5: "مغامر، متعدد المواهب، متكيف",
                6: "مسؤول، حنون، واقي",
                7: "باحث، حدسي، حكيم",
                8: "طموح، منظم، ناجح مادياً",
                9: "إنساني، كريم، حكيم",
            }
        ),
        "mother": MappingProxyType(
            {
                1: "أم قوية الشخصية، مستقلة",
                2: "أم حنونة، عاطفية",
                3: "أم مبدعة، معبرة",
                4: "أم منظمة، عملية",
                5: "أم متكيفة، مرنة",
                6: "أم حنونة، مسؤولة",
                7: "أم حكيمة، باحثة",
                8: "أم طموحة، منظمة",
                9: "أم حكيمة، كريمة",
            }
        ),
        "birth": MappingProxyType(
            {
                1: "مسار حياة القيادة والاستقلالية",
                2: "مسار حياة التعاون والشراكة",
                3: "مسار حياة التعبير الإبداعي",
                4: "مسار حياة البناء والاستقرار",
                5: "مسار حياة الحرية والتغيير",
                6: "مسار حياة المسؤولية والرعاية",
                7: "مسار حياة البحث الروحي والفكري",
                8: "مسار حياة الإنجاز المادي",
                9: "مسار حياة الإنسانية والعطاء",
            }
        ),
        "question": MappingProxyType(
            {
                1: "سؤال عن بداية جديدة ومبادرة شخصية",
                2: "سؤال عن شراكة أو علاقة تحتاج إلى توازن",
                3: "سؤال عن تعبير وتواصل وانفتاح",
                4: "سؤال عن عمل واستقرار يحتاج إلى صبر",
                5: "سؤال عن تغيير أو سفر أو تحول قريب",
                6: "سؤال عن الأسرة والمسؤولية والبيت",
                7: "سؤال عن معرفة باطنية وتأمل",
                8: "سؤال عن مال وسلطة وإنجاز مادي",
                9: "سؤال عن ختام مرحلة وعطاء",
            }
        ),
    }
)

# Orders of the seven planetary magic squares (Saturn 3 .. Moon 9).
WAFQ_ORDERS: tuple[int, ...] = (3, 4, 5, 6, 7, 8, 9)
MIN_WAFQ_ORDER = WAFQ_ORDERS[0]


@dataclass(frozen=True)
class NumerologyResult:
    total: int
    letters: tuple[tuple[str, int], ...] = field(default=())


def character_value(ch: str) -> int:
    """Abjad value of a single character; anything outside the table is 0."""
    return ABJAD_VALUES.get(ch, 0)


def text_value(text: str | None, detail: bool = False) -> NumerologyResult:
    """
    Sum the abjad values of every character in `text`.

    Python strings iterate by code point, so each Arabic letter counts once
    regardless of its UTF-8 width. With `detail`, the (character, value)
    pairs are kept in string order, zero-valued characters included.

    Example:
      text_value("محمد").total == 92
    """
    if not text:
        return NumerologyResult(total=0)

    pairs = tuple((ch, character_value(ch)) for ch in text)
    total = sum(value for _, value in pairs)
    return NumerologyResult(total=total, letters=pairs if detail else ())


def reduce_to_single_digit(n: int) -> int:
    """
    Repeatedly sum decimal digits until one digit remains.

    0 is already a single digit and stays 0 (no mod-9 substitution).
    """
    n = abs(int(n))
    while n > 9:
        n = sum(int(d) for d in str(n))
    return n


def wafq_size(reduced: int) -> int:
    """
    Magic-square order for a reduced digit.

    Digits cycle through the planetary orders: 1->3 .. 7->9, 8->3, 9->4.
    Anything outside 1..9 gets the smallest order.
    """
    if not 1 <= reduced <= 9:
        return MIN_WAFQ_ORDER
    return WAFQ_ORDERS[(reduced - 1) % len(WAFQ_ORDERS)]


def classify_meaning(value: int, category: str) -> str:
    table = MEANINGS.get(category)
    if table is None:
        return NO_DESCRIPTION
    return table.get(reduce_to_single_digit(value), NO_DESCRIPTION)


def birth_number(birth_date: str | None) -> int:
    """Digit sum of a birth date string (Arabic-Indic digits included)."""
    if not birth_date:
        return 0
    return sum(int(ch) for ch in birth_date if ch.isdecimal())


def analyze_text(text: str | None, category: str, detail: bool = True) -> dict:
    """Total, reduced digit, meaning and optional breakdown for one field."""
    result = text_value(text, detail=detail)
    analysis = {
        "text": text or "",
        "total": result.total,
        "reducedValue": reduce_to_single_digit(result.total),
        "meaning": classify_meaning(result.total, category),
    }
    if detail:
        analysis["letters"] = [{"char": ch, "value": value} for ch, value in result.letters]
    return analysis
