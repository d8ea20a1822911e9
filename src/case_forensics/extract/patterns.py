"""Pattern tables for structured field extraction.

Every table is an ordered list of ``(pattern, group)`` pairs evaluated
first-match-wins. Tables contain no logic, only patterns.
"""

import re

# Cyrillic capitalized word, e.g. a surname or a city adjective
_WORD = r"[А-ЯЁ][а-яё]+"
# "Иванов Иван Иванович" or "Иванов И.И."
_PERSON = rf"({_WORD}\s+{_WORD}\s+{_WORD}|{_WORD}\s+[А-ЯЁ]\.\s?[А-ЯЁ]\.)"

PatternTable = list[tuple[re.Pattern, int]]

CASE_NUMBER_PATTERNS: PatternTable = [
    (re.compile(r"уголовное\s*дело\s*№?\s*(\d+[-/]\d+)", re.IGNORECASE), 1),
    (re.compile(r"дело\s*№?\s*(\d+[-/]\d+)", re.IGNORECASE), 1),
    (re.compile(r"case\s*(?:no\.?|№|#)?\s*(\d+[-/]\d+)", re.IGNORECASE), 1),
    (re.compile(r"№\s*(\d+[-/]\d+)"), 1),
    (re.compile(r"(\d+[-/]\d+)\s*года", re.IGNORECASE), 1),
]

# Month names in the genitive case, mapped to zero-based month indices
MONTHS: dict[str, int] = {
    "января": 0,
    "февраля": 1,
    "марта": 2,
    "апреля": 3,
    "мая": 4,
    "июня": 5,
    "июля": 6,
    "августа": 7,
    "сентября": 8,
    "октября": 9,
    "ноября": 10,
    "декабря": 11,
}

# Each pattern captures named groups day, month and year. A month group
# holding letters is a key of MONTHS.
DATE_PATTERNS: list[re.Pattern] = [
    re.compile(
        r"(?P<day>\d{1,2})\s+(?P<month>" + "|".join(MONTHS) + r")\s+(?P<year>\d{4})",
        re.IGNORECASE,
    ),
    re.compile(r"\b(?P<day>\d{1,2})\.(?P<month>\d{1,2})\.(?P<year>\d{4})\b"),
    re.compile(r"\b(?P<year>\d{4})-(?P<month>\d{1,2})-(?P<day>\d{1,2})\b"),
]

COURT_NAME_PATTERNS: PatternTable = [
    (re.compile(r"((?i:Верховный)\s+(?i:суд)(?:\s+{0})?)".format(_WORD)), 1),
    (re.compile(r"((?i:Конституционный)\s+(?i:суд)(?:\s+{0})?)".format(_WORD)), 1),
    (re.compile(rf"({_WORD}\s+(?i:районный)\s+(?i:суд))"), 1),
    (re.compile(rf"({_WORD}\s+(?i:городской)\s+(?i:суд))"), 1),
    (re.compile(rf"({_WORD}\s+(?i:областной)\s+(?i:суд))"), 1),
    (re.compile(rf"({_WORD}\s+{_WORD}\s+(?i:суд))"), 1),
    (re.compile(r"((?:[A-Z][a-z]+\s+){1,4}Court)"), 1),
]

JUDGE_PATTERNS: PatternTable = [
    (re.compile(rf"(?i:судья)[:\s]+{_PERSON}"), 1),
    (re.compile(rf"(?i:председательствующий)[:\s]+{_PERSON}"), 1),
    (re.compile(r"(?i:judge)[:\s]+([A-Z][a-z]+(?:\s+[A-Z][a-z.]+){1,2})"), 1),
]

PARTY_PATTERNS: dict[str, PatternTable] = {
    "plaintiff": [
        (re.compile(rf"(?i:потерпевш(?:ий|ая))[:\s]+{_PERSON}"), 1),
        (re.compile(rf"(?i:истец)[:\s]+{_PERSON}"), 1),
        (re.compile(rf"(?i:истица)[:\s]+{_PERSON}"), 1),
    ],
    "defendant": [
        (re.compile(rf"(?i:подсудим(?:ый|ая))[:\s]+{_PERSON}"), 1),
        (re.compile(rf"(?i:ответчик)[:\s]+{_PERSON}"), 1),
        (re.compile(rf"(?i:обвиняем(?:ый|ая))[:\s]+{_PERSON}"), 1),
    ],
    "prosecutor": [
        (re.compile(rf"(?i:прокурор)[:\s]+{_PERSON}"), 1),
        (re.compile(rf"(?i:государственн(?:ый|ого)\s+обвинител[ья])[:\s]+{_PERSON}"), 1),
    ],
}

# Decision text runs up to the next sentence boundary
DECISION_PATTERNS: PatternTable = [
    (re.compile(r"суд\s+постановил[:\s]+(.+?)(?=\.\s|$)", re.IGNORECASE | re.DOTALL), 1),
    (re.compile(r"суд\s+решил[:\s]+(.+?)(?=\.\s|$)", re.IGNORECASE | re.DOTALL), 1),
    (re.compile(r"суд\s+определил[:\s]+(.+?)(?=\.\s|$)", re.IGNORECASE | re.DOTALL), 1),
    (re.compile(r"приговор[:\s]+(.+?)(?=\.\s|$)", re.IGNORECASE | re.DOTALL), 1),
    (
        re.compile(
            r"the\s+court\s+(?:ruled|decided|determined)[:\s]+(.+?)(?=\.\s|$)",
            re.IGNORECASE | re.DOTALL,
        ),
        1,
    ),
    (re.compile(r"judgment[:\s]+(.+?)(?=\.\s|$)", re.IGNORECASE | re.DOTALL), 1),
]

# Reasoning runs up to the operative part, or to the end of the text
REASONING_PATTERNS: PatternTable = [
    (
        re.compile(
            r"мотивировочная\s+часть[:\s]+(.+?)(?=резолютивная\s+часть|$)",
            re.IGNORECASE | re.DOTALL,
        ),
        1,
    ),
    (
        re.compile(
            r"обоснование[:\s]+(.+?)(?=резолютивная\s+часть|$)",
            re.IGNORECASE | re.DOTALL,
        ),
        1,
    ),
]

# Used when no configured document type occurs in the text
FALLBACK_DOCUMENT_TYPES: list[tuple[str, str]] = [
    ("приговор", "приговор"),
    ("решение", "решение суда"),
    ("определение", "определение"),
    ("постановление", "постановление"),
]
DEFAULT_DOCUMENT_TYPE = "документ"

# Page-level tagging, tried in order
PAGE_TYPE_KEYWORDS: list[tuple[str, list[str]]] = [
    ("decision", ["приговор", "суд постановил", "суд решил", "суд определил", "решение суда"]),
    ("testimony", ["протокол допроса", "показания", "допрошен", "объяснение"]),
    ("protocol", ["протокол"]),
]
