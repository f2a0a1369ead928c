"""Small text helpers for job listings, resumes and chat messages."""

import re

# =============================================================================
# Salary formatting
# =============================================================================

CURRENCY_SYMBOLS = {
    "INR": "₹",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "AUD": "A$",
    "CAD": "C$",
}

SALARY_PERIODS = {
    "YEAR": "per year",
    "MONTH": "per month",
    "WEEK": "per week",
    "DAY": "per day",
    "HOUR": "per hour",
}


def _trim_number(value: float) -> str:
    """1.50 -> '1.5', 6.0 -> '6'."""
    return f"{value:.1f}".rstrip("0").rstrip(".")


def _format_amount(amount: float, currency: str) -> str:
    code = (currency or "INR").upper()
    symbol = CURRENCY_SYMBOLS.get(code, f"{code} ")

    if code == "INR":
        # Indian numbering: lakh = 1e5, crore = 1e7
        if amount >= 10_000_000:
            return f"{symbol}{_trim_number(amount / 10_000_000)}Cr"
        if amount >= 100_000:
            return f"{symbol}{_trim_number(amount / 100_000)}L"
        return f"{symbol}{amount:,.0f}"

    if amount >= 1_000_000:
        return f"{symbol}{_trim_number(amount / 1_000_000)}M"
    if amount >= 1_000:
        return f"{symbol}{_trim_number(amount / 1_000)}K"
    return f"{symbol}{amount:,.0f}"


def format_salary(
    min_salary: float | None,
    max_salary: float | None,
    currency: str | None = "INR",
    period: str | None = "YEAR",
) -> str:
    """Render a salary range for display.

    >>> format_salary(350000, 600000, "INR", "YEAR")
    '₹3.5L - ₹6L per year'
    """
    low = min_salary if min_salary and min_salary > 0 else None
    high = max_salary if max_salary and max_salary > 0 else None
    if low is None and high is None:
        return "Not disclosed"

    suffix = SALARY_PERIODS.get((period or "").upper())
    currency = currency or "INR"

    if low is not None and high is not None:
        if high < low:
            low, high = high, low
        if low == high:
            text = _format_amount(low, currency)
        else:
            text = f"{_format_amount(low, currency)} - {_format_amount(high, currency)}"
    elif low is not None:
        text = f"From {_format_amount(low, currency)}"
    else:
        text = f"Up to {_format_amount(high, currency)}"  # type: ignore[arg-type]

    return f"{text} {suffix}" if suffix else text


# =============================================================================
# Experience extraction
# =============================================================================

EXPERIENCE_PATTERN = re.compile(
    r"(?<![\d.])(\d{1,2}(?:\.\d)?)"
    r"\s*(?:(?:-|–|to)\s*(\d{1,2}(?:\.\d)?))?"
    r"\s*(\+)?\s*(?:years?|yrs?)\b",
    re.IGNORECASE,
)

DEFAULT_EXPERIENCE = "Not specified"


def extract_experience(text: str | None) -> str:
    """Pull the first "N years" style requirement out of free text.

    Returns strings like "2-4 years", "5+ years" or "1 year".
    """
    if not text:
        return DEFAULT_EXPERIENCE

    match = EXPERIENCE_PATTERN.search(text)
    if not match:
        return DEFAULT_EXPERIENCE

    low, high, plus = match.groups()
    if high:
        return f"{low}-{high} years"
    if plus:
        return f"{low}+ years"
    return f"{low} year" if low == "1" else f"{low} years"


def experience_from_months(months: int | None) -> str:
    """Format a month count from a structured listing."""
    if not months or months <= 0:
        return DEFAULT_EXPERIENCE
    if months < 12:
        return f"{months} months"
    years = _trim_number(months / 12)
    return "1 year" if years == "1" else f"{years} years"


# =============================================================================
# Language detection by script
# =============================================================================

GURMUKHI_RANGE = (0x0A00, 0x0A7F)
DEVANAGARI_RANGE = (0x0900, 0x097F)

LANGUAGE_NAMES = {
    "pa-IN": "Punjabi",
    "hi-IN": "Hindi",
    "en-IN": "English",
}


def detect_language(text: str | None) -> str:
    """Guess the language of a message from the Unicode script it uses.

    Gurmukhi means Punjabi, Devanagari means Hindi, anything else English.
    Ties between the two Indic scripts go to Hindi.
    """
    if not text:
        return "en-IN"

    gurmukhi = devanagari = 0
    for char in text:
        code = ord(char)
        if GURMUKHI_RANGE[0] <= code <= GURMUKHI_RANGE[1]:
            gurmukhi += 1
        elif DEVANAGARI_RANGE[0] <= code <= DEVANAGARI_RANGE[1]:
            devanagari += 1

    if gurmukhi == 0 and devanagari == 0:
        return "en-IN"
    return "pa-IN" if gurmukhi > devanagari else "hi-IN"


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code, "English")


# =============================================================================
# Description clean-up
# =============================================================================

_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")


def dedupe_paragraphs(text: str | None) -> str:
    """Drop repeated paragraphs, keeping the first occurrence of each.

    Job boards often repeat the same block (benefits, company blurb) several
    times. Paragraphs compare equal ignoring case and whitespace.
    """
    if not text:
        return ""

    seen = set()
    kept = []
    for paragraph in _PARAGRAPH_SPLIT.split(text):
        stripped = paragraph.strip()
        if not stripped:
            continue
        key = " ".join(stripped.lower().split())
        if key in seen:
            continue
        seen.add(key)
        kept.append(stripped)
    return "\n\n".join(kept)


def truncate(text: str, limit: int) -> str:
    """Cut text to limit characters on a word boundary where possible."""
    if len(text) <= limit:
        return text
    cut = text[:limit]
    space = cut.rfind(" ")
    if space > limit * 0.8:
        cut = cut[:space]
    return cut.rstrip() + "..."
