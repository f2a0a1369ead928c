"""Tests for text helpers."""

import pytest

from rozgar_api.text_utils import (
    dedupe_paragraphs,
    detect_language,
    experience_from_months,
    extract_experience,
    format_salary,
    language_name,
    truncate,
)


class TestFormatSalary:
    """Tests for format_salary."""

    def test_inr_lakh_range(self) -> None:
        assert format_salary(350000, 600000, "INR", "YEAR") == "₹3.5L - ₹6L per year"

    def test_inr_crore(self) -> None:
        assert format_salary(15000000, None, "INR", "YEAR") == "From ₹1.5Cr per year"

    def test_inr_small_amount_uses_commas(self) -> None:
        assert format_salary(15000, 25000, "INR", "MONTH") == "₹15,000 - ₹25,000 per month"

    def test_usd_thousands(self) -> None:
        assert format_salary(50000, 80000, "USD", "YEAR") == "$50K - $80K per year"

    def test_usd_millions(self) -> None:
        assert format_salary(None, 1200000, "USD", "YEAR") == "Up to $1.2M per year"

    def test_equal_bounds_shown_once(self) -> None:
        assert format_salary(500000, 500000, "INR", "YEAR") == "₹5L per year"

    def test_swapped_bounds(self) -> None:
        assert format_salary(600000, 350000, "INR", "YEAR") == "₹3.5L - ₹6L per year"

    def test_unknown_currency_uses_code(self) -> None:
        assert format_salary(40000, None, "SGD", None) == "From SGD 40K"

    def test_unknown_period_has_no_suffix(self) -> None:
        assert format_salary(300000, 400000, "INR", "FORTNIGHT") == "₹3L - ₹4L"

    @pytest.mark.parametrize("low,high", [(None, None), (0, 0), (-5, None)])
    def test_not_disclosed(self, low, high) -> None:
        assert format_salary(low, high) == "Not disclosed"

    def test_missing_currency_defaults_to_inr(self) -> None:
        assert format_salary(200000, None, None, "YEAR") == "From ₹2L per year"


class TestExtractExperience:
    """Tests for extract_experience."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Requires 2-4 years of experience", "2-4 years"),
            ("2 to 5 yrs in sales", "2-5 years"),
            ("Minimum 5+ years experience", "5+ years"),
            ("At least 1 year in a similar role", "1 year"),
            ("3 Years experience preferred", "3 years"),
            ("Experience: 1.5 years", "1.5 years"),
        ],
    )
    def test_patterns(self, text: str, expected: str) -> None:
        assert extract_experience(text) == expected

    def test_first_match_wins(self) -> None:
        assert extract_experience("3 years Java, 1 year Python") == "3 years"

    def test_no_match(self) -> None:
        assert extract_experience("Freshers welcome") == "Not specified"

    def test_empty(self) -> None:
        assert extract_experience(None) == "Not specified"
        assert extract_experience("") == "Not specified"

    def test_ignores_numbers_inside_larger_numbers(self) -> None:
        assert extract_experience("Founded 2010 years ago") == "Not specified"


class TestExperienceFromMonths:
    def test_months(self) -> None:
        assert experience_from_months(6) == "6 months"

    def test_one_year(self) -> None:
        assert experience_from_months(12) == "1 year"

    def test_years(self) -> None:
        assert experience_from_months(60) == "5 years"
        assert experience_from_months(18) == "1.5 years"

    def test_missing(self) -> None:
        assert experience_from_months(None) == "Not specified"
        assert experience_from_months(0) == "Not specified"


class TestDetectLanguage:
    """Tests for script-based language detection."""

    def test_english(self) -> None:
        assert detect_language("Find me welding jobs in Ludhiana") == "en-IN"

    def test_punjabi(self) -> None:
        assert detect_language("ਮੈਨੂੰ ਲੁਧਿਆਣਾ ਵਿੱਚ ਨੌਕਰੀ ਚਾਹੀਦੀ ਹੈ") == "pa-IN"

    def test_hindi(self) -> None:
        assert detect_language("मुझे नौकरी चाहिए") == "hi-IN"

    def test_mixed_script_majority_wins(self) -> None:
        assert detect_language("jobs ਨੌਕਰੀ ਚਾਹੀਦੀ नौ") == "pa-IN"

    def test_empty(self) -> None:
        assert detect_language("") == "en-IN"
        assert detect_language(None) == "en-IN"

    def test_language_name(self) -> None:
        assert language_name("pa-IN") == "Punjabi"
        assert language_name("hi-IN") == "Hindi"
        assert language_name("fr-FR") == "English"


class TestDedupeParagraphs:
    def test_drops_repeats_ignoring_case_and_whitespace(self) -> None:
        text = "About us.\n\nApply now.\n\nabout   US.\n\nBenefits."
        assert dedupe_paragraphs(text) == "About us.\n\nApply now.\n\nBenefits."

    def test_keeps_single_newlines(self) -> None:
        text = "Line one\nLine two\n\nLine one\nLine two"
        assert dedupe_paragraphs(text) == "Line one\nLine two"

    def test_empty(self) -> None:
        assert dedupe_paragraphs(None) == ""
        assert dedupe_paragraphs("\n\n  \n\n") == ""


class TestTruncate:
    def test_short_text_unchanged(self) -> None:
        assert truncate("hello", 10) == "hello"

    def test_cuts_on_word_boundary(self) -> None:
        text = "alpha beta gamma delta epsilon"
        result = truncate(text, 19)
        assert result == "alpha beta gamma..."

    def test_hard_cut_without_nearby_space(self) -> None:
        assert truncate("abcdefghijklmnop", 5) == "abcde..."
