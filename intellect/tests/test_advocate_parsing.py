from intellect.features.advocates.parsing import (
    STRICT_PARSER,
    default_parsers,
    extract_match,
    parse_line,
    relaxed_parser,
)
from intellect.features.advocates.store import InMemoryAdvocateStore
from intellect.tests.mocks import SAMPLE_ADVOCATES

STORE = InMemoryAdvocateStore(SAMPLE_ADVOCATES)


def _resolve_india(name):
    return STORE.find_by_name_and_jurisdiction(name, "India")


def test_strict_line_extracts_name_reason_confidence():
    parsed = STRICT_PARSER.parse("1. Jane Doe - Great trademark experience - Confidence: 92")

    assert parsed.name == "Jane Doe"
    assert parsed.reason == "Great trademark experience"
    assert parsed.confidence == 92


def test_relaxed_line_uses_default_confidence():
    parsed = parse_line("1. Jane Doe - Strong brand protection record", default_parsers())

    assert parsed.name == "Jane Doe"
    assert parsed.reason == "Strong brand protection record"
    assert parsed.confidence == 75


def test_relaxed_default_confidence_is_configurable():
    parsed = relaxed_parser(60).parse("2. Arjun Mehta - Pharma patents")
    assert parsed.confidence == 60


def test_confidence_keyword_case_insensitive_and_clamped():
    parsed = STRICT_PARSER.parse("1. Jane Doe - Fits well - confidence: 140")
    assert parsed.confidence == 100


def test_markdown_emphasis_stripped_from_name():
    parsed = STRICT_PARSER.parse("1. **Jane Doe** - Trademark specialist - Confidence: 88")
    assert parsed.name == "Jane Doe"


def test_non_selection_lines_do_not_parse():
    parsers = default_parsers()
    assert parse_line("Selected Advocate:", parsers) is None
    assert parse_line("Jane Doe - no ordinal here", parsers) is None


def test_extract_match_returns_first_resolvable_line():
    text = (
        "Selected Advocate:\n"
        "1. Jane Doe - Great trademark experience - Confidence: 92\n"
        "2. Arjun Mehta - Also good - Confidence: 70\n"
    )

    result = extract_match(text, _resolve_india)

    assert result.selected_advocate.sl_no == 1
    assert result.selected_advocate.reason == "Great trademark experience"
    assert result.selected_advocate.confidence_score == 92
    assert result.confidence == 92


def test_extract_match_is_stable_on_repeat():
    text = "1. Jane Doe - Great trademark experience - Confidence: 92"
    assert extract_match(text, _resolve_india) == extract_match(text, _resolve_india)


def test_extract_match_skips_candidates_outside_jurisdiction():
    text = (
        "1. John Smith - Copyright veteran - Confidence: 95\n"
        "2. Arjun Mehta - Pharma patents - Confidence: 81\n"
    )

    result = extract_match(text, _resolve_india)

    assert result.selected_advocate.name == "Arjun Mehta"
    assert result.confidence == 81


def test_extract_match_name_is_case_insensitive():
    result = extract_match("   1. jane DOE - Brand work - Confidence: 77   ", _resolve_india)
    assert result.selected_advocate.name == "Jane Doe"


def test_extract_match_returns_none_without_matching_lines():
    assert extract_match("I recommend Jane Doe for this case.", _resolve_india) is None
    assert extract_match("", _resolve_india) is None
