"""
Selection-line parsing for generated advocate recommendations.

Generated text is not guaranteed to follow the requested grammar, so lines
are tried against an ordered list of parsers: the strict grammar first, then
a relaxed one without a confidence score. The first line that parses AND
names a resolvable advocate wins; every other line is ignored.
"""

import re
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Pattern, Sequence

from intellect.models.advocate import Advocate, MatchResult, SelectedAdvocate

DEFAULT_CONFIDENCE = 75

_EMPHASIS = re.compile(r"^[\s*_`\"']+|[\s*_`\"']+$")


@dataclass(frozen=True)
class ParsedLine:
    name: str
    reason: str
    confidence: int


class LineParser:
    def __init__(self, name: str, pattern: Pattern[str], default_confidence: Optional[int] = None):
        self.name = name
        self.pattern = pattern
        self.default_confidence = default_confidence

    def parse(self, line: str) -> Optional[ParsedLine]:
        match = self.pattern.match(line)
        if not match:
            return None
        name = _EMPHASIS.sub("", match.group("name"))
        reason = match.group("reason").strip()
        if not name:
            return None
        if "confidence" in match.groupdict() and match.group("confidence") is not None:
            confidence = int(match.group("confidence"))
        else:
            confidence = self.default_confidence if self.default_confidence is not None else DEFAULT_CONFIDENCE
        return ParsedLine(name=name, reason=reason, confidence=min(100, max(0, confidence)))


STRICT_PARSER = LineParser(
    "strict",
    re.compile(
        r"^\d+\.\s*(?P<name>.*?)\s*-\s*(?P<reason>.*?)\s*-\s*Confidence:\s*(?P<confidence>\d+)",
        re.IGNORECASE,
    ),
)


def relaxed_parser(default_confidence: int = DEFAULT_CONFIDENCE) -> LineParser:
    return LineParser(
        "relaxed",
        re.compile(r"^\d+\.\s*(?P<name>.*?)\s*-\s*(?P<reason>.*)$"),
        default_confidence=default_confidence,
    )


def default_parsers(default_confidence: int = DEFAULT_CONFIDENCE) -> Sequence[LineParser]:
    return (STRICT_PARSER, relaxed_parser(default_confidence))


def parse_line(line: str, parsers: Sequence[LineParser]) -> Optional[ParsedLine]:
    """First parser that matches the line decides; later parsers are not tried."""
    for parser in parsers:
        parsed = parser.parse(line)
        if parsed is not None:
            return parsed
    return None


def extract_match(
    text: str,
    resolve: Callable[[str], Optional[Advocate]],
    parsers: Optional[Sequence[LineParser]] = None,
) -> Optional[MatchResult]:
    """Turn generated text into a MatchResult, or None when no line resolves."""
    active = parsers if parsers is not None else default_parsers()
    for raw_line in _lines(text):
        parsed = parse_line(raw_line, active)
        if parsed is None:
            continue
        advocate = resolve(parsed.name)
        if advocate is None:
            continue
        selected = SelectedAdvocate(
            **advocate.model_dump(),
            reason=parsed.reason,
            confidence_score=parsed.confidence,
        )
        return MatchResult(selected_advocate=selected, confidence=parsed.confidence)
    return None


def _lines(text: str) -> Iterable[str]:
    for line in (text or "").splitlines():
        stripped = line.strip()
        if stripped:
            yield stripped
