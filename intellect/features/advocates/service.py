"""
intellect/features/advocates/service.py

Best-match advocate selection.

Flow: filter advocates by jurisdiction -> render prompt -> generate ->
parse the first resolvable selection line.

Raises:
    NoCandidatesError: no advocate in the jurisdiction (generator not called)
    NoMatchExtractedError: generated text named nobody we can resolve
    GenerationServiceError: the text generator failed
"""

from typing import Optional, Sequence

from intellect.core.config import Settings, settings as default_settings
from intellect.core.errors import NoCandidatesError, NoMatchExtractedError
from intellect.core.logging import log_event
from intellect.features.advocates.parsing import LineParser, default_parsers, extract_match
from intellect.features.advocates.prompts import build_match_prompt, render_advocates
from intellect.features.advocates.store import AdvocateStore
from intellect.features.ai.client import TextGenerator
from intellect.models.advocate import MatchResult


class AdvocateMatcher:
    def __init__(
        self,
        store: AdvocateStore,
        generator: TextGenerator,
        *,
        temperature: float = 0.8,
        max_output_tokens: int = 2000,
        parsers: Optional[Sequence[LineParser]] = None,
    ):
        self.store = store
        self.generator = generator
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.parsers = parsers if parsers is not None else default_parsers()

    def find_best_match(self, case_description: str, jurisdiction: str) -> MatchResult:
        candidates = self.store.query_by_jurisdiction(jurisdiction)
        if not candidates:
            log_event("warning", "advocates.match.no_candidates", error_code="no_candidates", extra={"jurisdiction": jurisdiction})
            raise NoCandidatesError(jurisdiction)

        prompt = build_match_prompt(case_description, render_advocates(candidates), jurisdiction)
        response_text = self.generator.generate(
            prompt,
            temperature=self.temperature,
            max_output_tokens=self.max_output_tokens,
        )

        result = extract_match(
            response_text,
            lambda name: self.store.find_by_name_and_jurisdiction(name, jurisdiction),
            self.parsers,
        )
        if result is None:
            log_event(
                "warning",
                "advocates.match.unparsed",
                error_code="no_match",
                extra={"jurisdiction": jurisdiction, "response": response_text},
            )
            raise NoMatchExtractedError()

        log_event(
            "info",
            "advocates.match.selected",
            extra={
                "jurisdiction": jurisdiction,
                "candidates": len(candidates),
                "advocate": result.selected_advocate.name,
                "confidence": result.confidence,
            },
        )
        return result


def build_matcher(store: AdvocateStore, generator: TextGenerator, cfg: Optional[Settings] = None) -> AdvocateMatcher:
    cfg = cfg or default_settings
    return AdvocateMatcher(
        store,
        generator,
        temperature=cfg.GENERATION_TEMPERATURE,
        max_output_tokens=cfg.GENERATION_MAX_TOKENS,
        parsers=default_parsers(cfg.MATCH_DEFAULT_CONFIDENCE),
    )
