"""Enforcement search: match an IP case to the best-suited advocate."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_validator

from intellect.core.dependencies import get_advocate_matcher, get_usage_gate
from intellect.core.errors import RateLimitError, ValidationError
from intellect.core.logging import get_request_id
from intellect.features.advocates.prompts import format_number
from intellect.features.advocates.service import AdvocateMatcher
from intellect.features.usage.service import AnonymousPolicy, UsageGate, format_reset_time
from intellect.models.advocate import MatchResult
from intellect.models.usage import ActionType

router = APIRouter(prefix="/api", tags=["enforcement"])


class EnforcementRequest(BaseModel):
    description: Optional[str] = None
    country: Optional[str] = None
    walletAddress: Optional[str] = None

    @field_validator("description", "country", "walletAddress")
    @classmethod
    def _trim(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


def _best_match_payload(result: MatchResult) -> dict:
    advocate = result.selected_advocate
    return {
        "advocateDetails": {
            "name": advocate.name,
            "email": advocate.email,
            "country": advocate.country,
            "experience": f"{format_number(advocate.experience)} years",
            "rating": f"{format_number(advocate.rating)}/10",
            "skills": advocate.skills,
            "description": advocate.short_description,
        },
        "referralReason": advocate.reason,
        "matchConfidence": f"{result.confidence}%",
    }


@router.post("/enforcement")
def enforcement_search(
    body: EnforcementRequest,
    gate: UsageGate = Depends(get_usage_gate),
    matcher: AdvocateMatcher = Depends(get_advocate_matcher),
):
    if not body.description:
        raise ValidationError("Description is required")
    if not body.country:
        raise ValidationError("Country is required")

    decision = gate.check_and_consume(
        body.walletAddress,
        ActionType.ENFORCEMENT_SEARCH,
        anonymous=AnonymousPolicy.BYPASS,
    )
    if not decision.admitted:
        hours = gate.policy_for(ActionType.ENFORCEMENT_SEARCH).period_hours
        raise RateLimitError(
            f"Daily limit reached. You get {decision.limit} free searches every {hours} hours. "
            f"Next credit available at {format_reset_time(decision.retry_at)}.",
            retry_at=decision.retry_at,
            now=gate.clock(),
        )

    result = matcher.find_best_match(body.description, body.country)

    gate.record_usage(
        body.walletAddress,
        ActionType.ENFORCEMENT_SEARCH,
        {
            "description": body.description,
            "country": body.country,
            "selected_advocate": result.selected_advocate.name,
        },
        anonymous=AnonymousPolicy.BYPASS,
    )

    return {
        "data": {
            "requestedCountry": body.country,
            "bestMatch": _best_match_payload(result),
            "remainingCredits": decision.remaining,
        },
        "request_id": get_request_id(),
    }
