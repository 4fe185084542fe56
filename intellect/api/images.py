"""Image prompt writing and gated image generation."""

import base64
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_validator

from intellect.core.config import settings
from intellect.core.dependencies import get_image_generator, get_text_generator, get_usage_gate
from intellect.core.errors import RateLimitError, ValidationError
from intellect.core.logging import get_request_id, log_event
from intellect.features.ai.client import TextGenerator
from intellect.features.ai.prompts import build_image_prompt
from intellect.features.images.service import ImageGenerator, resize_square
from intellect.features.usage.service import AnonymousPolicy, UsageGate, format_reset_time
from intellect.models.usage import ActionType

router = APIRouter(prefix="/api", tags=["images"])


class PromptCriteria(BaseModel):
    subject: Optional[str] = None
    style: Optional[str] = None
    environment: Optional[str] = None
    genre: Optional[str] = None
    timePeriod: Optional[str] = None
    artMedium: Optional[str] = None
    mood: Optional[str] = None
    lighting: Optional[str] = None
    colorPalette: Optional[str] = None
    composition: Optional[str] = None
    customDetails: Optional[str] = None


class ImageRequest(BaseModel):
    prompt: Optional[str] = None
    walletAddress: Optional[str] = None
    email: Optional[str] = None

    @field_validator("prompt", "walletAddress", "email")
    @classmethod
    def _trim(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


@router.post("/generate-prompt")
def generate_prompt(
    body: PromptCriteria,
    generator: TextGenerator = Depends(get_text_generator),
):
    text = generator.generate(
        build_image_prompt(body.model_dump()),
        temperature=settings.GENERATION_TEMPERATURE,
        max_output_tokens=settings.GENERATION_MAX_TOKENS,
    )
    return {"data": {"prompt": text}, "request_id": get_request_id()}


@router.post("/generate-image")
def generate_image(
    body: ImageRequest,
    gate: UsageGate = Depends(get_usage_gate),
    generator: ImageGenerator = Depends(get_image_generator),
):
    identity = body.walletAddress or body.email
    if not body.prompt or not identity:
        raise ValidationError("Prompt and wallet address are required")

    decision = gate.check_and_consume(
        identity,
        ActionType.IMAGE_GENERATION,
        anonymous=AnonymousPolicy.REJECT,
    )
    if not decision.admitted:
        hours = gate.policy_for(ActionType.IMAGE_GENERATION).period_hours
        raise RateLimitError(
            f"Daily limit reached. You can generate {decision.limit} images every {hours} hours. "
            f"Next credit available at {format_reset_time(decision.retry_at)}.",
            retry_at=decision.retry_at,
            now=gate.clock(),
        )

    raw = generator.generate(body.prompt)
    square = resize_square(raw, settings.IMAGE_SIZE)

    gate.record_usage(
        identity,
        ActionType.IMAGE_GENERATION,
        {"prompt": body.prompt},
        anonymous=AnonymousPolicy.REJECT,
    )
    log_event(
        "info",
        "images.generated",
        identity=identity,
        action_type=ActionType.IMAGE_GENERATION.value,
        extra={"bytes": len(square), "remaining": decision.remaining},
    )

    return {
        "data": {
            "imageBuffer": base64.b64encode(square).decode("ascii"),
            "remaining": decision.remaining,
        },
        "request_id": get_request_id(),
    }
