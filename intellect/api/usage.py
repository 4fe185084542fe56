"""Read-only usage lookup (remaining credits per identity and action)."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from intellect.core.dependencies import get_usage_gate
from intellect.core.errors import ValidationError
from intellect.core.logging import get_request_id
from intellect.features.usage.service import UsageGate
from intellect.models.usage import ActionType

router = APIRouter(prefix="/api", tags=["usage"])


@router.get("/user-usage")
def user_usage(
    walletAddress: Optional[str] = Query(None),
    email: Optional[str] = Query(None),
    action: str = Query(ActionType.IMAGE_GENERATION.value),
    gate: UsageGate = Depends(get_usage_gate),
):
    try:
        action_type = ActionType(action)
    except ValueError:
        raise ValidationError(f"Unknown action: {action}")

    identity = (walletAddress or "").strip() or (email or "").strip()
    allowance = gate.get_allowance(identity, action_type)
    return {
        "data": {
            "action": action_type.value,
            "remaining": allowance.remaining,
            "limit": allowance.limit,
            "retryAt": allowance.retry_at.isoformat() if allowance.retry_at else None,
        },
        "request_id": get_request_id(),
    }
