"""
intellect/features/usage/service.py

Usage gate (admission control for gated actions).

Handles:
- Identity normalization and explicit anonymous handling per call site
- Policy dispatch per action type
- One consistent fail mode when the usage store is unavailable
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

from intellect.core.config import Settings, settings as default_settings
from intellect.core.errors import StoreUnavailableError, ValidationError
from intellect.core.logging import log_event
from intellect.features.usage.policy import GateDecision, QuotaPolicy, UsageAllowance, build_policy
from intellect.features.usage.store import UsageStore
from intellect.models.usage import ActionType

SHARED_ANONYMOUS_IDENTITY = "anonymous"


class AnonymousPolicy(str, Enum):
    """What a call site does when the request carries no identity."""
    BYPASS = "bypass"    # admit without counting
    SHARED = "shared"    # count against one shared allowance
    REJECT = "reject"    # validation error


class FailMode(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


def normalize_identity(identity: Optional[str]) -> Optional[str]:
    """Wallet addresses and emails are case-insensitive keys."""
    if identity is None:
        return None
    cleaned = identity.strip().lower()
    return cleaned or None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UsageGate:
    def __init__(
        self,
        store: UsageStore,
        policies: Dict[ActionType, QuotaPolicy],
        *,
        fail_mode: FailMode = FailMode.CLOSED,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.policies = policies
        self.fail_mode = FailMode(fail_mode)
        self.clock = clock

    def policy_for(self, action_type: ActionType) -> QuotaPolicy:
        try:
            return self.policies[action_type]
        except KeyError:
            raise ValidationError(f"No quota policy configured for {action_type.value}")

    def _resolve_identity(self, identity: Optional[str], anonymous: AnonymousPolicy) -> Optional[str]:
        key = normalize_identity(identity)
        if key:
            return key
        if anonymous is AnonymousPolicy.REJECT:
            raise ValidationError("A wallet address or email is required")
        if anonymous is AnonymousPolicy.SHARED:
            return SHARED_ANONYMOUS_IDENTITY
        return None

    def check_and_consume(
        self,
        identity: Optional[str],
        action_type: ActionType,
        *,
        anonymous: AnonymousPolicy,
    ) -> GateDecision:
        """Decide whether `identity` may perform `action_type` now.

        Rolling-window policies only read here; call record_usage once the
        action succeeded. Fixed-counter policies consume the credit here.

        Raises:
            ValidationError: identity missing and anonymous=REJECT
            StoreUnavailableError: store down and fail mode is closed
        """
        policy = self.policy_for(action_type)
        key = self._resolve_identity(identity, anonymous)
        if key is None:
            return policy.decision(action_type, admitted=True, remaining=policy.limit)

        now = self.clock()
        try:
            decision = policy.admit(self.store, key, action_type, now)
        except StoreUnavailableError:
            if self.fail_mode is FailMode.CLOSED:
                log_event("error", "usage.gate.store_unavailable", identity=key, action_type=action_type.value, error_code="store_unavailable")
                raise
            log_event("warning", "usage.gate.fail_open", identity=key, action_type=action_type.value, error_code="store_unavailable")
            return policy.decision(action_type, admitted=True, remaining=0)

        log_event(
            "info",
            "usage.gate.admitted" if decision.admitted else "usage.gate.denied",
            identity=key,
            action_type=action_type.value,
            extra={
                "remaining": decision.remaining,
                "retry_at": decision.retry_at.isoformat() if decision.retry_at else None,
                "policy": policy.kind.value,
            },
        )
        return decision

    def record_usage(
        self,
        identity: Optional[str],
        action_type: ActionType,
        metadata: Optional[Dict[str, Any]] = None,
        *,
        anonymous: AnonymousPolicy,
    ) -> None:
        """Persist usage after the gated action succeeded."""
        policy = self.policy_for(action_type)
        key = self._resolve_identity(identity, anonymous)
        if key is None:
            return

        try:
            policy.commit(self.store, key, action_type, self.clock(), metadata)
        except StoreUnavailableError:
            if self.fail_mode is FailMode.CLOSED:
                log_event("error", "usage.record.store_unavailable", identity=key, action_type=action_type.value, error_code="store_unavailable")
                raise
            log_event("warning", "usage.record.skipped", identity=key, action_type=action_type.value, error_code="store_unavailable")

    def get_allowance(self, identity: Optional[str], action_type: ActionType) -> UsageAllowance:
        """Remaining allowance without consuming anything."""
        policy = self.policy_for(action_type)
        key = normalize_identity(identity)
        if key is None:
            raise ValidationError("A wallet address or email is required")
        return policy.allowance(self.store, key, action_type, self.clock())


def build_policies(cfg: Optional[Settings] = None) -> Dict[ActionType, QuotaPolicy]:
    cfg = cfg or default_settings
    return {
        ActionType.ENFORCEMENT_SEARCH: build_policy(
            cfg.ENFORCEMENT_QUOTA_POLICY,
            cfg.ENFORCEMENT_DAILY_LIMIT,
            cfg.ENFORCEMENT_WINDOW_HOURS,
        ),
        ActionType.IMAGE_GENERATION: build_policy(
            cfg.IMAGE_QUOTA_POLICY,
            cfg.IMAGE_DAILY_LIMIT,
            cfg.IMAGE_COOLDOWN_HOURS,
        ),
    }


def build_usage_gate(store: UsageStore, cfg: Optional[Settings] = None) -> UsageGate:
    cfg = cfg or default_settings
    return UsageGate(
        store,
        build_policies(cfg),
        fail_mode=FailMode((cfg.USAGE_FAIL_MODE or "closed").lower()),
    )


def format_reset_time(retry_at: Optional[datetime]) -> str:
    """Human-readable reset instant for denial messages."""
    if retry_at is None:
        return "soon"
    return retry_at.astimezone(timezone.utc).strftime("%H:%M UTC")
