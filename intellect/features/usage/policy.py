"""
intellect/features/usage/policy.py

Quota policies for the usage gate.

A policy decides whether one more action is allowed for an identity and
reports the remaining allowance. Two shapes are supported:

- RollingWindowPolicy: counts immutable usage records in a trailing window.
  Admission is read-only; the caller records usage after the gated action
  succeeds. Check-then-record is not atomic, so two concurrent requests from
  the same identity can both pass the last free slot.
- FixedCounterPolicy: one mutable counter per identity plus a cooldown.
  The credit is consumed at admission through an atomic conditional
  increment and is not refunded if the gated action fails afterwards.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional

from intellect.features.usage.store import UsageStore, to_utc
from intellect.models.usage import ActionType, UsageRecord


class PolicyKind(str, Enum):
    ROLLING_WINDOW = "rolling_window"
    FIXED_COUNTER = "fixed_counter"


@dataclass(frozen=True)
class GateDecision:
    admitted: bool
    remaining: int
    retry_at: Optional[datetime]
    limit: int
    action_type: ActionType


@dataclass(frozen=True)
class UsageAllowance:
    remaining: int
    limit: int
    retry_at: Optional[datetime]
    action_type: ActionType


def _clamp(value: int) -> int:
    return max(0, value)


class QuotaPolicy(ABC):
    kind: PolicyKind

    def __init__(self, limit: int, period: timedelta):
        self.limit = limit
        self.period = period

    @property
    def period_hours(self) -> int:
        return int(self.period.total_seconds() // 3600)

    @abstractmethod
    def admit(self, store: UsageStore, identity: str, action_type: ActionType, now: datetime) -> GateDecision:
        """Decide admission; may consume the credit (policy-specific)."""

    @abstractmethod
    def commit(
        self,
        store: UsageStore,
        identity: str,
        action_type: ActionType,
        now: datetime,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Persist usage after the gated action succeeded."""

    @abstractmethod
    def allowance(self, store: UsageStore, identity: str, action_type: ActionType, now: datetime) -> UsageAllowance:
        """Read-only view of the remaining allowance."""

    def decision(self, action_type: ActionType, *, admitted: bool, remaining: int, retry_at: Optional[datetime] = None) -> GateDecision:
        return GateDecision(
            admitted=admitted,
            remaining=_clamp(remaining),
            retry_at=retry_at,
            limit=self.limit,
            action_type=action_type,
        )


class RollingWindowPolicy(QuotaPolicy):
    kind = PolicyKind.ROLLING_WINDOW

    def _window(self, store: UsageStore, identity: str, action_type: ActionType, now: datetime):
        return store.list_records(identity, action_type, since=now - self.period)

    def _retry_at(self, records) -> Optional[datetime]:
        if not records:
            return None
        oldest = min(to_utc(r.occurred_at) for r in records)
        return oldest + self.period

    def admit(self, store: UsageStore, identity: str, action_type: ActionType, now: datetime) -> GateDecision:
        records = self._window(store, identity, action_type, now)
        used = len(records)
        if used >= self.limit:
            return self.decision(action_type, admitted=False, remaining=0, retry_at=self._retry_at(records))
        return self.decision(action_type, admitted=True, remaining=self.limit - used - 1)

    def commit(self, store, identity, action_type, now, metadata=None) -> None:
        store.add_record(
            UsageRecord(
                identity=identity,
                action_type=action_type,
                occurred_at=now,
                metadata=metadata,
            )
        )

    def allowance(self, store, identity, action_type, now) -> UsageAllowance:
        records = self._window(store, identity, action_type, now)
        used = len(records)
        return UsageAllowance(
            remaining=_clamp(self.limit - used),
            limit=self.limit,
            retry_at=self._retry_at(records) if used >= self.limit else None,
            action_type=action_type,
        )


class FixedCounterPolicy(QuotaPolicy):
    kind = PolicyKind.FIXED_COUNTER

    def admit(self, store: UsageStore, identity: str, action_type: ActionType, now: datetime) -> GateDecision:
        counter = store.get_counter(identity, action_type)
        if counter is not None and counter.blocked_until is not None:
            blocked_until = to_utc(counter.blocked_until)
            if blocked_until > now:
                return self.decision(action_type, admitted=False, remaining=0, retry_at=blocked_until)
            # Cooldown elapsed: start a fresh epoch
            store.reset_counter(identity, action_type, now)

        new_count = store.increment_counter_below(identity, action_type, self.limit)
        if new_count is None:
            until = now + self.period
            store.set_blocked_until(identity, action_type, until)
            return self.decision(action_type, admitted=False, remaining=0, retry_at=until)

        if new_count >= self.limit:
            store.set_blocked_until(identity, action_type, now + self.period)
        return self.decision(action_type, admitted=True, remaining=self.limit - new_count)

    def commit(self, store, identity, action_type, now, metadata=None) -> None:
        # Credit already consumed in admit()
        return None

    def allowance(self, store, identity, action_type, now) -> UsageAllowance:
        counter = store.get_counter(identity, action_type)
        if counter is None:
            return UsageAllowance(remaining=self.limit, limit=self.limit, retry_at=None, action_type=action_type)
        blocked_until = to_utc(counter.blocked_until)
        if blocked_until is not None:
            if blocked_until > now:
                return UsageAllowance(remaining=0, limit=self.limit, retry_at=blocked_until, action_type=action_type)
            return UsageAllowance(remaining=self.limit, limit=self.limit, retry_at=None, action_type=action_type)
        return UsageAllowance(
            remaining=_clamp(self.limit - counter.count),
            limit=self.limit,
            retry_at=None,
            action_type=action_type,
        )


def build_policy(kind: str, limit: int, hours: int) -> QuotaPolicy:
    """Build a policy from configuration values."""
    period = timedelta(hours=hours)
    try:
        resolved = PolicyKind((kind or "").strip().lower())
    except ValueError:
        raise ValueError(f"Unknown quota policy: {kind!r}")
    if resolved is PolicyKind.ROLLING_WINDOW:
        return RollingWindowPolicy(limit, period)
    return FixedCounterPolicy(limit, period)
