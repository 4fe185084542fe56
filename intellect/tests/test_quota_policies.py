"""Quota policies in isolation (in-memory store, explicit instants)."""

from datetime import datetime, timedelta, timezone

import pytest

from intellect.features.usage.policy import (
    FixedCounterPolicy,
    PolicyKind,
    RollingWindowPolicy,
    build_policy,
)
from intellect.features.usage.store import InMemoryUsageStore
from intellect.models.usage import ActionType, UsageRecord

NOW = datetime(2025, 3, 10, 9, 30, tzinfo=timezone.utc)
SEARCH = ActionType.ENFORCEMENT_SEARCH
IMAGE = ActionType.IMAGE_GENERATION


def _record(store, identity, at):
    store.add_record(UsageRecord(identity=identity, action_type=SEARCH, occurred_at=at))


def test_rolling_window_admits_with_no_prior_usage():
    store = InMemoryUsageStore()
    policy = RollingWindowPolicy(2, timedelta(hours=24))

    decision = policy.admit(store, "0xabc", SEARCH, NOW)

    assert decision.admitted is True
    assert decision.remaining == 1
    assert decision.retry_at is None
    assert decision.limit == 2


def test_rolling_window_admission_does_not_record():
    store = InMemoryUsageStore()
    policy = RollingWindowPolicy(2, timedelta(hours=24))

    policy.admit(store, "0xabc", SEARCH, NOW)
    policy.admit(store, "0xabc", SEARCH, NOW)

    assert store.list_records("0xabc", SEARCH, NOW - timedelta(days=1)) == []


def test_rolling_window_denies_at_limit_with_retry_at_oldest_plus_window():
    store = InMemoryUsageStore()
    policy = RollingWindowPolicy(2, timedelta(hours=24))
    oldest = NOW - timedelta(hours=20)
    _record(store, "0xabc", oldest)
    _record(store, "0xabc", NOW - timedelta(hours=1))

    decision = policy.admit(store, "0xabc", SEARCH, NOW)

    assert decision.admitted is False
    assert decision.remaining == 0
    assert decision.retry_at == oldest + timedelta(hours=24)


def test_rolling_window_ignores_records_outside_window():
    store = InMemoryUsageStore()
    policy = RollingWindowPolicy(2, timedelta(hours=24))
    _record(store, "0xabc", NOW - timedelta(hours=30))
    _record(store, "0xabc", NOW - timedelta(hours=25))

    decision = policy.admit(store, "0xabc", SEARCH, NOW)

    assert decision.admitted is True
    assert decision.remaining == 1


def test_rolling_window_admits_at_exact_retry_at():
    store = InMemoryUsageStore()
    policy = RollingWindowPolicy(2, timedelta(hours=24))
    oldest = NOW - timedelta(hours=24)
    _record(store, "0xabc", oldest)
    _record(store, "0xabc", NOW - timedelta(hours=1))

    just_before = policy.admit(store, "0xabc", SEARCH, NOW - timedelta(seconds=1))
    assert just_before.admitted is False
    assert just_before.retry_at == NOW

    decision = policy.admit(store, "0xabc", SEARCH, NOW)
    assert decision.admitted is True
    assert decision.remaining == 0


def test_rolling_window_is_per_identity():
    store = InMemoryUsageStore()
    policy = RollingWindowPolicy(1, timedelta(hours=24))
    _record(store, "0xabc", NOW - timedelta(hours=1))

    assert policy.admit(store, "0xabc", SEARCH, NOW).admitted is False
    assert policy.admit(store, "0xdef", SEARCH, NOW).admitted is True


def test_rolling_window_commit_then_allowance():
    store = InMemoryUsageStore()
    policy = RollingWindowPolicy(2, timedelta(hours=24))

    policy.commit(store, "0xabc", SEARCH, NOW, {"country": "India"})
    allowance = policy.allowance(store, "0xabc", SEARCH, NOW)

    assert allowance.remaining == 1
    assert allowance.retry_at is None
    records = store.list_records("0xabc", SEARCH, NOW - timedelta(hours=1))
    assert records[0].metadata == {"country": "India"}


def test_rolling_window_remaining_never_negative():
    store = InMemoryUsageStore()
    policy = RollingWindowPolicy(2, timedelta(hours=24))
    for minutes in (10, 20, 30, 40):
        _record(store, "0xabc", NOW - timedelta(minutes=minutes))

    assert policy.admit(store, "0xabc", SEARCH, NOW).remaining == 0
    assert policy.allowance(store, "0xabc", SEARCH, NOW).remaining == 0


def test_fixed_counter_consumes_on_admit_and_blocks_at_limit():
    store = InMemoryUsageStore()
    policy = FixedCounterPolicy(2, timedelta(hours=24))

    first = policy.admit(store, "0xabc", IMAGE, NOW)
    second = policy.admit(store, "0xabc", IMAGE, NOW)
    third = policy.admit(store, "0xabc", IMAGE, NOW)

    assert (first.admitted, first.remaining) == (True, 1)
    assert (second.admitted, second.remaining) == (True, 0)
    assert third.admitted is False
    assert third.retry_at == NOW + timedelta(hours=24)
    assert store.get_counter("0xabc", IMAGE).count == 2


def test_fixed_counter_resets_after_cooldown():
    store = InMemoryUsageStore()
    policy = FixedCounterPolicy(2, timedelta(hours=24))
    policy.admit(store, "0xabc", IMAGE, NOW)
    policy.admit(store, "0xabc", IMAGE, NOW)

    later = NOW + timedelta(hours=24, minutes=1)
    decision = policy.admit(store, "0xabc", IMAGE, later)

    assert decision.admitted is True
    assert decision.remaining == 1
    counter = store.get_counter("0xabc", IMAGE)
    assert counter.count == 1
    assert counter.blocked_until is None


def test_fixed_counter_denies_while_blocked():
    store = InMemoryUsageStore()
    policy = FixedCounterPolicy(1, timedelta(hours=24))
    policy.admit(store, "0xabc", IMAGE, NOW)

    decision = policy.admit(store, "0xabc", IMAGE, NOW + timedelta(hours=23))

    assert decision.admitted is False
    assert decision.retry_at == NOW + timedelta(hours=24)


def test_fixed_counter_commit_does_not_touch_counter():
    store = InMemoryUsageStore()
    policy = FixedCounterPolicy(2, timedelta(hours=24))
    policy.admit(store, "0xabc", IMAGE, NOW)

    policy.commit(store, "0xabc", IMAGE, NOW)

    assert store.get_counter("0xabc", IMAGE).count == 1


def test_fixed_counter_allowance():
    store = InMemoryUsageStore()
    policy = FixedCounterPolicy(2, timedelta(hours=24))

    assert policy.allowance(store, "0xabc", IMAGE, NOW).remaining == 2
    policy.admit(store, "0xabc", IMAGE, NOW)
    assert policy.allowance(store, "0xabc", IMAGE, NOW).remaining == 1
    policy.admit(store, "0xabc", IMAGE, NOW)

    blocked = policy.allowance(store, "0xabc", IMAGE, NOW)
    assert blocked.remaining == 0
    assert blocked.retry_at == NOW + timedelta(hours=24)

    elapsed = policy.allowance(store, "0xabc", IMAGE, NOW + timedelta(hours=25))
    assert elapsed.remaining == 2


def test_build_policy_from_config_values():
    assert build_policy("rolling_window", 2, 24).kind is PolicyKind.ROLLING_WINDOW
    policy = build_policy(" Fixed_Counter ", 3, 12)
    assert policy.kind is PolicyKind.FIXED_COUNTER
    assert policy.limit == 3
    assert policy.period_hours == 12

    with pytest.raises(ValueError):
        build_policy("leaky_bucket", 2, 24)
