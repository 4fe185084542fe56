from datetime import timedelta

import pytest

from intellect.core.errors import StoreUnavailableError, ValidationError
from intellect.features.usage.policy import FixedCounterPolicy, RollingWindowPolicy
from intellect.features.usage.service import (
    AnonymousPolicy,
    FailMode,
    SHARED_ANONYMOUS_IDENTITY,
    UsageGate,
    format_reset_time,
    normalize_identity,
)
from intellect.features.usage.store import InMemoryUsageStore
from intellect.models.usage import ActionType

SEARCH = ActionType.ENFORCEMENT_SEARCH
IMAGE = ActionType.IMAGE_GENERATION


class BrokenStore(InMemoryUsageStore):
    def _boom(self, *args, **kwargs):
        raise StoreUnavailableError()

    add_record = _boom
    list_records = _boom
    get_counter = _boom
    increment_counter_below = _boom


def _policies():
    return {
        SEARCH: RollingWindowPolicy(2, timedelta(hours=24)),
        IMAGE: FixedCounterPolicy(2, timedelta(hours=24)),
    }


def test_search_flow_check_then_record(usage_gate, clock):
    first = usage_gate.check_and_consume("0xABC", SEARCH, anonymous=AnonymousPolicy.BYPASS)
    assert first.admitted and first.remaining == 1
    usage_gate.record_usage("0xABC", SEARCH, {"country": "India"}, anonymous=AnonymousPolicy.BYPASS)

    second = usage_gate.check_and_consume("0xabc", SEARCH, anonymous=AnonymousPolicy.BYPASS)
    assert second.admitted and second.remaining == 0
    usage_gate.record_usage("0xabc", SEARCH, anonymous=AnonymousPolicy.BYPASS)

    third = usage_gate.check_and_consume(" 0xAbC ", SEARCH, anonymous=AnonymousPolicy.BYPASS)
    assert third.admitted is False
    assert third.retry_at == clock.now + timedelta(hours=24)


def test_failed_action_without_record_keeps_credit(usage_gate):
    for _ in range(3):
        decision = usage_gate.check_and_consume("0xabc", SEARCH, anonymous=AnonymousPolicy.BYPASS)
        assert decision.admitted is True
        assert decision.remaining == 1


def test_window_slides_with_clock(usage_gate, clock):
    usage_gate.record_usage("0xabc", SEARCH, anonymous=AnonymousPolicy.BYPASS)
    clock.advance(hours=1)
    usage_gate.record_usage("0xabc", SEARCH, anonymous=AnonymousPolicy.BYPASS)
    assert usage_gate.check_and_consume("0xabc", SEARCH, anonymous=AnonymousPolicy.BYPASS).admitted is False

    clock.advance(hours=23, seconds=1)
    decision = usage_gate.check_and_consume("0xabc", SEARCH, anonymous=AnonymousPolicy.BYPASS)
    assert decision.admitted is True
    assert decision.remaining == 0


def test_anonymous_bypass_admits_without_counting(usage_gate, usage_store):
    decision = usage_gate.check_and_consume(None, SEARCH, anonymous=AnonymousPolicy.BYPASS)
    assert decision.admitted is True
    assert decision.remaining == decision.limit == 2

    usage_gate.record_usage("", SEARCH, anonymous=AnonymousPolicy.BYPASS)
    assert usage_store._records == []


def test_anonymous_reject_raises_validation_error(usage_gate):
    with pytest.raises(ValidationError):
        usage_gate.check_and_consume("   ", IMAGE, anonymous=AnonymousPolicy.REJECT)


def test_anonymous_shared_counts_under_one_key(usage_store, clock):
    gate = UsageGate(usage_store, _policies(), clock=clock)
    gate.check_and_consume(None, IMAGE, anonymous=AnonymousPolicy.SHARED)
    gate.check_and_consume("", IMAGE, anonymous=AnonymousPolicy.SHARED)

    assert usage_store.get_counter(SHARED_ANONYMOUS_IDENTITY, IMAGE).count == 2
    assert gate.check_and_consume(None, IMAGE, anonymous=AnonymousPolicy.SHARED).admitted is False


def test_fail_closed_raises_store_unavailable(clock):
    gate = UsageGate(BrokenStore(), _policies(), fail_mode=FailMode.CLOSED, clock=clock)
    with pytest.raises(StoreUnavailableError):
        gate.check_and_consume("0xabc", SEARCH, anonymous=AnonymousPolicy.BYPASS)
    with pytest.raises(StoreUnavailableError):
        gate.record_usage("0xabc", SEARCH, anonymous=AnonymousPolicy.BYPASS)


def test_fail_open_admits_with_zero_remaining(clock):
    gate = UsageGate(BrokenStore(), _policies(), fail_mode=FailMode.OPEN, clock=clock)

    decision = gate.check_and_consume("0xabc", IMAGE, anonymous=AnonymousPolicy.REJECT)
    assert decision.admitted is True
    assert decision.remaining == 0

    gate.record_usage("0xabc", SEARCH, anonymous=AnonymousPolicy.BYPASS)


def test_allowance_is_read_only(usage_gate, usage_store):
    allowance = usage_gate.get_allowance("0xABC", IMAGE)
    assert allowance.remaining == 2
    assert usage_store.get_counter("0xabc", IMAGE) is None

    usage_gate.check_and_consume("0xabc", IMAGE, anonymous=AnonymousPolicy.REJECT)
    assert usage_gate.get_allowance("0xabc", IMAGE).remaining == 1


def test_allowance_requires_identity(usage_gate):
    with pytest.raises(ValidationError):
        usage_gate.get_allowance(None, SEARCH)


def test_allowance_propagates_store_errors(clock):
    gate = UsageGate(BrokenStore(), _policies(), fail_mode=FailMode.OPEN, clock=clock)
    with pytest.raises(StoreUnavailableError):
        gate.get_allowance("0xabc", SEARCH)


def test_normalize_identity():
    assert normalize_identity("  User@Example.COM ") == "user@example.com"
    assert normalize_identity("   ") is None
    assert normalize_identity(None) is None


def test_format_reset_time(clock):
    assert format_reset_time(clock.now) == "12:00 UTC"
    assert format_reset_time(None) == "soon"
