# intellect/conftest.py
import os
import sys
from pathlib import Path

import pytest

# Add project root to PYTHONPATH
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("ENV", "test")

from intellect.core import dependencies
from intellect.core.config import settings
from intellect.features.advocates.store import InMemoryAdvocateStore
from intellect.features.usage.service import UsageGate, build_policies
from intellect.features.usage.store import InMemoryUsageStore
from intellect.tests.mocks import FakeClock, SAMPLE_ADVOCATES


@pytest.fixture(autouse=True)
def reset_providers(monkeypatch):
    """Fresh providers per test; in-memory stores unless a test opts into SQL."""
    monkeypatch.setattr(settings, "DATABASE_URL", None)
    monkeypatch.setattr(settings, "ADVOCATES_FILE", None)
    monkeypatch.delenv("TEST_DATABASE_URL", raising=False)
    dependencies.reset_providers()
    yield
    dependencies.reset_providers()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def usage_store():
    return InMemoryUsageStore()


@pytest.fixture
def advocate_store():
    return InMemoryAdvocateStore(SAMPLE_ADVOCATES)


@pytest.fixture
def usage_gate(usage_store, clock):
    return UsageGate(usage_store, build_policies(settings), clock=clock)
