"""
Process-wide providers for stores and external clients.

Each provider is created lazily on first use and then reused. SQL-backed
stores are selected when a database URL is configured; in-memory stores
otherwise. Route handlers receive these through FastAPI Depends, so tests
swap them with app.dependency_overrides or reset_providers().
"""

import logging
import threading
from typing import Any, Callable, Dict

from intellect.core.config import settings
from intellect.core.database import get_database_url
from intellect.features.advocates.service import AdvocateMatcher, build_matcher
from intellect.features.advocates.store import AdvocateStore, InMemoryAdvocateStore, SqlAdvocateStore, load_advocates_file
from intellect.features.ai.client import GroqTextGenerator, TextGenerator
from intellect.features.images.service import ImageGenerator, StabilityImageGenerator
from intellect.features.usage.service import UsageGate, build_usage_gate
from intellect.features.usage.store import InMemoryUsageStore, SqlUsageStore, UsageStore

logger = logging.getLogger("intellect")

_lock = threading.RLock()
_instances: Dict[str, Any] = {}


def _provide(name: str, factory: Callable[[], Any]) -> Any:
    instance = _instances.get(name)
    if instance is None:
        with _lock:
            instance = _instances.get(name)
            if instance is None:
                instance = factory()
                _instances[name] = instance
    return instance


def using_database() -> bool:
    return bool(get_database_url())


def _make_usage_store() -> UsageStore:
    if using_database():
        return SqlUsageStore()
    logger.info("[providers] DATABASE_URL not set, using in-memory usage store")
    return InMemoryUsageStore()


def _make_advocate_store() -> AdvocateStore:
    if using_database():
        return SqlAdvocateStore()
    store = InMemoryAdvocateStore()
    if settings.ADVOCATES_FILE:
        count = store.upsert_many(load_advocates_file(settings.ADVOCATES_FILE))
        logger.info(f"[providers] loaded {count} advocates from {settings.ADVOCATES_FILE} into in-memory store")
    else:
        logger.info("[providers] DATABASE_URL not set, using empty in-memory advocate store")
    return store


def get_usage_store() -> UsageStore:
    return _provide("usage_store", _make_usage_store)


def get_advocate_store() -> AdvocateStore:
    return _provide("advocate_store", _make_advocate_store)


def get_text_generator() -> TextGenerator:
    return _provide("text_generator", GroqTextGenerator)


def get_image_generator() -> ImageGenerator:
    return _provide("image_generator", StabilityImageGenerator)


def get_usage_gate() -> UsageGate:
    return _provide("usage_gate", lambda: build_usage_gate(get_usage_store()))


def get_advocate_matcher() -> AdvocateMatcher:
    return _provide("advocate_matcher", lambda: build_matcher(get_advocate_store(), get_text_generator()))


def set_provider(name: str, instance: Any) -> None:
    """Install an instance directly (tests, scripts)."""
    with _lock:
        _instances[name] = instance


def reset_providers() -> None:
    """FOR TESTING ONLY - forces re-creation on next use."""
    with _lock:
        _instances.clear()
