"""
intellect/features/advocates/store.py

Advocate directory access.

The matcher only reads from here. Jurisdiction filters are case-insensitive
partial matches on country; name lookups prefer an exact (case-insensitive)
name and fall back to a substring match, always inside the jurisdiction.
"""

import json
import threading
from pathlib import Path
from typing import Iterable, List, Optional, Protocol

from pydantic import TypeAdapter
from sqlalchemy import select, delete, insert, func
from sqlalchemy.exc import SQLAlchemyError

from intellect.core.database import get_db_session, advocates
from intellect.core.errors import StoreUnavailableError
from intellect.models.advocate import Advocate


class AdvocateStore(Protocol):
    def query_by_jurisdiction(self, jurisdiction: str) -> List[Advocate]:
        ...

    def find_by_name_and_jurisdiction(self, name: str, jurisdiction: str) -> Optional[Advocate]:
        ...

    def upsert_many(self, items: Iterable[Advocate]) -> int:
        ...

    def ping(self) -> None:
        ...


def jurisdiction_matches(country: str, jurisdiction: str) -> bool:
    return jurisdiction.strip().lower() in (country or "").lower()


def pick_by_name(candidates: Iterable[Advocate], name: str) -> Optional[Advocate]:
    """Exact case-insensitive name first, then substring; ties go to the lowest sl_no."""
    needle = name.strip().lower()
    if not needle:
        return None
    ordered = sorted(candidates, key=lambda a: a.sl_no)
    for advocate in ordered:
        if advocate.name.strip().lower() == needle:
            return advocate
    for advocate in ordered:
        if needle in advocate.name.lower():
            return advocate
    return None


class InMemoryAdvocateStore:
    def __init__(self, items: Optional[Iterable[Advocate]] = None) -> None:
        self._lock = threading.Lock()
        self._items = {}
        if items:
            self.upsert_many(items)

    def query_by_jurisdiction(self, jurisdiction: str) -> List[Advocate]:
        with self._lock:
            items = list(self._items.values())
        return sorted(
            (a for a in items if jurisdiction_matches(a.country, jurisdiction)),
            key=lambda a: a.sl_no,
        )

    def find_by_name_and_jurisdiction(self, name: str, jurisdiction: str) -> Optional[Advocate]:
        return pick_by_name(self.query_by_jurisdiction(jurisdiction), name)

    def upsert_many(self, items: Iterable[Advocate]) -> int:
        count = 0
        with self._lock:
            for advocate in items:
                self._items[advocate.sl_no] = advocate
                count += 1
        return count

    def ping(self) -> None:
        return None


def _row_to_advocate(row) -> Advocate:
    return Advocate(**dict(row._mapping))


class SqlAdvocateStore:
    def _select_jurisdiction(self, jurisdiction: str):
        pattern = jurisdiction.strip().lower()
        return (
            select(advocates)
            .where(func.lower(advocates.c.country).contains(pattern, autoescape=True))
            .order_by(advocates.c.sl_no)
        )

    def query_by_jurisdiction(self, jurisdiction: str) -> List[Advocate]:
        try:
            with get_db_session() as session:
                rows = session.execute(self._select_jurisdiction(jurisdiction)).all()
        except SQLAlchemyError as e:
            raise StoreUnavailableError() from e
        return [_row_to_advocate(row) for row in rows]

    def find_by_name_and_jurisdiction(self, name: str, jurisdiction: str) -> Optional[Advocate]:
        needle = name.strip().lower()
        if not needle:
            return None
        query = self._select_jurisdiction(jurisdiction).where(
            func.lower(advocates.c.name).contains(needle, autoescape=True)
        )
        try:
            with get_db_session() as session:
                rows = session.execute(query).all()
        except SQLAlchemyError as e:
            raise StoreUnavailableError() from e
        return pick_by_name((_row_to_advocate(row) for row in rows), name)

    def upsert_many(self, items: Iterable[Advocate]) -> int:
        items = list(items)
        if not items:
            return 0
        try:
            with get_db_session() as session:
                session.execute(
                    delete(advocates).where(advocates.c.sl_no.in_([a.sl_no for a in items]))
                )
                session.execute(insert(advocates), [a.model_dump() for a in items])
        except SQLAlchemyError as e:
            raise StoreUnavailableError() from e
        return len(items)

    def ping(self) -> None:
        try:
            with get_db_session() as session:
                session.execute(select(advocates.c.sl_no).limit(1))
        except SQLAlchemyError as e:
            raise StoreUnavailableError() from e


_ADVOCATE_LIST = TypeAdapter(List[Advocate])


def load_advocates_file(path) -> List[Advocate]:
    """Load and validate a JSON array of advocates."""
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    return _ADVOCATE_LIST.validate_python(raw)
