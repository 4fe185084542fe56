"""
intellect/features/usage/store.py

Usage ledger persistence.

Two backends behind one protocol:
- SqlUsageStore: SQLAlchemy Core against usage_records / usage_counters
- InMemoryUsageStore: process-local fallback when DATABASE_URL is not set
"""

import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol, Tuple

from sqlalchemy import select, insert, update, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from intellect.core.database import get_db_session, usage_records, usage_counters
from intellect.core.errors import StoreUnavailableError
from intellect.models.usage import ActionType, UsageCounter, UsageRecord


def to_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize to an aware UTC datetime (SQLite hands back naive values)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UsageStore(Protocol):
    """
    Protocol for usage ledger backends.

    All methods raise StoreUnavailableError when the backend cannot be reached.
    Writes are always scoped to a single (identity, action_type).
    """

    def add_record(self, record: UsageRecord) -> None:
        ...

    def list_records(self, identity: str, action_type: ActionType, since: datetime) -> List[UsageRecord]:
        """Records with occurred_at > since, oldest first.

        The bound is exclusive: a record expires at exactly occurred_at + window,
        the same instant the gate reports as retry_at.
        """
        ...

    def get_counter(self, identity: str, action_type: ActionType) -> Optional[UsageCounter]:
        ...

    def increment_counter_below(self, identity: str, action_type: ActionType, limit: int) -> Optional[int]:
        """
        Atomically increment the counter only while count < limit.

        Creates the counter on first use. Returns the new count, or None when
        the counter is already at (or above) the limit.
        """
        ...

    def set_blocked_until(self, identity: str, action_type: ActionType, until: datetime) -> None:
        ...

    def reset_counter(self, identity: str, action_type: ActionType, now: datetime) -> None:
        """Zero the counter and clear blocked_until if the cooldown has elapsed at `now`."""
        ...

    def ping(self) -> None:
        ...


class InMemoryUsageStore:
    """Thread-safe process-local ledger."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: List[UsageRecord] = []
        self._counters: Dict[Tuple[str, str], UsageCounter] = {}

    def add_record(self, record: UsageRecord) -> None:
        with self._lock:
            self._records.append(record)

    def list_records(self, identity: str, action_type: ActionType, since: datetime) -> List[UsageRecord]:
        since = to_utc(since)
        with self._lock:
            matches = [
                r for r in self._records
                if r.identity == identity
                and r.action_type == action_type
                and to_utc(r.occurred_at) > since
            ]
        return sorted(matches, key=lambda r: r.occurred_at)

    def get_counter(self, identity: str, action_type: ActionType) -> Optional[UsageCounter]:
        with self._lock:
            return self._counters.get((identity, action_type.value))

    def increment_counter_below(self, identity: str, action_type: ActionType, limit: int) -> Optional[int]:
        key = (identity, action_type.value)
        with self._lock:
            current = self._counters.get(key) or UsageCounter(identity=identity, action_type=action_type)
            if current.count >= limit:
                return None
            updated = current.model_copy(update={"count": current.count + 1})
            self._counters[key] = updated
            return updated.count

    def set_blocked_until(self, identity: str, action_type: ActionType, until: datetime) -> None:
        key = (identity, action_type.value)
        with self._lock:
            current = self._counters.get(key) or UsageCounter(identity=identity, action_type=action_type)
            self._counters[key] = current.model_copy(update={"blocked_until": to_utc(until)})

    def reset_counter(self, identity: str, action_type: ActionType, now: datetime) -> None:
        key = (identity, action_type.value)
        with self._lock:
            current = self._counters.get(key)
            if current is None:
                return
            if current.blocked_until is not None and to_utc(current.blocked_until) > to_utc(now):
                return
            self._counters[key] = current.model_copy(update={"count": 0, "blocked_until": None})

    def ping(self) -> None:
        return None


class SqlUsageStore:
    """SQLAlchemy-backed ledger (PostgreSQL in production, SQLite locally)."""

    def add_record(self, record: UsageRecord) -> None:
        try:
            with get_db_session() as session:
                session.execute(
                    insert(usage_records).values(
                        identity=record.identity,
                        action_type=record.action_type.value,
                        occurred_at=to_utc(record.occurred_at),
                        metadata=record.metadata,
                    )
                )
        except SQLAlchemyError as e:
            raise StoreUnavailableError() from e

    def list_records(self, identity: str, action_type: ActionType, since: datetime) -> List[UsageRecord]:
        try:
            with get_db_session() as session:
                rows = session.execute(
                    select(usage_records)
                    .where(usage_records.c.identity == identity)
                    .where(usage_records.c.action_type == action_type.value)
                    .where(usage_records.c.occurred_at > to_utc(since))
                    .order_by(usage_records.c.occurred_at)
                ).all()
        except SQLAlchemyError as e:
            raise StoreUnavailableError() from e

        return [
            UsageRecord(
                identity=row.identity,
                action_type=ActionType(row.action_type),
                occurred_at=to_utc(row.occurred_at),
                metadata=row.metadata,
            )
            for row in rows
        ]

    def get_counter(self, identity: str, action_type: ActionType) -> Optional[UsageCounter]:
        try:
            with get_db_session() as session:
                row = session.execute(
                    select(usage_counters)
                    .where(usage_counters.c.identity == identity)
                    .where(usage_counters.c.action_type == action_type.value)
                ).first()
        except SQLAlchemyError as e:
            raise StoreUnavailableError() from e

        if row is None:
            return None
        # Row is tuple-like: row.count would be tuple.count
        data = row._mapping
        return UsageCounter(
            identity=data["identity"],
            action_type=ActionType(data["action_type"]),
            count=data["count"],
            blocked_until=to_utc(data["blocked_until"]),
        )

    def _conditional_increment(self, session, identity: str, action_type: ActionType, limit: int) -> Optional[int]:
        result = session.execute(
            update(usage_counters)
            .where(usage_counters.c.identity == identity)
            .where(usage_counters.c.action_type == action_type.value)
            .where(usage_counters.c.count < limit)
            .values(count=usage_counters.c.count + 1)
        )
        if result.rowcount == 0:
            return None
        return session.execute(
            select(usage_counters.c.count)
            .where(usage_counters.c.identity == identity)
            .where(usage_counters.c.action_type == action_type.value)
        ).scalar_one()

    def increment_counter_below(self, identity: str, action_type: ActionType, limit: int) -> Optional[int]:
        if limit <= 0:
            return None
        try:
            with get_db_session() as session:
                new_count = self._conditional_increment(session, identity, action_type, limit)
                if new_count is not None:
                    return new_count
                exists = session.execute(
                    select(usage_counters.c.id)
                    .where(usage_counters.c.identity == identity)
                    .where(usage_counters.c.action_type == action_type.value)
                ).first()
                if exists is not None:
                    return None
            # First action for this identity: create the counter at 1
            try:
                with get_db_session() as session:
                    session.execute(
                        insert(usage_counters).values(
                            identity=identity,
                            action_type=action_type.value,
                            count=1,
                        )
                    )
                return 1
            except IntegrityError:
                # Lost the creation race; the row exists now
                with get_db_session() as session:
                    return self._conditional_increment(session, identity, action_type, limit)
        except SQLAlchemyError as e:
            raise StoreUnavailableError() from e

    def set_blocked_until(self, identity: str, action_type: ActionType, until: datetime) -> None:
        try:
            with get_db_session() as session:
                session.execute(
                    update(usage_counters)
                    .where(usage_counters.c.identity == identity)
                    .where(usage_counters.c.action_type == action_type.value)
                    .values(blocked_until=to_utc(until))
                )
        except SQLAlchemyError as e:
            raise StoreUnavailableError() from e

    def reset_counter(self, identity: str, action_type: ActionType, now: datetime) -> None:
        try:
            with get_db_session() as session:
                session.execute(
                    update(usage_counters)
                    .where(usage_counters.c.identity == identity)
                    .where(usage_counters.c.action_type == action_type.value)
                    .where(
                        or_(
                            usage_counters.c.blocked_until.is_(None),
                            usage_counters.c.blocked_until <= to_utc(now),
                        )
                    )
                    .values(count=0, blocked_until=None)
                )
        except SQLAlchemyError as e:
            raise StoreUnavailableError() from e

    def ping(self) -> None:
        try:
            with get_db_session() as session:
                session.execute(select(usage_counters.c.id).limit(1))
        except SQLAlchemyError as e:
            raise StoreUnavailableError() from e
