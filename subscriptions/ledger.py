"""
Subscription ledger: the only writer of per-user expiry records.

Backends:
- SqlLedger: subscription_grants table via a SQLAlchemy session
- InMemoryLedger: dict guarded by an RLock (tests, single-process hosts)

update_expiry() is the read-modify-write path used by the grant engine.
It is atomic per user: the SQL backend locks the row for the duration of
the transaction, the in-memory backend holds its lock. clear_if_lapsed()
is the sweeper's counterpart: recheck, remove and revert in one step.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from threading import RLock
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from .db import SubscriptionGrant
from .models import SubscriptionRecord, ensure_utc

logger = logging.getLogger(__name__)

ExpiryUpdate = Callable[[Optional[datetime]], Optional[datetime]]
ClearHook = Callable[[], None]


class Ledger(ABC):
    @abstractmethod
    def get_expiry(self, user_id: str) -> Optional[datetime]:
        """Stored expiry, or None when the user has none."""

    @abstractmethod
    def set_expiry(self, user_id: str, expiry: Optional[datetime]) -> None:
        """Overwrite the expiry. None removes the record (perpetual)."""

    @abstractmethod
    def update_expiry(self, user_id: str, compute: ExpiryUpdate) -> Optional[datetime]:
        """Atomically replace the expiry with compute(current). Returns the new value."""

    @abstractmethod
    def list_lapsed(self, now: datetime) -> List[str]:
        """Users whose expiry is strictly before now."""

    @abstractmethod
    def list_records(self, user_id: Optional[str] = None) -> List[SubscriptionRecord]:
        """Users holding an expiry record, soonest expiry first."""

    @abstractmethod
    def count_expiring_between(self, start: datetime, end: datetime) -> int:
        """Users whose expiry falls within [start, end]."""

    @abstractmethod
    def clear_if_lapsed(self, user_id: str, now: datetime, on_clear: Optional[ClearHook] = None) -> bool:
        """Remove the record only if it is still strictly before now.

        on_clear runs in the same critical section as the removal, so a grant
        committed after list_lapsed() is never wiped and the follow-up (role
        reversion) only happens for records that were really removed.
        Returns True when the record was removed.
        """

    def clear_expiry(self, user_id: str) -> None:
        self.set_expiry(user_id, None)


class InMemoryLedger(Ledger):
    def __init__(self, records: Optional[Dict[str, datetime]] = None) -> None:
        self._lock = RLock()
        self._expiry: Dict[str, datetime] = {}
        for user_id, expiry in (records or {}).items():
            self.set_expiry(user_id, expiry)

    def get_expiry(self, user_id: str) -> Optional[datetime]:
        with self._lock:
            return self._expiry.get(user_id)

    def set_expiry(self, user_id: str, expiry: Optional[datetime]) -> None:
        with self._lock:
            if expiry is None:
                self._expiry.pop(user_id, None)
            else:
                self._expiry[user_id] = ensure_utc(expiry)

    def update_expiry(self, user_id: str, compute: ExpiryUpdate) -> Optional[datetime]:
        with self._lock:
            new_expiry = ensure_utc(compute(self._expiry.get(user_id)))
            self.set_expiry(user_id, new_expiry)
            return new_expiry

    def clear_if_lapsed(self, user_id: str, now: datetime, on_clear: Optional[ClearHook] = None) -> bool:
        now = ensure_utc(now)
        with self._lock:
            expiry = self._expiry.get(user_id)
            if expiry is None or expiry >= now:
                return False
            del self._expiry[user_id]
            if on_clear is not None:
                on_clear()
            return True

    def list_lapsed(self, now: datetime) -> List[str]:
        now = ensure_utc(now)
        with self._lock:
            return [user_id for user_id, expiry in self._expiry.items() if expiry < now]

    def list_records(self, user_id: Optional[str] = None) -> List[SubscriptionRecord]:
        with self._lock:
            items = list(self._expiry.items())
        if user_id is not None:
            items = [(uid, expiry) for uid, expiry in items if uid == user_id]
        items.sort(key=lambda item: item[1])
        return [SubscriptionRecord(user_id=uid, expiry=expiry) for uid, expiry in items]

    def count_expiring_between(self, start: datetime, end: datetime) -> int:
        start, end = ensure_utc(start), ensure_utc(end)
        with self._lock:
            return sum(1 for expiry in self._expiry.values() if start <= expiry <= end)


class SqlLedger(Ledger):
    """Ledger backed by the subscription_grants table. Commits per mutation."""

    def __init__(self, db_session: Session) -> None:
        self.db_session = db_session

    def _row(self, user_id: str, *, for_update: bool = False) -> Optional[SubscriptionGrant]:
        query = self.db_session.query(SubscriptionGrant).filter(SubscriptionGrant.user_id == user_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_expiry(self, user_id: str) -> Optional[datetime]:
        row = self._row(user_id)
        return ensure_utc(row.expires_at) if row else None

    def set_expiry(self, user_id: str, expiry: Optional[datetime]) -> None:
        try:
            self._write(self._row(user_id, for_update=True), user_id, ensure_utc(expiry))
            self.db_session.commit()
        except Exception:
            self.db_session.rollback()
            raise

    def update_expiry(self, user_id: str, compute: ExpiryUpdate) -> Optional[datetime]:
        try:
            row = self._row(user_id, for_update=True)
            current = ensure_utc(row.expires_at) if row else None
            new_expiry = ensure_utc(compute(current))
            self._write(row, user_id, new_expiry)
            self.db_session.commit()
        except Exception:
            self.db_session.rollback()
            raise
        return new_expiry

    def clear_if_lapsed(self, user_id: str, now: datetime, on_clear: Optional[ClearHook] = None) -> bool:
        try:
            row = self._row(user_id, for_update=True)
            if row is None or ensure_utc(row.expires_at) >= ensure_utc(now):
                self.db_session.rollback()
                return False
            self.db_session.delete(row)
            self.db_session.flush()
            if on_clear is not None:
                on_clear()
            self.db_session.commit()
        except Exception:
            self.db_session.rollback()
            raise
        return True

    def _write(self, row: Optional[SubscriptionGrant], user_id: str, expiry: Optional[datetime]) -> None:
        if expiry is None:
            if row is not None:
                self.db_session.delete(row)
            return
        if row is None:
            self.db_session.add(SubscriptionGrant(user_id=user_id, expires_at=expiry))
        else:
            row.expires_at = expiry

    def list_lapsed(self, now: datetime) -> List[str]:
        rows = (
            self.db_session.query(SubscriptionGrant.user_id)
            .filter(
                SubscriptionGrant.expires_at.isnot(None),
                SubscriptionGrant.expires_at < ensure_utc(now),
            )
            .all()
        )
        return [row.user_id for row in rows]

    def list_records(self, user_id: Optional[str] = None) -> List[SubscriptionRecord]:
        query = self.db_session.query(SubscriptionGrant)
        if user_id is not None:
            query = query.filter(SubscriptionGrant.user_id == user_id)
        rows = query.order_by(SubscriptionGrant.expires_at.asc(), SubscriptionGrant.user_id.asc()).all()
        return [SubscriptionRecord(user_id=row.user_id, expiry=row.expires_at) for row in rows]

    def count_expiring_between(self, start: datetime, end: datetime) -> int:
        return (
            self.db_session.query(SubscriptionGrant)
            .filter(
                SubscriptionGrant.expires_at >= ensure_utc(start),
                SubscriptionGrant.expires_at <= ensure_utc(end),
            )
            .count()
        )
