"""
Read-side queries for the admin views: subscriber list and dashboard notices.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from .config import EXPIRING_SOON_DAYS, SECONDS_PER_DAY
from .ledger import Ledger
from .models import ensure_utc, utc_now
from .notifications import NotificationFlag
from .roles import RoleDirectory


@dataclass(frozen=True)
class SubscriberRow:
    user_id: str
    expiry: Optional[datetime]
    days_left: Optional[int]  # None renders as "Forever"
    role: Optional[str]


@dataclass(frozen=True)
class Notices:
    new_subscription: bool
    expiring_soon: int


def days_left(expiry: Optional[datetime], now: datetime) -> Optional[int]:
    expiry, now = ensure_utc(expiry), utc_now(now)
    if expiry is None or expiry <= now:
        return None
    return math.ceil((expiry - now).total_seconds() / SECONDS_PER_DAY)


def list_subscribers(
    ledger: Ledger,
    roles: RoleDirectory,
    now: Optional[datetime] = None,
    user_id: Optional[str] = None,
) -> List[SubscriberRow]:
    """Users holding an expiry record, soonest first. user_id narrows to one user."""
    now = utc_now(now)
    if user_id:
        records = ledger.list_records(user_id=user_id)
        if not records and roles.user_exists(user_id):
            return [SubscriberRow(user_id=user_id, expiry=None, days_left=None, role=roles.get_role(user_id))]
    else:
        records = ledger.list_records()

    return [
        SubscriberRow(
            user_id=record.user_id,
            expiry=record.expiry,
            days_left=days_left(record.expiry, now),
            role=roles.get_role(record.user_id),
        )
        for record in records
    ]


def count_expiring_soon(
    ledger: Ledger,
    now: Optional[datetime] = None,
    lookahead_days: int = EXPIRING_SOON_DAYS,
) -> int:
    now = utc_now(now)
    return ledger.count_expiring_between(now, now + timedelta(days=lookahead_days))


def collect_notices(
    notifications: NotificationFlag,
    ledger: Ledger,
    now: Optional[datetime] = None,
) -> Notices:
    """Dashboard notices. Consumes the pending new-subscription flag."""
    now = utc_now(now)
    return Notices(
        new_subscription=notifications.consume_if_pending(now),
        expiring_soon=count_expiring_soon(ledger, now),
    )
