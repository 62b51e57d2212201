from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Optional, Union

from .adjustments import set_days_left
from .grants import GrantEngine
from .ledger import Ledger
from .models import PurchaseEvent, PurchaseOutcome, RuleSetSnapshot, SweepResult
from .notifications import NotificationFlag
from .reporting import Notices, SubscriberRow, collect_notices, list_subscribers
from .roles import RoleDirectory
from .settings import SettingsStore
from .sweeper import ExpirySweeper

logger = logging.getLogger(__name__)


class SubscriptionService:
    """Wires the ledger, role directory, notice flag and settings together.

    Each operation takes one settings snapshot up front, so a concurrent
    settings save never changes the rules halfway through an event.
    """

    def __init__(
        self,
        *,
        ledger: Ledger,
        roles: RoleDirectory,
        settings: SettingsStore,
        notifications: Optional[NotificationFlag] = None,
        audit_sink: Optional[Callable[[str, dict], None]] = None,
    ) -> None:
        self.ledger = ledger
        self.roles = roles
        self.settings = settings
        self.notifications = notifications or NotificationFlag()
        self.engine = GrantEngine(
            ledger=ledger,
            roles=roles,
            notifications=self.notifications,
            settings=settings,
            audit_sink=audit_sink,
        )
        self.sweeper = ExpirySweeper(ledger=ledger, roles=roles, settings=settings)

    def handle_purchase(self, event: PurchaseEvent, now: Optional[datetime] = None) -> PurchaseOutcome:
        return self.engine.on_purchase(event, snapshot=self.settings.snapshot(), now=now)

    def refresh(self, now: Optional[datetime] = None) -> SweepResult:
        """Manual and scheduled sweep entry point."""
        return self.sweeper.sweep(now=now, snapshot=self.settings.snapshot())

    def set_days_left(
        self,
        user_id: Optional[str],
        days: Union[int, str, None],
        now: Optional[datetime] = None,
    ) -> Optional[datetime]:
        return set_days_left(user_id, days, ledger=self.ledger, roles=self.roles, now=now)

    def subscribers(self, user_id: Optional[str] = None, now: Optional[datetime] = None) -> List[SubscriberRow]:
        return list_subscribers(self.ledger, self.roles, now=now, user_id=user_id)

    def notices(self, now: Optional[datetime] = None) -> Notices:
        return collect_notices(self.notifications, self.ledger, now=now)

    def update_settings(self, conditions: Optional[str], default_days_per_copy: object = None) -> RuleSetSnapshot:
        return self.settings.update(conditions=conditions, default_days_per_copy=default_days_per_copy)
