"""
Grant engine: purchase completion -> role and expiry.

For every line item, every rule is checked in order. Each match:
1. resolves days_per_copy (<= 0 falls back to the global default)
2. days = days_per_copy * quantity; days <= 0 makes the user perpetual
3. otherwise extends a still-active expiry by the window, or starts a fresh
   window from now when the current one is absent or already lapsed
4. assigns the rule's role if the host says it is editable, and raises the
   new-subscription notice

Matches are applied in item-then-rule order, so the last one wins.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional, Sequence

from .config import SECONDS_PER_DAY
from .ledger import Ledger
from .models import LineItem, PurchaseEvent, PurchaseOutcome, Rule, RuleSetSnapshot, ensure_utc, utc_now
from .notifications import NotificationFlag
from .roles import RoleDirectory
from .settings import SettingsStore

logger = logging.getLogger(__name__)

AuditSink = Callable[[str, dict], None]


def extended_expiry(current: Optional[datetime], now: datetime, days: int) -> datetime:
    """Stack onto an active grant, otherwise start from now."""
    current, now = ensure_utc(current), utc_now(now)
    window = timedelta(seconds=days * SECONDS_PER_DAY)
    if current is not None and current > now:
        return current + window
    return now + window


def on_purchase(
    user_id: Optional[str],
    line_items: Iterable[LineItem],
    rules: Sequence[Rule],
    now: datetime,
    global_default_days: int,
    *,
    ledger: Ledger,
    roles: RoleDirectory,
    notifications: NotificationFlag,
    audit_sink: Optional[AuditSink] = None,
) -> PurchaseOutcome:
    snapshot = RuleSetSnapshot(rules=tuple(rules), default_days_per_copy=global_default_days)
    engine = GrantEngine(
        ledger=ledger,
        roles=roles,
        notifications=notifications,
        audit_sink=audit_sink,
    )
    return engine.apply(user_id, line_items, snapshot=snapshot, now=now)


class GrantEngine:
    """Applies purchase events to the ledger and role directory."""

    def __init__(
        self,
        *,
        ledger: Ledger,
        roles: RoleDirectory,
        notifications: NotificationFlag,
        settings: Optional[SettingsStore] = None,
        audit_sink: Optional[AuditSink] = None,
    ) -> None:
        self.ledger = ledger
        self.roles = roles
        self.notifications = notifications
        self.settings = settings
        self._audit_sink = audit_sink or (lambda event, payload: None)

    def on_purchase(
        self,
        event: PurchaseEvent,
        *,
        snapshot: Optional[RuleSetSnapshot] = None,
        now: Optional[datetime] = None,
    ) -> PurchaseOutcome:
        logger.info(
            "subscription_purchase_received",
            extra={"order_id": event.order_id, "user_id": event.user_id, "items": len(event.line_items)},
        )
        return self.apply(event.user_id, event.line_items, snapshot=snapshot, now=now)

    def apply(
        self,
        user_id: Optional[str],
        line_items: Iterable[LineItem],
        *,
        snapshot: Optional[RuleSetSnapshot] = None,
        now: Optional[datetime] = None,
    ) -> PurchaseOutcome:
        if not user_id:
            return PurchaseOutcome(user_id=None)

        if snapshot is None:
            snapshot = self.settings.snapshot() if self.settings else RuleSetSnapshot()
        if not snapshot.rules:
            return PurchaseOutcome(user_id=user_id)

        now = utc_now(now)
        matches = 0
        roles_assigned: List[str] = []
        expiry: Optional[datetime] = None
        perpetual = False

        for item in line_items:
            for rule in snapshot.rules:
                if not rule.matches(item.product_id, item.product_slug):
                    continue
                matches += 1
                expiry = self._apply_duration(user_id, rule, item, snapshot, now)
                perpetual = expiry is None
                if self._apply_role(user_id, rule, now):
                    roles_assigned.append(rule.assigned_role)

        return PurchaseOutcome(
            user_id=user_id,
            matches=matches,
            roles_assigned=tuple(roles_assigned),
            expiry=expiry,
            perpetual=perpetual,
        )

    def _apply_duration(
        self,
        user_id: str,
        rule: Rule,
        item: LineItem,
        snapshot: RuleSetSnapshot,
        now: datetime,
    ) -> Optional[datetime]:
        days = snapshot.resolve_days_per_copy(rule) * int(item.quantity)
        if days <= 0:
            self.ledger.clear_expiry(user_id)
            logger.info(
                "subscription_grant_perpetual",
                extra={"user_id": user_id, "identifier": rule.identifier},
            )
            return None

        new_expiry = self.ledger.update_expiry(user_id, lambda current: extended_expiry(current, now, days))
        logger.info(
            "subscription_grant_applied",
            extra={
                "user_id": user_id,
                "identifier": rule.identifier,
                "days": days,
                "expires_at": new_expiry.isoformat() if new_expiry else None,
            },
        )
        return new_expiry

    def _apply_role(self, user_id: str, rule: Rule, now: datetime) -> bool:
        role = rule.assigned_role
        if not role or not self.roles.is_valid_role(role):
            logger.info(
                "subscription_role_ignored",
                extra={"user_id": user_id, "role": role},
            )
            return False

        if not self.roles.set_role(user_id, role):
            return False
        self.notifications.set_pending(now)
        self._audit_sink("subscription.role_granted", {"user_id": user_id, "role": role})
        return True
