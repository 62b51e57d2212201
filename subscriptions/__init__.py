"""
Rule-driven role subscriptions.

This package provides:
- parse_rules: condition text -> ordered rules
- SettingsStore: condition text + global default days, with snapshots
- Ledger backends: per-user expiry records (SQLAlchemy or in-memory)
- GrantEngine: purchase -> role + expiry, stacking on active grants
- ExpirySweeper: revert lapsed users to the first default role
- set_days_left: operator override of remaining days
- NotificationFlag: single-slot "new subscription" notice with TTL
- SubscriptionService: the above wired together for the host
"""

from .adjustments import set_days_left
from .errors import InvalidUserError, SettingsError, SubscriptionError
from .grants import GrantEngine, on_purchase
from .ledger import InMemoryLedger, Ledger, SqlLedger
from .models import (
    LineItem,
    PurchaseEvent,
    PurchaseOutcome,
    Rule,
    RuleSetSnapshot,
    SubscriptionRecord,
    SweepResult,
)
from .notifications import NotificationFlag
from .reporting import collect_notices, count_expiring_soon, list_subscribers
from .roles import InMemoryRoleDirectory, RoleDirectory, SqlRoleDirectory
from .rules import parse_rules
from .service import SubscriptionService
from .settings import SettingsStore
from .sweeper import ExpirySweeper, sweep

__all__ = [
    # Rules & settings
    "parse_rules",
    "SettingsStore",
    # Models
    "Rule",
    "RuleSetSnapshot",
    "SubscriptionRecord",
    "LineItem",
    "PurchaseEvent",
    "PurchaseOutcome",
    "SweepResult",
    # Ledger
    "Ledger",
    "InMemoryLedger",
    "SqlLedger",
    # Roles
    "RoleDirectory",
    "InMemoryRoleDirectory",
    "SqlRoleDirectory",
    # Engine, sweeper, adjustments
    "GrantEngine",
    "on_purchase",
    "ExpirySweeper",
    "sweep",
    "set_days_left",
    # Notices & reporting
    "NotificationFlag",
    "list_subscribers",
    "count_expiring_soon",
    "collect_notices",
    # Service
    "SubscriptionService",
    # Errors
    "SubscriptionError",
    "InvalidUserError",
    "SettingsError",
]
