"""
Subscription manager configuration.

Values are read once from the environment at import time. The rule text and
the global default days live in the settings file (see settings.py); the
constants here are the fallbacks and operational knobs around it.
"""

import os
from typing import FrozenSet

SECONDS_PER_DAY = 86400

# Used when a rule's days_per_copy is missing, zero or negative
DEFAULT_DAYS_PER_COPY = int(os.getenv("SUBSCRIPTION_DEFAULT_DAYS_PER_COPY", "30"))

# "New subscription" notice lifetime
NOTIFICATION_TTL_SECONDS = int(os.getenv("SUBSCRIPTION_NOTIFICATION_TTL_SECONDS", "3600"))

# Lookahead window for the expiring-soon warning
EXPIRING_SOON_DAYS = int(os.getenv("SUBSCRIPTION_EXPIRING_SOON_DAYS", "5"))

# Scheduled sweep cadence (daily)
SWEEP_INTERVAL_SECONDS = int(os.getenv("SUBSCRIPTION_SWEEP_INTERVAL_SECONDS", str(SECONDS_PER_DAY)))

SETTINGS_PATH = os.getenv("SUBSCRIPTION_SETTINGS_PATH", "config/subscription_settings.json")


def get_editable_roles() -> FrozenSet[str]:
    """
    Roles the grant engine may assign.

    Returns:
        Role names from SUBSCRIPTION_EDITABLE_ROLES (comma separated)
    """
    raw = os.getenv("SUBSCRIPTION_EDITABLE_ROLES", "subscriber,customer,vip")
    return frozenset(r.strip() for r in raw.split(",") if r.strip())
