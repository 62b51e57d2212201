"""
Operator override of a user's remaining days.

Unlike a purchase this never extends: a positive value replaces the expiry
with now + days, anything else (blank, zero, negative) makes the user
perpetual.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional, Union

from .config import SECONDS_PER_DAY
from .errors import InvalidUserError
from .ledger import Ledger
from .models import to_int, utc_now
from .roles import RoleDirectory

logger = logging.getLogger(__name__)


def set_days_left(
    user_id: Optional[str],
    days: Union[int, str, None],
    *,
    ledger: Ledger,
    roles: RoleDirectory,
    now: Optional[datetime] = None,
) -> Optional[datetime]:
    """
    Overwrite a user's expiry.

    Args:
        user_id: Target user; must exist in the role directory
        days: Days from now, or blank/None for perpetual
        ledger: Ledger to write to
        roles: Directory used to validate the user
        now: Reference time (defaults to current UTC time)

    Returns:
        The new expiry, or None when the user is now perpetual

    Raises:
        InvalidUserError: If user_id is blank or unknown
    """
    user_id = str(user_id).strip() if user_id is not None else ""
    if not user_id or not roles.user_exists(user_id):
        raise InvalidUserError(user_id or None)

    now = utc_now(now)
    if days is None or (isinstance(days, str) and not days.strip()):
        new_expiry = None
    else:
        count = to_int(days)
        new_expiry = now + timedelta(seconds=count * SECONDS_PER_DAY) if count > 0 else None

    ledger.set_expiry(user_id, new_expiry)
    logger.info(
        "subscription_days_left_set",
        extra={
            "user_id": user_id,
            "expires_at": new_expiry.isoformat() if new_expiry else None,
        },
    )
    return new_expiry
