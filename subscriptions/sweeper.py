"""
Expiry sweeper.

Runs daily from the scheduler and on demand from the admin refresh button;
both paths call ExpirySweeper.sweep(). Every user whose expiry is strictly
before now gets the first non-empty default_role in the rule list (not the
role of the rule that granted them) and loses the expiry record, whether or
not a role was found.

Candidates come from list_lapsed(), but each one is rechecked and removed
through Ledger.clear_if_lapsed(). A purchase that extends a user between the
listing and the removal keeps both its expiry and its role.
"""

import logging
from datetime import datetime
from typing import Optional, Sequence, Set

from .ledger import Ledger
from .models import Rule, RuleSetSnapshot, SweepResult, utc_now
from .roles import RoleDirectory
from .settings import SettingsStore

logger = logging.getLogger(__name__)


def sweep(now: datetime, rules: Sequence[Rule], *, ledger: Ledger, roles: RoleDirectory) -> SweepResult:
    snapshot = RuleSetSnapshot(rules=tuple(rules))
    return ExpirySweeper(ledger=ledger, roles=roles).sweep(now=now, snapshot=snapshot)


class ExpirySweeper:
    def __init__(
        self,
        *,
        ledger: Ledger,
        roles: RoleDirectory,
        settings: Optional[SettingsStore] = None,
    ) -> None:
        self.ledger = ledger
        self.roles = roles
        self.settings = settings

    def sweep(
        self,
        now: Optional[datetime] = None,
        snapshot: Optional[RuleSetSnapshot] = None,
    ) -> SweepResult:
        now = utc_now(now)
        lapsed = self.ledger.list_lapsed(now)
        if not lapsed:
            return SweepResult(ran_at=now)

        if snapshot is None:
            snapshot = self.settings.snapshot() if self.settings else RuleSetSnapshot()
        default_role = snapshot.first_default_role()

        reverted: Set[str] = set()
        cleared = 0
        for user_id in lapsed:
            if self.ledger.clear_if_lapsed(user_id, now, on_clear=self._reverter(user_id, default_role, reverted)):
                cleared += 1

        skipped = len(lapsed) - cleared
        if skipped:
            logger.info("subscription_sweep_skipped_renewed", extra={"skipped": skipped})
        logger.info(
            "subscription_sweep_completed",
            extra={
                "ran_at": now.isoformat(),
                "lapsed": len(lapsed),
                "cleared": cleared,
                "reverted": len(reverted),
                "default_role": default_role,
            },
        )
        return SweepResult(ran_at=now, reverted=frozenset(reverted), cleared=cleared)

    def _reverter(self, user_id: str, default_role: str, reverted: Set[str]):
        def revert() -> None:
            if default_role and self.roles.set_role(user_id, default_role):
                reverted.add(user_id)

        return revert
