"""
Subscription expiry job.

Runs daily via cron or the run_forever loop. Reverts lapsed users to the
first configured default role and clears their expiry records. The admin
refresh button runs the same sweep.
"""

from __future__ import annotations

import logging
import os
import sys
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from subscriptions.config import SWEEP_INTERVAL_SECONDS
from subscriptions.service import SubscriptionService

logger = logging.getLogger(__name__)


@dataclass
class SweepStats:
    started_at: str
    completed_at: Optional[str] = None
    cleared: int = 0
    reverted: List[str] = field(default_factory=list)
    errors: int = 0


def run_subscription_expiry_cycle(service: SubscriptionService, now: Optional[datetime] = None) -> SweepStats:
    """Single sweep pass. Failures are counted and logged, never raised."""
    stats = SweepStats(started_at=datetime.now(timezone.utc).isoformat())

    try:
        result = service.refresh(now=now)
        stats.cleared = result.cleared
        stats.reverted = sorted(result.reverted)
    except Exception as e:
        logger.error("Subscription expiry sweep failed", extra={"error": str(e)})
        stats.errors += 1

    stats.completed_at = datetime.now(timezone.utc).isoformat()
    logger.info(
        "subscription_expiry_cycle_completed",
        extra={"cleared": stats.cleared, "reverted": len(stats.reverted), "errors": stats.errors},
    )
    return stats


def run_forever(
    session_factory: Callable[[], Session],
    interval_seconds: int = SWEEP_INTERVAL_SECONDS,
) -> None:
    """Sweep every interval_seconds with a fresh session per cycle."""
    logger.info("subscription_expiry_job_started", extra={"interval_seconds": interval_seconds})
    while True:
        session = session_factory()
        try:
            run_subscription_expiry_cycle(build_service(session))
        finally:
            session.close()
        time.sleep(interval_seconds)


def build_service(db_session: Session) -> SubscriptionService:
    from subscriptions.ledger import SqlLedger
    from subscriptions.roles import SqlRoleDirectory
    from subscriptions.settings import SettingsStore

    return SubscriptionService(
        ledger=SqlLedger(db_session),
        roles=SqlRoleDirectory(db_session),
        settings=SettingsStore(),
    )


# Entry point for cron/scheduler
if __name__ == "__main__":
    from subscriptions.db import make_session_factory

    logging.basicConfig(level=logging.INFO)

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        print("DATABASE_URL environment variable is required")
        sys.exit(1)

    session_factory = make_session_factory(database_url)

    if "--forever" in sys.argv[1:]:
        run_forever(session_factory)

    session = session_factory()
    try:
        stats = run_subscription_expiry_cycle(build_service(session))
        print(f"Subscription sweep completed: {stats}")
    finally:
        session.close()
