"""
Shared pytest fixtures for subscription tests.

Times are fixed so expiry arithmetic can be asserted exactly.
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from subscriptions.db import Base
from subscriptions.ledger import InMemoryLedger
from subscriptions.notifications import NotificationFlag
from subscriptions.roles import InMemoryRoleDirectory
from subscriptions.settings import SettingsStore

NOW = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
EDITABLE_ROLES = ("subscriber", "customer", "vip")


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def ledger():
    return InMemoryLedger()


@pytest.fixture
def roles():
    return InMemoryRoleDirectory(
        editable_roles=EDITABLE_ROLES,
        users={"user-1": "customer", "user-2": "customer", "user-3": "customer"},
    )


@pytest.fixture
def flag():
    return NotificationFlag(redis_url="")


@pytest.fixture
def settings_path(tmp_path):
    return tmp_path / "config" / "subscription_settings.json"


@pytest.fixture
def settings(settings_path):
    return SettingsStore(str(settings_path))


@pytest.fixture
def db():
    """In-memory SQLite session with all subscription tables created."""
    engine = create_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = Session()

    yield session

    session.close()
    engine.dispose()
