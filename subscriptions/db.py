"""
Database models for subscription grants.

subscription_grants holds one row per user with a live expiry. A missing
row means the user has no expiring grant (perpetual or never subscribed).
users is the host's user/role table as seen by the subscription manager.
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, String, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SubscriptionGrant(Base):
    """Per-user subscription expiry."""

    __tablename__ = "subscription_grants"

    user_id = Column(
        String(255),
        primary_key=True,
        comment="Host user identifier",
    )

    expires_at = Column(
        DateTime(timezone=True),
        nullable=False,
        comment="Grant expiry (UTC)",
    )

    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    __table_args__ = (
        Index("idx_subscription_grants_expires_at", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<SubscriptionGrant(user_id={self.user_id}, expires_at={self.expires_at})>"


class SubscriberUser(Base):
    """Host user with a single role."""

    __tablename__ = "users"

    user_id = Column(String(255), primary_key=True)
    display_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    role = Column(String(100), nullable=True)

    def __repr__(self) -> str:
        return f"<SubscriberUser(user_id={self.user_id}, role={self.role})>"


def make_session_factory(database_url: str, **engine_kwargs):
    """Create tables if needed and return a sessionmaker bound to database_url."""
    engine = create_engine(database_url, **engine_kwargs)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
