"""
Rule, event and record types.

Numbers in rule text (identifiers, days per copy) and in operator input all
go through to_int():
- a fully numeric string ("42", "+7", "4.2e1", "1.9") converts by value,
  truncating toward zero; plain integer literals convert exactly
- anything else uses its leading [+-]digits prefix ("15 days" -> 15)
- no digits at all, or a value too large for a float ("1e400"), gives 0
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import FrozenSet, Optional, Tuple

from .config import DEFAULT_DAYS_PER_COPY

_NUMERIC_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_INT_RE = re.compile(r"^[+-]?\d+$")
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


def is_numeric_identifier(value: str) -> bool:
    return bool(_NUMERIC_RE.match(value.strip()))


def numeric_value(value: str) -> Optional[int]:
    """Integer value of a fully numeric string, or None if it has none."""
    text = value.strip()
    if _INT_RE.match(text):
        return int(text)
    if not _NUMERIC_RE.match(text):
        return None
    try:
        return int(float(text))
    except (OverflowError, ValueError):
        return None


def to_int(value: object) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    text = str(value or "")
    if is_numeric_identifier(text):
        number = numeric_value(text)
        return number if number is not None else 0
    match = _LEADING_INT_RE.match(text)
    return int(match.group(1)) if match else 0


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize naive datetimes (e.g. read back from SQLite) to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now(now: Optional[datetime] = None) -> datetime:
    """Caller-supplied reference time as aware UTC, or the current time."""
    return ensure_utc(now) or datetime.now(timezone.utc)


@dataclass(frozen=True)
class Rule:
    """One condition line: identifier|assigned_role|days_per_copy|default_role."""

    identifier: str
    assigned_role: str
    days: str = "0"
    default_role: str = ""

    @property
    def days_per_copy(self) -> int:
        return to_int(self.days)

    @property
    def matches_by_id(self) -> bool:
        return is_numeric_identifier(self.identifier)

    def matches(self, product_id: Optional[int], product_slug: Optional[str]) -> bool:
        if self.matches_by_id:
            if product_id is None:
                return False
            number = numeric_value(self.identifier)
            return number is not None and number == int(product_id)
        return product_slug is not None and self.identifier == product_slug


@dataclass(frozen=True)
class RuleSetSnapshot:
    """Immutable view of the configured rules, taken once per invocation."""

    rules: Tuple[Rule, ...] = ()
    default_days_per_copy: int = DEFAULT_DAYS_PER_COPY

    def __post_init__(self) -> None:
        object.__setattr__(self, "rules", tuple(self.rules))

    def resolve_days_per_copy(self, rule: Rule) -> int:
        days = rule.days_per_copy
        return days if days > 0 else self.default_days_per_copy

    def first_default_role(self) -> Optional[str]:
        for rule in self.rules:
            if rule.default_role:
                return rule.default_role
        return None


@dataclass(frozen=True)
class SubscriptionRecord:
    user_id: str
    expiry: Optional[datetime] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "expiry", ensure_utc(self.expiry))

    @property
    def perpetual(self) -> bool:
        return self.expiry is None

    def is_active(self, now: datetime) -> bool:
        return self.expiry is not None and self.expiry > now


@dataclass(frozen=True)
class LineItem:
    product_id: Optional[int]
    product_slug: Optional[str]
    quantity: int = 1


@dataclass(frozen=True)
class PurchaseEvent:
    """Purchase-completion event as delivered by the host shop."""

    order_id: str
    user_id: Optional[str]
    line_items: Tuple[LineItem, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "line_items", tuple(self.line_items))


@dataclass(frozen=True)
class PurchaseOutcome:
    user_id: Optional[str]
    matches: int = 0
    roles_assigned: Tuple[str, ...] = ()
    expiry: Optional[datetime] = None
    perpetual: bool = False


@dataclass(frozen=True)
class SweepResult:
    ran_at: datetime
    reverted: FrozenSet[str] = field(default_factory=frozenset)
    cleared: int = 0
