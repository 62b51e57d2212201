from datetime import datetime, timedelta

import pytest

from subscriptions.adjustments import set_days_left
from subscriptions.errors import InvalidUserError


def test_positive_days_overwrite_existing_expiry(ledger, roles, now):
    ledger.set_expiry("user-1", now + timedelta(days=100))

    expiry = set_days_left("user-1", 5, ledger=ledger, roles=roles, now=now)

    assert expiry == now + timedelta(days=5)
    assert ledger.get_expiry("user-1") == now + timedelta(days=5)


def test_positive_days_create_record(ledger, roles, now):
    set_days_left("user-2", "12", ledger=ledger, roles=roles, now=now)

    assert ledger.get_expiry("user-2") == now + timedelta(days=12)


@pytest.mark.parametrize("days", [None, "", "   ", 0, "0", -4, "-1", "abc"])
def test_blank_or_non_positive_days_clear_expiry(ledger, roles, now, days):
    ledger.set_expiry("user-1", now + timedelta(days=100))

    expiry = set_days_left("user-1", days, ledger=ledger, roles=roles, now=now)

    assert expiry is None
    assert ledger.get_expiry("user-1") is None


@pytest.mark.parametrize("user_id", [None, "", "  ", "nobody"])
def test_missing_or_unknown_user_rejected(ledger, roles, now, user_id):
    with pytest.raises(InvalidUserError) as exc:
        set_days_left(user_id, 5, ledger=ledger, roles=roles, now=now)

    assert exc.value.error_code == "INVALID_USER"
    assert ledger.list_records() == []


def test_invalid_user_error_shape():
    err = InvalidUserError("nobody")
    assert err.to_dict() == {"error": "INVALID_USER", "message": "Invalid user", "user_id": "nobody"}


def test_naive_now_is_treated_as_utc(ledger, roles, now):
    expiry = set_days_left("user-1", 3, ledger=ledger, roles=roles, now=datetime(2024, 3, 1, 12))

    assert expiry == now + timedelta(days=3)
    assert ledger.get_expiry("user-1") == now + timedelta(days=3)
