from datetime import datetime, timedelta

from subscriptions.ledger import InMemoryLedger
from subscriptions.models import Rule, RuleSetSnapshot
from subscriptions.roles import InMemoryRoleDirectory
from subscriptions.rules import parse_rules
from subscriptions.sweeper import ExpirySweeper, sweep


def test_lapsed_user_gets_first_non_empty_default_role(ledger, roles, now):
    ledger.set_expiry("user-1", now - timedelta(days=1))
    rules = [
        Rule("1", "vip", default_role=""),
        Rule("2", "vip", default_role="subscriber"),
        Rule("3", "vip", default_role="vip"),
    ]

    result = sweep(now, rules, ledger=ledger, roles=roles)

    assert roles.get_role("user-1") == "subscriber"
    assert result.reverted == frozenset({"user-1"})
    assert result.cleared == 1
    assert ledger.get_expiry("user-1") is None


def test_active_and_boundary_users_are_untouched(ledger, roles, now):
    ledger.set_expiry("user-1", now + timedelta(days=1))
    ledger.set_expiry("user-2", now)

    result = sweep(now, parse_rules("1|vip|30|subscriber"), ledger=ledger, roles=roles)

    assert result.reverted == frozenset()
    assert ledger.get_expiry("user-1") == now + timedelta(days=1)
    assert ledger.get_expiry("user-2") == now
    assert roles.get_role("user-2") == "customer"


def test_no_default_role_still_clears_expiry(ledger, roles, now):
    ledger.set_expiry("user-1", now - timedelta(seconds=1))

    result = sweep(now, parse_rules("1|vip|30"), ledger=ledger, roles=roles)

    assert result.reverted == frozenset()
    assert result.cleared == 1
    assert roles.get_role("user-1") == "customer"
    assert ledger.get_expiry("user-1") is None


def test_empty_ruleset_still_clears_expiry(ledger, roles, now):
    ledger.set_expiry("user-1", now - timedelta(days=3))

    result = sweep(now, [], ledger=ledger, roles=roles)

    assert result.cleared == 1
    assert ledger.list_records() == []


def test_sweep_is_idempotent(ledger, roles, now):
    ledger.set_expiry("user-1", now - timedelta(days=2))
    ledger.set_expiry("user-2", now + timedelta(days=2))
    sweeper = ExpirySweeper(ledger=ledger, roles=roles)
    snapshot = RuleSetSnapshot(rules=parse_rules("1|vip|30|subscriber"))

    first = sweeper.sweep(now=now, snapshot=snapshot)
    state_after_first = (ledger.list_records(), dict(roles.users))
    second = sweeper.sweep(now=now, snapshot=snapshot)

    assert first.reverted == frozenset({"user-1"})
    assert second.reverted == frozenset()
    assert second.cleared == 0
    assert (ledger.list_records(), dict(roles.users)) == state_after_first


def test_unknown_lapsed_user_is_cleared_without_revert(ledger, roles, now):
    ledger.set_expiry("ghost", now - timedelta(days=1))

    result = sweep(now, parse_rules("1|vip|30|subscriber"), ledger=ledger, roles=roles)

    assert result.reverted == frozenset()
    assert ledger.get_expiry("ghost") is None


def test_sweeper_reads_settings_when_no_snapshot(ledger, roles, settings, now):
    settings.update(conditions="gold|vip|30|subscriber")
    ledger.set_expiry("user-3", now - timedelta(days=1))

    result = ExpirySweeper(ledger=ledger, roles=roles, settings=settings).sweep(now=now)

    assert result.reverted == frozenset({"user-3"})
    assert roles.get_role("user-3") == "subscriber"


class _PurchaseDuringRevert(InMemoryRoleDirectory):
    """Role directory where a purchase lands while the sweep reverts a user."""

    def __init__(self, ledger, renewed_until, **kwargs):
        super().__init__(**kwargs)
        self.ledger = ledger
        self.renewed_until = renewed_until

    def set_role(self, user_id, role):
        self.ledger.set_expiry(user_id, self.renewed_until)
        return super().set_role(user_id, role)


def test_purchase_committed_during_revert_keeps_its_expiry(ledger, now):
    renewed_until = now + timedelta(days=30)
    roles = _PurchaseDuringRevert(
        ledger,
        renewed_until,
        editable_roles=("subscriber", "customer", "vip"),
        users={"user-1": "vip"},
    )
    ledger.set_expiry("user-1", now - timedelta(days=1))

    sweep(now, parse_rules("1|vip|30|subscriber"), ledger=ledger, roles=roles)

    assert ledger.get_expiry("user-1") == renewed_until


class _RenewedAfterListing(InMemoryLedger):
    """Ledger where a purchase extends the user right after the lapsed listing."""

    def __init__(self, renewed_until):
        super().__init__()
        self.renewed_until = renewed_until

    def list_lapsed(self, now):
        lapsed = super().list_lapsed(now)
        for user_id in lapsed:
            self.set_expiry(user_id, self.renewed_until)
        return lapsed


def test_user_renewed_after_listing_is_neither_cleared_nor_reverted(roles, now):
    ledger = _RenewedAfterListing(now + timedelta(days=30))
    ledger.set_expiry("user-1", now - timedelta(days=1))
    roles.set_role("user-1", "vip")

    result = sweep(now, parse_rules("1|vip|30|subscriber"), ledger=ledger, roles=roles)

    assert result.cleared == 0
    assert result.reverted == frozenset()
    assert roles.get_role("user-1") == "vip"
    assert ledger.get_expiry("user-1") == now + timedelta(days=30)


def test_naive_now_is_treated_as_utc(ledger, roles, now):
    ledger.set_expiry("user-1", now - timedelta(hours=1))
    ledger.set_expiry("user-2", now + timedelta(hours=1))

    result = sweep(datetime(2024, 3, 1, 12), parse_rules("1|vip|30|subscriber"), ledger=ledger, roles=roles)

    assert result.reverted == frozenset({"user-1"})
    assert result.cleared == 1
    assert result.ran_at == now
    assert ledger.get_expiry("user-2") == now + timedelta(hours=1)
