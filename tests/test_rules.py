from subscriptions.models import Rule, RuleSetSnapshot
from subscriptions.rules import parse_rules


def test_empty_text_yields_no_rules():
    assert parse_rules("") == ()
    assert parse_rules(None) == ()
    assert parse_rules("\n  \r\n\t\n") == ()


def test_identifier_and_role_only_gets_field_defaults():
    (rule,) = parse_rules("123|subscriber")

    assert rule.identifier == "123"
    assert rule.assigned_role == "subscriber"
    assert rule.days == "0"
    assert rule.default_role == ""


def test_full_lines_are_trimmed_and_kept_in_order():
    raw = "  123 | subscriber | 30 | customer \r\nabout-us-subscription|vip|30|subscriber\rslug-b|vip"

    rules = parse_rules(raw)

    assert [r.identifier for r in rules] == ["123", "about-us-subscription", "slug-b"]
    assert rules[0] == Rule(identifier="123", assigned_role="subscriber", days="30", default_role="customer")
    assert rules[1].default_role == "subscriber"


def test_lines_missing_identifier_or_role_are_dropped():
    raw = "\n".join([
        "|subscriber|30|customer",
        "123||30|customer",
        "456",
        " | ",
        "789|vip",
    ])

    rules = parse_rules(raw)

    assert [r.identifier for r in rules] == ["789"]


def test_extra_fields_are_ignored():
    (rule,) = parse_rules("123|vip|10|customer|extra|more")
    assert rule.default_role == "customer"


def test_days_per_copy_uses_value_or_leading_integer():
    assert Rule("a", "vip", days="30").days_per_copy == 30
    assert Rule("a", "vip", days="15 days").days_per_copy == 15
    assert Rule("a", "vip", days="abc").days_per_copy == 0
    assert Rule("a", "vip", days="").days_per_copy == 0
    assert Rule("a", "vip", days="-3").days_per_copy == -3


def test_days_per_copy_reads_numeric_forms_like_identifiers():
    assert Rule("a", "vip", days="4.2e1").days_per_copy == 42
    assert Rule("4.2e1", "vip").matches(42, "") is True
    assert Rule("a", "vip", days="1.9").days_per_copy == 1
    assert Rule("a", "vip", days="+7").days_per_copy == 7
    assert Rule("a", "vip", days="1e400").days_per_copy == 0


def test_numeric_identifier_matches_only_product_id():
    rule = Rule("42", "vip")

    assert rule.matches(42, "some-slug") is True
    assert rule.matches(7, "42") is False
    assert rule.matches(None, "42") is False


def test_slug_identifier_matches_only_product_slug():
    rule = Rule("gold", "vip")

    assert rule.matches(1, "gold") is True
    assert rule.matches(1, "Gold") is False
    assert rule.matches(1, None) is False


def test_numeric_identifier_forms():
    assert Rule("4.2e1", "vip").matches(42, "") is True
    assert Rule("+7", "vip").matches(7, "") is True
    assert Rule("12abc", "vip").matches(12, "12abc") is True
    assert Rule("12abc", "vip").matches(12, "other") is False


def test_large_numeric_identifier_compares_exactly():
    rule = Rule("9007199254740993", "vip")

    assert rule.matches(9007199254740993, "") is True
    assert rule.matches(9007199254740992, "") is False


def test_snapshot_resolves_default_days_and_first_default_role():
    rules = parse_rules("a|vip|0|\nb|vip|-5|subscriber\nc|vip|7|customer")
    snapshot = RuleSetSnapshot(rules=rules, default_days_per_copy=30)

    assert snapshot.resolve_days_per_copy(rules[0]) == 30
    assert snapshot.resolve_days_per_copy(rules[1]) == 30
    assert snapshot.resolve_days_per_copy(rules[2]) == 7
    assert snapshot.first_default_role() == "subscriber"
    assert RuleSetSnapshot().first_default_role() is None
