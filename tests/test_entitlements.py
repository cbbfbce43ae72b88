from types import SimpleNamespace

import pytest

from drumforge.core import crud
from drumforge.services.billing import entitlements
from drumforge.services.billing.entitlements import (
    can_generate,
    evaluate,
    months_since_reset,
    quota_exceeded_message,
    usage_snapshot,
)
from factories import make_subscription, utc


def _sub(tier="free", used=0, reset=utc(2024, 3, 10)):
    return SimpleNamespace(tier=tier, generations_this_month=used, last_generation_reset=reset)


@pytest.mark.parametrize(
    "last, now, expected",
    [
        (utc(2024, 3, 1), utc(2024, 3, 31, 23, 59), 0),
        (utc(2024, 1, 31), utc(2024, 2, 1), 1),
        (utc(2023, 12, 15), utc(2024, 1, 2), 1),
        (utc(2023, 3, 10), utc(2024, 3, 10), 12),
        (None, utc(2024, 3, 10), (2024 - 1970) * 12 + 2),
    ],
)
def test_months_since_reset_is_calendar_based(last, now, expected):
    assert months_since_reset(last, now) == expected


def test_absent_row_is_implicit_free(session):
    result = can_generate(session, "nobody", now=utc(2024, 3, 10))
    assert result.allowed is True
    assert result.remaining == 5
    assert crud.get_subscription_by_user_id(session, "nobody") is None


def test_under_quota_reports_remaining():
    result = evaluate(_sub(used=4), utc(2024, 3, 20))
    assert result.allowed is True
    assert result.remaining == 1
    assert result.reason is None


def test_at_quota_is_denied_with_message():
    result = evaluate(_sub(used=5), utc(2024, 3, 20))
    assert result.allowed is False
    assert result.remaining == 0
    assert result.reason == "You've reached your monthly limit of 5 generations. Upgrade to get more!"


def test_over_quota_never_reports_negative_remaining():
    result = evaluate(_sub(tier="basic", used=40), utc(2024, 3, 20))
    assert result.allowed is False
    assert result.remaining == 0
    assert result.reason == quota_exceeded_message(25)


def test_new_calendar_month_resets_usage():
    # Last reset on the final day of the previous month
    sub = _sub(used=5, reset=utc(2024, 1, 31, 23, 0))
    result = evaluate(sub, utc(2024, 2, 1, 0, 5))
    assert result.allowed is True
    assert result.remaining == 5


def test_late_in_same_month_does_not_reset():
    sub = _sub(used=5, reset=utc(2024, 3, 1))
    assert evaluate(sub, utc(2024, 3, 31)).allowed is False


def test_missing_reset_counts_as_rolled_over():
    sub = _sub(used=5, reset=None)
    assert evaluate(sub, utc(2024, 3, 31)).remaining == 5


def test_unlimited_tier_ignores_counter():
    result = evaluate(_sub(tier="premium", used=10_000), utc(2024, 3, 20))
    assert result.allowed is True
    assert result.remaining == -1


def test_unknown_stored_tier_gets_free_quota():
    assert evaluate(_sub(tier="platinum", used=5), utc(2024, 3, 20)).allowed is False
    assert evaluate(_sub(tier="platinum", used=2), utc(2024, 3, 20)).remaining == 3


def test_can_generate_reads_stored_row(session):
    make_subscription(session, "u-pro", tier="pro", generations_this_month=99, last_generation_reset=utc(2024, 3, 2))
    result = can_generate(session, "u-pro", now=utc(2024, 3, 15))
    assert result.allowed is True
    assert result.remaining == 1


def test_can_generate_does_not_mutate(session):
    make_subscription(session, "u-free", generations_this_month=5, last_generation_reset=utc(2024, 2, 2))
    assert can_generate(session, "u-free", now=utc(2024, 3, 15)).allowed is True
    stored = crud.get_subscription_by_user_id(session, "u-free")
    assert stored.generations_this_month == 5
    assert stored.last_generation_reset == utc(2024, 2, 2)


def test_usage_snapshot_reflects_rollover():
    now = utc(2024, 4, 1)
    assert usage_snapshot(_sub(used=3, reset=utc(2024, 3, 30)), now) == (0, 5)
    assert usage_snapshot(_sub(used=3, reset=utc(2024, 4, 1)), now) == (3, 2)
    assert usage_snapshot(_sub(tier="premium", used=7, reset=now), now) == (7, -1)
    assert usage_snapshot(None, now) == (0, 5)


def test_denial_is_logged(session, caplog):
    make_subscription(session, "u-capped", generations_this_month=5, last_generation_reset=utc(2024, 3, 1))
    with caplog.at_level("INFO", logger=entitlements.log.name):
        can_generate(session, "u-capped", now=utc(2024, 3, 2))
    assert any("entitlement.denied" in r.getMessage() for r in caplog.records)
