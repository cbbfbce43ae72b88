from types import SimpleNamespace

import pytest
import stripe

from factories import (
    auth_headers,
    checkout_completed,
    load_subscription,
    make_subscription,
    signed_webhook,
    subscription_deleted,
)


@pytest.fixture
def stripe_calls(monkeypatch):
    """Record Stripe API calls instead of sending them."""
    calls = {"customer": [], "checkout": [], "portal": []}

    def _customer_create(**kwargs):
        calls["customer"].append(kwargs)
        return SimpleNamespace(id="cus_new")

    def _checkout_create(**kwargs):
        calls["checkout"].append(kwargs)
        return SimpleNamespace(id="cs_1", url="https://checkout.stripe.test/cs_1")

    def _portal_create(**kwargs):
        calls["portal"].append(kwargs)
        return SimpleNamespace(url="https://billing.stripe.test/p_1")

    monkeypatch.setattr(stripe.Customer, "create", _customer_create)
    monkeypatch.setattr(stripe.checkout.Session, "create", _checkout_create)
    monkeypatch.setattr(stripe.billing_portal.Session, "create", _portal_create)
    return calls


# --- Checkout ---

def test_checkout_requires_identity(client, billing_settings):
    assert client.post("/api/checkout", json={"tier": "pro"}).status_code == 401


def test_checkout_unconfigured_is_503(client, billing_settings, monkeypatch):
    monkeypatch.setattr(billing_settings, "STRIPE_SECRET_KEY", "")
    r = client.post("/api/checkout", json={"tier": "pro"}, headers=auth_headers("u1"))
    assert r.status_code == 503


@pytest.mark.parametrize("tier", ["gold", "free", ""])
def test_checkout_rejects_invalid_tier(client, billing_settings, stripe_calls, tier):
    r = client.post("/api/checkout", json={"tier": tier}, headers=auth_headers("u1"))
    assert r.status_code == 400
    assert r.json()["error"]["message"] == "Invalid tier"
    assert stripe_calls["checkout"] == []


def test_checkout_unpriced_tier_is_400(client, billing_settings, stripe_calls, monkeypatch):
    monkeypatch.setattr(billing_settings, "STRIPE_PRICE_PRO", "")
    r = client.post("/api/checkout", json={"tier": "pro"}, headers=auth_headers("u1"))
    assert r.status_code == 400
    assert r.json()["error"]["message"] == "Tier not available"
    assert stripe_calls["customer"] == []


def test_checkout_creates_customer_and_session(client, session, billing_settings, stripe_calls):
    r = client.post("/api/checkout", json={"tier": "pro"}, headers=auth_headers("u1", "drummer@example.com"))
    assert r.status_code == 200, r.text
    assert r.json() == {"url": "https://checkout.stripe.test/cs_1"}

    assert stripe_calls["customer"] == [{"email": "drummer@example.com", "metadata": {"user_id": "u1"}}]
    params = stripe_calls["checkout"][0]
    assert params["customer"] == "cus_new"
    assert params["mode"] == "subscription"
    assert params["line_items"] == [{"price": "price_pro_test", "quantity": 1}]
    assert params["metadata"] == {"user_id": "u1", "tier": "pro"}
    assert params["success_url"] == "https://drumforge.test/pricing?success=true"
    assert params["cancel_url"] == "https://drumforge.test/pricing?canceled=true"
    # The customer id is recorded by the webhook, not at checkout
    assert load_subscription(session, "u1") is None


def test_checkout_reuses_stored_customer(client, session, billing_settings, stripe_calls):
    make_subscription(session, "u1", stripe_customer_id="cus_existing")
    r = client.post("/api/checkout", json={"tier": "basic"}, headers=auth_headers("u1"))
    assert r.status_code == 200
    assert stripe_calls["customer"] == []
    assert stripe_calls["checkout"][0]["customer"] == "cus_existing"


def test_checkout_stripe_failure_is_502(client, billing_settings, monkeypatch):
    def _boom(**kwargs):
        raise stripe.InvalidRequestError("No such price", param="price")

    monkeypatch.setattr(stripe.Customer, "create", lambda **kw: SimpleNamespace(id="cus_new"))
    monkeypatch.setattr(stripe.checkout.Session, "create", _boom)
    r = client.post("/api/checkout", json={"tier": "premium"}, headers=auth_headers("u1"))
    assert r.status_code == 502


# --- Billing portal ---

def test_portal_without_customer_is_400(client, billing_settings, stripe_calls):
    r = client.post("/api/billing-portal", headers=auth_headers("u1"))
    assert r.status_code == 400
    assert r.json()["error"]["message"] == "No subscription found"
    assert stripe_calls["portal"] == []


def test_portal_unconfigured_is_503(client, billing_settings, monkeypatch):
    monkeypatch.setattr(billing_settings, "STRIPE_SECRET_KEY", "")
    assert client.post("/api/billing-portal", headers=auth_headers("u1")).status_code == 503


def test_portal_returns_stripe_url(client, session, billing_settings, stripe_calls):
    make_subscription(session, "u1", tier="pro", stripe_customer_id="cus_9")
    r = client.post("/api/billing-portal", headers=auth_headers("u1"))
    assert r.status_code == 200
    assert r.json() == {"url": "https://billing.stripe.test/p_1"}
    assert stripe_calls["portal"] == [{"customer": "cus_9", "return_url": "https://drumforge.test/pricing"}]


# --- Webhook ---

def test_webhook_without_secret_is_500(client, billing_settings, monkeypatch):
    monkeypatch.setattr(billing_settings, "STRIPE_WEBHOOK_SECRET", "")
    payload, headers = signed_webhook(checkout_completed("u1", "pro"))
    assert client.post("/api/webhooks/billing", content=payload, headers=headers).status_code == 500


def test_webhook_rejects_bad_signature(client, session, billing_settings):
    payload, headers = signed_webhook(checkout_completed("u1", "pro"), secret="whsec_wrong")
    r = client.post("/api/webhooks/billing", content=payload, headers=headers)
    assert r.status_code == 400
    assert load_subscription(session, "u1") is None


def test_webhook_rejects_missing_signature(client, session, billing_settings):
    payload, _ = signed_webhook(checkout_completed("u1", "pro"))
    r = client.post("/api/webhooks/billing", content=payload, headers={"Content-Type": "application/json"})
    assert r.status_code == 400
    assert load_subscription(session, "u1") is None


def test_webhook_rejects_tampered_body(client, session, billing_settings):
    payload, headers = signed_webhook(checkout_completed("u1", "basic"))
    tampered = payload.replace('"basic"', '"premium"')
    r = client.post("/api/webhooks/billing", content=tampered, headers=headers)
    assert r.status_code == 400
    assert load_subscription(session, "u1") is None


def test_webhook_applies_checkout(client, session, billing_settings):
    payload, headers = signed_webhook(checkout_completed("u1", "pro", customer="cus_42", subscription="sub_42"))
    r = client.post("/api/webhooks/billing", content=payload, headers=headers)
    assert r.status_code == 200
    assert r.json() == {"received": True}
    sub = load_subscription(session, "u1")
    assert sub.tier == "pro"
    assert sub.stripe_customer_id == "cus_42"
    assert sub.stripe_subscription_id == "sub_42"


def test_webhook_replay_is_harmless(client, session, billing_settings):
    payload, headers = signed_webhook(checkout_completed("u1", "premium"))
    assert client.post("/api/webhooks/billing", content=payload, headers=headers).status_code == 200
    first = load_subscription(session, "u1")
    first_state = (first.tier, first.stripe_customer_id, first.stripe_subscription_id, first.last_generation_reset)
    assert client.post("/api/webhooks/billing", content=payload, headers=headers).status_code == 200
    again = load_subscription(session, "u1")
    assert (again.tier, again.stripe_customer_id, again.stripe_subscription_id, again.last_generation_reset) == first_state


def test_webhook_ignores_unknown_event_types(client, billing_settings):
    payload, headers = signed_webhook({"id": "evt_x", "type": "charge.refunded", "data": {"object": {}}})
    r = client.post("/api/webhooks/billing", content=payload, headers=headers)
    assert r.status_code == 200
    assert r.json() == {"received": True}


def test_webhook_rejects_signed_non_object_body(client, billing_settings):
    payload, headers = signed_webhook(["not", "an", "event"])
    assert client.post("/api/webhooks/billing", content=payload, headers=headers).status_code == 400


def test_upgrade_then_cancel_round_trip(client, session, billing_settings):
    headers = auth_headers("u1")
    for _ in range(5):
        client.post("/api/generate", json={"prompt": "rock"}, headers=headers)
    assert client.post("/api/generate", json={"prompt": "rock"}, headers=headers).status_code == 403

    payload, sig = signed_webhook(checkout_completed("u1", "basic", customer="cus_7"))
    client.post("/api/webhooks/billing", content=payload, headers=sig)
    assert client.post("/api/generate", json={"prompt": "rock"}, headers=headers).status_code == 200
    status = client.get("/api/subscription", headers=headers).json()
    assert status["subscription"]["tier"] == "basic"
    assert status["usage"] == {"generationsUsed": 1, "generationsRemaining": 24}

    payload, sig = signed_webhook(subscription_deleted("cus_7"))
    client.post("/api/webhooks/billing", content=payload, headers=sig)
    status = client.get("/api/subscription", headers=headers).json()
    assert status["subscription"]["tier"] == "free"
    assert status["usage"] == {"generationsUsed": 1, "generationsRemaining": 4}
