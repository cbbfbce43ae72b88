from datetime import datetime, timedelta, timezone

from factories import auth_headers, load_subscription, make_subscription


def test_subscription_requires_identity(client):
    assert client.get("/api/subscription").status_code == 401


def test_first_visit_creates_free_row(client, session):
    r = client.get("/api/subscription", headers=auth_headers("u1"))
    assert r.status_code == 200
    body = r.json()
    assert body["subscription"]["tier"] == "free"
    assert body["subscription"]["userId"] == "u1"
    assert body["subscription"]["generationsThisMonth"] == 0
    assert body["limits"]["id"] == "free"
    assert body["limits"]["generationsPerMonth"] == 5
    assert body["usage"] == {"generationsUsed": 0, "generationsRemaining": 5}
    assert load_subscription(session, "u1") is not None


def test_usage_after_generations(client):
    headers = auth_headers("u1")
    for _ in range(2):
        client.post("/api/generate", json={"prompt": "funk"}, headers=headers)
    body = client.get("/api/subscription", headers=headers).json()
    assert body["usage"] == {"generationsUsed": 2, "generationsRemaining": 3}


def test_usage_shows_rollover_before_next_generation(client, session):
    last_month = datetime.now(timezone.utc).replace(day=1) - timedelta(days=1)
    make_subscription(session, "u1", tier="basic", generations_this_month=25, last_generation_reset=last_month)
    body = client.get("/api/subscription", headers=auth_headers("u1")).json()
    assert body["subscription"]["tier"] == "basic"
    assert body["usage"] == {"generationsUsed": 0, "generationsRemaining": 25}


def test_unlimited_tier_reports_minus_one(client, session):
    make_subscription(session, "vip", tier="premium", generations_this_month=42)
    body = client.get("/api/subscription", headers=auth_headers("vip")).json()
    assert body["limits"]["generationsPerMonth"] == -1
    assert body["limits"]["historyRetentionDays"] == -1
    assert body["usage"] == {"generationsUsed": 42, "generationsRemaining": -1}


def test_pricing_lists_every_tier(client):
    r = client.get("/api/pricing")
    assert r.status_code == 200
    tiers = r.json()["tiers"]
    assert [t["id"] for t in tiers] == ["free", "basic", "pro", "premium"]
    pro = tiers[2]
    assert pro == {
        "id": "pro",
        "name": "Pro",
        "price": 9.99,
        "generationsPerMonth": 100,
        "downloadFormats": ["mp3", "wav"],
        "adFree": True,
        "historyRetentionDays": 90,
        "priority": True,
    }
