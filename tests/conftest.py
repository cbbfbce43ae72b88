import os
from importlib import import_module
from pathlib import Path

import pytest

_REQUIRED_DEFAULTS = {
    "APP_ENV": "test",
    "SECRET_KEY": "test-secret-key",
    "DRUM_PROVIDER_API_KEY": "",
    "SENTRY_DSN": "",
}
for _k, _v in _REQUIRED_DEFAULTS.items():
    os.environ.setdefault(_k, _v)
# Never let a developer's real provider key reach the network from tests
os.environ["DRUM_PROVIDER_API_KEY"] = ""

from factories import PRICE_IDS, WEBHOOK_SECRET  # noqa: E402


@pytest.fixture(scope="function")
def db_engine(tmp_path: Path):
    """Provide a temporary SQLite engine with all tables created.

    `drumforge.core.database.engine` is patched in place, so `get_session`,
    `session_scope` and `/readyz` all use the temporary database.
    """
    from sqlmodel import create_engine
    db_path = tmp_path / "test.db"
    engine_url = f"sqlite:///{db_path.as_posix()}"

    db = import_module("drumforge.core.database")
    old_engine = getattr(db, "engine")
    new_engine = create_engine(engine_url, echo=False, connect_args={"check_same_thread": False})
    setattr(db, "engine", new_engine)

    db.create_db_and_tables()

    try:
        yield new_engine
    finally:
        setattr(db, "engine", old_engine)
        new_engine.dispose()


@pytest.fixture(scope="function")
def billing_settings(monkeypatch):
    """Stripe configured with test keys and a price for every paid tier."""
    from drumforge.core.config import settings
    monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", "sk_test_dummy")
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
    for key, value in PRICE_IDS.items():
        monkeypatch.setattr(settings, key, value)
    monkeypatch.setattr(settings, "APP_BASE_URL", "https://drumforge.test")
    return settings


@pytest.fixture(scope="function")
def session(db_engine):
    """Database session bound to the temporary test engine."""
    from sqlmodel import Session as SQLSession
    with SQLSession(db_engine, expire_on_commit=False) as s:
        yield s


@pytest.fixture(scope="function")
def app(db_engine):
    """FastAPI app wired to the temporary DB engine, with a provider that is never configured."""
    from drumforge.main import create_app
    from drumforge.routers.generate import get_provider
    from drumforge.services.audio_provider import DrumProviderClient

    application = create_app()
    application.dependency_overrides[get_provider] = lambda: DrumProviderClient(
        api_key="", url="https://provider.invalid/generate"
    )
    return application


@pytest.fixture(scope="function")
def client(app):
    """Synchronous FastAPI TestClient."""
    from fastapi.testclient import TestClient
    with TestClient(app) as tc:
        yield tc

