"""Shared fixtures: isolated settings, in-memory SQLite, seeded entities."""

import os

# Settings are read at import time; pin them before any app module loads
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TOKEN_ENCRYPTION_SECRET"] = "test-encryption-secret"
os.environ["TOKEN_ENCRYPTION_SALT"] = "test-salt"
os.environ["META_APP_ID"] = "1234"
os.environ["META_APP_SECRET"] = "app-secret"
os.environ["META_REDIRECT_URI"] = "https://tracionar.test/callback"
os.environ["DEFAULT_AI_PROVIDER"] = "openai"
for _key in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "SARVAM_API_KEY"):
    os.environ[_key] = ""

import asyncio  # noqa: E402
from datetime import datetime, timezone  # noqa: E402
from typing import Any, Dict, List  # noqa: E402

import pytest  # noqa: E402
from sqlmodel import Session, SQLModel  # noqa: E402

from app.ai.base_provider import AIProvider, Prompt  # noqa: E402
from app.core.errors import GenerationError  # noqa: E402
from app.core.vault import CredentialVault  # noqa: E402
from app.database import create_db_engine, init_db  # noqa: E402
from app.models.entities import AdAccount, Campaign, MetricSample  # noqa: E402
from app.storage.gateway import PersistenceGateway  # noqa: E402


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def gateway(session) -> PersistenceGateway:
    return PersistenceGateway(session)


@pytest.fixture
def vault() -> CredentialVault:
    return CredentialVault("test-encryption-secret", "test-salt")


@pytest.fixture
def account(session, vault) -> AdAccount:
    account = AdAccount(
        external_id="1001",
        name="Loja Centro",
        owner_id="user-1",
        currency="BRL",
        encrypted_token=vault.encrypt("meta-token"),
    )
    session.add(account)
    session.commit()
    session.refresh(account)
    return account


@pytest.fixture
def make_campaign(session):
    def _make(account: AdAccount, external_id: str, **fields: Any) -> Campaign:
        campaign = Campaign(account_id=account.id, external_id=external_id, **fields)
        session.add(campaign)
        session.commit()
        session.refresh(campaign)
        return campaign

    return _make


@pytest.fixture
def add_sample(session):
    def _add(campaign: Campaign, date: str, **metrics: Any) -> MetricSample:
        sample = MetricSample(
            entity_type="campaign", entity_id=campaign.id, date=date, **metrics
        )
        session.add(sample)
        session.commit()
        session.refresh(sample)
        return sample

    return _add


class FakeProvider(AIProvider):
    """Scripted provider that records every prompt it receives."""

    name = "fake"

    def __init__(
        self, replies: List[str] | None = None, fail: bool = False, delay: float = 0.0
    ):
        self.replies = list(replies or ["Spend is concentrated in two campaigns."])
        self.fail = fail
        self.delay = delay
        self.prompts: List[Prompt] = []

    def is_available(self) -> bool:
        return True

    async def generate(self, prompt: Prompt) -> str:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise GenerationError("upstream model unavailable")
        return self.replies[min(len(self.prompts), len(self.replies)) - 1]


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


class FakeClock:
    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def first(options: List[str]) -> str:
    return options[0]


@pytest.fixture
def metrics() -> Dict[str, Any]:
    return {
        "total_spend": 1500.0,
        "total_impressions": 120000,
        "total_clicks": 2400,
        "total_conversions": 30,
        "avg_cpa": 50.0,
        "avg_roas": 3.1,
        "avg_ctr": 2.0,
        "avg_cpc": 0.625,
    }
