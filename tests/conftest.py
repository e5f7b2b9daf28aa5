"""Pytest fixtures for the contract lifecycle tests."""

from datetime import datetime, timedelta

import pytest

from src.contract_lifecycle.models import DealSnapshot, SpeakerInfo
from src.contract_lifecycle.service import ContractService
from src.database.postgres import ContractsDB
from src.integrations.clients.mocks.notifications import MockNotificationDispatcher
from src.utils.contracts_config_loader import ContractsConfig

FIXED_NOW = datetime(2026, 3, 1, 9, 30)


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def build_deal(**overrides) -> DealSnapshot:
    data = dict(
        client_name="Jordan Reyes",
        client_email="jordan@acme.example",
        event_title="AI Leadership Summit",
        event_date="2026-06-15",
        event_location="Austin, TX",
        deal_value=15000,
        deal_id="deal-42",
        company="Acme Corp",
        event_type="Conference",
        attendee_count=250,
        speaker_requested="Dr. Ada Lovelace",
    )
    data.update(overrides)
    return DealSnapshot(**data)


@pytest.fixture
def clock():
    return FixedClock(FIXED_NOW)


@pytest.fixture
def db():
    """In-memory ContractsDB stub for tests."""
    return ContractsDB()


@pytest.fixture
def dispatcher():
    return MockNotificationDispatcher()


@pytest.fixture
def config():
    return ContractsConfig(public_base_url="https://contracts.example.com")


@pytest.fixture
def service(db, dispatcher, config, clock):
    return ContractService(db, dispatcher=dispatcher, config=config, clock=clock)


@pytest.fixture
def make_deal():
    return build_deal


@pytest.fixture
def speaker():
    return SpeakerInfo(name="Dr. Ada Lovelace", email="ada@speakers.example", fee=12000)


@pytest.fixture
def contract(service, speaker):
    return service.create_contract(build_deal(), speaker=speaker)
