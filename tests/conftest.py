"""
Shared pytest fixtures for the TicketFlow test suite.
"""

import pytest

from ticketflow_core.collection import EventCollection, EventConfig
from ticketflow_core.identity import Identity
from ticketflow_core.payments import PayoutBook
from ticketflow_core.registry import CollectionParams, CollectionRegistry


@pytest.fixture(scope="session")
def organizer():
    return Identity.from_seed("organizer-fixture-seed").address


@pytest.fixture(scope="session")
def alice():
    return Identity.from_seed("alice-fixture-seed").address


@pytest.fixture(scope="session")
def bob():
    return Identity.from_seed("bob-fixture-seed").address


@pytest.fixture(scope="session")
def carol():
    return Identity.from_seed("carol-fixture-seed").address


@pytest.fixture
def make_config(organizer):
    """Factory for EventConfig with the reference economics as defaults."""
    def _make(**overrides):
        fields = dict(
            name="Summer Festival",
            symbol="SUMMER",
            organizer=organizer,
            face_value=100,
            max_supply=2,
            max_resale_percent=150,
            organizer_fee_percent=10,
        )
        fields.update(overrides)
        return EventConfig(**fields)
    return _make


@pytest.fixture
def payments():
    return PayoutBook()


@pytest.fixture
def collection(make_config, payments):
    """faceValue=100, maxSupply=2, maxResalePercent=150, organizerFeePercent=10."""
    return EventCollection(make_config(), "ipfs://summer/", payments)


@pytest.fixture
def make_collection(make_config):
    def _make(metadata_base="ipfs://event/", payments=None, **overrides):
        return EventCollection(make_config(**overrides), metadata_base,
                               payments if payments is not None else PayoutBook())
    return _make


@pytest.fixture
def params(organizer):
    return CollectionParams(
        name="Jazz Night",
        symbol="JAZZ",
        max_supply=500,
        face_value=1_000,
        organizer=organizer,
        metadata_base="https://tickets.example/jazz/",
        max_resale_percent=150,
        organizer_fee_percent=10,
    )


@pytest.fixture
def registry():
    return CollectionRegistry()
