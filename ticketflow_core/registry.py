"""
Collection registry for TicketFlow.

Validates creation parameters against global policy, creates one
``EventCollection`` per event and indexes collections by organizer.
Collections do not depend on the registry once created.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, fields
from typing import Any, Callable

from ticketflow_core import pricing
from ticketflow_core.collection import EventCollection, EventConfig
from ticketflow_core.errors import InvalidParameters
from ticketflow_core.identity import is_zero_address
from ticketflow_core.payments import PayoutBook

logger = logging.getLogger("ticketflow_registry")

# Policy defaults
MAX_TICKETS_PER_EVENT: int = 10_000
MIN_TICKET_PRICE: int = 100
GLOBAL_MAX_RESALE_PERCENT: int = 300
MAX_ORGANIZER_FEE_PERCENT: int = 25

MAX_PAGE_SIZE: int = 100


@dataclass(frozen=True)
class RegistryPolicy:
    """Global limits every new collection must satisfy."""
    max_tickets_per_event: int = MAX_TICKETS_PER_EVENT
    min_ticket_price: int = MIN_TICKET_PRICE
    global_max_resale_percent: int = GLOBAL_MAX_RESALE_PERCENT
    max_organizer_fee_percent: int = MAX_ORGANIZER_FEE_PERCENT

    def __post_init__(self):
        if self.max_tickets_per_event < 1:
            raise ValueError("max_tickets_per_event must be at least 1")
        if self.min_ticket_price < 1:
            raise ValueError("min_ticket_price must be at least 1")
        if self.global_max_resale_percent < pricing.MIN_RESALE_PERCENT:
            raise ValueError(
                f"global_max_resale_percent must be >= {pricing.MIN_RESALE_PERCENT}"
            )
        if not 0 <= self.max_organizer_fee_percent <= pricing.MAX_FEE_PERCENT:
            raise ValueError(
                f"max_organizer_fee_percent must be 0-{pricing.MAX_FEE_PERCENT}"
            )


@dataclass(frozen=True)
class CollectionParams:
    """Everything an organizer supplies to create an event."""
    name: str
    symbol: str
    max_supply: int
    face_value: int
    organizer: str
    metadata_base: str
    max_resale_percent: int
    organizer_fee_percent: int
    min_resale_percent: int = 0
    max_mints_per_identity: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> CollectionParams:
        """
        Build params from an untyped mapping (e.g. a TOML table).

        Raises ``TypeError`` for unknown or missing keys and for values of
        the wrong type; range checks are left to ``validate_params``.
        """
        if not isinstance(data, dict):
            raise TypeError(f"Expected a table of parameters, got {type(data).__name__}")
        declared = {f.name: f.type for f in fields(cls)}
        unknown = sorted(set(data) - set(declared))
        if unknown:
            raise TypeError(f"Unknown parameter(s): {', '.join(unknown)}")
        for key, value in data.items():
            expected = int if declared[key] == "int" else str
            if isinstance(value, bool) or not isinstance(value, expected):
                raise TypeError(
                    f"{key} must be {declared[key]}, got {type(value).__name__}"
                )
        return cls(**data)

    def to_config(self) -> EventConfig:
        return EventConfig(
            name=self.name,
            symbol=self.symbol,
            organizer=self.organizer,
            face_value=self.face_value,
            max_supply=self.max_supply,
            max_resale_percent=self.max_resale_percent,
            organizer_fee_percent=self.organizer_fee_percent,
            min_resale_percent=self.min_resale_percent,
            max_mints_per_identity=self.max_mints_per_identity,
        )


def validate_params(params: CollectionParams, policy: RegistryPolicy) -> None:
    """Raise ``InvalidParameters`` naming the first rule ``params`` breaks."""
    if not params.name or not params.name.strip():
        raise InvalidParameters("Event name must not be empty")
    if not params.symbol or not params.symbol.strip():
        raise InvalidParameters("Event symbol must not be empty")
    if not 1 <= params.max_supply <= policy.max_tickets_per_event:
        raise InvalidParameters(
            f"max_supply must be 1-{policy.max_tickets_per_event}, got {params.max_supply}"
        )
    if params.face_value < policy.min_ticket_price:
        raise InvalidParameters(
            f"face_value must be >= {policy.min_ticket_price}, got {params.face_value}"
        )
    if is_zero_address(params.organizer):
        raise InvalidParameters("Organizer must not be the zero identity")
    if not params.metadata_base:
        raise InvalidParameters("Metadata locator must not be empty")
    if not (pricing.MIN_RESALE_PERCENT <= params.max_resale_percent
            <= policy.global_max_resale_percent):
        raise InvalidParameters(
            f"max_resale_percent must be {pricing.MIN_RESALE_PERCENT}-"
            f"{policy.global_max_resale_percent}, got {params.max_resale_percent}"
        )
    if not 0 <= params.organizer_fee_percent <= policy.max_organizer_fee_percent:
        raise InvalidParameters(
            f"organizer_fee_percent must be 0-{policy.max_organizer_fee_percent}, "
            f"got {params.organizer_fee_percent}"
        )
    if not 0 <= params.min_resale_percent <= params.max_resale_percent:
        raise InvalidParameters("min_resale_percent must be 0-max_resale_percent")
    if params.max_mints_per_identity < 0:
        raise InvalidParameters("max_mints_per_identity must be non-negative")


class CollectionRegistry:
    """Creates collections and indexes them globally and per organizer."""

    def __init__(
        self,
        policy: RegistryPolicy | None = None,
        payments_factory: Callable[[], Any] = PayoutBook,
    ):
        self.policy = policy if policy is not None else RegistryPolicy()
        self._payments_factory = payments_factory
        self._collections: dict[str, EventCollection] = {}
        self._order: list[str] = []
        self._by_organizer: dict[str, list[str]] = {}
        self._next_serial: dict[str, int] = {}  # organizer -> next serial

    def _compute_collection_id(self, organizer: str, serial: int) -> str:
        blob = f"{organizer}:{serial}".encode("utf-8")
        return hashlib.blake2b(blob, digest_size=16).hexdigest()

    def create(self, params: CollectionParams) -> str:
        """Validate ``params`` and create a collection.  Returns its id."""
        validate_params(params, self.policy)
        collection = EventCollection(
            params.to_config(), params.metadata_base, self._payments_factory(),
        )
        serial = self._next_serial.get(params.organizer, 0)
        collection_id = self._compute_collection_id(params.organizer, serial)
        while collection_id in self._collections:
            serial += 1
            collection_id = self._compute_collection_id(params.organizer, serial)
        self._next_serial[params.organizer] = serial + 1
        self._index(collection_id, collection)
        logger.info(
            f"Created collection {collection_id} ({params.symbol}) "
            f"for {params.organizer}: {params.max_supply} x {params.face_value}"
        )
        return collection_id

    def register(self, collection_id: str, collection: EventCollection) -> None:
        """Index an existing collection (e.g. one restored from storage)."""
        if collection_id in self._collections:
            raise InvalidParameters(f"Collection {collection_id} is already registered")
        self._index(collection_id, collection)

    def _index(self, collection_id: str, collection: EventCollection) -> None:
        self._collections[collection_id] = collection
        self._order.append(collection_id)
        self._by_organizer.setdefault(collection.organizer, []).append(collection_id)

    def get(self, collection_id: str) -> EventCollection | None:
        return self._collections.get(collection_id)

    def collections_of(self, organizer: str) -> list[str]:
        return list(self._by_organizer.get(organizer, []))

    def all_collections(self) -> list[str]:
        return list(self._order)

    def paginate(self, offset: int = 0, limit: int = 20) -> list[str]:
        if offset < 0:
            raise ValueError("offset must be non-negative")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValueError(f"limit must be 1-{MAX_PAGE_SIZE}")
        return self._order[offset:offset + limit]

    @property
    def collection_count(self) -> int:
        return len(self._order)
