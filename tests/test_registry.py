"""
Test suite for ticketflow_core.registry: collection creation and indexing.

Covers:
  - parameter validation against the global policy
  - collection ids (deterministic, unique per organizer)
  - per-organizer index, global listing, pagination
  - registering restored collections
  - collections behave independently of each other
"""

import dataclasses

import pytest

from ticketflow_core.collection import EventCollection
from ticketflow_core.errors import InvalidParameters
from ticketflow_core.identity import ZERO_ADDRESS
from ticketflow_core.registry import (
    GLOBAL_MAX_RESALE_PERCENT,
    MAX_ORGANIZER_FEE_PERCENT,
    MAX_TICKETS_PER_EVENT,
    MIN_TICKET_PRICE,
    CollectionParams,
    CollectionRegistry,
    RegistryPolicy,
    validate_params,
)


# ═══════════════════════════════════════════════════════════════════
#  Policy
# ═══════════════════════════════════════════════════════════════════

class TestRegistryPolicy:
    def test_defaults(self):
        policy = RegistryPolicy()
        assert policy.max_tickets_per_event == MAX_TICKETS_PER_EVENT
        assert policy.min_ticket_price == MIN_TICKET_PRICE
        assert policy.global_max_resale_percent == GLOBAL_MAX_RESALE_PERCENT
        assert policy.max_organizer_fee_percent == MAX_ORGANIZER_FEE_PERCENT

    @pytest.mark.parametrize("kwargs", [
        {"max_tickets_per_event": 0},
        {"min_ticket_price": 0},
        {"global_max_resale_percent": 99},
        {"max_organizer_fee_percent": 101},
    ])
    def test_invalid_policy(self, kwargs):
        with pytest.raises(ValueError):
            RegistryPolicy(**kwargs)


# ═══════════════════════════════════════════════════════════════════
#  Validation
# ═══════════════════════════════════════════════════════════════════

class TestValidateParams:
    def test_valid(self, params):
        validate_params(params, RegistryPolicy())

    @pytest.mark.parametrize("changes,fragment", [
        ({"name": ""}, "name"),
        ({"symbol": " "}, "symbol"),
        ({"max_supply": 0}, "max_supply"),
        ({"max_supply": MAX_TICKETS_PER_EVENT + 1}, "max_supply"),
        ({"face_value": MIN_TICKET_PRICE - 1}, "face_value"),
        ({"organizer": ZERO_ADDRESS}, "Organizer"),
        ({"organizer": ""}, "Organizer"),
        ({"metadata_base": ""}, "Metadata"),
        ({"max_resale_percent": 99}, "max_resale_percent"),
        ({"max_resale_percent": GLOBAL_MAX_RESALE_PERCENT + 1}, "max_resale_percent"),
        ({"organizer_fee_percent": MAX_ORGANIZER_FEE_PERCENT + 1}, "organizer_fee_percent"),
        ({"organizer_fee_percent": -1}, "organizer_fee_percent"),
        ({"min_resale_percent": 151}, "min_resale_percent"),
        ({"max_mints_per_identity": -1}, "max_mints_per_identity"),
    ])
    def test_invalid(self, params, changes, fragment):
        bad = dataclasses.replace(params, **changes)
        with pytest.raises(InvalidParameters, match=fragment):
            validate_params(bad, RegistryPolicy())

    def test_boundaries_accepted(self, params):
        edge = dataclasses.replace(
            params,
            max_supply=MAX_TICKETS_PER_EVENT,
            face_value=MIN_TICKET_PRICE,
            max_resale_percent=GLOBAL_MAX_RESALE_PERCENT,
            organizer_fee_percent=MAX_ORGANIZER_FEE_PERCENT,
        )
        validate_params(edge, RegistryPolicy())

    def test_custom_policy(self, params):
        policy = RegistryPolicy(max_tickets_per_event=100)
        with pytest.raises(InvalidParameters):
            validate_params(params, policy)


class TestParamsFromDict:
    def test_valid(self, params):
        assert CollectionParams.from_dict(dataclasses.asdict(params)) == params

    def test_optional_fields_default(self, params):
        data = dataclasses.asdict(params)
        del data["min_resale_percent"], data["max_mints_per_identity"]
        assert CollectionParams.from_dict(data).max_mints_per_identity == 0

    def test_unknown_key(self, params):
        data = dict(dataclasses.asdict(params), bogus="x")
        with pytest.raises(TypeError, match="bogus"):
            CollectionParams.from_dict(data)

    def test_missing_key(self, params):
        data = dataclasses.asdict(params)
        del data["face_value"]
        with pytest.raises(TypeError):
            CollectionParams.from_dict(data)

    @pytest.mark.parametrize("key,value", [
        ("face_value", "abc"),
        ("max_supply", 1.5),
        ("max_supply", True),
        ("name", 7),
    ])
    def test_wrong_type(self, params, key, value):
        data = dict(dataclasses.asdict(params), **{key: value})
        with pytest.raises(TypeError, match=key):
            CollectionParams.from_dict(data)

    def test_not_a_table(self):
        with pytest.raises(TypeError):
            CollectionParams.from_dict(["name", "symbol"])


# ═══════════════════════════════════════════════════════════════════
#  Creation and indexing
# ═══════════════════════════════════════════════════════════════════

class TestCreate:
    def test_create_returns_collection(self, registry, params, organizer):
        cid = registry.create(params)
        collection = registry.get(cid)
        assert isinstance(collection, EventCollection)
        assert collection.organizer == organizer
        assert collection.face_value == 1_000
        assert collection.max_supply == 500
        assert collection.metadata_base == params.metadata_base
        assert collection.minted_count == 0

    def test_invalid_params_create_nothing(self, registry, params):
        with pytest.raises(InvalidParameters):
            registry.create(dataclasses.replace(params, face_value=1))
        assert registry.collection_count == 0

    def test_ids_unique_and_deterministic(self, params):
        first = CollectionRegistry()
        second = CollectionRegistry()
        ids_a = [first.create(params) for _ in range(3)]
        ids_b = [second.create(params) for _ in range(3)]
        assert len(set(ids_a)) == 3
        assert ids_a == ids_b
        assert all(len(cid) == 32 for cid in ids_a)

    def test_collections_of(self, registry, params, alice):
        a = registry.create(params)
        b = registry.create(dataclasses.replace(params, organizer=alice))
        c = registry.create(params)
        assert registry.collections_of(params.organizer) == [a, c]
        assert registry.collections_of(alice) == [b]
        assert registry.collections_of("tNobody") == []
        assert registry.all_collections() == [a, b, c]

    def test_get_unknown(self, registry):
        assert registry.get("missing") is None

    def test_each_collection_has_own_payments(self, registry, params):
        a = registry.get(registry.create(params))
        b = registry.get(registry.create(params))
        assert a.payments is not b.payments

    def test_collections_are_independent(self, registry, params, alice, organizer):
        a = registry.get(registry.create(params))
        b = registry.get(registry.create(params))
        a.mint(alice, 1_000)
        a.cancel_event(organizer, "postponed")
        assert b.minted_count == 0
        assert not b.is_cancelled()
        assert b.mint(alice, 1_000) == 1

    def test_hardening_fields_pass_through(self, registry, params):
        cid = registry.create(dataclasses.replace(
            params, min_resale_percent=80, max_mints_per_identity=4))
        cfg = registry.get(cid).anti_scalping_config()
        assert cfg["min_resale_percent"] == 80
        assert cfg["max_mints_per_identity"] == 4


class TestRegisterAndPaginate:
    def test_register_existing(self, registry, params):
        collection = EventCollection(params.to_config(), params.metadata_base)
        registry.register("restored", collection)
        assert registry.get("restored") is collection
        assert registry.collections_of(params.organizer) == ["restored"]

    def test_register_duplicate(self, registry, params):
        cid = registry.create(params)
        with pytest.raises(InvalidParameters):
            registry.register(cid, registry.get(cid))

    def test_create_skips_registered_ids(self, params):
        first = CollectionRegistry()
        cid = first.create(params)
        second = CollectionRegistry()
        second.register(cid, first.get(cid))
        new_id = second.create(params)
        assert new_id != cid
        assert second.collection_count == 2

    def test_paginate(self, registry, params):
        ids = [registry.create(params) for _ in range(5)]
        assert registry.paginate(0, 2) == ids[:2]
        assert registry.paginate(2, 2) == ids[2:4]
        assert registry.paginate(4, 10) == ids[4:]
        assert registry.paginate(10, 10) == []

    @pytest.mark.parametrize("offset,limit", [(-1, 10), (0, 0), (0, 101)])
    def test_paginate_bounds(self, registry, offset, limit):
        with pytest.raises(ValueError):
            registry.paginate(offset, limit)
