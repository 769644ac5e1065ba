# tests/test_resolver.py
import pytest

from memo_did.controller import IdentityController
from memo_did.errors import LedgerError, ParseError, ResolveError, VerificationMethodUnavailable
from memo_did.infra.memory_ledger import MemoryLedger
from memo_did.models.document import DEFAULT_METHOD_TYPE
from memo_did.models.identifier import ZERO_DID, parse_memo_did
from memo_did.models.ledger import RelationshipAdded, VerificationMethodRecord
from memo_did.models.relationship import Relationship, RelationshipKind
from memo_did.resolver import (
    Resolver,
    delegation_active,
    distinct,
    enumerate_relationship,
    keep_relationship,
    relationship_active,
)
from tests.conftest import BOB, K0, K1, NOW, make_confirmer


def _with_second_key(identity):
    identity.add_verification_method(identity.did, DEFAULT_METHOD_TYPE, identity.did, K1)
    return identity.did.did_url(1)


# ---------- predicates ----------

def test_predicates():
    live = VerificationMethodRecord(method_type="t")
    dead = VerificationMethodRecord(method_type="t", deactivated=True)
    assert relationship_active(True, live)
    assert not relationship_active(False, live)
    assert not relationship_active(True, dead)
    assert not relationship_active(True, None)
    assert delegation_active(NOW, NOW, live)
    assert delegation_active(NOW + 1, NOW, live)
    assert not delegation_active(NOW - 1, NOW, live)
    assert not delegation_active(NOW + 60, NOW, dead)


def test_distinct_keeps_first_arrival_order():
    assert distinct(["b", "a", "b", "c", "a"]) == ["b", "a", "c"]


# ---------- resolve ----------

def test_registered_identity_has_master_key_only(new_identity, resolver):
    alice = new_identity()
    doc = resolver.resolve(str(alice.did))
    assert doc.id == alice.did
    assert [str(vm.id) for vm in doc.verification_method] == [f"{alice.did}#masterKey"]
    assert doc.verification_method[0].public_key == bytes.fromhex(K0[2:])
    assert doc.controller == []
    assert doc.authentication == [] and doc.assertion_method == []
    assert doc.capability_delegation == [] and doc.recovery == []


def test_master_key_has_no_controller(new_identity, resolver):
    alice = new_identity()
    _with_second_key(alice)
    methods = resolver.resolve(str(alice.did)).verification_method
    assert methods[0].controller == ZERO_DID
    assert methods[1].controller == alice.did


def test_unknown_did_resolves_without_methods(resolver):
    doc = resolver.resolve("did:memo:" + "ee" * 32)
    assert doc.id is not None
    assert doc.verification_method == []


def test_deactivated_identity_resolves_to_empty_document(new_identity, resolver):
    alice = new_identity()
    url = _with_second_key(alice)
    alice.add_relationship(alice.did, Relationship.authentication(), url)
    alice.deactivate_did(alice.did)

    doc = resolver.resolve(str(alice.did))
    assert doc.is_deactivated
    assert doc.to_wire() == {"verifycationMethod": []}


def test_delegation_expires_without_removal(new_identity, resolver, clock):
    alice = new_identity()
    url = _with_second_key(alice)
    alice.add_relationship(alice.did, Relationship.capability_delegation(NOW + 60), url)

    assert resolver.resolve(str(alice.did)).capability_delegation == [url]
    clock.now = NOW + 60
    assert resolver.resolve(str(alice.did)).capability_delegation == [url]
    clock.now = NOW + 61
    assert resolver.resolve(str(alice.did)).capability_delegation == []


def test_deactivated_method_drops_out_of_relationships(new_identity, resolver):
    alice = new_identity()
    url = _with_second_key(alice)
    alice.add_relationship(alice.did, Relationship.authentication(), url)
    alice.add_relationship(alice.did, Relationship.recovery(), url)
    alice.add_relationship(alice.did, Relationship.assertion_method(), alice.did.did_url(0))

    alice.deactivate_verification_method(url)
    doc = resolver.resolve(str(alice.did))
    assert [str(vm.id) for vm in doc.verification_method] == [f"{alice.did}#masterKey"]
    assert doc.authentication == []
    assert doc.recovery == []
    assert doc.assertion_method == [alice.did.did_url(0)]


def test_removed_entries_are_filtered_and_readds_deduplicated(new_identity, resolver):
    alice = new_identity()
    master = alice.did.did_url(0)
    alice.add_relationship(alice.did, Relationship.authentication(), master)
    alice.deactivate_relationship(alice.did, RelationshipKind.AUTHENTICATION, master)
    assert resolver.resolve(str(alice.did)).authentication == []

    alice.add_relationship(alice.did, Relationship.authentication(), master)
    assert resolver.resolve(str(alice.did)).authentication == [master]


def test_controllers_reflect_current_membership(new_identity, resolver):
    alice = new_identity()
    bob = new_identity(BOB)
    alice.add_controller(alice.did, bob.did)
    assert resolver.resolve(str(alice.did)).controller == [bob.did]

    alice.deactivate_controller(alice.did, bob.did)
    assert resolver.resolve(str(alice.did)).controller == []


def test_relationship_may_reference_another_identity(new_identity, resolver):
    alice = new_identity()
    bob = new_identity(BOB)
    alice.add_relationship(alice.did, Relationship.assertion_method(), bob.did.did_url(0))
    assert resolver.resolve(str(alice.did)).assertion_method == [bob.did.did_url(0)]


def test_concurrent_reads_build_the_same_document(new_identity, ledger, clock):
    alice = new_identity()
    bob = new_identity(BOB)
    url = _with_second_key(alice)
    alice.add_controller(alice.did, bob.did)
    alice.add_relationship(alice.did, Relationship.authentication(), url)
    alice.add_relationship(alice.did, Relationship.capability_delegation(NOW + 5), url)

    sequential = Resolver(ledger, clock=clock).resolve(str(alice.did))
    concurrent = Resolver(ledger, clock=clock, max_workers=4).resolve(str(alice.did))
    assert concurrent == sequential


def test_resolve_rejects_malformed_did(resolver):
    with pytest.raises(ParseError):
        resolver.resolve("did:memo:not-hex")
    with pytest.raises(ParseError):
        resolver.resolve("did:memo:" + "ab" * 32 + "#masterKey")


# ---------- failure wrapping ----------

class _BrokenEvents(MemoryLedger):
    def relationship_events(self, did, kind):
        if kind is RelationshipKind.RECOVERY:
            return [RelationshipAdded(did=did, ref="did:memo:garbage#key-1")]
        return super().relationship_events(did, kind)


class _Offline(MemoryLedger):
    def is_controller(self, did, controller):
        raise LedgerError("connection refused")


def test_unparsable_event_is_a_resolve_error(clock):
    ledger = _BrokenEvents()
    did = "did:memo:" + "ab" * 32
    with pytest.raises(ResolveError) as ei:
        Resolver(ledger, clock=clock).resolve(did)
    assert ei.value.did == did
    assert isinstance(ei.value.cause, ParseError)


def test_ledger_failure_is_wrapped(clock):
    ledger = _Offline()
    port = ledger.signer(BOB)

    alice = IdentityController.create(port, make_confirmer(port))
    alice.register_did(K0)
    bob = IdentityController.create(port, make_confirmer(port))
    bob.register_did(K1)
    alice.add_controller(alice.did, bob.did)

    with pytest.raises(ResolveError) as ei:
        Resolver(ledger, clock=clock).resolve(str(alice.did))
    assert isinstance(ei.value.cause, LedgerError)
    assert "connection refused" in str(ei.value)


def test_reference_to_missing_method_is_a_resolve_error():
    did = parse_memo_did("did:memo:" + "ab" * 32)
    ghost = parse_memo_did("did:memo:" + "cd" * 32).did_url(3)

    class _Dangling(MemoryLedger):
        def relationship_events(self, did_id, kind):
            return [RelationshipAdded(did=did_id, ref=str(ghost))]

        def in_authentication(self, did_id, did_url):
            return True

    query = _Dangling()
    candidates = enumerate_relationship(query, did, RelationshipKind.AUTHENTICATION)
    assert candidates == [ghost]
    with pytest.raises(ResolveError):
        keep_relationship(query, did, RelationshipKind.AUTHENTICATION, candidates, NOW)


# ---------- dereference ----------

def test_dereference_returns_type_and_key(new_identity, resolver):
    alice = new_identity()
    url = _with_second_key(alice)
    method_type, key = resolver.dereference(str(url))
    assert method_type == DEFAULT_METHOD_TYPE
    assert key == bytes.fromhex(K1[2:])


def test_dereference_deactivated_or_missing(new_identity, resolver):
    alice = new_identity()
    url = _with_second_key(alice)
    alice.deactivate_verification_method(url)
    with pytest.raises(VerificationMethodUnavailable):
        resolver.dereference(str(url))
    with pytest.raises(VerificationMethodUnavailable):
        resolver.dereference(str(alice.did.did_url(9)))
    with pytest.raises(ParseError):
        resolver.dereference(str(alice.did))
