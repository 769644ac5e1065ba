# tests/test_memory_ledger.py
from memo_did.infra.memory_ledger import GAS_PER_CALL, MemoryLedger
from memo_did.models.relationship import RelationshipKind
from tests.conftest import ALICE, BOB

DID = "ab" * 32
OTHER = "cd" * 32


def _registered(ledger, address=ALICE, did=DID):
    signer = ledger.signer(address)
    assert ledger.get_receipt(signer.create_did(did, "T", b"\x01")).succeeded
    return signer


def test_create_records_master_key():
    ledger = MemoryLedger()
    _registered(ledger)
    assert ledger.verification_method_count(DID) == 1
    master = ledger.verification_method_at(DID, 0)
    assert master.method_type == "T"
    assert master.controller == ""
    assert ledger.verification_method_at(DID, 1) is None


def test_revert_is_a_failed_receipt_with_full_gas():
    ledger = MemoryLedger()
    signer = _registered(ledger)
    receipt = ledger.get_receipt(signer.create_did(DID, "T", b"\x01"))
    assert receipt.status == 0
    assert receipt.gas_used == receipt.cumulative_gas_used == GAS_PER_CALL


def test_sender_must_own_the_caller():
    ledger = MemoryLedger()
    _registered(ledger)
    mallory = _registered(ledger, BOB, OTHER)
    # claims to act as DID but signs with BOB's account
    tx = mallory.add_controller(DID, DID, OTHER)
    assert ledger.get_receipt(tx).status == 0
    assert not ledger.is_controller(DID, OTHER)


def test_events_survive_removal():
    ledger = MemoryLedger()
    signer = _registered(ledger)
    url = f"did:memo:{DID}#masterKey"
    signer.add_authentication(DID, DID, url)
    signer.remove_authentication(DID, DID, url)
    assert [e.ref for e in ledger.relationship_events(DID, RelationshipKind.AUTHENTICATION)] == [url]
    assert not ledger.in_authentication(DID, url)


def test_receipt_delay_hides_receipts():
    ledger = MemoryLedger(receipt_delay=2)
    signer = ledger.signer(ALICE)
    tx = signer.create_did(DID, "T", b"\x01")
    assert ledger.get_receipt(tx) is None
    assert ledger.get_receipt(tx) is None
    assert ledger.get_receipt(tx).succeeded
    assert ledger.get_receipt("0x" + "00" * 32) is None


def test_nonce_advances_per_submission():
    ledger = MemoryLedger()
    signer = ledger.signer(ALICE)
    assert signer.pending_nonce() == 0
    first = signer.create_did(DID, "T", b"\x01")
    second = signer.create_did(OTHER, "T", b"\x01")
    assert signer.pending_nonce() == 2
    assert first != second
