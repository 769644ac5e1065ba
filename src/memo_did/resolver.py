# src/memo_did/resolver.py
"""
Document resolution by replaying ledger history.

The registry's event log only records additions, so every list in the
document is rebuilt in two steps: enumerate candidates from the "added"
events, then keep the ones that still hold when checked against current
ledger state. Nothing is cached; each call re-reads the ledger.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Tuple, TypeVar

from memo_did.errors import LedgerError, ParseError, ResolveError, VerificationMethodUnavailable
from memo_did.models.document import DEFAULT_CONTEXT, DIDDocument, VerificationMethod
from memo_did.models.identifier import MemoDID, MemoDIDUrl, parse_memo_did, parse_memo_did_url
from memo_did.models.ledger import VerificationMethodRecord
from memo_did.models.relationship import RelationshipKind
from memo_did.ports.ledger import LedgerQueryPort

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Hashable)

# current-membership predicate per permanent relationship kind
_MEMBERSHIP: Dict[RelationshipKind, str] = {
    RelationshipKind.AUTHENTICATION: "in_authentication",
    RelationshipKind.ASSERTION_METHOD: "in_assertion",
    RelationshipKind.RECOVERY: "in_recovery",
}


# ---------- predicates ----------

def method_usable(method: Optional[VerificationMethodRecord]) -> bool:
    return method is not None and not method.deactivated


def relationship_active(member: bool, method: Optional[VerificationMethodRecord]) -> bool:
    return member and method_usable(method)


def delegation_active(expiry: int, now: int, method: Optional[VerificationMethodRecord]) -> bool:
    # an expired delegation drops out without ever being removed
    return expiry >= now and method_usable(method)


def distinct(items: Iterable[T]) -> List[T]:
    """Drop repeats, keeping the first occurrence in arrival order."""
    seen = set()
    out: List[T] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            out.append(item)
    return out


# ---------- enumerate ----------

def enumerate_controllers(query: LedgerQueryPort, did: MemoDID) -> List[MemoDID]:
    # controllers are always did:memo, the event carries only the identifier
    return distinct(
        parse_memo_did(f"did:memo:{event.controller}") for event in query.controller_events(did.identifier)
    )


def enumerate_relationship(query: LedgerQueryPort, did: MemoDID, kind: RelationshipKind) -> List[MemoDIDUrl]:
    return distinct(parse_memo_did_url(event.ref) for event in query.relationship_events(did.identifier, kind))


# ---------- filter ----------

def keep_controllers(query: LedgerQueryPort, did: MemoDID, candidates: Iterable[MemoDID]) -> List[MemoDID]:
    return [c for c in candidates if query.is_controller(did.identifier, c.identifier)]


def keep_relationship(
    query: LedgerQueryPort,
    did: MemoDID,
    kind: RelationshipKind,
    candidates: Iterable[MemoDIDUrl],
    now: int,
) -> List[MemoDIDUrl]:
    kept: List[MemoDIDUrl] = []
    for url in candidates:
        # the referenced key may belong to another DID
        method = query.verification_method_at(url.identifier, url.method_index)
        if method is None:
            raise ResolveError(str(did), f"{kind.name.lower()} references missing verification method {url}")
        if kind is RelationshipKind.CAPABILITY_DELEGATION:
            active = delegation_active(query.delegation_expiry(did.identifier, str(url)), now, method)
        else:
            member = getattr(query, _MEMBERSHIP[kind])(did.identifier, str(url))
            active = relationship_active(member, method)
        if active:
            kept.append(url)
    return kept


def collect_verification_methods(query: LedgerQueryPort, did: MemoDID) -> List[VerificationMethod]:
    """Active methods in slot order; deactivated slots are tombstones and are skipped."""
    size = query.verification_method_count(did.identifier)
    methods: List[VerificationMethod] = []
    for index in range(size):
        record = query.verification_method_at(did.identifier, index)
        if record is None:
            raise ResolveError(str(did), f"verification method slot {index} of {size} is missing")
        if not record.deactivated:
            methods.append(VerificationMethod.from_record(did, index, record))
    return methods


# ---------- resolver ----------

class Resolver:
    def __init__(
        self,
        query: LedgerQueryPort,
        clock: Callable[[], float] = time.time,
        context: str = DEFAULT_CONTEXT,
        max_workers: int = 1,
    ) -> None:
        self._query = query
        self._clock = clock
        self._context = context
        self._max_workers = max(1, max_workers)

    def resolve(self, did_string: str) -> DIDDocument:
        did = parse_memo_did(did_string)
        logger.debug("resolving %s", did)

        if self._step(did, "deactivation check", self._query.is_deactivated, did.identifier):
            logger.debug("%s is deactivated", did)
            return DIDDocument()

        now = int(self._clock())
        tasks: List[Tuple[str, Callable, tuple]] = [
            ("controllers", self._controllers, (did,)),
            ("verification methods", collect_verification_methods, (self._query, did)),
        ]
        for kind in RelationshipKind:
            tasks.append((kind.name.lower(), self._relationship, (did, kind, now)))

        if self._max_workers > 1:
            with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
                futures = [pool.submit(self._step, did, name, fn, *args) for name, fn, args in tasks]
                results = [f.result() for f in futures]
        else:
            results = [self._step(did, name, fn, *args) for name, fn, args in tasks]

        controllers, methods, authentication, assertion, delegation, recovery = results
        return DIDDocument(
            context=self._context,
            id=did,
            controller=controllers,
            verification_method=methods,
            authentication=authentication,
            assertion_method=assertion,
            capability_delegation=delegation,
            recovery=recovery,
        )

    def dereference(self, did_url_string: str) -> Tuple[str, bytes]:
        """Method type and public key bytes of the verification method `did_url_string` names."""
        url = parse_memo_did_url(did_url_string)
        record = self._step(
            url.did, "verification method", self._query.verification_method_at, url.identifier, url.method_index
        )
        if record is None:
            raise VerificationMethodUnavailable(str(url.did), f"verification method {url} does not exist")
        if record.deactivated:
            raise VerificationMethodUnavailable(str(url.did), f"verification method {url} is deactivated")
        return record.method_type, record.public_key

    def _controllers(self, did: MemoDID) -> List[MemoDID]:
        return keep_controllers(self._query, did, enumerate_controllers(self._query, did))

    def _relationship(self, did: MemoDID, kind: RelationshipKind, now: int) -> List[MemoDIDUrl]:
        candidates = enumerate_relationship(self._query, did, kind)
        return keep_relationship(self._query, did, kind, candidates, now)

    @staticmethod
    def _step(did: MemoDID, name: str, fn: Callable, *args):
        try:
            return fn(*args)
        except ResolveError:
            raise
        except (LedgerError, ParseError) as e:
            logger.warning("resolving %s failed at %s: %s", did, name, e)
            raise ResolveError(str(did), f"reading {name}", e) from e
