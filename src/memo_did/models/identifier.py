# src/memo_did/models/identifier.py
"""
did:memo identifiers and DID URLs.

Only two textual forms exist:
    did:memo:<64 hex>
    did:memo:<64 hex>#<masterKey | key-N>

Both models serialize to exactly that text and re-run the full grammar when
validated, whether the input is a string or a structured mapping.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, model_serializer, model_validator

from memo_did.errors import ParseError

METHOD = "memo"
MASTER_KEY = "masterKey"
KEY_PREFIX = "key-"
INVALID_INDEX = -1

# generic DID syntax: did:<method>:<idstring>(:<idstring>)*
_DID_RE = re.compile(r"did:([a-z0-9]+):((?:[A-Za-z0-9._%\-]*:)*[A-Za-z0-9._%\-]+)")
_HEX64_RE = re.compile(r"[0-9a-fA-F]{64}")
_DIGITS_RE = re.compile(r"[0-9]+")


# ---------- grammar helpers ----------

def _split_url(text: str) -> Tuple[str, Optional[str], Optional[str], Optional[str]]:
    """Split `text` into (did, path, query, fragment); absent parts are None."""
    path = query = fragment = None
    pos = text.find("#")
    if pos >= 0:
        fragment = text[pos + 1:]
        text = text[:pos]
    pos = text.find("?")
    if pos >= 0:
        query = text[pos + 1:]
        text = text[:pos]
    pos = text.find("/")
    if pos >= 0:
        path = text[pos:]
        text = text[:pos]
    return text, path, query, fragment


def _check_identifiers(method: str, identifiers: Tuple[str, ...]) -> None:
    if method != METHOD:
        raise ParseError(f"unsupported method {method}")
    if not identifiers:
        raise ParseError("missing method-specific identifier")
    if len(identifiers) > 1:
        # did:memo:<chain id>:<hex> is reserved but not supported yet
        raise ParseError("chain id segments are not supported")
    last = identifiers[-1]
    if not _HEX64_RE.fullmatch(last):
        raise ParseError(f"{last} is not a 32 byte hex string")


def _check_fragment(fragment: str) -> None:
    if fragment == MASTER_KEY:
        return
    if not fragment.startswith(KEY_PREFIX) or not _DIGITS_RE.fullmatch(fragment[len(KEY_PREFIX):]):
        raise ParseError(f"unsupported fragment: {fragment}")


def _parse_text(text: str, want_url: bool) -> Dict[str, Any]:
    if not isinstance(text, str):
        raise ParseError(f"expected a string, got {type(text).__name__}")
    base, path, query, fragment = _split_url(text)
    m = _DID_RE.fullmatch(base)
    if not m:
        raise ParseError(f"{text} is not a valid did")
    is_url = path is not None or query is not None or fragment is not None
    if want_url and not is_url:
        raise ParseError(f"{text} is not a did url")
    if not want_url and is_url:
        raise ParseError(f"{text} is a did url")

    method, identifier = m.group(1), m.group(2)
    identifiers = tuple(identifier.split(":"))
    _check_identifiers(method, identifiers)

    fields: Dict[str, Any] = {"method": method, "identifier": identifier, "identifiers": identifiers}
    if want_url:
        if path is not None or query is not None:
            raise ParseError("unsupported path and query in memo did")
        _check_fragment(fragment or "")
        fields["fragment"] = fragment
    return fields


def _fill_identifiers(data: Any) -> Any:
    if isinstance(data, dict) and "identifiers" not in data and "identifier" in data:
        data = dict(data)
        data["identifiers"] = tuple(str(data["identifier"]).split(":"))
    return data


# ---------- models ----------

class MemoDID(BaseModel):
    model_config = ConfigDict(frozen=True)

    method: str = METHOD
    # memo-specific-id = hex(keccak256(address || uvarint(nonce)))
    identifier: str
    identifiers: Tuple[str, ...]

    @model_validator(mode="before")
    @classmethod
    def _from_text(cls, data: Any) -> Any:
        if isinstance(data, str):
            return _parse_text(data, want_url=False)
        return _fill_identifiers(data)

    @model_validator(mode="after")
    def _validate(self) -> "MemoDID":
        _check_identifiers(self.method, self.identifiers)
        if self.identifier != ":".join(self.identifiers):
            raise ParseError("identifier does not match its segments")
        return self

    @model_serializer
    def _to_text(self) -> str:
        return str(self)

    def __str__(self) -> str:
        return f"did:{self.method}:{self.identifier}"

    def did_url(self, method_index: int) -> "MemoDIDUrl":
        """URL addressing the verification method stored at `method_index`."""
        if method_index < 0:
            raise ParseError("method index cannot be less than 0")
        fragment = MASTER_KEY if method_index == 0 else f"{KEY_PREFIX}{method_index}"
        return MemoDIDUrl(
            method=self.method,
            identifier=self.identifier,
            identifiers=self.identifiers,
            fragment=fragment,
        )


class MemoDIDUrl(BaseModel):
    model_config = ConfigDict(frozen=True)

    method: str = METHOD
    identifier: str
    identifiers: Tuple[str, ...]
    # masterKey | key-{i}
    fragment: str

    @model_validator(mode="before")
    @classmethod
    def _from_text(cls, data: Any) -> Any:
        if isinstance(data, str):
            return _parse_text(data, want_url=True)
        return _fill_identifiers(data)

    @model_validator(mode="after")
    def _validate(self) -> "MemoDIDUrl":
        _check_identifiers(self.method, self.identifiers)
        if self.identifier != ":".join(self.identifiers):
            raise ParseError("identifier does not match its segments")
        _check_fragment(self.fragment)
        return self

    @model_serializer
    def _to_text(self) -> str:
        return str(self)

    def __str__(self) -> str:
        return f"did:{self.method}:{self.identifier}#{self.fragment}"

    @property
    def did(self) -> MemoDID:
        return MemoDID(method=self.method, identifier=self.identifier, identifiers=self.identifiers)

    @property
    def method_index(self) -> int:
        """Verification-method slot, or INVALID_INDEX for an unrecognised fragment."""
        return slot_index(self)


def slot_index(url: MemoDIDUrl) -> int:
    fragment = url.fragment or ""
    if fragment == MASTER_KEY:
        return 0
    if fragment.startswith(KEY_PREFIX) and _DIGITS_RE.fullmatch(fragment[len(KEY_PREFIX):]):
        return int(fragment[len(KEY_PREFIX):])
    return INVALID_INDEX


def parse_memo_did(text: str) -> MemoDID:
    return MemoDID(**_parse_text(text, want_url=False))


def parse_memo_did_url(text: str) -> MemoDIDUrl:
    return MemoDIDUrl(**_parse_text(text, want_url=True))


ZERO_DID = MemoDID(identifier="0" * 64)
