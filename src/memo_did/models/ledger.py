# src/memo_did/models/ledger.py
"""
Plain records exchanged with the ledger ports.

Identifiers here are raw strings exactly as the registry contract stores
them: bare 64-hex DIDs, DID URL strings for relationship references. Turning
them into MemoDID / MemoDIDUrl is the resolver's job.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

STATUS_FAILED = 0
STATUS_SUCCESS = 1


class VerificationMethodRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    method_type: str
    # bare hex of the controlling DID; empty for the master key
    controller: str = ""
    public_key: bytes = b""
    deactivated: bool = False


class ControllerAdded(BaseModel):
    model_config = ConfigDict(frozen=True)

    did: str
    controller: str


class RelationshipAdded(BaseModel):
    model_config = ConfigDict(frozen=True)

    did: str
    # DID URL string of the verification method the relationship grants
    ref: str


class TransactionReceipt(BaseModel):
    model_config = ConfigDict(frozen=True)

    tx_hash: str
    status: int = Field(..., description="1 success, 0 failure")
    gas_used: int
    cumulative_gas_used: int
    block_number: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status == STATUS_SUCCESS
