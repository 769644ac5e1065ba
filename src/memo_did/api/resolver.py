# src/memo_did/api/resolver.py
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from memo_did.infra.providers import get_resolver
from memo_did.models.document import DIDDocument, encode_hex
from memo_did.resolver import Resolver

router = APIRouter(prefix="/1.0", tags=["resolver"])


class DereferenceOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: str
    public_key_hex: str = Field(..., alias="publicKeyHex")


@router.get("/identifiers/{did}", response_model=DIDDocument)
def resolve_did(did: str, resolver: Resolver = Depends(get_resolver)) -> DIDDocument:
    # ParseError / ResolveError are mapped by the app's exception handlers
    return resolver.resolve(did)


@router.get("/dereference", response_model=DereferenceOut)
def dereference_did_url(
    url: str = Query(..., description="did:memo:<hex>#<masterKey|key-N>"),
    resolver: Resolver = Depends(get_resolver),
) -> DereferenceOut:
    method_type, public_key = resolver.dereference(url)
    return DereferenceOut(id=url, type=method_type, public_key_hex=encode_hex(public_key))
