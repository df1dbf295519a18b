"""API key router."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Path

from wpmcp_core.api.deps import get_layer, requires, tenant_of
from wpmcp_core.api.models import ApiKeyCreateRequest, ApiKeyCreateResponse
from wpmcp_core.application import TrustLayer
from wpmcp_core.auth import Permission, ResolvedIdentity
from wpmcp_core.errors import create_error

key_router = APIRouter(prefix="/keys", tags=["API Keys"])

Identity = Annotated[ResolvedIdentity, Depends(requires(Permission.KEYS_MANAGE))]
Layer = Annotated[TrustLayer, Depends(get_layer)]


@key_router.get("")
async def list_keys(identity: Identity, layer: Layer) -> dict[str, Any]:
    """List the tenant's API keys. Hashes and plaintext are never returned."""
    keys = await layer.vault.list_api_keys(tenant_of(identity))
    return {"api_keys": [k.to_public_dict() for k in keys]}


@key_router.post("", status_code=201, response_model=ApiKeyCreateResponse)
async def create_key(
    body: ApiKeyCreateRequest, identity: Identity, layer: Layer
) -> ApiKeyCreateResponse:
    """Create an API key. The plaintext appears in this response only."""
    created = await layer.vault.create_api_key(
        tenant_of(identity), body.connection_id, name=body.name, environment=body.environment
    )
    return ApiKeyCreateResponse(key=created.plaintext_key, api_key=created.record.to_public_dict())


@key_router.post("/{key_id}/revoke")
async def revoke_key(
    key_id: Annotated[str, Path()], identity: Identity, layer: Layer
) -> dict[str, Any]:
    if not await layer.vault.revoke_api_key(key_id, tenant_of(identity)):
        raise create_error("RESOURCE_NOT_FOUND", resource="API key")
    return {"revoked": True, "id": key_id}


@key_router.delete("/{key_id}")
async def delete_key(
    key_id: Annotated[str, Path()], identity: Identity, layer: Layer
) -> dict[str, Any]:
    if not await layer.vault.delete_api_key(key_id, tenant_of(identity)):
        raise create_error("RESOURCE_NOT_FOUND", resource="API key")
    return {"deleted": True, "id": key_id}
