"""WordPress connection router."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Path

from wpmcp_core.api.deps import get_layer, requires, tenant_of
from wpmcp_core.api.models import ConnectionCreateRequest
from wpmcp_core.application import TrustLayer
from wpmcp_core.auth import Permission, ResolvedIdentity
from wpmcp_core.errors import create_error

connection_router = APIRouter(prefix="/connections", tags=["Connections"])

Identity = Annotated[ResolvedIdentity, Depends(requires(Permission.CONNECTIONS_MANAGE))]
Layer = Annotated[TrustLayer, Depends(get_layer)]


@connection_router.get("")
async def list_connections(identity: Identity, layer: Layer) -> dict[str, Any]:
    connections = await layer.vault.list_connections(tenant_of(identity))
    return {"connections": [c.to_public_dict() for c in connections]}


@connection_router.post("", status_code=201)
async def create_connection(
    body: ConnectionCreateRequest, identity: Identity, layer: Layer
) -> dict[str, Any]:
    """Register a site. Credentials are encrypted before they are stored."""
    connection = await layer.vault.create_connection(
        tenant_of(identity), body.name, body.url, body.username, body.password
    )
    return connection.to_public_dict()


@connection_router.delete("/{connection_id}")
async def delete_connection(
    connection_id: Annotated[str, Path()], identity: Identity, layer: Layer
) -> dict[str, Any]:
    if not await layer.vault.delete_connection(connection_id, tenant_of(identity)):
        raise create_error("RESOURCE_NOT_FOUND", resource="Connection")
    return {"deleted": True, "id": connection_id}
