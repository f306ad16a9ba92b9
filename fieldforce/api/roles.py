"""Roles API router: roles, permissions, and role→permission sets."""

from typing import Optional
from fastapi import APIRouter, Depends, Query, Response, status

from fieldforce.schemas.schemas import (
    PermissionCreate, PermissionOut, RoleCreate, RoleUpdate,
    RolePermissionsUpdate, RoleOut, PaginatedResponse,
)
from fieldforce.services.role_service import RoleStore, RoleListFilter
from fieldforce.core.guards import Authorize, require_permission
from fieldforce.core.security import Claims
from fieldforce.api.deps import get_role_store

router = APIRouter(prefix="/roles", tags=["roles"])

can_manage_roles = Authorize(require_permission("roles.manage"))
can_read_roles = Authorize(require_permission("users.read"))


@router.get("/permissions", response_model=list[PermissionOut])
async def list_permissions(
    store: RoleStore = Depends(get_role_store),
    claims: Claims = Depends(can_manage_roles),
):
    """List every permission (for the role/permission matrix)."""
    return store.list_permissions()


@router.post("/permissions", response_model=PermissionOut, status_code=status.HTTP_201_CREATED)
async def create_permission(
    body: PermissionCreate,
    store: RoleStore = Depends(get_role_store),
    claims: Claims = Depends(can_manage_roles),
):
    return store.create_permission(body.name, body.description)


@router.delete("/permissions/{permission_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_permission(
    permission_id: str,
    store: RoleStore = Depends(get_role_store),
    claims: Claims = Depends(can_manage_roles),
):
    """Delete a permission; every role loses it."""
    store.delete_permission(permission_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/", response_model=RoleOut, status_code=status.HTTP_201_CREATED)
async def create_role(
    body: RoleCreate,
    store: RoleStore = Depends(get_role_store),
    claims: Claims = Depends(can_manage_roles),
):
    role = store.create_role(
        body.name, body.level, body.entity_id, body.permission_ids, body.description,
    )
    return RoleOut.model_validate(role)


@router.get("/", response_model=PaginatedResponse)
async def list_roles(
    search: Optional[str] = Query(None),
    entity_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    store: RoleStore = Depends(get_role_store),
    claims: Claims = Depends(can_read_roles),
):
    """List roles, most privileged first."""
    result = store.list_roles(RoleListFilter(search, entity_id, page, page_size))
    return PaginatedResponse(
        total=result["total"],
        page=result["page"],
        page_size=page_size,
        items=[RoleOut.model_validate(r) for r in result["roles"]],
    )


@router.get("/{role_id}", response_model=RoleOut)
async def get_role(
    role_id: str,
    store: RoleStore = Depends(get_role_store),
    claims: Claims = Depends(can_read_roles),
):
    return RoleOut.model_validate(store.get_role(role_id))


@router.patch("/{role_id}", response_model=RoleOut)
async def update_role(
    role_id: str,
    body: RoleUpdate,
    store: RoleStore = Depends(get_role_store),
    claims: Claims = Depends(can_manage_roles),
):
    """Update a role. ``permission_ids``, when sent, replaces the whole set."""
    return RoleOut.model_validate(store.update_role(role_id, body))


@router.put("/{role_id}/permissions", response_model=RoleOut)
async def replace_role_permissions(
    role_id: str,
    body: RolePermissionsUpdate,
    store: RoleStore = Depends(get_role_store),
    claims: Claims = Depends(can_manage_roles),
):
    return RoleOut.model_validate(store.replace_permissions(role_id, body.permission_ids))


@router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(
    role_id: str,
    store: RoleStore = Depends(get_role_store),
    claims: Claims = Depends(can_manage_roles),
):
    """Delete a role; refused with 409 while any user holds it."""
    store.delete_role(role_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
