"""Users API router: scoped listing, profile access, manager changes, deletion."""

from typing import Optional
from fastapi import APIRouter, Depends, Query, Response, status

from fieldforce.schemas.schemas import (
    UserCreate, UserUpdate, ManagerUpdate, UserOut, DownlineOut, PaginatedResponse,
)
from fieldforce.services.user_service import UserService, UserListFilter
from fieldforce.services.hierarchy_service import HierarchyResolver
from fieldforce.core.guards import (
    Authorize, require_permission, require_role, require_owner_or_min_level,
)
from fieldforce.core.security import Claims
from fieldforce.api.deps import get_user_service, get_hierarchy

router = APIRouter(prefix="/users", tags=["users"])

owner_or_senior = Authorize(
    require_owner_or_min_level("userId")
)


@router.get("/", response_model=PaginatedResponse)
async def list_users(
    search: Optional[str] = Query(None),
    role: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    users: UserService = Depends(get_user_service),
    hierarchy: HierarchyResolver = Depends(get_hierarchy),
    claims: Claims = Depends(Authorize(require_permission("users.read"))),
):
    """List the users the caller can see: their downline, or everyone for SUPER_ADMIN."""
    visible = hierarchy.visible_user_ids(claims.user_id, claims.role_name)
    result = users.list_users(visible, UserListFilter(search, role, is_active, page, page_size))
    return PaginatedResponse(
        total=result["total"],
        page=result["page"],
        page_size=page_size,
        items=[UserOut.from_user(u) for u in result["users"]],
    )


@router.post("/", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def create_user(
    body: UserCreate,
    users: UserService = Depends(get_user_service),
    claims: Claims = Depends(Authorize(require_permission("users.create"))),
):
    return UserOut.from_user(users.create_user(body))


@router.get("/{userId}", response_model=UserOut)
async def get_user(
    userId: str,
    users: UserService = Depends(get_user_service),
    claims: Claims = Depends(owner_or_senior),
):
    return UserOut.from_user(users.get_user(userId))


@router.get("/{userId}/downline", response_model=DownlineOut)
async def get_downline(
    userId: str,
    users: UserService = Depends(get_user_service),
    hierarchy: HierarchyResolver = Depends(get_hierarchy),
    claims: Claims = Depends(owner_or_senior),
):
    """The user plus everyone who reports to them, directly or not."""
    users.get_user(userId)
    return DownlineOut(user_id=userId, user_ids=sorted(hierarchy.downline(userId)))


@router.patch("/{userId}", response_model=UserOut)
async def update_user(
    userId: str,
    body: UserUpdate,
    users: UserService = Depends(get_user_service),
    claims: Claims = Depends(Authorize(require_permission("users.update"))),
):
    return UserOut.from_user(users.update_user(userId, body))


@router.put("/{userId}/manager", response_model=UserOut)
async def set_manager(
    userId: str,
    body: ManagerUpdate,
    users: UserService = Depends(get_user_service),
    claims: Claims = Depends(Authorize(require_permission("users.update"))),
):
    return UserOut.from_user(users.set_manager(userId, body.reports_to_id))


@router.post("/{userId}/deactivate", response_model=UserOut)
async def deactivate_user(
    userId: str,
    users: UserService = Depends(get_user_service),
    claims: Claims = Depends(Authorize(require_role("SUPER_ADMIN", "SM_ADMIN"))),
):
    return UserOut.from_user(users.deactivate_user(userId))


@router.delete("/{userId}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    userId: str,
    users: UserService = Depends(get_user_service),
    claims: Claims = Depends(Authorize(require_permission("users.delete"))),
):
    """Delete a user; their reports move up to the deleted user's manager."""
    users.delete_user(userId, acting_user_id=claims.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
