"""Entities API router: tenant CRUD."""

from typing import Optional
from fastapi import APIRouter, Depends, Query, Response, status

from fieldforce.schemas.schemas import EntityCreate, EntityUpdate, EntityOut, PaginatedResponse
from fieldforce.services.entity_service import EntityService, EntityListFilter
from fieldforce.core.guards import Authorize, require_permission
from fieldforce.core.security import Claims
from fieldforce.api.deps import get_entity_service

router = APIRouter(prefix="/entities", tags=["entities"])

can_manage_entities = Authorize(require_permission("entities.manage"))
authenticated = Authorize()


@router.post("/", response_model=EntityOut, status_code=status.HTTP_201_CREATED)
async def create_entity(
    body: EntityCreate,
    entities: EntityService = Depends(get_entity_service),
    claims: Claims = Depends(can_manage_entities),
):
    return EntityOut.model_validate(entities.create_entity(body.name, body.code))


@router.get("/", response_model=PaginatedResponse)
async def list_entities(
    search: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(True),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    entities: EntityService = Depends(get_entity_service),
    claims: Claims = Depends(authenticated),
):
    """List entities; soft-deleted ones only when ``is_active=false``."""
    result = entities.list_entities(EntityListFilter(search, is_active, page, page_size))
    return PaginatedResponse(
        total=result["total"],
        page=result["page"],
        page_size=page_size,
        items=[EntityOut.model_validate(e) for e in result["entities"]],
    )


@router.get("/{entity_id}", response_model=EntityOut)
async def get_entity(
    entity_id: str,
    entities: EntityService = Depends(get_entity_service),
    claims: Claims = Depends(authenticated),
):
    """Get an entity with its user and role counts."""
    entity = entities.get_entity(entity_id)
    return EntityOut.model_validate(entity).model_copy(update=entities.usage(entity_id))


@router.patch("/{entity_id}", response_model=EntityOut)
async def update_entity(
    entity_id: str,
    body: EntityUpdate,
    entities: EntityService = Depends(get_entity_service),
    claims: Claims = Depends(can_manage_entities),
):
    return EntityOut.model_validate(entities.update_entity(entity_id, body))


@router.delete("/{entity_id}", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate_entity(
    entity_id: str,
    entities: EntityService = Depends(get_entity_service),
    claims: Claims = Depends(can_manage_entities),
):
    """Soft delete: mark the entity inactive."""
    entities.deactivate_entity(entity_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{entity_id}/hard", status_code=status.HTTP_204_NO_CONTENT)
async def delete_entity(
    entity_id: str,
    entities: EntityService = Depends(get_entity_service),
    claims: Claims = Depends(can_manage_entities),
):
    """Remove the entity; 409 while users or roles still belong to it."""
    entities.delete_entity(entity_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
