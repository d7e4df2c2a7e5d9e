# resources router - wellness resources by category

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from sahara.dependencies import get_current_user, get_services
from sahara.models.resource import ResourceCreate, ResourceListResponse, ResourceResponse
from sahara.services.container import Services

router = APIRouter(prefix="/api/resources", tags=["resources"])


def _resource_response(doc: dict) -> ResourceResponse:
    return ResourceResponse(
        id=doc["resource_id"],
        title=doc["title"],
        description=doc["description"],
        category=doc["category"],
        content=doc.get("content"),
        tags=doc.get("tags", []),
        created_at=doc.get("created_at", ""),
    )


@router.get("", response_model=ResourceListResponse)
async def list_resources(
    category: Optional[str] = Query(None),
    limit: int = Query(10, ge=1, le=100),
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    resources = await services.resources.list_resources(category, limit)
    return ResourceListResponse(
        category=category or "all",
        resources=[_resource_response(r) for r in resources],
    )


@router.post("", response_model=ResourceResponse, status_code=status.HTTP_201_CREATED)
async def add_resource(
    body: ResourceCreate,
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    doc = await services.resources.create(
        body.title, body.description, body.category, content=body.content, tags=body.tags,
    )
    return _resource_response(doc)
