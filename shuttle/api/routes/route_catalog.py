"""
Route catalog endpoints (admin) with Redis caching on the list operation.
"""

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from shuttle.db.session import get_db
from shuttle.schemas.common import Page
from shuttle.schemas.route import RouteCreate, RouteUpdate, RouteResponse
from shuttle.services import route_service
from shuttle.services.cache_service import get_cached_routes, set_cached_routes
from shuttle.core.security import require_admin
from shuttle.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/routes", tags=["Routes"], dependencies=[Depends(require_admin)])


@router.post("/", response_model=RouteResponse, status_code=status.HTTP_201_CREATED)
async def create_route(data: RouteCreate, db: AsyncSession = Depends(get_db)):
    return await route_service.create_route(db, data)


@router.get("/", response_model=Page[RouteResponse])
async def list_routes(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """
    List live routes with pagination.
    Cached in Redis until a route is created, updated or deleted.
    """
    cached = await get_cached_routes(page, limit)
    if cached:
        logger.info("routes_list_cache_hit", page=page)
        return Page[RouteResponse](**cached)

    routes, total = await route_service.list_routes(db, page, limit)
    response = Page[RouteResponse].build(
        [RouteResponse.model_validate(route) for route in routes], total, page, limit
    )
    await set_cached_routes(page, limit, response.model_dump(mode="json"))
    return response


@router.get("/{route_id}", response_model=RouteResponse)
async def get_route(route_id: int, db: AsyncSession = Depends(get_db)):
    return await route_service.get_route(db, route_id)


@router.put("/{route_id}", response_model=RouteResponse)
async def update_route(route_id: int, data: RouteUpdate, db: AsyncSession = Depends(get_db)):
    return await route_service.update_route(db, route_id, data)


@router.delete("/{route_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_route(route_id: int, db: AsyncSession = Depends(get_db)):
    await route_service.delete_route(db, route_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
