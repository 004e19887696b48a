"""
Widget API Backend: Widget Route Handlers
============================================

What:  CRUD endpoints for the caller's widgets under /api/widgets.
How:   Every handler depends on get_current_principal (401 without a valid
       bearer token) and get_db_session, then delegates to WidgetService.
Who:   Called by API clients holding a token from the identity provider.

Endpoints:
    POST   /api/widgets               create           → 201
    GET    /api/widgets               list (paginated) → 200 + X-Total-Count
    GET    /api/widgets/{widget_id}   fetch one        → 200
    PUT    /api/widgets/{widget_id}   partial update   → 200 (409 on stale version)
    DELETE /api/widgets/{widget_id}   delete           → 204

Widget ids:
    Path ids must be 26 Crockford base32 characters. They are normalised to
    upper case before lookup, so lower-case ids resolve to the same widget.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from widget_api.auth.dependencies import Principal, get_current_principal
from widget_api.config import settings
from widget_api.database import get_db_session
from widget_api.schemas.widget import (
    ErrorResponse,
    ValidationErrorResponse,
    WidgetCreate,
    WidgetPage,
    WidgetResponse,
    WidgetUpdate,
)
from widget_api.services.widget_service import widget_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Widgets"])

WIDGET_ID_PATTERN = r"^[0-9A-Za-z]{26}$"

_COMMON_ERRORS = {
    400: {"description": "Invalid input", "model": ValidationErrorResponse},
    401: {"description": "Missing or invalid bearer token", "model": ErrorResponse},
    500: {"description": "Server error", "model": ErrorResponse},
}
_NOT_FOUND = {404: {"description": "Widget not found", "model": ErrorResponse}}


def widget_id_path():
    return Path(
        pattern=WIDGET_ID_PATTERN,
        description="ULID of the widget (case-insensitive)",
        examples=["01H9XY7JVZW4QX5TZMENVSHR8K"],
    )


@router.post(
    "/widgets",
    response_model=WidgetResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_COMMON_ERRORS,
    summary="Create a widget",
)
async def create_widget(
    payload: WidgetCreate,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db_session),
) -> WidgetResponse:
    """The caller becomes the owner; id, timestamps and version 0 are assigned."""
    return await widget_service.create_widget(db, principal, payload)


@router.get(
    "/widgets",
    response_model=WidgetPage,
    responses=_COMMON_ERRORS,
    summary="List the caller's widgets",
    description=(
        "Returns one page of the caller's widgets, optionally filtered by category. "
        "Sorting is limited to an allow-listed set of fields; ties are broken by id."
    ),
)
async def list_widgets(
    response: Response,
    category: Optional[str] = Query(
        default=None,
        description="Filter by category (BASIC, ADVANCED, PREMIUM, CUSTOM; case-insensitive)",
    ),
    page: int = Query(default=0, ge=0, description="0-based page index"),
    size: int = Query(
        default=settings.default_page_size,
        description=f"Items per page, clamped to 1..{settings.max_page_size}",
    ),
    sort: str = Query(default="createdAt", description="Sort field"),
    direction: str = Query(default="DESC", description="ASC or DESC"),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db_session),
) -> WidgetPage:
    result = await widget_service.list_widgets(
        db,
        principal,
        category=category,
        page=page,
        size=size,
        sort_field=sort,
        sort_direction=direction,
    )
    response.headers["X-Total-Count"] = str(result.total_count)
    return result


@router.get(
    "/widgets/{widget_id}",
    response_model=WidgetResponse,
    responses={**_COMMON_ERRORS, **_NOT_FOUND},
    summary="Get one of the caller's widgets",
)
async def get_widget(
    widget_id: str = widget_id_path(),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db_session),
) -> WidgetResponse:
    """A widget owned by someone else is reported as 404, exactly like a missing one."""
    return await widget_service.get_widget(db, principal, widget_id.upper())


@router.put(
    "/widgets/{widget_id}",
    response_model=WidgetResponse,
    responses={
        **_COMMON_ERRORS,
        **_NOT_FOUND,
        409: {"description": "expectedVersion is stale", "model": ErrorResponse},
    },
    summary="Update one of the caller's widgets",
    description=(
        "Partial update guarded by optimistic locking. Omitted fields are left "
        "unchanged; null values are rejected. The update is applied only when "
        "expectedVersion equals the stored version, which then increases by one."
    ),
)
async def update_widget(
    patch: WidgetUpdate,
    widget_id: str = widget_id_path(),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db_session),
) -> WidgetResponse:
    return await widget_service.update_widget(db, principal, widget_id.upper(), patch)


@router.delete(
    "/widgets/{widget_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses={**_COMMON_ERRORS, **_NOT_FOUND},
    summary="Delete one of the caller's widgets",
)
async def delete_widget(
    widget_id: str = widget_id_path(),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await widget_service.delete_widget(db, principal, widget_id.upper())
    return Response(status_code=status.HTTP_204_NO_CONTENT)
