"""
Widget API Backend: Widget Service (Business Logic)
======================================================

What:  Ownership scoping, optimistic locking, list validation and pagination
       for widgets.
How:   Stateless; receives the request's AsyncSession and the authenticated
       Principal on every call and delegates SQL to WidgetRepository.
Who:   Called by the /api/widgets route handlers.

Request state machine:
    Received → Authenticated → OwnershipChecked → (ConcurrencyChecked) → Persisted/Returned
    Terminal outcomes: Success, NotFound, Conflict, InvalidInput, Unauthenticated

Ownership rule:
    A widget that exists but belongs to another principal is reported as
    NotFound, never Forbidden or Conflict. Non-owners cannot test for
    existence.

Concurrency rule:
    update_widget() compares the caller's expectedVersion with the stored one
    (Conflict on mismatch), then relies on the repository's compare-and-set
    for the write itself. If a concurrent writer bumped the version between
    the read and the write, the CAS matches no row and the caller gets
    Conflict; nothing is merged or silently lost.

Error Handling Strategy:
    Validation happens before any store access. Application exceptions
    propagate unchanged; unexpected SQLAlchemy errors are logged with detail
    and wrapped in DatabaseError (generic 500 at the boundary).
"""

import logging
import math
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from widget_api.auth.dependencies import Principal
from widget_api.config import settings
from widget_api.exceptions import (
    ConflictError,
    DatabaseError,
    NotFoundError,
    ValidationError,
)
from widget_api.models.widget import Widget, WidgetCategory, new_widget_id, utc_now
from widget_api.repositories.widget_repository import (
    SORTABLE_COLUMNS,
    WidgetRepository,
    widget_repository,
)
from widget_api.schemas.widget import (
    WidgetCreate,
    WidgetPage,
    WidgetResponse,
    WidgetUpdate,
)

logger = logging.getLogger(__name__)


def to_response(widget: Widget) -> WidgetResponse:
    return WidgetResponse(
        id=widget.id,
        owner_id=widget.owner_id,
        description=widget.description,
        category=widget.category,
        level=widget.level,
        created_at=widget.created_at,
        updated_at=widget.updated_at,
        version=widget.version,
    )


def page_metadata(total_count: int, page: int, size: int) -> dict:
    """
    Pagination arithmetic for a 0-based page index.

    totalPages = ceil(total / size); hasNext iff page < totalPages - 1.
    """
    total_pages = math.ceil(total_count / size) if total_count else 0
    return {
        "total_count": total_count,
        "page_index": page,
        "page_size": size,
        "total_pages": total_pages,
        "has_next": page < total_pages - 1,
        "has_previous": page > 0,
    }


class WidgetService:
    """
    Business logic layer for widget operations.

    Responsibilities:
        - create_widget(): assign id/owner/version and persist
        - get_widget():    owner-scoped single read
        - list_widgets():  owner-scoped, filtered, sorted, paginated read
        - update_widget(): owner-scoped, version-checked partial update
        - delete_widget(): owner-scoped permanent delete
    """

    def __init__(self, repository: Optional[WidgetRepository] = None):
        self.repository = repository or widget_repository

    # ── Validation helpers ────────────────────────────────────────────────

    def _validate_sort_field(self, sort_field: str) -> str:
        allowed = [f for f in settings.sort_fields_list if f in SORTABLE_COLUMNS]
        if sort_field not in allowed:
            raise ValidationError(
                message=(
                    f"Invalid sort field: {sort_field}. "
                    f"Allowed fields are: {', '.join(allowed)}"
                ),
                field="sort",
                invalid_value=sort_field,
            )
        return sort_field

    @staticmethod
    def _parse_category(category: Optional[str]) -> Optional[WidgetCategory]:
        if category is None:
            return None
        try:
            return WidgetCategory.parse(category)
        except ValueError as e:
            raise ValidationError(message=str(e), field="category", invalid_value=category)

    @staticmethod
    def _clamp_size(size: int) -> int:
        return max(1, min(size, settings.max_page_size))

    async def _get_owned(self, db: AsyncSession, principal: Principal, widget_id: str) -> Widget:
        widget = await self.repository.find_by_id_and_owner(db, widget_id, principal.subject)
        if widget is None:
            raise NotFoundError(resource="Widget", resource_id=widget_id)
        return widget

    # ── Operations ────────────────────────────────────────────────────────

    async def create_widget(
        self, db: AsyncSession, principal: Principal, payload: WidgetCreate
    ) -> WidgetResponse:
        """
        Create a widget owned by the caller.

        The payload is already validated by WidgetCreate (description 3-1000
        and not blank, category enum, level 1-100). The creator is always the
        owner, so this never fails on ownership.

        Raises:
            DatabaseError: insert failed
        """
        logger.info("Creating widget: userId=%s", principal.subject)
        now = utc_now()
        widget = Widget(
            id=new_widget_id(),
            owner_id=principal.subject,
            description=payload.description,
            category=payload.category,
            level=payload.level,
            created_at=now,
            updated_at=now,
            version=0,
        )
        try:
            await self.repository.insert(db, widget)
        except SQLAlchemyError as e:
            logger.error("Database error creating widget: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not create the widget. Please try again.",
                context={"error_type": type(e).__name__},
            )
        logger.info("Widget created successfully: id=%s", widget.id)
        return to_response(widget)

    async def get_widget(
        self, db: AsyncSession, principal: Principal, widget_id: str
    ) -> WidgetResponse:
        """
        Fetch one of the caller's widgets.

        Raises:
            NotFoundError: no widget with this id owned by the caller (→ 404)
            DatabaseError: query failed (→ 500)
        """
        logger.info("Fetching widget: userId=%s, widgetId=%s", principal.subject, widget_id)
        try:
            widget = await self._get_owned(db, principal, widget_id)
        except SQLAlchemyError as e:
            logger.error("Database error fetching widget %s: %s", widget_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the widget. Please try again.",
                context={"widget_id": widget_id},
            )
        return to_response(widget)

    async def list_widgets(
        self,
        db: AsyncSession,
        principal: Principal,
        category: Optional[str] = None,
        page: int = 0,
        size: Optional[int] = None,
        sort_field: str = "createdAt",
        sort_direction: str = "DESC",
    ) -> WidgetPage:
        """
        List the caller's widgets, one page at a time.

        Validation (all before any query):
            category        must name a WidgetCategory (case-insensitive)
            sort_field      must be in the configured allow-list
            page            must be >= 0 (never clamped)
            size            clamped to [1, max_page_size]
            sort_direction  "ASC" (any case) ascending, anything else descending

        Raises:
            ValidationError: invalid category, sort field or page index (→ 400)
            DatabaseError:   query failed (→ 500)
        """
        logger.info(
            "Listing widgets: userId=%s, category=%s, page=%s, size=%s",
            principal.subject, category, page, size,
        )
        parsed_category = self._parse_category(category)
        sort_field = self._validate_sort_field(sort_field)
        if page < 0:
            raise ValidationError(
                message="Page index must not be negative",
                field="page",
                invalid_value=page,
            )
        size = self._clamp_size(settings.default_page_size if size is None else size)
        descending = sort_direction.upper() != "ASC"

        try:
            widgets = await self.repository.find_by_owner(
                db,
                owner_id=principal.subject,
                category=parsed_category,
                page=page,
                size=size,
                sort_field=sort_field,
                descending=descending,
            )
            total_count = await self.repository.count_by_owner(
                db, principal.subject, parsed_category
            )
        except SQLAlchemyError as e:
            logger.error("Database error listing widgets: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve widgets. Please try again.",
                context={"error_type": type(e).__name__},
            )

        return WidgetPage(
            items=[to_response(w) for w in widgets],
            **page_metadata(total_count, page, size),
        )

    async def update_widget(
        self,
        db: AsyncSession,
        principal: Principal,
        widget_id: str,
        patch: WidgetUpdate,
    ) -> WidgetResponse:
        """
        Apply a partial update if the caller's expected version is current.

        Only fields present in the patch are written; updated_at is set to
        now and version increases by exactly 1.

        Raises:
            NotFoundError: no widget with this id owned by the caller (→ 404)
            ConflictError: expectedVersion is stale (→ 409); nothing written
            DatabaseError: query failed (→ 500)
        """
        logger.info("Updating widget: userId=%s, widgetId=%s", principal.subject, widget_id)
        try:
            widget = await self._get_owned(db, principal, widget_id)

            if widget.version != patch.expected_version:
                logger.warning(
                    "Version conflict on widget %s: stored=%d expected=%d",
                    widget_id, widget.version, patch.expected_version,
                )
                raise ConflictError(expected_version=patch.expected_version)

            applied = await self.repository.update_if_version_matches(
                db,
                widget_id=widget_id,
                owner_id=principal.subject,
                expected_version=patch.expected_version,
                changes=patch.changes(),
            )
            if not applied:
                # A concurrent writer won the compare-and-set
                logger.warning("Concurrent update lost on widget %s", widget_id)
                raise ConflictError(expected_version=patch.expected_version)

            await db.refresh(widget)
        except SQLAlchemyError as e:
            logger.error("Database error updating widget %s: %s", widget_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not update the widget. Please try again.",
                context={"widget_id": widget_id},
            )

        logger.info("Widget updated successfully: id=%s, version=%d", widget.id, widget.version)
        return to_response(widget)

    async def delete_widget(
        self, db: AsyncSession, principal: Principal, widget_id: str
    ) -> None:
        """
        Permanently delete one of the caller's widgets.

        No version check. A second delete of the same id is NotFound.

        Raises:
            NotFoundError: no widget with this id owned by the caller (→ 404)
            DatabaseError: query failed (→ 500)
        """
        logger.info("Deleting widget: userId=%s, widgetId=%s", principal.subject, widget_id)
        try:
            widget = await self._get_owned(db, principal, widget_id)
            await self.repository.delete(db, widget)
        except SQLAlchemyError as e:
            logger.error("Database error deleting widget %s: %s", widget_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not delete the widget. Please try again.",
                context={"widget_id": widget_id},
            )
        logger.info("Widget deleted successfully: id=%s", widget_id)


widget_service = WidgetService()
