"""
Widget API Backend: Widget Repository (Persistence Queries)
==============================================================

What:  Every SQL statement that touches the `widgets` table.
How:   Stateless methods taking the request's AsyncSession; the session
       dependency owns commit/rollback.
Who:   Called only by WidgetService.

Ownership predicate:
    Single-widget reads always filter on (id AND owner_id) in one query.
    A widget owned by someone else is indistinguishable from a missing one.

Optimistic locking:
    update_if_version_matches() is one conditional UPDATE:

        UPDATE widgets
           SET <changes>, updated_at = :now, version = version + 1
         WHERE id = :id AND owner_id = :owner AND version = :expected

    The database applies it atomically, so of two writers holding the same
    version exactly one matches a row. The loser sees rowcount 0.

Ordering:
    Listings order by the requested column, then id ASC, so equal sort
    values still produce a stable, repeatable page sequence.
"""

import logging
from datetime import datetime
from typing import Any, List, Mapping, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from widget_api.models.widget import Widget, WidgetCategory, utc_now

logger = logging.getLogger(__name__)

# API sort name → ORM column
SORTABLE_COLUMNS = {
    "createdAt": Widget.created_at,
    "updatedAt": Widget.updated_at,
    "description": Widget.description,
    "category": Widget.category,
    "level": Widget.level,
}


class WidgetRepository:
    """Query layer for Widget rows."""

    async def find_by_id_and_owner(
        self, db: AsyncSession, widget_id: str, owner_id: str
    ) -> Optional[Widget]:
        result = await db.execute(
            select(Widget).where(Widget.id == widget_id, Widget.owner_id == owner_id)
        )
        return result.scalar_one_or_none()

    async def find_by_owner(
        self,
        db: AsyncSession,
        owner_id: str,
        category: Optional[WidgetCategory],
        page: int,
        size: int,
        sort_field: str,
        descending: bool,
    ) -> List[Widget]:
        """
        One page of the owner's widgets.

        `sort_field` must be a key of SORTABLE_COLUMNS; the service validates
        it against the configured allow-list first.
        """
        column = SORTABLE_COLUMNS[sort_field]
        query = select(Widget).where(Widget.owner_id == owner_id)
        if category is not None:
            query = query.where(Widget.category == category)

        primary = column.desc() if descending else column.asc()
        query = (
            query.order_by(primary, Widget.id.asc())
            .offset(page * size)
            .limit(size)
        )

        result = await db.execute(query)
        return list(result.scalars().all())

    async def count_by_owner(
        self,
        db: AsyncSession,
        owner_id: str,
        category: Optional[WidgetCategory] = None,
    ) -> int:
        query = select(func.count(Widget.id)).where(Widget.owner_id == owner_id)
        if category is not None:
            query = query.where(Widget.category == category)
        result = await db.execute(query)
        return result.scalar() or 0

    async def insert(self, db: AsyncSession, widget: Widget) -> Widget:
        db.add(widget)
        await db.flush()
        return widget

    async def update_if_version_matches(
        self,
        db: AsyncSession,
        widget_id: str,
        owner_id: str,
        expected_version: int,
        changes: Mapping[str, Any],
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Compare-and-set on (id, owner_id, version).

        Args:
            changes: column values to write; only business fields belong here.
                     updated_at and version are always set by this method.

        Returns:
            True if exactly one row was updated, False on a version (or
            ownership) mismatch.
        """
        stmt = (
            update(Widget)
            .where(
                Widget.id == widget_id,
                Widget.owner_id == owner_id,
                Widget.version == expected_version,
            )
            .values(
                **dict(changes),
                updated_at=now or utc_now(),
                version=Widget.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        matched = result.rowcount == 1
        if not matched:
            logger.debug(
                "Version check failed: widget=%s expected_version=%d", widget_id, expected_version
            )
        return matched

    async def delete(self, db: AsyncSession, widget: Widget) -> None:
        await db.delete(widget)
        await db.flush()


widget_repository = WidgetRepository()
