"""
Widget API Backend: Widget Service Unit Tests
================================================

What:  WidgetService business rules with a mocked repository and session.
How:   No database; the repository is a MagicMock with AsyncMock methods, so
       each test can assert exactly which store calls were (not) made.

What we test:
    ✅ Create assigns id, owner and version 0
    ✅ Not-found / not-owned raises NotFoundError
    ✅ List validation (sort allow-list, category, negative page) before any query
    ✅ Page size clamping and direction parsing
    ✅ Version pre-check and lost compare-and-set both raise ConflictError
    ✅ SQLAlchemy failures become DatabaseError
    ✅ Pagination arithmetic
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from widget_api.auth.dependencies import Principal
from widget_api.exceptions import (
    ConflictError,
    DatabaseError,
    NotFoundError,
    ValidationError,
)
from widget_api.models.widget import ULID_LENGTH, Widget, WidgetCategory
from widget_api.schemas.widget import WidgetCreate, WidgetUpdate
from widget_api.services.widget_service import WidgetService, page_metadata

WIDGET_ID = "01ARZ3NDEKTSV4RRFFQ69G5FAV"
ALICE = Principal(subject="alice")


def make_widget(**overrides) -> Widget:
    now = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)
    fields = dict(
        id=WIDGET_ID,
        owner_id="alice",
        description="A sample widget",
        category=WidgetCategory.BASIC,
        level=10,
        created_at=now,
        updated_at=now,
        version=0,
    )
    fields.update(overrides)
    return Widget(**fields)


@pytest.fixture
def repository():
    repo = MagicMock()
    repo.find_by_id_and_owner = AsyncMock(return_value=None)
    repo.find_by_owner = AsyncMock(return_value=[])
    repo.count_by_owner = AsyncMock(return_value=0)
    repo.insert = AsyncMock(side_effect=lambda db, widget: widget)
    repo.update_if_version_matches = AsyncMock(return_value=True)
    repo.delete = AsyncMock()
    return repo


@pytest.fixture
def service(repository):
    return WidgetService(repository=repository)


class TestCreateWidget:

    @pytest.mark.asyncio
    async def test_create_assigns_owner_id_and_version(self, service, repository, mock_db_session):
        payload = WidgetCreate(description="New widget", category="PREMIUM", level=7)

        result = await service.create_widget(mock_db_session, ALICE, payload)

        assert result.owner_id == "alice"
        assert result.version == 0
        assert len(result.id) == ULID_LENGTH
        assert result.category == WidgetCategory.PREMIUM
        assert result.created_at == result.updated_at
        repository.insert.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_create_generates_distinct_ids(self, service, mock_db_session):
        payload = WidgetCreate(description="New widget", category="BASIC", level=1)
        first = await service.create_widget(mock_db_session, ALICE, payload)
        second = await service.create_widget(mock_db_session, ALICE, payload)
        assert first.id != second.id

    @pytest.mark.asyncio
    async def test_create_wraps_database_errors(self, service, repository, mock_db_session):
        repository.insert.side_effect = OperationalError("INSERT", {}, Exception("down"))
        payload = WidgetCreate(description="New widget", category="BASIC", level=1)
        with pytest.raises(DatabaseError):
            await service.create_widget(mock_db_session, ALICE, payload)


class TestGetWidget:

    @pytest.mark.asyncio
    async def test_get_found(self, service, repository, mock_db_session):
        repository.find_by_id_and_owner.return_value = make_widget()
        result = await service.get_widget(mock_db_session, ALICE, WIDGET_ID)
        assert result.id == WIDGET_ID
        repository.find_by_id_and_owner.assert_awaited_once_with(mock_db_session, WIDGET_ID, "alice")

    @pytest.mark.asyncio
    async def test_get_not_found(self, service, mock_db_session):
        with pytest.raises(NotFoundError) as exc_info:
            await service.get_widget(mock_db_session, ALICE, WIDGET_ID)
        assert exc_info.value.message == "Widget not found"


class TestListWidgetsValidation:

    @pytest.mark.asyncio
    async def test_unknown_sort_field_rejected_without_query(self, service, repository, mock_db_session):
        with pytest.raises(ValidationError) as exc_info:
            await service.list_widgets(mock_db_session, ALICE, sort_field="owner_id; DROP TABLE widgets")
        assert exc_info.value.field == "sort"
        repository.find_by_owner.assert_not_awaited()
        repository.count_by_owner.assert_not_awaited()
        mock_db_session.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_category_rejected(self, service, repository, mock_db_session):
        with pytest.raises(ValidationError) as exc_info:
            await service.list_widgets(mock_db_session, ALICE, category="GOLD")
        assert "Invalid category: GOLD" in exc_info.value.message
        repository.find_by_owner.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_negative_page_rejected(self, service, repository, mock_db_session):
        with pytest.raises(ValidationError):
            await service.list_widgets(mock_db_session, ALICE, page=-1)
        repository.find_by_owner.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_category_is_case_insensitive(self, service, repository, mock_db_session):
        await service.list_widgets(mock_db_session, ALICE, category="advanced")
        kwargs = repository.find_by_owner.await_args.kwargs
        assert kwargs["category"] == WidgetCategory.ADVANCED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("requested, effective", [(0, 1), (-5, 1), (1, 1), (50, 50), (1000, 100)])
    async def test_size_is_clamped(self, service, repository, mock_db_session, requested, effective):
        page = await service.list_widgets(mock_db_session, ALICE, size=requested)
        assert repository.find_by_owner.await_args.kwargs["size"] == effective
        assert page.page_size == effective

    @pytest.mark.asyncio
    async def test_default_size(self, service, repository, mock_db_session):
        await service.list_widgets(mock_db_session, ALICE)
        assert repository.find_by_owner.await_args.kwargs["size"] == 20

    @pytest.mark.asyncio
    @pytest.mark.parametrize("direction, descending", [("ASC", False), ("asc", False), ("DESC", True), ("sideways", True)])
    async def test_direction(self, service, repository, mock_db_session, direction, descending):
        await service.list_widgets(mock_db_session, ALICE, sort_direction=direction)
        assert repository.find_by_owner.await_args.kwargs["descending"] is descending

    @pytest.mark.asyncio
    async def test_list_is_owner_scoped(self, service, repository, mock_db_session):
        repository.find_by_owner.return_value = [make_widget()]
        repository.count_by_owner.return_value = 1
        page = await service.list_widgets(mock_db_session, ALICE)
        assert repository.find_by_owner.await_args.kwargs["owner_id"] == "alice"
        assert page.total_count == 1
        assert [w.id for w in page.items] == [WIDGET_ID]


class TestUpdateWidget:

    @pytest.mark.asyncio
    async def test_update_applies_only_supplied_fields(self, service, repository, mock_db_session):
        repository.find_by_id_and_owner.return_value = make_widget(version=2)
        patch = WidgetUpdate(level=55, expected_version=2)

        await service.update_widget(mock_db_session, ALICE, WIDGET_ID, patch)

        kwargs = repository.update_if_version_matches.await_args.kwargs
        assert kwargs["changes"] == {"level": 55}
        assert kwargs["expected_version"] == 2
        assert kwargs["owner_id"] == "alice"
        mock_db_session.refresh.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stale_version_conflicts_without_writing(self, service, repository, mock_db_session):
        repository.find_by_id_and_owner.return_value = make_widget(version=3)
        patch = WidgetUpdate(description="Changed text", expected_version=2)

        with pytest.raises(ConflictError) as exc_info:
            await service.update_widget(mock_db_session, ALICE, WIDGET_ID, patch)

        assert exc_info.value.message == "Resource has been modified by another user"
        repository.update_if_version_matches.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lost_compare_and_set_conflicts(self, service, repository, mock_db_session):
        repository.find_by_id_and_owner.return_value = make_widget(version=0)
        repository.update_if_version_matches.return_value = False

        with pytest.raises(ConflictError):
            await service.update_widget(
                mock_db_session, ALICE, WIDGET_ID, WidgetUpdate(level=2, expected_version=0)
            )
        mock_db_session.refresh.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_not_owned(self, service, repository, mock_db_session):
        with pytest.raises(NotFoundError):
            await service.update_widget(
                mock_db_session, ALICE, WIDGET_ID, WidgetUpdate(level=2, expected_version=0)
            )
        repository.update_if_version_matches.assert_not_awaited()


class TestDeleteWidget:

    @pytest.mark.asyncio
    async def test_delete_found(self, service, repository, mock_db_session):
        widget = make_widget()
        repository.find_by_id_and_owner.return_value = widget
        await service.delete_widget(mock_db_session, ALICE, WIDGET_ID)
        repository.delete.assert_awaited_once_with(mock_db_session, widget)

    @pytest.mark.asyncio
    async def test_delete_not_found(self, service, repository, mock_db_session):
        with pytest.raises(NotFoundError):
            await service.delete_widget(mock_db_session, ALICE, WIDGET_ID)
        repository.delete.assert_not_awaited()


class TestPageMetadata:

    @pytest.mark.parametrize(
        "total, page, size, pages, has_next, has_previous",
        [
            (0, 0, 20, 0, False, False),
            (1, 0, 20, 1, False, False),
            (20, 0, 20, 1, False, False),
            (21, 0, 20, 2, True, False),
            (45, 1, 20, 3, True, True),
            (45, 2, 20, 3, False, True),
            (45, 7, 20, 3, False, True),
        ],
    )
    def test_arithmetic(self, total, page, size, pages, has_next, has_previous):
        meta = page_metadata(total, page, size)
        assert meta["total_pages"] == pages
        assert meta["has_next"] is has_next
        assert meta["has_previous"] is has_previous
        assert meta["page_index"] == page
        assert meta["page_size"] == size
