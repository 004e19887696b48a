"""
Widget API Backend: Pydantic Request/Response Schemas
========================================================

What:  Pydantic models defining the API contract for widgets.
How:   FastAPI uses these models to validate request bodies, serialize
       responses, and generate the OpenAPI document.

Naming:
    Python attributes are snake_case; the JSON contract is camelCase
    (ownerId, expectedVersion, totalCount, ...). Every model uses the
    to_camel alias generator and accepts either form on input.

Partial updates:
    WidgetUpdate is a patch. A field the client did not send is absent from
    `model_fields_set` and is left untouched. A field sent as an explicit
    null is rejected, so "not supplied" and "set to empty" never collide.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from widget_api.models.widget import WidgetCategory

DESCRIPTION_MIN_LENGTH = 3
DESCRIPTION_MAX_LENGTH = 1000
LEVEL_MIN = 1
LEVEL_MAX = 100

PATCHABLE_FIELDS = ("description", "category", "level")


class CamelModel(BaseModel):
    """Base model emitting camelCase JSON while accepting snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _require_not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("Description is required")
    return value


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class WidgetCreate(CamelModel):
    """Body of POST /api/widgets."""

    description: str = Field(
        min_length=DESCRIPTION_MIN_LENGTH,
        max_length=DESCRIPTION_MAX_LENGTH,
        description="Description of the widget (3-1000 characters, not blank)",
        examples=["A high-performance widget for advanced users"],
    )
    category: WidgetCategory = Field(description="Category of the widget")
    level: int = Field(
        ge=LEVEL_MIN,
        le=LEVEL_MAX,
        description="Level of the widget (1-100, inclusive)",
        examples=[50],
    )

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, v: str) -> str:
        return _require_not_blank(v)


class WidgetUpdate(CamelModel):
    """
    Body of PUT /api/widgets/{id}.

    expectedVersion is mandatory: it is the version the client last read.
    The update is applied only if the stored version still equals it.
    """

    description: Optional[str] = Field(
        default=None,
        min_length=DESCRIPTION_MIN_LENGTH,
        max_length=DESCRIPTION_MAX_LENGTH,
    )
    category: Optional[WidgetCategory] = None
    level: Optional[int] = Field(default=None, ge=LEVEL_MIN, le=LEVEL_MAX)
    expected_version: int = Field(
        ge=0,
        description="Version for optimistic locking",
        examples=[0],
    )

    @field_validator("description", "category", "level")
    @classmethod
    def reject_explicit_null(cls, v: Any) -> Any:
        # Runs only for fields the client actually sent
        if v is None:
            raise ValueError("Field may be omitted but must not be null")
        return v

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, v: Optional[str]) -> Optional[str]:
        return v if v is None else _require_not_blank(v)

    def changes(self) -> Dict[str, Any]:
        """The supplied business fields only, keyed by model attribute."""
        return {
            name: getattr(self, name)
            for name in PATCHABLE_FIELDS
            if name in self.model_fields_set
        }


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class WidgetResponse(CamelModel):
    """Full representation of a widget."""

    id: str = Field(description="ULID of the widget", examples=["01H9XY7JVZW4QX5TZMENVSHR8K"])
    owner_id: str = Field(description="Subject of the principal owning the widget")
    description: str
    category: WidgetCategory
    level: int
    created_at: datetime
    updated_at: datetime
    version: int = Field(description="Current optimistic-lock version")


class WidgetPage(CamelModel):
    """
    One page of an owner-scoped widget listing.

    Offset pagination: pageIndex is 0-based; totalPages = ceil(totalCount / pageSize).
    """

    items: List[WidgetResponse]
    total_count: int
    page_index: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool


# ══════════════════════════════════════════════════════════════════════════
# Error & Health Models
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """Uniform error body: {"error", "message", "status"}."""

    error: str = Field(description="HTTP reason phrase, e.g. 'Not Found'")
    message: str = Field(description="Human-readable error description")
    status: int = Field(description="HTTP status code")


class Violation(CamelModel):
    field: str
    message: str
    invalid_value: Optional[str] = None


class ValidationErrorResponse(BaseModel):
    """Field-level validation body: {"error", "status", "violations"}."""

    error: str = "Validation Error"
    status: int = 400
    violations: List[Violation]


class HealthResponse(CamelModel):
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")
