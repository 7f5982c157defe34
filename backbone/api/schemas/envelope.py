"""Wire models of the uniform response envelope.

Every JSON body the service produces is one of three shapes:

- **Success**: ``{"success": true, "data": ...}``, ``data`` omitted when absent
- **Paginated**: ``{"success": true, "data": [...], "meta": {...}}``
- **Error**: ``{"success": false, "error": {"code": ..., "message": ...}}``

The models document the shapes in OpenAPI; the ``*_body`` helpers build the
exact dictionaries written to the wire, so absent fields are left out rather
than rendered as null.
"""

from collections.abc import Sequence
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from backbone.core.exceptions import AppError


class PaginationMeta(BaseModel):
    """Cursor pagination details attached to list responses.

    Attributes:
        cursor: Opaque cursor of the next page; omitted on the wire when empty
        has_more: Whether another page follows (``hasMore`` on the wire)
        total: Total number of items, when known
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    cursor: str = ""
    has_more: bool = Field(default=False, alias="hasMore")
    total: int | None = Field(default=None, ge=0)

    def to_wire(self) -> dict[str, Any]:
        """Return the wire form with empty optional fields left out."""
        wire: dict[str, Any] = {"hasMore": self.has_more}
        if self.cursor:
            wire["cursor"] = self.cursor
        if self.total is not None:
            wire["total"] = self.total
        return wire


class ErrorBody(BaseModel):
    """Client-facing part of an error."""

    model_config = ConfigDict(frozen=True)

    code: str = Field(..., description="Stable wire code of the error kind", examples=["NOT_FOUND"])
    message: str = Field(..., description="Client-safe description")


class SuccessEnvelope[T](BaseModel):
    """Envelope of a successful response."""

    success: Literal[True] = True
    data: T | None = None


class ErrorEnvelope(BaseModel):
    """Envelope of a failed request."""

    success: Literal[False] = False
    error: ErrorBody


class HealthStatus(BaseModel):
    """Payload of the liveness probe."""

    status: str = "ok"


def success_body(data: object = None) -> dict[str, Any]:
    """Build a success envelope, omitting ``data`` when it is None."""
    body: dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    return body


def paginated_body(data: Sequence[object], meta: PaginationMeta) -> dict[str, Any]:
    """Build a paginated envelope."""
    return {"success": True, "data": list(data), "meta": meta.to_wire()}


def error_body(error: AppError) -> dict[str, Any]:
    """Build an error envelope carrying only the kind's code and the safe message."""
    return {
        "success": False,
        "error": {"code": error.code, "message": error.message},
    }
