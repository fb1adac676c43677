"""
Travel Log API — Shared Schema Base Classes
=============================================

What:  Base pydantic models for every request and response body.

    ApiModel    camelCase on the wire (`createdAt`), snake_case in Python
    WriteModel  request payloads; unknown keys are dropped silently and
                validation failures become a 422 ValidationError whose
                per-field messages read like "Path `name` is required"
"""

from datetime import datetime, timezone
from typing import Annotated, Any, ClassVar, Dict, Type, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from travellog.exceptions import ValidationError, collect_errors, field_error

W = TypeVar("W", bound="WriteModel")

# pydantic error type → validation error kind reported to clients
ERROR_KINDS = {
    "missing": "required",
    "string_too_short": "minlength",
    "string_too_long": "maxlength",
    "string_pattern_mismatch": "regexp",
    "literal_error": "enum",
}


def as_utc(value: datetime) -> datetime:
    # SQLite hands timestamps back without a timezone
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


Timestamp = Annotated[datetime, AfterValidator(as_utc)]


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class WriteModel(ApiModel):
    """
    Base class of request payloads.

    The declared fields are the allow-list of client-editable properties;
    anything else in the body is ignored without error.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    # Name used in validation messages ("User validation failed: ...")
    document_name: ClassVar[str] = "Document"

    @classmethod
    def parse(cls: Type[W], body: Dict[str, Any]) -> W:
        """
        Validates a decoded JSON body.

        Raises:
            ValidationError: listing every invalid field by its camelCase path.
        """
        try:
            return cls.model_validate(body)
        except PydanticValidationError as e:
            raise ValidationError(
                cls.document_name,
                collect_errors(_field_error(error) for error in e.errors()),
            ) from e


def _field_error(error: Dict[str, Any]) -> Dict[str, Any]:
    path = ".".join(str(part) for part in error["loc"]) or "__root__"
    error_type = error["type"]
    kind = ERROR_KINDS.get(error_type, error_type)
    ctx = error.get("ctx") or {}
    value = None if error_type == "missing" else error.get("input")

    # An explicit null on a non-nullable field counts as a missing value
    if value is None and error_type.endswith("_type"):
        kind = "required"

    if kind == "required":
        message = f"Path `{path}` is required"
    elif kind == "minlength":
        message = (
            f"Path `{path}` is shorter than the minimum allowed length "
            f"({ctx.get('min_length')})"
        )
    elif kind == "maxlength":
        message = (
            f"Path `{path}` is longer than the maximum allowed length "
            f"({ctx.get('max_length')})"
        )
    elif kind == "regexp":
        message = f"Path `{path}` is invalid ({value})"
    else:
        message = error["msg"]

    return field_error(path, kind, message, value)


# ══════════════════════════════════════════════════════════════════════════
# Responses shared by every resource
# ══════════════════════════════════════════════════════════════════════════

class ErrorResponse(BaseModel):
    """
    Body of every error response, e.g.:

        {"code": "invalidQueryParam", "message": "...", "queryParam": "page"}

    Some errors add properties: `queryParam`, `errors` (validation), `missing`
    (credentials).
    """

    model_config = ConfigDict(extra="allow")

    code: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")


class ApiIndexResponse(BaseModel):
    version: str


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy or unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected or disconnected")
    uptime_seconds: float = Field(description="Seconds since the service started")


# OpenAPI `responses` entries for the error statuses of the resource routes
ERROR_RESPONSES = {
    status: {"model": ErrorResponse}
    for status in (400, 401, 403, 404, 415, 422)
}
