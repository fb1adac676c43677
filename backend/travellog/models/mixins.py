"""
Travel Log API — Document Plugins
===================================

What:  Small behaviors shared by every entity, composed into each model class
       as mixins or applied through plain functions:

    ApiIdMixin       external `api_id` (UUIDv4 string), see ensure_api_id()
    HrefMixin        `href` = "{api_resource}/{api_id}"
    ParseMixin       copy the fields a client explicitly set onto a document
    TimestampsMixin  created_at / updated_at maintained by mapper events
    resolve_related  turn a related id or href into the related document

How:   Columns declared on the mixins are copied onto each mapped subclass by
       SQLAlchemy's declarative system. Timestamps use mapper events attached
       to the mixin with propagate=True so that every subclass gets them.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy import DateTime, String, event, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column
from tenacity import RetryError, retry, retry_if_exception_type, stop_after_attempt

from travellog.exceptions import ValidationError, field_error

logger = logging.getLogger(__name__)

# Generation of an external id is attempted at most this many times
API_ID_ATTEMPTS = 10

T = TypeVar("T")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ══════════════════════════════════════════════════════════════════════════
# External identifier
# ══════════════════════════════════════════════════════════════════════════

class ApiIdMixin:
    """Public, immutable identifier used in URLs and cross-references."""

    api_id: Mapped[str] = mapped_column(
        String(36),
        unique=True,
        index=True,
        nullable=False,
        comment="Public UUIDv4 identifier exposed as `id` in the API",
    )


class ApiIdCollision(Exception):
    pass


@retry(
    stop=stop_after_attempt(API_ID_ATTEMPTS),
    retry=retry_if_exception_type(ApiIdCollision),
)
async def _generate_unique_api_id(db: AsyncSession, model: Type[ApiIdMixin]) -> str:
    api_id = str(uuid.uuid4())
    existing = await db.scalar(select(model.api_id).where(model.api_id == api_id))
    if existing is not None:
        logger.warning("Generated %s API ID %s is already taken", model.__name__, api_id)
        raise ApiIdCollision(api_id)
    return api_id


async def ensure_api_id(db: AsyncSession, document: ApiIdMixin) -> str:
    """
    Assigns a unique external id to a document that does not have one yet.

    Raises:
        RuntimeError: no unused id was found within API_ID_ATTEMPTS attempts.
            This indicates a degenerate id source and is not retried further.
    """
    if document.api_id:
        return document.api_id

    try:
        document.api_id = await _generate_unique_api_id(db, type(document))
    except RetryError as e:
        raise RuntimeError(
            f"Could not find a unique API ID after {API_ID_ATTEMPTS} attempts"
        ) from e

    return document.api_id


# ══════════════════════════════════════════════════════════════════════════
# Hyperlinks
# ══════════════════════════════════════════════════════════════════════════

class HrefMixin:
    """
    Adds a read-only `href` to documents of a model declaring `api_resource`.

    Accessing `href` before the document has an api_id, or on a model with no
    `api_resource`, is a programming error and raises RuntimeError.
    """

    api_resource: ClassVar[Optional[str]] = None

    @property
    def href(self) -> str:
        api_id = getattr(self, "api_id", None)
        if not api_id:
            raise RuntimeError('Document must have an "api_id" property to have an href')

        api_resource = type(self).api_resource
        if not api_resource:
            raise RuntimeError('Model must have an "api_resource" property to have an href')
        elif not isinstance(api_resource, str):
            raise RuntimeError(
                f'Model property "api_resource" must be a string, '
                f"but its type is {type(api_resource).__name__}"
            )

        return f"{api_resource.rstrip('/')}/{api_id}"


def api_id_from_href(model: Type[HrefMixin], href: Any) -> Optional[str]:
    """
    Extracts the external id from a hyperlink to a document of `model`.

    Returns None when the value is not a string or does not start with the
    model's resource path.
    """
    api_resource = model.api_resource
    if not api_resource:
        raise RuntimeError(f'Related model {model.__name__} must have an "api_resource" property')

    prefix = f"{api_resource.rstrip('/')}/"
    if isinstance(href, str) and href.startswith(prefix) and len(href) > len(prefix):
        return href[len(prefix):]
    return None


# ══════════════════════════════════════════════════════════════════════════
# Parsing request bodies
# ══════════════════════════════════════════════════════════════════════════

class ParseMixin:
    """
    Applies a validated write payload to a document.

    The allow-list of client-editable properties is the payload schema itself
    (see travellog.schemas); `exclude` names schema fields the model handles
    separately, like passwords or related references.
    """

    def parse_from(self, payload: BaseModel, exclude: Sequence[str] = ()) -> "ParseMixin":
        for key, value in payload.model_dump(exclude_unset=True, exclude=set(exclude)).items():
            setattr(self, key, value)
        return self


# ══════════════════════════════════════════════════════════════════════════
# Unique constraints
# ══════════════════════════════════════════════════════════════════════════

class UniqueFieldsMixin:
    """
    Maps storage-level unique constraints back to the field they protect.

    Keys are matched against the driver's error message: PostgreSQL names the
    constraint or index, SQLite names either the index or "table.column".
    """

    unique_fields: ClassVar[Dict[str, str]] = {}
    unique_message: ClassVar[str] = "{value} is already taken"

    @classmethod
    def field_for_integrity_error(cls, error: Exception) -> Optional[str]:
        message = str(getattr(error, "orig", error))
        for marker, field in cls.unique_fields.items():
            if marker in message:
                return field
        return None

    @classmethod
    def unique_error(cls, field: str, value: Any) -> Dict[str, Any]:
        return field_error(field, "unique", cls.unique_message.format(path=field, value=value), value)


async def flush_unique(db: AsyncSession, document: UniqueFieldsMixin, document_name: str) -> None:
    """
    Flushes pending changes, reporting unique constraint violations on the
    document as a validation error of the offending field.

    Raises:
        ValidationError: a unique constraint of the document was violated.
        IntegrityError: any other integrity violation.
    """
    try:
        await db.flush()
    except IntegrityError as e:
        field = type(document).field_for_integrity_error(e)
        if field is None:
            raise
        logger.info("Unique constraint on %s.%s violated at flush", document_name, field)
        error = type(document).unique_error(field, getattr(document, field, None))
        raise ValidationError(document_name, {field: error}) from e


# ══════════════════════════════════════════════════════════════════════════
# Related references
# ══════════════════════════════════════════════════════════════════════════

async def resolve_related(
    db: AsyncSession,
    model: Type[T],
    field: str,
    api_id: Optional[str] = None,
    href: Optional[str] = None,
    options: Sequence[Any] = (),
) -> "tuple[Optional[T], Optional[Dict[str, Any]]]":
    """
    Loads the document referenced by id or hyperlink.

    `field` is the public name of the relation ("trip"); errors are reported
    under "{field}Href". Exactly one of the returned values is set: the related
    document, or a field error of kind "required" (no reference given) or
    "invalid reference" (nothing matches).
    """
    path = f"{field}Href"
    reference = api_id
    if href is not None:
        reference = api_id_from_href(model, href)

    if not reference:
        if href is not None:
            return None, field_error(
                path,
                "invalid reference",
                f"Path `{path}` does not correspond to a known {field}",
                href,
            )
        return None, field_error(path, "required", f"Path `{path}` is required")

    related = await db.scalar(select(model).where(model.api_id == reference).options(*options))
    if related is None:
        return None, field_error(
            path,
            "invalid reference",
            f"Path `{path}` does not correspond to a known {field}",
            href if href is not None else api_id,
        )

    return related, None


# ══════════════════════════════════════════════════════════════════════════
# Timestamps
# ══════════════════════════════════════════════════════════════════════════

class TimestampsMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="When the document was created (UTC)",
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="When the document was last modified (UTC)",
    )


@event.listens_for(TimestampsMixin, "before_insert", propagate=True)
def _set_creation_timestamps(mapper, connection, target) -> None:
    if target.created_at is None:
        target.created_at = utcnow()
    if target.updated_at is None:
        target.updated_at = target.created_at


@event.listens_for(TimestampsMixin, "before_update", propagate=True)
def _bump_update_timestamp(mapper, connection, target) -> None:
    target.updated_at = max(utcnow(), _aware(target.created_at))


def _aware(value: datetime) -> datetime:
    # SQLite hands timestamps back without a timezone
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
