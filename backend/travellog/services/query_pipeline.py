"""
Travel Log API — List Query Pipeline
======================================

What:  Building blocks shared by the three list endpoints (users, trips,
       places). A list query is a SQLAlchemy `Select` assembled in stages:

           base select                    select(Trip)
           + related counts               count_related(...)       placesCount
           + related properties           add_related_properties   user.name, ...
           + sort                         sort_pipeline_factory    ?sort=-title
           + filters + offset/limit       paginate                 ?page=2&pageSize=5

How:   Every stage takes a statement and returns a new one, so stages compose
       freely and nothing is executed until the service runs the final
       statement. Query parameters are validated before any SQL is built;
       malformed input raises InvalidQueryParamError (400).

Pagination headers:
    Pagination-Page, Pagination-Page-Size    the effective page and page size
    Pagination-Total                         number of rows without filters
    Pagination-Filtered-Total                number of rows matching filters
    Link                                     self, first, last and, when
                                             applicable, prev and next
"""

import logging
import math
import re
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Type, Union

from sqlalchemy import Select, func, inspect, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased
from starlette.requests import Request
from starlette.responses import Response

from travellog.config import settings
from travellog.exceptions import InvalidQueryParamError
from travellog.models.mixins import api_id_from_href

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10
# Exclusive upper bound of pageSize
MAX_PAGE_SIZE = 50

INTEGER_PATTERN = re.compile(r"^[+-]?\d+$")

FiltersFactory = Callable[[Request], List[Any]]
SortDefinition = Union[str, Dict[str, str]]


# ══════════════════════════════════════════════════════════════════════════
# Query parameter helpers
# ══════════════════════════════════════════════════════════════════════════

def ensure_single_query_param(request: Request, name: str) -> Optional[str]:
    """Returns the value of a query parameter that may appear at most once."""
    values = request.query_params.getlist(name)
    if len(values) > 1:
        raise InvalidQueryParamError(name, f'Query parameter "{name}" must only be specified once')
    return values[0] if values else None


def query_values(request: Request, name: str) -> List[str]:
    """Returns every value of a repeatable query parameter (?name=a&name=b)."""
    return request.query_params.getlist(name)


def include_requested(request: Request, value: str, context: Optional[str] = None) -> bool:
    """
    Tells whether a related resource was requested with ?include.

    `context` prefixes the value for nested inclusions: including the user of
    a place's trip is include_requested(request, "user", "trip"), which
    matches ?include=trip.user.
    """
    wanted = ".".join(part for part in (context, value) if part)
    return wanted in query_values(request, "include")


def identity_filters(request: Request, model: Type[Any]) -> List[Any]:
    """
    Filters a list by external id (?id=...) or hyperlink (?href=/api/...).

    Ids and hyperlinks may be repeated and mixed; a document matching any of
    them is selected.
    """
    api_ids = query_values(request, "id")
    for href in query_values(request, "href"):
        api_id = api_id_from_href(model, href)
        if api_id is None:
            raise InvalidQueryParamError(
                "href",
                f'Query parameter "href" must be a hyperlink to a resource under '
                f'{model.api_resource}, but its value is "{href}"',
            )
        api_ids.append(api_id)

    return [model.api_id.in_(api_ids)] if api_ids else []


# ══════════════════════════════════════════════════════════════════════════
# Pagination
# ══════════════════════════════════════════════════════════════════════════

def parse_pagination(request: Request) -> Tuple[int, int]:
    """Parses ?page and ?pageSize, applying their defaults."""
    raw_page = ensure_single_query_param(request, "page")
    raw_page_size = ensure_single_query_param(request, "pageSize")

    page = _parse_int(raw_page, DEFAULT_PAGE)
    if page is None or page < 1:
        raise InvalidQueryParamError(
            "page",
            'Query parameter "page" must be an integer greater than or equal to 1, '
            f'but its value is "{raw_page}"',
        )

    page_size = _parse_int(raw_page_size, DEFAULT_PAGE_SIZE)
    if page_size is None or page_size < 0 or page_size >= MAX_PAGE_SIZE:
        raise InvalidQueryParamError(
            "pageSize",
            'Query parameter "pageSize" must be an integer greater than or equal to 0 '
            f'and less than {MAX_PAGE_SIZE}, but its value is "{raw_page_size}"',
        )

    return page, page_size


def _parse_int(value: Optional[str], default: int) -> Optional[int]:
    if value is None:
        return default
    value = value.strip()
    return int(value) if INTEGER_PATTERN.match(value) else None


def max_page(filtered_total: int, page_size: int) -> int:
    if page_size == 0:
        return 0
    return math.ceil(filtered_total / page_size)


def pagination_links(request: Request, page: int, page_size: int, filtered_total: int) -> Dict[str, str]:
    """
    Builds the navigation links of a page, keyed by relation type.

    Every link keeps the other query parameters of the request (filters,
    sorts, inclusions) and only changes page and pageSize.
    """
    last = max_page(filtered_total, page_size)

    links = {
        "self": _page_url(request, page, page_size),
        "first": _page_url(request, 1, page_size),
        "last": _page_url(request, last, page_size),
    }
    if page > 1 and page_size != 0:
        links["prev"] = _page_url(request, page - 1, page_size)
    if page < last and page_size != 0:
        links["next"] = _page_url(request, page + 1, page_size)

    return links


def format_link_header(links: Dict[str, str]) -> str:
    return ", ".join(f'<{url}>; rel="{rel}"' for rel, url in links.items())


def _page_url(request: Request, page: int, page_size: int) -> str:
    url = request.url.include_query_params(page=page, pageSize=page_size)
    return settings.join_url(f"{url.path}?{url.query}")


async def count_totals(db: AsyncSession, stmt: Select, filters: Sequence[Any]) -> Tuple[int, int]:
    """Counts the rows of a statement without and with its filters."""
    unordered = stmt.order_by(None)
    total = await db.scalar(select(func.count()).select_from(unordered.subquery()))
    if not filters:
        return total, total

    filtered_total = await db.scalar(
        select(func.count()).select_from(unordered.where(*filters).subquery())
    )
    return total, filtered_total


async def paginate(
    request: Request,
    response: Response,
    db: AsyncSession,
    model: Type[Any],
    stmt: Select,
    filters_factory: FiltersFactory,
) -> Select:
    """
    Applies filters and pagination to a list statement.

    Parses ?page and ?pageSize, builds the filter clauses, counts the total
    and filtered number of rows, and sets the pagination and Link headers on
    the response.

    Returns:
        The statement restricted to the filtered rows of the requested page.

    Raises:
        InvalidQueryParamError: a pagination or filter parameter is malformed.
    """
    if not getattr(model, "api_resource", None):
        raise RuntimeError('Model must have an "api_resource" property')

    page, page_size = parse_pagination(request)

    filters = filters_factory(request)
    if not isinstance(filters, list):
        raise RuntimeError("Filters factory must return a list of where clauses")

    total, filtered_total = await count_totals(db, stmt, filters)

    response.headers["Link"] = format_link_header(
        pagination_links(request, page, page_size, filtered_total)
    )
    response.headers["Pagination-Page"] = str(page)
    response.headers["Pagination-Page-Size"] = str(page_size)
    response.headers["Pagination-Total"] = str(total)
    response.headers["Pagination-Filtered-Total"] = str(filtered_total)

    logger.debug(
        "Listing %s page %d (size %d): %d of %d rows match",
        model.__tablename__, page, page_size, filtered_total, total,
    )

    return stmt.where(*filters).offset((page - 1) * page_size).limit(page_size)


# ══════════════════════════════════════════════════════════════════════════
# Sorting
# ══════════════════════════════════════════════════════════════════════════

def build_sort_config(allowed: Sequence[SortDefinition]) -> Dict[str, str]:
    """
    Normalizes sort definitions into {public key: internal key}.

    A definition is either a key sortable under its own name ("name") or a
    mapping of public keys to internal column keys ({"user.name": "user_name"}).
    """
    config: Dict[str, str] = {}
    for definition in allowed:
        if isinstance(definition, str):
            config[definition] = definition
        elif isinstance(definition, dict):
            for public, internal in definition.items():
                if not isinstance(internal, str):
                    raise TypeError(
                        "Sort definition mappings must have string values, "
                        f"but one value has type {type(internal).__name__}"
                    )
                config[public] = internal
        else:
            raise TypeError(
                "Sort definition must be a string or a dict, "
                f"but its type is {type(definition).__name__}"
            )
    return config


def parse_sorts(
    values: Sequence[str],
    config: Dict[str, str],
    default: Optional[str] = None,
    required: Optional[str] = "-createdAt",
) -> List[Tuple[str, bool]]:
    """
    Resolves sort parameters into (internal key, descending) pairs.

    The first occurrence of a key wins: "?sort=-name&sort=name" sorts by
    descending name, and the required tie-break only applies when its key was
    not sorted on explicitly.
    """
    requested = [value for value in values if value] or ([default] if default else [])

    unknown = [value.lstrip("-") for value in requested if value.lstrip("-") not in config]
    if unknown:
        raise InvalidQueryParamError(
            "sort",
            'Query parameter "sort" contains the following unknown sort parameters: '
            + ", ".join(f'"{key}"' for key in unknown),
        )

    sorts: List[Tuple[str, bool]] = []
    seen = set()
    for value in requested + ([required] if required else []):
        key = value.lstrip("-")
        if key in seen:
            continue
        seen.add(key)
        sorts.append((config[key], value.startswith("-")))

    return sorts


def sort_pipeline_factory(
    allowed: Sequence[SortDefinition],
    default: Optional[str] = None,
    required: Optional[str] = "-createdAt",
) -> Callable[[Request, Select], Select]:
    """
    Creates a stage ordering a list statement by the ?sort query parameter.

    Internal keys name columns of the statement: mapped attributes of the
    listed model ("created_at") or labels added by earlier stages
    ("places_count", "user_name").
    """
    config = build_sort_config(allowed)
    if required and required.lstrip("-") not in config:
        raise ValueError(f'Required sort "{required}" is not an allowed sort')

    def apply_sort(request: Request, stmt: Select) -> Select:
        sorts = parse_sorts(query_values(request, "sort"), config, default, required)
        columns = stmt.selected_columns
        return stmt.order_by(
            *(columns[key].desc() if descending else columns[key].asc() for key, descending in sorts)
        )

    return apply_sort


# ══════════════════════════════════════════════════════════════════════════
# Related documents
# ══════════════════════════════════════════════════════════════════════════

def _relationship_to(model: Type[Any], related: Type[Any]):
    for relationship in inspect(model).relationships:
        if relationship.mapper.class_ is related:
            return relationship
    raise ValueError(f"{model.__name__} has no relationship to {related.__name__}")


def add_related_properties(
    stmt: Select,
    model: Type[Any],
    related: Type[Any],
    properties: Sequence[str],
    prefix: Optional[str] = None,
) -> Select:
    """
    Adds properties of a many-to-one related document as extra columns.

    The related table is LEFT OUTER JOINed through the model's relationship,
    so rows without a related document are kept (with null properties). Each
    property is labelled "{prefix}_{property}", the prefix defaulting to the
    relationship name: add_related_properties(stmt, Place, Trip, ["title"])
    adds a `trip_title` column that sorts can refer to.
    """
    relationship = _relationship_to(model, related)
    prefix = prefix or relationship.key
    alias = aliased(related)

    stmt = stmt.outerjoin(getattr(model, relationship.key).of_type(alias))
    return stmt.add_columns(
        *(getattr(alias, prop).label(f"{prefix}_{prop}") for prop in properties)
    )


def count_related(
    stmt: Select,
    model: Type[Any],
    related: Type[Any],
    foreign_key: Optional[str] = None,
    count_field: Optional[str] = None,
) -> Select:
    """
    Adds the number of related documents referencing each row.

    The count is computed by a grouped subquery over the related table and
    LEFT OUTER JOINed on the foreign key, so rows without related documents
    get a count of 0 rather than being dropped. The column is labelled
    `count_field`, by default "{related table}_count" (e.g. "places_count").
    """
    if foreign_key is None:
        foreign_key = next(iter(_relationship_to(related, model).local_columns)).key
    count_field = count_field or f"{related.__tablename__}_count"

    fk_column = getattr(related, foreign_key)
    counts = (
        select(fk_column.label("owner_id"), func.count(related.id).label(count_field))
        .group_by(fk_column)
        .subquery()
    )

    return stmt.outerjoin(counts, counts.c.owner_id == model.id).add_columns(
        func.coalesce(getattr(counts.c, count_field), 0).label(count_field)
    )
