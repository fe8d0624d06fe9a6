"""
Filter, sort and paginate engine shared by listing, saved-property and viewing queries.
Turns loose query parameters into SQLAlchemy conditions, an ordering and offset/limit,
and derives page metadata from the total count.
"""

import enum
import logging
import math
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.listing import Listing, PropertyType
from app.utils.validators import validate_pagination

logger = logging.getLogger(__name__)


class SortOption(str, enum.Enum):
    """Sort keys accepted by list endpoints."""
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    NEWEST = "newest"
    OLDEST = "oldest"
    BEDROOMS_DESC = "bedrooms_desc"
    DATE_ASC = "date_asc"
    DATE_DESC = "date_desc"


class TextMatch(str, enum.Enum):
    """How city/county filters compare; both are case-insensitive."""
    EXACT = "exact"
    CONTAINS = "contains"


def coerce_sort(value: Any, default: SortOption = SortOption.NEWEST) -> SortOption:
    """Unknown or missing sort keys fall back to the default instead of failing."""
    if isinstance(value, SortOption):
        return value
    if not value:
        return default
    try:
        return SortOption(str(value).strip().lower())
    except ValueError:
        logger.debug(f"Unknown sort key '{value}', using {default.value}")
        return default


class ListingFilters:
    """Filters over listing columns, usable directly or through a join."""

    def __init__(
        self,
        is_active: Optional[bool] = True,
        city: Optional[str] = None,
        county: Optional[str] = None,
        text_match: TextMatch = TextMatch.EXACT,
        property_type: Optional[PropertyType] = None,
        property_types: Optional[Sequence[PropertyType]] = None,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
        bedrooms: Optional[int] = None,
        min_bedrooms: Optional[int] = None,
        min_bathrooms: Optional[float] = None,
        owner_id: Optional[uuid.UUID] = None
    ):
        self.is_active = is_active
        self.city = city
        self.county = county
        self.text_match = text_match
        self.property_type = property_type
        self.property_types = list(property_types) if property_types else None
        self.min_price = min_price
        self.max_price = max_price
        self.bedrooms = bedrooms
        self.min_bedrooms = min_bedrooms
        self.min_bathrooms = min_bathrooms
        self.owner_id = owner_id

    @property
    def effective_min_bedrooms(self) -> Optional[int]:
        """An exact bedroom count is searched as a minimum: asking for 2 also shows 3."""
        if self.min_bedrooms is not None:
            return self.min_bedrooms
        return self.bedrooms


def _text_condition(column, value: str, mode: TextMatch):
    value = value.strip()
    if mode == TextMatch.CONTAINS:
        return column.ilike(f"%{value}%")
    return func.lower(column) == value.lower()


def build_listing_conditions(filters: ListingFilters) -> List:
    """
    Build WHERE conditions on Listing columns.

    Args:
        filters: Listing filters; None fields are ignored

    Returns:
        List of SQLAlchemy conditions to AND together
    """
    conditions = []

    if filters.is_active is not None:
        conditions.append(Listing.is_active == filters.is_active)

    if filters.owner_id is not None:
        conditions.append(Listing.user_id == filters.owner_id)

    if filters.city:
        conditions.append(_text_condition(Listing.city, filters.city, filters.text_match))

    if filters.county:
        conditions.append(_text_condition(Listing.county, filters.county, filters.text_match))

    if filters.property_type is not None:
        conditions.append(Listing.property_type == filters.property_type)

    if filters.property_types:
        conditions.append(Listing.property_type.in_(filters.property_types))

    if filters.min_price is not None:
        conditions.append(Listing.price >= filters.min_price)

    if filters.max_price is not None:
        conditions.append(Listing.price <= filters.max_price)

    min_bedrooms = filters.effective_min_bedrooms
    if min_bedrooms is not None:
        conditions.append(Listing.bedrooms >= min_bedrooms)

    if filters.min_bathrooms is not None:
        conditions.append(Listing.bathrooms >= filters.min_bathrooms)

    return conditions


# Default sort columns for listing-shaped queries
LISTING_SORT_COLUMNS: Dict[SortOption, Tuple[Any, bool]] = {
    SortOption.PRICE_ASC: (Listing.price, False),
    SortOption.PRICE_DESC: (Listing.price, True),
    SortOption.NEWEST: (Listing.created_at, True),
    SortOption.OLDEST: (Listing.created_at, False),
    SortOption.BEDROOMS_DESC: (Listing.bedrooms, True),
}


def build_ordering(
    sort: SortOption,
    columns: Dict[SortOption, Tuple[Any, bool]],
    tiebreak: Any,
    default: SortOption = SortOption.NEWEST
) -> List:
    """
    Resolve a sort key to ORDER BY clauses.

    Args:
        sort: Requested sort key
        columns: Mapping of sort key to (column, descending)
        tiebreak: Column appended last so pages are stable
        default: Key used when ``sort`` has no mapping here

    Returns:
        List of ORDER BY clauses
    """
    column, descending = columns.get(sort) or columns[default]
    return [column.desc() if descending else column.asc(), tiebreak.asc()]


@dataclass
class PageMeta:
    """Page metadata returned alongside list data."""

    page: int
    limit: int
    total_count: int
    total_pages: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "page": self.page,
            "limit": self.limit,
            "totalCount": self.total_count,
            "totalPages": self.total_pages,
        }


def paginate(total_count: int, limit: int, page: int) -> PageMeta:
    """
    Compute page metadata. An empty result still reports page 1 of 1.

    Args:
        total_count: Number of rows matching the filters
        limit: Page size
        page: Requested page (1-based)
    """
    total_pages = max(1, math.ceil(total_count / limit)) if limit > 0 else 1
    return PageMeta(page=page, limit=limit, total_count=total_count, total_pages=total_pages)


@dataclass
class QuerySpec:
    """Normalized query: conditions, ordering and the page window."""

    conditions: List = field(default_factory=list)
    order_by: List = field(default_factory=list)
    page: int = 1
    limit: int = 20

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def take(self) -> int:
        return self.limit


def build_query(
    filters: Optional[ListingFilters],
    sort: Any = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
    default_limit: int = 20,
    max_limit: int = 100,
    extra_conditions: Optional[List] = None,
    sort_columns: Optional[Dict[SortOption, Tuple[Any, bool]]] = None,
    tiebreak: Any = Listing.id,
    default_sort: SortOption = SortOption.NEWEST
) -> QuerySpec:
    """
    Translate raw filter, sort and page parameters into a QuerySpec.

    Args:
        filters: Listing filters (may be None when the query has none)
        sort: Sort key; unknown keys fall back to ``default_sort``
        page: 1-based page, defaults to 1
        limit: Page size, defaults to ``default_limit`` and is capped at ``max_limit``
        extra_conditions: Conditions on other tables (status, owner scope)
        sort_columns: Sort mapping, defaults to listing columns
        tiebreak: Column used to make ordering deterministic
        default_sort: Fallback sort key
    """
    page, limit = validate_pagination(page, limit, default_limit, max_limit)

    conditions = build_listing_conditions(filters) if filters is not None else []
    if extra_conditions:
        conditions.extend(extra_conditions)

    order_by = build_ordering(
        coerce_sort(sort, default_sort),
        sort_columns or LISTING_SORT_COLUMNS,
        tiebreak,
        default_sort
    )
    return QuerySpec(conditions=conditions, order_by=order_by, page=page, limit=limit)


async def fetch_page(
    db: AsyncSession,
    stmt: Select,
    spec: QuerySpec,
    options: Sequence = ()
) -> Tuple[List[Any], int]:
    """
    Run a paged query and its total count as one statement.

    The total comes from a ``count(*) OVER ()`` column, so rows and count share a
    snapshot. A page past the end returns no rows; the total then comes from a plain
    count in the same transaction.

    Args:
        db: Async session
        stmt: ``select(Entity)`` with joins, without WHERE/ORDER
        spec: Conditions, ordering and page window
        options: Loader options applied to the page query only

    Returns:
        Tuple of (entities, total count)
    """
    if spec.conditions:
        stmt = stmt.where(*spec.conditions)

    paged = (
        stmt.add_columns(func.count().over().label("total_count"))
        .order_by(*spec.order_by)
        .offset(spec.skip)
        .limit(spec.take)
    )
    if options:
        paged = paged.options(*options)
    result = await db.execute(paged)
    rows = result.all()

    if rows:
        return [row[0] for row in rows], int(rows[0].total_count)

    if spec.skip == 0:
        return [], 0

    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = (await db.execute(count_stmt)).scalar() or 0
    return [], int(total)
