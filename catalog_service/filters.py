# catalog_service/filters.py

"""
Translates list query parameters into SQLAlchemy filters, ordering and
pagination.

    name=Apple               equality
    rate[gte]=10             comparison (gt, gte, lt, lte, ne)
    sort=-rate,name          ordering, "-" for descending
    page=2&limit=20          pagination
    search=app               case-insensitive match on name
"""
import logging
import re
from datetime import datetime
from typing import Any, Iterable, List, Optional, Tuple

from sqlalchemy import JSON, Boolean, DateTime, Float, Integer, Numeric
from sqlalchemy.orm import Query

from .errors import ValidationError
from .models import MAX_INTEGER

logger = logging.getLogger(__name__)

RESERVED_PARAMS = {"page", "limit", "sort", "search"}
MAX_LIMIT = 100

OPERATORS = {
    "gt": lambda column, value: column > value,
    "gte": lambda column, value: column >= value,
    "lt": lambda column, value: column < value,
    "lte": lambda column, value: column <= value,
    "ne": lambda column, value: column != value,
}

_KEY = re.compile(r"^(?P<field>[A-Za-z_][A-Za-z0-9_]*)(\[(?P<op>[A-Za-z]+)\])?$")


def _coerce(column, raw: str) -> Any:
    column_type = column.type
    try:
        if isinstance(column_type, Boolean):
            lowered = raw.lower()
            if lowered not in ("true", "false", "1", "0"):
                raise ValueError(raw)
            return lowered in ("true", "1")
        if isinstance(column_type, Integer):
            value = int(raw)
            if abs(value) > MAX_INTEGER:
                raise ValueError(raw)
            return value
        if isinstance(column_type, (Numeric, Float)):
            return float(raw)
        if isinstance(column_type, DateTime):
            return datetime.fromisoformat(raw)
    except ValueError:
        raise ValidationError(f"{column.key}: invalid value '{raw}'")
    return raw


def _positive_int(name: str, raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError:
        value = 0
    if value < 1 or value > MAX_INTEGER:
        raise ValidationError(f"{name}: must be a positive integer")
    return value


def filter_query(
    query: Query,
    model,
    params: Iterable[Tuple[str, str]],
    aliases: Optional[dict] = None,
    default_sort: Optional[List[Any]] = None,
    search_column: Optional[str] = None,
) -> Query:
    """
    Applies filter, sort and pagination parameters to `query`.

    `params` is a sequence of (key, value) pairs as found in a query string.
    `aliases` maps public field names (e.g. "category") to model attributes
    (e.g. "category_id"). Unknown fields are ignored.
    """
    aliases = aliases or {}
    columns = model.__table__.columns
    reserved = {}

    def resolve(field: str):
        attribute = aliases.get(field, field)
        if attribute not in columns or isinstance(columns[attribute].type, JSON):
            return None
        return columns[attribute]

    for key, raw in params:
        if key in RESERVED_PARAMS:
            reserved[key] = raw
            continue
        match = _KEY.match(key)
        column = resolve(match.group("field")) if match else None
        if column is None:
            logger.warning(f"Ignoring unknown filter parameter '{key}'")
            continue
        op = match.group("op")
        value = _coerce(column, raw)
        if op is None:
            query = query.filter(column == value)
        elif op in OPERATORS:
            query = query.filter(OPERATORS[op](column, value))
        else:
            raise ValidationError(f"{key}: unsupported operator '{op}'")

    search = reserved.get("search")
    if search and search_column:
        # Wildcards in the term match literally
        escaped = search.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        query = query.filter(
            getattr(model, search_column).ilike(f"%{escaped}%", escape="\\")
        )

    ordering = []
    for key in (reserved.get("sort") or "").split(","):
        key = key.strip()
        if not key:
            continue
        descending = key.startswith("-")
        column = resolve(key.lstrip("-"))
        if column is None:
            raise ValidationError(f"sort: unknown field '{key.lstrip('-')}'")
        ordering.append(column.desc() if descending else column.asc())
    if not ordering:
        ordering = list(default_sort or [])
    if ordering:
        query = query.order_by(*ordering)

    page = _positive_int("page", reserved.get("page")) or 1
    limit = _positive_int("limit", reserved.get("limit"))
    if limit is not None:
        if limit > MAX_LIMIT:
            raise ValidationError(f"limit: must not exceed {MAX_LIMIT}")
        query = query.offset((page - 1) * limit).limit(limit)
    return query
