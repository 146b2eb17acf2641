"""
Translate retrieval query parameters into a parameterized filter plan.

The plan is a pure description (ordered predicates with bound values, ordering
and pagination); storage backends render it with `FilterPlan.to_sql`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from .errors import ValidationError
from .models import INT64_MAX, INT64_MIN, parse_timestamp

DEFAULT_LIMIT = 100
DEFAULT_OFFSET = 0

# Placeholder per DB-API paramstyle that the backends use.
PLACEHOLDERS = {
  "format": "%s",  # psycopg2
  "qmark": "?",  # sqlite3
}


@dataclass(frozen=True)
class Predicate:
  column: str
  operator: str

  def render(self, placeholder: str) -> str:
    return f'"{self.column}" {self.operator} {placeholder}'


@dataclass(frozen=True)
class OrderBy:
  column: str
  descending: bool = True

  def render(self) -> str:
    return f'"{self.column}" {"DESC" if self.descending else "ASC"}'


# Newest first; id breaks ties between records sharing a timestamp.
RECENCY_ORDER: Tuple[OrderBy, ...] = (OrderBy("timestamp"), OrderBy("id"))

# Optional filters in the order their predicates are appended after tenant.
_EQUALITY_FILTERS = ("system", "user", "module", "task")


@dataclass(frozen=True)
class FilterPlan:
  predicates: List[Tuple[Predicate, Any]]
  order_by: Tuple[OrderBy, ...] = RECENCY_ORDER
  limit: int = DEFAULT_LIMIT
  offset: int = DEFAULT_OFFSET

  @property
  def params(self) -> List[Any]:
    return [value for _, value in self.predicates]

  def to_sql(
    self,
    table: str,
    columns: Sequence[str],
    paramstyle: str = "format",
  ) -> Tuple[str, List[Any]]:
    """
    Render a SELECT statement and its bound parameters.

    Every predicate value goes through a placeholder. Limit and offset are
    the only values written into the text and must be ints.
    """
    placeholder = PLACEHOLDERS[paramstyle]
    if type(self.limit) is not int or type(self.offset) is not int:
      raise TypeError("limit and offset must be int")

    column_list = ", ".join(f'"{c}"' for c in columns)
    where = " AND ".join(p.render(placeholder) for p, _ in self.predicates)
    order = ", ".join(o.render() for o in self.order_by)
    sql = (
      f'SELECT {column_list} FROM "{table}" WHERE {where} '
      f"ORDER BY {order} LIMIT {self.limit:d} OFFSET {self.offset:d}"
    )
    return sql, self.params


def _text(value: Any) -> Optional[str]:
  if value is None:
    return None
  text = str(value).strip()
  return text or None


def parse_int(value: Any) -> Optional[int]:
  """
  Parse a base-10 integer parameter; None when absent, malformed, or outside
  the signed 64-bit range the database columns and LIMIT/OFFSET accept.
  """
  if isinstance(value, bool):
    return None
  if isinstance(value, int):
    number = value
  else:
    text = _text(value)
    if text is None:
      return None
    digits = text[1:] if text[0] in "+-" else text
    # int() alone would also take "3_0" and non-ASCII digits.
    if not (digits.isascii() and digits.isdigit()):
      return None
    if len(digits.lstrip("0")) > 19:
      return None
    number = int(text, 10)
  if not INT64_MIN <= number <= INT64_MAX:
    return None
  return number


def _parse_bound(name: str, value: Any) -> Optional[datetime]:
  text = _text(value)
  if text is None:
    return None
  parsed = parse_timestamp(text)
  if parsed is None:
    raise ValidationError(
      f"Invalid {name}: expected an RFC3339 timestamp",
      reason=ValidationError.INVALID_TIMESTAMP,
    )
  return parsed


@dataclass
class QueryFilterBuilder:
  default_limit: int = DEFAULT_LIMIT
  default_offset: int = DEFAULT_OFFSET

  def build(self, params: Mapping[str, Any], authenticated_tenant: str) -> FilterPlan:
    """
    Build the filter plan for one retrieval.

    The tenant predicate always comes first and always uses the authenticated
    tenant; a `tenant` entry in `params` is never consulted.
    """
    if not authenticated_tenant:
      raise ValidationError("Tenant identifier required", reason=ValidationError.MISSING_TENANT)

    predicates: List[Tuple[Predicate, Any]] = [(Predicate("tenant", "="), authenticated_tenant)]

    for name in _EQUALITY_FILTERS:
      value = _text(params.get(name))
      if value is not None:
        predicates.append((Predicate(name, "="), value))

    level = parse_int(params.get("level"))
    if level is not None:
      predicates.append((Predicate("level", "="), level))

    start = _parse_bound("start_time", params.get("start_time"))
    if start is not None:
      predicates.append((Predicate("timestamp", ">="), start))

    end = _parse_bound("end_time", params.get("end_time"))
    if end is not None:
      predicates.append((Predicate("timestamp", "<="), end))

    limit = parse_int(params.get("limit"))
    if limit is None or limit < 0:
      limit = self.default_limit

    offset = parse_int(params.get("offset"))
    if offset is None or offset < 0:
      offset = self.default_offset

    return FilterPlan(predicates=predicates, limit=limit, offset=offset)
