from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

# Go-style "unset" instant; clients that forget the timestamp often send it.
ZERO_TIMESTAMP = datetime(1, 1, 1, tzinfo=timezone.utc)

# Range of the BIGINT/INTEGER columns and of LIMIT/OFFSET.
INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


class LogRecord(BaseModel):
  """
  Canonical log record shape stored and returned by the service.

  `id` is assigned by storage on insert: it is never taken from a client
  payload and is always present on records read back from storage.
  """

  id: Optional[int] = Field(None, description="Storage-assigned identifier")
  tenant: str
  system: str
  user: str
  module: str
  task: str
  timestamp: datetime = Field(..., description="Timezone-aware instant of the event")
  msg: str
  level: int = 0
  stack_trace: Optional[str] = None

  def to_json_dict(self) -> Dict[str, Any]:
    """
    Serialize for API responses: RFC3339 timestamp, unset optionals omitted.
    """
    data = self.model_dump(exclude_none=True)
    data["timestamp"] = format_timestamp(self.timestamp)
    return data


def parse_timestamp(value: Any) -> Optional[datetime]:
  """
  Parse an RFC3339 / ISO 8601 string into an aware UTC datetime.

  Returns None when the value is not a string, cannot be parsed, or is the
  zero instant. Naive timestamps are interpreted as UTC.
  """
  if not isinstance(value, str):
    return None
  text = value.strip()
  if not text:
    return None
  if text[-1] in ("Z", "z"):
    text = text[:-1] + "+00:00"

  try:
    dt = datetime.fromisoformat(text)
  except ValueError:
    return None

  if dt.tzinfo is None:
    dt = dt.replace(tzinfo=timezone.utc)
  try:
    dt = dt.astimezone(timezone.utc)
  except (OverflowError, ValueError):
    return None

  if dt == ZERO_TIMESTAMP:
    return None
  return dt


def format_timestamp(value: datetime) -> str:
  """Render an instant as RFC3339 in UTC with a trailing Z."""
  if value.tzinfo is None:
    value = value.replace(tzinfo=timezone.utc)
  value = value.astimezone(timezone.utc)
  # strftime("%Y") does not zero-pad years before 1000.
  if value.microsecond:
    return f"{value.year:04d}-{value:%m-%dT%H:%M:%S.%f}Z"
  return f"{value.year:04d}-{value:%m-%dT%H:%M:%S}Z"


def format_sortable_timestamp(value: datetime) -> str:
  """
  Fixed-width UTC text (always microseconds) whose string order matches
  time order.
  """
  if value.tzinfo is None:
    value = value.replace(tzinfo=timezone.utc)
  value = value.astimezone(timezone.utc)
  return f"{value.year:04d}-{value:%m-%dT%H:%M:%S.%f}Z"
