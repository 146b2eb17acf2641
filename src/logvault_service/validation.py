from __future__ import annotations

from typing import Any, List, Mapping

from .errors import ValidationError
from .models import INT64_MAX, INT64_MIN, LogRecord, parse_timestamp

REQUIRED_TEXT_FIELDS = ("tenant", "system", "user", "module", "task", "msg")


class RecordValidator:
  """
  Turns a decoded JSON payload into a LogRecord ready for insertion.

  Checks run in a fixed order (required fields, timestamp, tenant ownership)
  so a payload with several problems always reports the same one.
  """

  def validate(self, payload: Any, authenticated_tenant: str) -> LogRecord:
    if not isinstance(payload, Mapping):
      raise ValidationError("Invalid request body", reason=ValidationError.INVALID_BODY)

    missing: List[str] = [
      name for name in REQUIRED_TEXT_FIELDS
      if not isinstance(payload.get(name), str) or not payload.get(name)
    ]
    if missing:
      raise ValidationError(
        f"Validation failed: missing required fields: {', '.join(missing)}",
        reason=ValidationError.MISSING_FIELD,
      )

    timestamp = parse_timestamp(payload.get("timestamp"))
    if timestamp is None:
      raise ValidationError(
        "Validation failed: invalid timestamp",
        reason=ValidationError.INVALID_TIMESTAMP,
      )

    if payload["tenant"] != authenticated_tenant:
      raise ValidationError(
        "Validation failed: tenant does not match authenticated tenant",
        reason=ValidationError.TENANT_MISMATCH,
      )

    level = payload.get("level")
    if level is None:
      level = 0
    # bool is an int subclass; true/false are not severity codes.
    if isinstance(level, bool) or not isinstance(level, int) or not INT64_MIN <= level <= INT64_MAX:
      raise ValidationError(
        "Validation failed: level must be a 64-bit integer",
        reason=ValidationError.INVALID_FIELD,
      )

    stack_trace = payload.get("stack_trace")
    if stack_trace is not None and not isinstance(stack_trace, str):
      raise ValidationError(
        "Validation failed: stack_trace must be a string",
        reason=ValidationError.INVALID_FIELD,
      )

    # Any client-supplied id is dropped; storage assigns it.
    return LogRecord(
      tenant=payload["tenant"],
      system=payload["system"],
      user=payload["user"],
      module=payload["module"],
      task=payload["task"],
      timestamp=timestamp,
      msg=payload["msg"],
      level=level,
      stack_trace=stack_trace,
    )
