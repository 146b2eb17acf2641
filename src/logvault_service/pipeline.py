"""
Request pipelines: ingestion and retrieval.

Both share the AuthGate step; everything else is composed from the small
components so each stage can be tested on its own.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from .auth import AuthGate
from .filters import QueryFilterBuilder
from .models import LogRecord
from .storage import LogStorage, row_to_record
from .validation import RecordValidator

logger = logging.getLogger(__name__)


def resolve_write_tenant(header_tenant: Optional[str], payload: Any) -> Optional[str]:
  """
  Tenant a write claims to act as: the X-Tenant-ID header when sent,
  otherwise the `tenant` field of the body.
  """
  if header_tenant:
    return header_tenant
  if isinstance(payload, Mapping):
    tenant = payload.get("tenant")
    if isinstance(tenant, str):
      return tenant
  return None


def ingest_record(
  gate: AuthGate,
  validator: RecordValidator,
  backend: LogStorage,
  authorization: Optional[str],
  header_tenant: Optional[str],
  payload: Any,
) -> int:
  """
  Authenticate, validate and insert one record. Returns the assigned id.

  The insert is attempted exactly once; StorageError propagates to the caller.
  """
  tenant = gate.authenticate(authorization, resolve_write_tenant(header_tenant, payload))
  record = validator.validate(payload, tenant)
  record_id = backend.insert(record)
  logger.info("Stored record %s for tenant %r", record_id, tenant)
  return record_id


def decode_rows(rows: Iterable[Sequence[Any]]) -> List[LogRecord]:
  """Decode storage rows, skipping any row that fails to decode."""
  records: List[LogRecord] = []
  for row in rows:
    try:
      records.append(row_to_record(row))
    except (ValueError, TypeError) as e:
      logger.warning("Skipping undecodable row: %s", e)
  return records


def retrieve_records(
  gate: AuthGate,
  builder: QueryFilterBuilder,
  backend: LogStorage,
  authorization: Optional[str],
  params: Mapping[str, Any],
) -> List[LogRecord]:
  """
  Authenticate against the `tenant` parameter and run one filtered read.

  Results are newest first; an empty list is a valid outcome.
  """
  tenant = gate.authenticate(authorization, params.get("tenant"))
  plan = builder.build(params, tenant)
  return decode_rows(backend.select(plan))
