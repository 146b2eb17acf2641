from datetime import datetime, timezone

import pytest

from logvault_service.errors import ValidationError  # type: ignore[import]
from logvault_service.validation import RecordValidator  # type: ignore[import]


def _payload(**overrides):
  payload = {
    "tenant": "cont123",
    "system": "sys456",
    "user": "user789",
    "module": "auth",
    "task": "task101",
    "timestamp": "2025-07-19T12:00:00Z",
    "msg": "User logged in",
    "level": 30,
  }
  payload.update(overrides)
  return payload


def test_valid_payload_becomes_record_without_id():
  record = RecordValidator().validate(_payload(), "cont123")

  assert record.id is None
  assert record.tenant == "cont123"
  assert record.msg == "User logged in"
  assert record.level == 30
  assert record.timestamp == datetime(2025, 7, 19, 12, 0, tzinfo=timezone.utc)
  assert record.stack_trace is None


def test_client_supplied_id_is_dropped():
  record = RecordValidator().validate(_payload(id=42), "cont123")
  assert record.id is None


def test_stack_trace_is_kept():
  record = RecordValidator().validate(_payload(stack_trace="Traceback ..."), "cont123")
  assert record.stack_trace == "Traceback ..."


def test_empty_stack_trace_is_kept_as_sent():
  record = RecordValidator().validate(_payload(stack_trace=""), "cont123")
  assert record.stack_trace == ""
  assert record.to_json_dict()["stack_trace"] == ""


def test_timestamp_offset_is_normalized_to_utc():
  record = RecordValidator().validate(_payload(timestamp="2025-07-19T14:00:00+02:00"), "cont123")
  assert record.timestamp == datetime(2025, 7, 19, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("field", ["tenant", "system", "user", "module", "task", "msg"])
def test_missing_required_field(field):
  payload = _payload()
  del payload[field]
  with pytest.raises(ValidationError) as exc_info:
    RecordValidator().validate(payload, "cont123")
  assert exc_info.value.reason == ValidationError.MISSING_FIELD
  assert field in exc_info.value.message


@pytest.mark.parametrize("field", ["system", "msg"])
def test_empty_required_field(field):
  with pytest.raises(ValidationError) as exc_info:
    RecordValidator().validate(_payload(**{field: ""}), "cont123")
  assert exc_info.value.reason == ValidationError.MISSING_FIELD


@pytest.mark.parametrize(
  "timestamp",
  [None, "", "yesterday", "2025-13-40T00:00:00Z", 1752926400, "0001-01-01T00:00:00Z"],
)
def test_invalid_timestamp(timestamp):
  with pytest.raises(ValidationError) as exc_info:
    RecordValidator().validate(_payload(timestamp=timestamp), "cont123")
  assert exc_info.value.reason == ValidationError.INVALID_TIMESTAMP


def test_omitted_timestamp_is_invalid():
  payload = _payload()
  del payload["timestamp"]
  with pytest.raises(ValidationError) as exc_info:
    RecordValidator().validate(payload, "cont123")
  assert exc_info.value.reason == ValidationError.INVALID_TIMESTAMP


def test_tenant_mismatch_is_rejected():
  with pytest.raises(ValidationError) as exc_info:
    RecordValidator().validate(_payload(tenant="cont456"), "cont123")
  assert exc_info.value.reason == ValidationError.TENANT_MISMATCH


def test_missing_field_reported_before_timestamp_and_tenant():
  payload = _payload(tenant="cont456", timestamp="bad")
  del payload["user"]
  with pytest.raises(ValidationError) as exc_info:
    RecordValidator().validate(payload, "cont123")
  assert exc_info.value.reason == ValidationError.MISSING_FIELD


@pytest.mark.parametrize("level", [-5, 0, 30, 10_000, 2 ** 63 - 1, -(2 ** 63)])
def test_any_integer_level_is_accepted(level):
  assert RecordValidator().validate(_payload(level=level), "cont123").level == level


def test_missing_level_defaults_to_zero():
  payload = _payload()
  del payload["level"]
  assert RecordValidator().validate(payload, "cont123").level == 0


@pytest.mark.parametrize("level", ["30", 3.5, True, 2 ** 63, -(2 ** 63) - 1, 10 ** 24])
def test_non_integer_level_is_rejected(level):
  with pytest.raises(ValidationError) as exc_info:
    RecordValidator().validate(_payload(level=level), "cont123")
  assert exc_info.value.reason == ValidationError.INVALID_FIELD


@pytest.mark.parametrize("payload", [None, [], "text", 5])
def test_non_object_payload_is_invalid_body(payload):
  with pytest.raises(ValidationError) as exc_info:
    RecordValidator().validate(payload, "cont123")
  assert exc_info.value.reason == ValidationError.INVALID_BODY
