from __future__ import annotations

from typing import Optional


class LogVaultError(Exception):
  """
  Base class for errors that are reported to the caller.

  `message` is the only text that leaves the process; `reason` is a stable
  machine-readable code used by tests and logs.
  """

  status_code = 500
  default_reason = "Error"

  def __init__(self, message: str, reason: Optional[str] = None) -> None:
    super().__init__(message)
    self.message = message
    self.reason = reason or self.default_reason

  def to_dict(self) -> dict:
    return {"error": self.message}


class AuthError(LogVaultError):
  status_code = 401
  default_reason = "Unauthorized"

  MISSING_OR_MALFORMED_CREDENTIAL = "MissingOrMalformedCredential"
  UNAUTHORIZED = "Unauthorized"


class ValidationError(LogVaultError):
  status_code = 400
  default_reason = "InvalidBody"

  MISSING_FIELD = "MissingField"
  INVALID_TIMESTAMP = "InvalidTimestamp"
  TENANT_MISMATCH = "TenantMismatch"
  MISSING_TENANT = "MissingTenant"
  INVALID_BODY = "InvalidBody"
  INVALID_FIELD = "InvalidField"


class MethodError(LogVaultError):
  status_code = 405
  default_reason = "MethodNotAllowed"


class StorageError(LogVaultError):
  """Insert or query failure at the persistence boundary."""

  status_code = 500
  default_reason = "StorageFailure"


class ConfigError(Exception):
  """Invalid or missing startup configuration."""
