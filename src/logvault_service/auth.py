from __future__ import annotations

import hmac
import logging
from typing import Optional

from .errors import AuthError, ValidationError
from .tenants import TenantRegistry

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "

MALFORMED_CREDENTIAL_MESSAGE = "Invalid or missing Authorization header"
# Shared by unknown-tenant and wrong-secret failures so tenants cannot be enumerated.
UNAUTHORIZED_MESSAGE = "Unauthorized: Invalid secret key for tenant"
MISSING_TENANT_MESSAGE = "Tenant identifier required"

# Compared against when the tenant is unknown so both failure paths do the same work.
_PLACEHOLDER_SECRET = "\x00" * 32


def parse_bearer(authorization: Optional[str]) -> Optional[str]:
  """
  Extract the credential from an `Authorization: Bearer <credential>` value.

  Returns None for a missing header, another scheme, or an empty credential.
  """
  if not authorization or not authorization.startswith(BEARER_PREFIX):
    return None
  credential = authorization[len(BEARER_PREFIX):]
  if not credential:
    return None
  return credential


class AuthGate:
  """
  Verifies that the caller holds the secret registered for a tenant.

  The value returned by `authenticate` is the only tenant identity the rest of
  the request is allowed to act on.
  """

  def __init__(self, registry: TenantRegistry) -> None:
    self._registry = registry

  def require_credential(self, authorization: Optional[str]) -> str:
    """Return the bearer credential or raise AuthError(MissingOrMalformedCredential)."""
    credential = parse_bearer(authorization)
    if credential is None:
      raise AuthError(
        MALFORMED_CREDENTIAL_MESSAGE,
        reason=AuthError.MISSING_OR_MALFORMED_CREDENTIAL,
      )
    return credential

  def authenticate(self, authorization: Optional[str], tenant: Optional[str]) -> str:
    credential = self.require_credential(authorization)

    if not tenant:
      raise ValidationError(MISSING_TENANT_MESSAGE, reason=ValidationError.MISSING_TENANT)

    expected = self._registry.lookup(tenant)
    known = expected is not None
    matches = hmac.compare_digest(
      credential.encode("utf-8"),
      (expected if known else _PLACEHOLDER_SECRET).encode("utf-8"),
    )
    if not (known and matches):
      logger.warning("Rejected credential for tenant %r", tenant)
      raise AuthError(UNAUTHORIZED_MESSAGE, reason=AuthError.UNAUTHORIZED)

    logger.debug("Authenticated tenant %r", tenant)
    return tenant
