"""
Tenant registry: the immutable tenant -> secret mapping built at startup.
"""

from __future__ import annotations

import json
from types import MappingProxyType
from typing import Iterator, Mapping, Optional

from .errors import ConfigError


class TenantRegistry:
  """
  Read-only mapping of tenant identifier to its shared secret.

  The registry copies its input on construction and exposes no mutators, so a
  single instance can be shared by every concurrent request.
  """

  __slots__ = ("_secrets",)

  def __init__(self, secrets: Mapping[str, str]) -> None:
    for tenant, secret in secrets.items():
      if not isinstance(tenant, str) or not tenant:
        raise ConfigError("Tenant identifiers must be non-empty strings")
      if not isinstance(secret, str):
        raise ConfigError(f"Secret for tenant '{tenant}' must be a string")
    object.__setattr__(self, "_secrets", MappingProxyType(dict(secrets)))

  def __setattr__(self, name, value):
    raise AttributeError("TenantRegistry is immutable")

  @classmethod
  def from_json(cls, raw: str) -> "TenantRegistry":
    """
    Build a registry from the JSON object form used in configuration,
    e.g. '{"cont123": "secret123", "cont456": "secret456"}'.
    """
    try:
      data = json.loads(raw)
    except (TypeError, ValueError) as e:
      raise ConfigError(f"Tenant secrets are not valid JSON: {e}") from e

    if not isinstance(data, dict):
      raise ConfigError("Tenant secrets must be a JSON object of tenant -> secret")
    return cls(data)

  def lookup(self, tenant: str) -> Optional[str]:
    return self._secrets.get(tenant)

  def __contains__(self, tenant: object) -> bool:
    return tenant in self._secrets

  def __len__(self) -> int:
    return len(self._secrets)

  def __iter__(self) -> Iterator[str]:
    return iter(self._secrets)

  def __repr__(self) -> str:
    # Secrets stay out of reprs and logs.
    return f"TenantRegistry(tenants={sorted(self._secrets)!r})"
