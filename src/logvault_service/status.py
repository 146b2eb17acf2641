from __future__ import annotations

from dataclasses import asdict, dataclass

from . import __version__
from .config import load_settings


@dataclass
class ServiceStatus:
  status: str
  service_name: str
  version: str
  host: str
  port: int


def get_status() -> dict:
  """
  Return a simple liveness payload; carries no tenant or storage details.
  """
  settings = load_settings()
  payload = ServiceStatus(
    status="healthy",
    service_name="logvault",
    version=__version__,
    host=settings.host,
    port=settings.port,
  )
  return asdict(payload)
