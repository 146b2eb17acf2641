from __future__ import annotations

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: Optional[str] = None) -> logging.Logger:
  """
  Configure stdout logging for the service and return its package logger.

  Unknown level names fall back to INFO.
  """
  resolved = getattr(logging, (level or "INFO").upper(), logging.INFO)
  if not isinstance(resolved, int):
    resolved = logging.INFO

  logging.basicConfig(level=resolved, format=LOG_FORMAT, stream=sys.stdout)

  logger = logging.getLogger("logvault_service")
  logger.setLevel(resolved)
  return logger
