from __future__ import annotations

import argparse
import json
import sys
from typing import NoReturn
from urllib import error, request

from .config import load_settings
from .errors import ConfigError, StorageError
from .logging_setup import setup_logging


def main(argv: list[str] | None = None) -> NoReturn:
  argv = list(sys.argv[1:] if argv is None else argv)

  if not argv or argv[0] not in {"serve", "init-db", "status"}:
    print("Usage: python -m logvault_service {serve|init-db|status}", file=sys.stderr)
    print("  serve    - Run the HTTP server", file=sys.stderr)
    print("  init-db  - Create the log table and indexes", file=sys.stderr)
    print("  status   - Check a running server", file=sys.stderr)
    sys.exit(1)

  if argv[0] == "serve":
    _run_serve(argv[1:])
  elif argv[0] == "init-db":
    _run_init_db(argv[1:])
  elif argv[0] == "status":
    _run_status(argv[1:])


def _run_serve(args: list[str]) -> NoReturn:
  settings = load_settings()
  parser = argparse.ArgumentParser(prog="logvault serve", description="Run the LogVault HTTP server")
  parser.add_argument("--host", default=settings.host, help=f"Bind address (default: {settings.host})")
  parser.add_argument("--port", type=int, default=settings.port, help=f"Bind port (default: {settings.port})")
  parsed = parser.parse_args(args)

  logger = setup_logging(settings.log_level)

  try:
    registry = settings.tenant_registry()
  except ConfigError as e:
    print(f"Error: {e}", file=sys.stderr)
    sys.exit(1)

  import uvicorn

  from .api import create_app

  logger.info("Starting server on %s:%s for %d tenant(s)", parsed.host, parsed.port, len(registry))
  uvicorn.run(create_app(registry), host=parsed.host, port=parsed.port, log_config=None)
  sys.exit(0)


def _run_init_db(args: list[str]) -> NoReturn:
  parser = argparse.ArgumentParser(prog="logvault init-db", description="Create the log table and indexes")
  parser.add_argument(
    "--database-url",
    default=None,
    help="Database URL (default: LOGVAULT_DATABASE_URL)",
  )
  parsed = parser.parse_args(args)

  settings = load_settings()
  setup_logging(settings.log_level)

  from .storage import storage_from_url

  backend = storage_from_url(parsed.database_url or settings.database_url)
  try:
    backend.init_schema()
  except StorageError as e:
    cause = e.__cause__ or e
    print(f"Error: {e.message}: {cause}", file=sys.stderr)
    sys.exit(1)

  print("Schema initialized")
  sys.exit(0)


def _run_status(args: list[str]) -> NoReturn:
  settings = load_settings()
  parser = argparse.ArgumentParser(prog="logvault status", description="Check a running LogVault server")
  parser.add_argument("--host", default="localhost")
  parser.add_argument("--port", type=int, default=settings.port)
  parsed = parser.parse_args(args)

  url = f"http://{parsed.host}:{parsed.port}/status"

  try:
    with request.urlopen(url, timeout=1.0) as resp:  # nosec B310
      data = json.loads(resp.read().decode("utf-8"))
  except (error.URLError, error.HTTPError, TimeoutError, OSError):
    print(f"LogVault status: UNREACHABLE at {url}", file=sys.stderr)
    print("Hint: ensure the server is running and listening on this host/port.", file=sys.stderr)
    sys.exit(2)

  print("LogVault status: HEALTHY")
  print(f"Service: {data.get('service_name')} v{data.get('version')}")
  print(f"Listening on: {data.get('host')}:{data.get('port')}")
  sys.exit(0)


if __name__ == "__main__":  # pragma: no cover
  main()
