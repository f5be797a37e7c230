import argparse
import logging
from typing import List, Optional

import uvicorn
from hostmonitor.config import settings

logger = logging.getLogger(__name__)

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
  parser = argparse.ArgumentParser(description='HTTP service reporting host memory, disk and CPU utilization.')
  parser.add_argument('--host', default=settings.host, help='Interface to bind (all interfaces by default).')
  parser.add_argument('--port', default=settings.port, type=int, help='Port to serve /system and /health on.')
  parser.add_argument('--disk-path', default=settings.disk_path, help='Directory whose filesystem is reported under "disk".')
  parser.add_argument('--command-timeout', default=settings.command_timeout_seconds, type=float, help='Seconds each measurement command may run.')
  parser.add_argument('--log-level', default=settings.log_level, help='Log level for the service and uvicorn.')
  return parser.parse_args(argv)

def apply_overrides(args: argparse.Namespace) -> None:
  # Probes are built when hostmonitor.api.globals is first imported, so the
  # overrides must land before uvicorn loads the app.
  settings.host = args.host
  settings.port = args.port
  settings.disk_path = args.disk_path
  settings.command_timeout_seconds = args.command_timeout
  settings.log_level = args.log_level

def main(argv: Optional[List[str]] = None) -> None:
  args = parse_args(argv)
  apply_overrides(args)
  logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
  if settings.event_log_path:
    logger.info('Recording CPU strategy attempts to %s', settings.event_log_path)
  uvicorn.run('hostmonitor.api.app:app', host=settings.host, port=settings.port, log_level=settings.log_level)

if __name__ == '__main__':
  main()
