from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from hostmonitor.config import settings

logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)


def build_monitor():
  from hostmonitor.resources.monitor import ResourceMonitor
  return ResourceMonitor.from_settings(settings)


def parse_global_args() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(prog='hostmon', description='Host resource utilization without the HTTP server')
  sub = parser.add_subparsers(dest='command', required=True)

  p_snapshot = sub.add_parser('snapshot', help='Print memory, disk and CPU usage as JSON')
  p_snapshot.add_argument('--pretty', action='store_true')

  p_cpu = sub.add_parser('cpu', help='Measure CPU usage and show which strategy answered')
  p_cpu.add_argument('--verbose', action='store_true', help='Also list every strategy attempt')
  p_cpu.add_argument('--json', action='store_true')

  return parser


def cmd_snapshot(monitor, pretty: bool) -> int:
  payload = asyncio.run(monitor.snapshot())
  print(json.dumps(payload, indent=2 if pretty else None))
  return 0


def cmd_cpu(monitor, verbose: bool, as_json: bool) -> int:
  from hostmonitor.logging.attempt_log import AttemptLog
  attempts = AttemptLog(settings.event_log_path)
  sample = asyncio.run(monitor.cpu.sample(attempts)).as_dict()
  if as_json:
    if verbose:
      sample['attempts'] = attempts.as_dicts()
    print(json.dumps(sample, indent=2))
    return 0
  suffix = '%' if sample['kind'] == 'percentage' else '% (load average estimate)'
  print(f"CPU: {sample['value']}{suffix}")
  print(f"Cores: {sample['cores']}  Model: {sample['model']}  Platform: {sample['platform']}")
  if 'load_average' in sample:
    loads = sample['load_average']
    print(f"Load average: {loads['1min']} {loads['5min']} {loads['15min']}")
  if verbose:
    for attempt in attempts.attempts:
      line = f"  {attempt.strategy:<24} {attempt.outcome}"
      if attempt.detail:
        line += f"  {attempt.detail}"
      print(line)
  return 0


def main(argv: Optional[List[str]] = None) -> int:
  args = parse_global_args().parse_args(argv)
  monitor = build_monitor()
  if args.command == 'snapshot':
    return cmd_snapshot(monitor, args.pretty)
  if args.command == 'cpu':
    return cmd_cpu(monitor, args.verbose, args.json)
  logger.error('Unknown command %s', args.command)
  return 2


if __name__ == '__main__':
  sys.exit(main())
