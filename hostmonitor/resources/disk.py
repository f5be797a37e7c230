from __future__ import annotations

import logging
from typing import Any, Dict, List

from hostmonitor.resources.commands import CommandFailure, CommandRunner, run_command

logger = logging.getLogger(__name__)

PARSE_ERROR = 'Could not parse disk usage'


def _mount_column(header: List[str]) -> int:
  # BSD and macOS df add inode columns (iused, ifree, %iused) before the mount point.
  if 'Mounted' in header:
    return header.index('Mounted')
  return 5


def parse_df_report(report: str) -> Dict[str, Any]:
  """Turn ``df -h`` output into a usage summary for its first filesystem."""
  lines = report.strip().splitlines()
  if len(lines) < 2:
    return {'success': False, 'error': PARSE_ERROR}
  parts = lines[1].split()
  if len(parts) < 5:
    return {'success': False, 'error': PARSE_ERROR}
  summary: Dict[str, Any] = {
    'success': True,
    'total': parts[1],
    'used': parts[2],
    'available': parts[3],
    'usage_percent': parts[4].replace('%', ''),
    'filesystem': parts[0]
  }
  mount_column = _mount_column(lines[0].split())
  if len(parts) > mount_column:
    summary['mount_point'] = ' '.join(parts[mount_column:])
  return summary


class DiskProbe:
  def __init__(self, path: str = '.', timeout: float = 5.0, runner: CommandRunner = run_command) -> None:
    self.path = path
    self.timeout = timeout
    self._runner = runner

  async def sample(self) -> Dict[str, Any]:
    try:
      report = await self._runner(('df', '-h', self.path), self.timeout)
    except CommandFailure as exc:
      logger.warning('Disk probe failed: %s', exc)
      return {'success': False, 'error': str(exc)}
    summary = parse_df_report(report)
    if not summary['success']:
      logger.warning('Unexpected df output: %r', report)
    return summary
