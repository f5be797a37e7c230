from __future__ import annotations

import logging
from typing import Any, Callable, Dict

import psutil

logger = logging.getLogger(__name__)

GIGABYTE = 1024 ** 3


def _gigabytes(value: int) -> str:
  return f'{value / GIGABYTE:.1f}GB'


class MemoryProbe:
  def __init__(self, reader: Callable[[], Any] = psutil.virtual_memory) -> None:
    self._reader = reader

  async def sample(self) -> Dict[str, Any]:
    try:
      memory = self._reader()
      total = int(memory.total)
      available = int(memory.available)
    except (OSError, AttributeError, RuntimeError) as exc:
      logger.warning('Memory probe failed: %s', exc)
      return {'success': False, 'error': str(exc)}
    if total <= 0:
      return {'success': False, 'error': 'Host reported no physical memory'}
    used = total - available
    return {
      'success': True,
      'total_bytes': total,
      'used_bytes': used,
      'available_bytes': available,
      'percentage': f'{used / total * 100:.1f}',
      'total': _gigabytes(total),
      'used': _gigabytes(used),
      'available': _gigabytes(available)
    }
