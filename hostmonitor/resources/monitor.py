from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from hostmonitor.config import Settings
from hostmonitor.logging.attempt_log import AttemptLog
from hostmonitor.resources.cpu import ResourceProbe
from hostmonitor.resources.disk import DiskProbe
from hostmonitor.resources.memory import MemoryProbe


def utc_timestamp() -> str:
  return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


class ResourceMonitor:
  """Collects memory, disk and CPU samples for a single snapshot."""

  def __init__(
    self,
    cpu: Optional[ResourceProbe] = None,
    memory: Optional[MemoryProbe] = None,
    disk: Optional[DiskProbe] = None
  ) -> None:
    self.cpu = cpu or ResourceProbe()
    self.memory = memory or MemoryProbe()
    self.disk = disk or DiskProbe()

  @classmethod
  def from_settings(cls, settings: Settings) -> 'ResourceMonitor':
    return cls(
      cpu=ResourceProbe(timeout=settings.command_timeout_seconds, event_log_path=settings.event_log_path),
      memory=MemoryProbe(),
      disk=DiskProbe(path=settings.disk_path, timeout=settings.command_timeout_seconds)
    )

  async def snapshot(self, observer: Optional[AttemptLog] = None) -> Dict[str, Any]:
    ram, disk, cpu = await asyncio.gather(
      self.memory.sample(),
      self.disk.sample(),
      self.cpu.sample(observer)
    )
    return {
      'success': True,
      'timestamp': utc_timestamp(),
      'ram': ram,
      'disk': disk,
      'cpu': cpu.as_dict()
    }
