from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


def _optional_path(value: Optional[str]) -> Optional[Path]:
  if not value:
    return None
  return Path(value).expanduser().resolve()


@dataclass
class Settings:
  """Global service configuration derived from environment variables."""

  host: str = os.getenv('HOST', '0.0.0.0')
  port: int = int(os.getenv('PORT', '8081'))
  log_level: str = os.getenv('HOSTMON_LOG_LEVEL', 'info')
  command_timeout_seconds: float = float(os.getenv('HOSTMON_COMMAND_TIMEOUT', '5'))
  disk_path: str = os.getenv('HOSTMON_DISK_PATH', '.')
  event_log_path: Optional[Path] = _optional_path(os.getenv('HOSTMON_EVENT_LOG'))

  def ensure_directories(self) -> None:
    if self.event_log_path and not self.event_log_path.parent.exists():
      self.event_log_path.parent.mkdir(parents=True, exist_ok=True)


settings = Settings()
settings.ensure_directories()
