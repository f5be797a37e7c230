from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class Attempt:
  strategy: str
  outcome: str
  detail: str = ''
  value: Optional[float] = None


class AttemptLog:
  """Records CPU strategy attempts for a single sample.

  Attempts are kept in memory, logged, and appended as JSON lines to
  ``log_file`` when one is configured.
  """

  def __init__(self, log_file: Optional[Path] = None) -> None:
    self.log_file = log_file
    self.attempts: List[Attempt] = []

  def record(self, strategy: str, outcome: str, detail: str = '', value: Optional[float] = None) -> None:
    attempt = Attempt(strategy=strategy, outcome=outcome, detail=detail, value=value)
    self.attempts.append(attempt)
    if outcome == 'ok':
      logger.info('CPU strategy %s succeeded: %s', strategy, value)
    else:
      logger.warning('CPU strategy %s failed (%s): %s', strategy, outcome, detail)
    if self.log_file:
      self._append('cpu_attempt', f'{strategy} {outcome}', asdict(attempt))

  def attempted(self) -> List[str]:
    return [attempt.strategy for attempt in self.attempts]

  def as_dicts(self) -> List[Dict[str, Any]]:
    return [asdict(attempt) for attempt in self.attempts]

  def _append(self, category: str, message: str, payload: Dict[str, Any]) -> None:
    entry = {
      'timestamp': datetime.now(timezone.utc).isoformat(),
      'category': category,
      'message': message,
      'payload': payload
    }
    try:
      with self.log_file.open('a', encoding='utf-8') as handle:
        handle.write(json.dumps(entry) + '\n')
    except OSError as exc:
      logger.warning('Could not write event log %s: %s', self.log_file, exc)
