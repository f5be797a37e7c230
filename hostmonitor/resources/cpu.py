from __future__ import annotations

import logging
import math
import platform
import re
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import psutil

from hostmonitor.logging.attempt_log import AttemptLog
from hostmonitor.resources.commands import (
  CommandFailure,
  CommandRunner,
  OutOfRangeFailure,
  ParseFailure,
  ProbeError,
  run_command
)

logger = logging.getLogger(__name__)

LOAD_STRATEGY = 'load-average'
TERMINAL_STRATEGY = 'load-average-fallback'


class SampleKind(Enum):
  PERCENTAGE = 'percentage'
  LOAD_AVERAGE_PROXY = 'load_average'


@dataclass
class LoadAverages:
  one_min: float
  five_min: float
  fifteen_min: float

  @classmethod
  def from_text(cls, raw: str) -> 'LoadAverages':
    tokens = raw.split()
    if len(tokens) < 3:
      raise ParseFailure(f'expected three load averages, got {raw!r}')
    return cls(*(_to_float(token) for token in tokens[:3]))

  def as_text(self) -> str:
    return f'{self.one_min!r} {self.five_min!r} {self.fifteen_min!r}'

  def as_dict(self) -> Dict[str, str]:
    return {
      '1min': f'{self.one_min:.2f}',
      '5min': f'{self.five_min:.2f}',
      '15min': f'{self.fifteen_min:.2f}'
    }


@dataclass
class UtilizationSample:
  success: bool
  value: Optional[float]
  kind: SampleKind
  core_count: int
  model_name: str
  platform_hint: Optional[str] = None
  load_averages: Optional[LoadAverages] = None
  strategy: Optional[str] = None

  def as_dict(self) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
      'success': self.success,
      'kind': self.kind.value,
      'value': f'{self.value:.1f}' if self.value is not None else None,
      'cores': self.core_count,
      'model': self.model_name,
      'platform': self.platform_hint,
      'strategy': self.strategy
    }
    if self.load_averages is not None:
      payload['load_average'] = self.load_averages.as_dict()
    return payload


@dataclass(frozen=True)
class Strategy:
  name: str
  invoke: Callable[[], Awaitable[str]]
  parse: Callable[[str], float]
  kind: SampleKind = SampleKind.PERCENTAGE


@dataclass(frozen=True)
class CommandSpec:
  """An external command and the parser that turns its output into a usage percentage."""

  name: str
  argv: Tuple[str, ...]
  parse: Callable[[str], float]


def _to_float(token: str) -> float:
  try:
    return float(token.strip().rstrip('%').replace(',', '.'))
  except ValueError as exc:
    raise ParseFailure(f'not a number: {token!r}') from exc


def parse_number(raw: str) -> float:
  return _to_float(raw)


def _last_match(pattern: re.Pattern, raw: str, label: str) -> str:
  matches = pattern.findall(raw)
  if not matches:
    raise ParseFailure(f'no {label} line in output')
  return matches[-1]


DARWIN_TOP_RE = re.compile(r'CPU usage:.*?(\d+(?:[.,]\d+)?)%\s*idle')
LINUX_TOP_RE = re.compile(r'Cpu\(s\):.*?(\d+(?:[.,]\d+)?)\s*%?\s*id')
BSD_TOP_RE = re.compile(r'CPU:.*?(\d+(?:[.,]\d+)?)%\s*idle')


def parse_darwin_top(raw: str) -> float:
  return 100.0 - _to_float(_last_match(DARWIN_TOP_RE, raw, 'CPU usage'))


def parse_linux_top(raw: str) -> float:
  return 100.0 - _to_float(_last_match(LINUX_TOP_RE, raw, '%Cpu(s)'))


def parse_bsd_top(raw: str) -> float:
  return 100.0 - _to_float(_last_match(BSD_TOP_RE, raw, 'CPU'))


def parse_wmic(raw: str) -> float:
  readings = [_to_float(line) for line in raw.splitlines() if line.strip().isdigit()]
  if not readings:
    raise ParseFailure('no LoadPercentage rows in output')
  return sum(readings) / len(readings)


def _column_from_end(header: Sequence[str], row: Sequence[str], column: str) -> float:
  # Rows may carry fewer leading tokens than the header (timestamps, AM/PM),
  # but the statistic columns always line up from the right.
  offset = len(header) - header.index(column)
  if offset > len(row):
    raise ParseFailure(f'row too short for column {column}')
  return _to_float(row[-offset])


def _last_header(lines: Sequence[List[str]], column: str) -> List[str]:
  headers = [tokens for tokens in lines if column in tokens]
  if not headers:
    raise ParseFailure(f'no header with column {column}')
  return headers[-1]


def parse_vmstat(raw: str) -> float:
  lines = [line.split() for line in raw.splitlines() if line.strip()]
  header = _last_header(lines, 'id')
  rows = [tokens for tokens in lines if tokens and tokens[0].isdigit()]
  if not rows:
    raise ParseFailure('no vmstat data rows')
  return 100.0 - _column_from_end(header, rows[-1], 'id')


def parse_sar(raw: str) -> float:
  lines = [line.split() for line in raw.splitlines() if line.strip()]
  header = _last_header(lines, '%user')
  if '%system' not in header:
    raise ParseFailure('sar header has no %system column')
  rows = [tokens for tokens in lines if 'all' in tokens and '%user' not in tokens]
  if not rows:
    raise ParseFailure('no sar summary row')
  row = rows[-1]
  return _column_from_end(header, row, '%user') + _column_from_end(header, row, '%system')


def parse_mpstat(raw: str) -> float:
  lines = [line.split() for line in raw.splitlines() if line.strip()]
  header = _last_header(lines, '%idle')
  rows = [tokens for tokens in lines if 'all' in tokens and '%idle' not in tokens]
  if not rows:
    raise ParseFailure('no mpstat row for all processors')
  return 100.0 - _column_from_end(header, rows[-1], '%idle')


PLATFORM_STRATEGIES: Dict[str, Tuple[CommandSpec, ...]] = {
  'darwin': (CommandSpec('top-darwin', ('top', '-l', '2', '-n', '0'), parse_darwin_top),),
  'linux': (CommandSpec('top-linux', ('top', '-b', '-n', '2', '-d', '0.5'), parse_linux_top),),
  'freebsd': (CommandSpec('top-bsd', ('top', '-b', '-d', '2'), parse_bsd_top),),
  'openbsd': (CommandSpec('top-bsd', ('top', '-b', '-d', '2'), parse_bsd_top),),
  'netbsd': (CommandSpec('top-bsd', ('top', '-b', '-d', '2'), parse_bsd_top),),
  'win32': (CommandSpec('wmic', ('wmic', 'cpu', 'get', 'loadpercentage'), parse_wmic),)
}

GENERIC_STRATEGIES: Tuple[CommandSpec, ...] = (
  CommandSpec('vmstat', ('vmstat', '1', '2'), parse_vmstat),
  CommandSpec('sar', ('sar', '-u', '1', '1'), parse_sar),
  CommandSpec('mpstat', ('mpstat', '1', '1'), parse_mpstat)
)

_FAILURE_OUTCOMES = (
  (CommandFailure, 'command_failed'),
  (ParseFailure, 'parse_failed'),
  (OutOfRangeFailure, 'out_of_range')
)


PLATFORM_FAMILIES = ('linux', 'darwin', 'freebsd', 'openbsd', 'netbsd', 'win32')


def normalize_platform(identifier: str) -> str:
  """Map ``sys.platform`` style identifiers (``linux2``, ``freebsd13``) to a kernel family.

  Unknown identifiers are returned lowercased and have no platform strategies.
  """
  lowered = identifier.lower()
  for family in PLATFORM_FAMILIES:
    if lowered.startswith(family):
      return family
  return lowered


def load_percentage(one_min: float, cores: int) -> float:
  return min(100.0, max(0.0, one_min / max(cores, 1) * 100.0))


def validate_percentage(value: float) -> float:
  if not isinstance(value, (int, float)) or isinstance(value, bool):
    raise ParseFailure(f'parser returned {value!r}')
  if not math.isfinite(value) or not 0.0 <= value <= 100.0:
    raise OutOfRangeFailure(f'{value} is outside [0, 100]')
  return float(value)


def read_cpu_model() -> str:
  cpuinfo = Path('/proc/cpuinfo')
  if cpuinfo.exists():
    try:
      for line in cpuinfo.read_text(encoding='utf-8', errors='replace').splitlines():
        key, _, value = line.partition(':')
        if key.strip() in ('model name', 'Hardware', 'cpu model') and value.strip():
          return value.strip()
    except OSError as exc:
      logger.debug('Could not read %s: %s', cpuinfo, exc)
  return platform.processor() or platform.machine() or 'unknown'


class ResourceProbe:
  """Best-effort CPU utilization through an ordered chain of measurement strategies.

  Platform tools are tried first, then the load-average estimate, then the
  generic statistics utilities. When all of them fail the load average is
  recomputed unconditionally, so :meth:`sample` always returns a result.
  """

  def __init__(
    self,
    timeout: float = 5.0,
    platform_id: Optional[str] = None,
    runner: CommandRunner = run_command,
    load_reader: Callable[[], Sequence[float]] = psutil.getloadavg,
    core_counter: Optional[Callable[[], Optional[int]]] = None,
    model_reader: Callable[[], str] = read_cpu_model,
    capabilities: Optional[Mapping[str, Sequence[CommandSpec]]] = None,
    generic: Optional[Sequence[CommandSpec]] = None,
    event_log_path: Optional[Path] = None
  ) -> None:
    self.timeout = timeout
    self.platform = normalize_platform(platform_id or sys.platform)
    self._runner = runner
    self._load_reader = load_reader
    self._core_counter = core_counter or (lambda: psutil.cpu_count(logical=True))
    self._model_reader = model_reader
    self.capabilities = PLATFORM_STRATEGIES if capabilities is None else capabilities
    self.generic = GENERIC_STRATEGIES if generic is None else tuple(generic)
    self.event_log_path = event_log_path

  def strategies(self, cores: int) -> List[Strategy]:
    chain = [self._command_strategy(spec) for spec in self.capabilities.get(self.platform, ())]
    chain.append(self._load_strategy(cores))
    chain.extend(self._command_strategy(spec) for spec in self.generic)
    return chain

  async def sample(self, observer: Optional[AttemptLog] = None) -> UtilizationSample:
    observer = observer if observer is not None else AttemptLog(self.event_log_path)
    cores = self._cores()
    model = self._model()
    for strategy in self.strategies(cores):
      try:
        raw = await strategy.invoke()
        value = validate_percentage(self._parse(strategy, raw))
      except ProbeError as exc:
        observer.record(strategy.name, _outcome(exc), str(exc))
        continue
      except Exception as exc:
        logger.debug('Strategy %s raised unexpectedly', strategy.name, exc_info=True)
        observer.record(strategy.name, 'error', f'{type(exc).__name__}: {exc}')
        continue
      observer.record(strategy.name, 'ok', value=value)
      loads = LoadAverages.from_text(raw) if strategy.kind is SampleKind.LOAD_AVERAGE_PROXY else None
      return UtilizationSample(
        success=True,
        value=value,
        kind=strategy.kind,
        core_count=cores,
        model_name=model,
        platform_hint=self.platform,
        load_averages=loads,
        strategy=strategy.name
      )
    return self._terminal_fallback(observer, cores, model)

  def _terminal_fallback(self, observer: AttemptLog, cores: int, model: str) -> UtilizationSample:
    try:
      loads = self._read_loads()
    except ProbeError as exc:
      observer.record(TERMINAL_STRATEGY, 'command_failed', str(exc))
      loads = LoadAverages(0.0, 0.0, 0.0)
    value = load_percentage(loads.one_min, cores)
    observer.record(TERMINAL_STRATEGY, 'ok', value=value)
    return UtilizationSample(
      success=True,
      value=value,
      kind=SampleKind.LOAD_AVERAGE_PROXY,
      core_count=cores,
      model_name=model,
      platform_hint=self.platform,
      load_averages=loads,
      strategy=TERMINAL_STRATEGY
    )

  def _command_strategy(self, spec: CommandSpec) -> Strategy:
    async def invoke() -> str:
      return await self._runner(spec.argv, self.timeout)
    return Strategy(name=spec.name, invoke=invoke, parse=spec.parse)

  def _load_strategy(self, cores: int) -> Strategy:
    async def invoke() -> str:
      return self._read_loads().as_text()
    return Strategy(
      name=LOAD_STRATEGY,
      invoke=invoke,
      parse=lambda raw: load_percentage(LoadAverages.from_text(raw).one_min, cores),
      kind=SampleKind.LOAD_AVERAGE_PROXY
    )

  def _read_loads(self) -> LoadAverages:
    try:
      one_min, five_min, fifteen_min = self._load_reader()
    except (OSError, AttributeError, ValueError) as exc:
      raise CommandFailure(f'load averages unavailable: {exc}') from exc
    return LoadAverages(float(one_min), float(five_min), float(fifteen_min))

  @staticmethod
  def _parse(strategy: Strategy, raw: str) -> float:
    try:
      return strategy.parse(raw)
    except (ValueError, IndexError) as exc:
      raise ParseFailure(str(exc)) from exc

  def _cores(self) -> int:
    try:
      count = self._core_counter()
    except (OSError, RuntimeError) as exc:
      logger.warning('Could not count CPU cores: %s', exc)
      count = None
    return max(count or 1, 1)

  def _model(self) -> str:
    try:
      return self._model_reader() or 'unknown'
    except OSError as exc:
      logger.warning('Could not read CPU model: %s', exc)
      return 'unknown'


def _outcome(exc: ProbeError) -> str:
  for error_type, outcome in _FAILURE_OUTCOMES:
    if isinstance(exc, error_type):
      return outcome
  return 'failed'
