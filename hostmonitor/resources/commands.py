from __future__ import annotations

import asyncio
import logging
import shutil
from typing import Awaitable, Callable, Sequence

logger = logging.getLogger(__name__)

CommandRunner = Callable[[Sequence[str], float], Awaitable[str]]


class ProbeError(Exception):
  """Base class for failures while measuring a host resource."""


class CommandFailure(ProbeError):
  """The measurement command is missing, timed out, exited nonzero or printed nothing."""


class ParseFailure(ProbeError):
  """Command output did not contain a number where one was expected."""


class OutOfRangeFailure(ProbeError):
  """A parsed percentage fell outside [0, 100]."""


async def run_command(argv: Sequence[str], timeout: float) -> str:
  """Run ``argv`` without a shell and return its stdout.

  The child is killed and reaped when the timeout expires or the awaiting
  task is cancelled.
  """
  executable = shutil.which(argv[0])
  if not executable:
    raise CommandFailure(f'{argv[0]} not available on host')
  try:
    process = await asyncio.create_subprocess_exec(
      executable,
      *argv[1:],
      stdout=asyncio.subprocess.PIPE,
      stderr=asyncio.subprocess.PIPE
    )
  except OSError as exc:
    raise CommandFailure(f'{argv[0]} could not be started: {exc}') from exc

  try:
    stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
  except asyncio.TimeoutError as exc:
    _kill(process)
    await process.communicate()
    raise CommandFailure(f'{argv[0]} timed out after {timeout:g}s') from exc
  except asyncio.CancelledError:
    _kill(process)
    await asyncio.shield(process.communicate())
    raise

  output = stdout.decode('utf-8', errors='replace')
  if process.returncode != 0:
    message = stderr.decode('utf-8', errors='replace').strip() or output.strip()
    raise CommandFailure(f'{argv[0]} exited with {process.returncode}: {message}')
  if not output.strip():
    raise CommandFailure(f'{argv[0]} produced no output')
  return output


def _kill(process: asyncio.subprocess.Process) -> None:
  if process.returncode is not None:
    return
  try:
    process.kill()
  except ProcessLookupError:
    logger.debug('Process %s already exited', process.pid)
