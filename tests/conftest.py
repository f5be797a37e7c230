from typing import Dict, Sequence

import pytest

from hostmonitor.resources.commands import CommandFailure


class FakeRunner:
  """Stands in for the command runner; maps a program name to canned output or an error."""

  def __init__(self, outputs: Dict[str, object]) -> None:
    self.outputs = outputs
    self.calls = []

  async def __call__(self, argv: Sequence[str], timeout: float) -> str:
    self.calls.append(tuple(argv))
    result = self.outputs.get(argv[0])
    if result is None:
      raise CommandFailure(f'{argv[0]} not available on host')
    if isinstance(result, Exception):
      raise result
    return result


@pytest.fixture
def fake_runner():
  return FakeRunner
