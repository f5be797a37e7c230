import asyncio
import json
from types import SimpleNamespace

from hostmonitor.cli import __main__ as cli
from hostmonitor.resources.cpu import CommandSpec, ResourceProbe, parse_number
from hostmonitor.resources.disk import DiskProbe
from hostmonitor.resources.memory import MemoryProbe
from hostmonitor.resources.monitor import ResourceMonitor


def build_monitor(fake_runner):
  runner = fake_runner({
    'fake-top': '23.4',
    'df': 'Filesystem Size Used Avail Use% Mounted on\n/dev/sda1 100G 40G 55G 42% /\n'
  })
  return ResourceMonitor(
    cpu=ResourceProbe(
      platform_id='testos',
      runner=runner,
      load_reader=lambda: (1.0, 1.0, 1.0),
      core_counter=lambda: 4,
      model_reader=lambda: 'Test CPU',
      capabilities={'testos': (CommandSpec('fake-top', ('fake-top',), parse_number),)}
    ),
    memory=MemoryProbe(reader=lambda: SimpleNamespace(total=8 * 1024 ** 3, available=2 * 1024 ** 3)),
    disk=DiskProbe(runner=runner)
  )


def test_snapshot_composes_all_probes(fake_runner):
  payload = asyncio.run(build_monitor(fake_runner).snapshot())
  assert payload['success'] is True
  assert payload['timestamp'].endswith('Z')
  assert payload['ram']['percentage'] == '75.0'
  assert payload['disk']['usage_percent'] == '42'
  assert payload['cpu']['value'] == '23.4'
  assert payload['cpu']['model'] == 'Test CPU'


def test_cli_snapshot_prints_json(fake_runner, monkeypatch, capsys):
  monkeypatch.setattr(cli, 'build_monitor', lambda: build_monitor(fake_runner))
  assert cli.main(['snapshot']) == 0
  payload = json.loads(capsys.readouterr().out)
  assert payload['cpu']['kind'] == 'percentage'


def test_cli_cpu_verbose_lists_attempts(fake_runner, monkeypatch, capsys):
  monkeypatch.setattr(cli, 'build_monitor', lambda: build_monitor(fake_runner))
  monkeypatch.setattr(cli.settings, 'event_log_path', None)
  assert cli.main(['cpu', '--json', '--verbose']) == 0
  payload = json.loads(capsys.readouterr().out)
  assert payload['value'] == '23.4'
  assert [attempt['strategy'] for attempt in payload['attempts']] == ['fake-top']
