from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from hostmonitor.api.app import app
from hostmonitor.api.routes import system


class StaticMonitor:
  def __init__(self, payload=None, error=None):
    self.payload = payload
    self.error = error
    self.calls = 0

  async def snapshot(self):
    self.calls += 1
    if self.error:
      raise self.error
    return self.payload


SNAPSHOT = {
  'success': True,
  'timestamp': '2026-10-18T10:00:00Z',
  'ram': {'success': True, 'percentage': '75.0'},
  'disk': {'success': False, 'error': 'Could not parse disk usage'},
  'cpu': {'success': True, 'kind': 'percentage', 'value': '23.4', 'cores': 4}
}


@pytest.fixture
def client():
  return TestClient(app, raise_server_exceptions=False)


def test_health_never_touches_probes(client, monkeypatch):
  monitor = StaticMonitor(error=RuntimeError('probe exploded'))
  monkeypatch.setattr(system, 'resources', monitor)
  response = client.get('/health')
  assert response.status_code == 200
  body = response.json()
  assert body['status'] == 'ok'
  datetime.fromisoformat(body['timestamp'].replace('Z', '+00:00'))
  assert monitor.calls == 0


def test_system_embeds_partial_failures(client, monkeypatch):
  monkeypatch.setattr(system, 'resources', StaticMonitor(payload=SNAPSHOT))
  response = client.get('/system')
  assert response.status_code == 200
  body = response.json()
  assert body['success'] is True
  assert body['disk'] == {'success': False, 'error': 'Could not parse disk usage'}
  assert body['cpu']['value'] == '23.4'


def test_system_internal_fault_is_500(client, monkeypatch):
  monkeypatch.setattr(system, 'resources', StaticMonitor(error=RuntimeError('serialization failed')))
  response = client.get('/system')
  assert response.status_code == 500
  assert response.json() == {'success': False, 'error': 'serialization failed'}
