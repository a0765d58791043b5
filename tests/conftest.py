# tests/conftest.py

import pytest
import httpx
from datetime import datetime, timezone

from db import make_engine
from docstore import create_docstore_app
from gateway import PersistenceGateway
from ledger import LedgerService
from models import Collection
from local_store import LocalStore
from remote_store import RemoteStore
from seed import default_snapshot
from sync import StorageMode, SyncOrchestrator

FIXED_NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def failing_transport(exc: Exception = None, status_code: int = None) -> httpx.MockTransport:
  """Transport that either raises or answers every request with an error body."""
  def handler(request: httpx.Request) -> httpx.Response:
    if status_code is not None:
      return httpx.Response(status_code, json={"error": "boom"})
    raise exc or httpx.ConnectError("remote store down", request=request)
  return httpx.MockTransport(handler)


@pytest.fixture
def engine():
  return make_engine("sqlite://")


@pytest.fixture
def local_store(engine):
  store = LocalStore(engine)
  store.initialize()
  return store


@pytest.fixture
def docstore_app():
  return create_docstore_app(make_engine("sqlite://"), database="currypoint")


@pytest.fixture
def remote(docstore_app):
  return RemoteStore("http://docstore", "currypoint", transport=httpx.ASGITransport(app=docstore_app))


@pytest.fixture
def down_remote():
  return RemoteStore("http://docstore", "currypoint", transport=failing_transport())


@pytest.fixture
async def gateway(engine):
  gw = PersistenceGateway(SyncOrchestrator(LocalStore(engine), None, StorageMode.LOCAL))
  await gw.start()
  yield gw
  await gw.close()


@pytest.fixture
async def synced_gateway(engine, remote):
  seed = default_snapshot()
  for c in Collection:
    await remote.store_collection(c, seed[c.value])
  gw = PersistenceGateway(SyncOrchestrator(LocalStore(engine), remote, StorageMode.HYBRID))
  await gw.start()
  yield gw
  await gw.close()


@pytest.fixture
def ledger(gateway):
  return LedgerService(gateway, admin_phone="+91 9999999999", clock=lambda: FIXED_NOW)
