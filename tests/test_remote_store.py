# tests/test_remote_store.py

import pytest

from models import Collection
from remote_store import RemoteStore, RemoteStoreError
from tests.conftest import failing_transport


class TestRemoteStore:
  """Remote client against the in-process document store"""

  async def test_ping(self, remote, down_remote):
    assert await remote.ping() is True
    assert await down_remote.ping() is False

  async def test_replace_and_list(self, remote):
    docs = [{"id": 1, "code": "A"}, {"id": 2, "code": "B"}]
    await remote.replace_all(Collection.COUPONS, docs)
    assert await remote.list_all(Collection.COUPONS) == docs

    await remote.replace_all(Collection.COUPONS, [{"id": 3, "code": "C"}])
    assert await remote.list_all(Collection.COUPONS) == [{"id": 3, "code": "C"}]

  async def test_settings_round_trip_as_single_document(self, remote):
    assert await remote.fetch_collection(Collection.SETTINGS) is None
    await remote.store_collection(Collection.SETTINGS, {"businessName": "Curry Point", "pointsToRupeeRatio": 0.5})
    assert await remote.fetch_collection(Collection.SETTINGS) == {"businessName": "Curry Point", "pointsToRupeeRatio": 0.5}

  async def test_upsert_and_delete(self, remote):
    await remote.replace_all(Collection.CUSTOMERS, [{"id": 1, "name": "John"}])
    await remote.upsert(Collection.CUSTOMERS, {"id": 1, "name": "John D."})
    await remote.upsert(Collection.CUSTOMERS, {"id": 2, "name": "Asha"})
    assert await remote.list_all(Collection.CUSTOMERS) == [{"id": 1, "name": "John D."}, {"id": 2, "name": "Asha"}]

    await remote.delete(Collection.CUSTOMERS, 1)
    assert await remote.list_all(Collection.CUSTOMERS) == [{"id": 2, "name": "Asha"}]

  async def test_internal_keys_are_stripped(self, remote):
    await remote.replace_all(Collection.COUPONS, [{"_id": "abc", "id": 1}])
    assert await remote.list_all(Collection.COUPONS) == [{"id": 1}]

  async def test_unknown_database_is_an_error(self, docstore_app):
    import httpx
    other = RemoteStore("http://docstore", "elsewhere", transport=httpx.ASGITransport(app=docstore_app))
    with pytest.raises(RemoteStoreError):
      await other.list_all(Collection.CUSTOMERS)

  async def test_error_status_raises(self):
    store = RemoteStore("http://docstore", "currypoint", transport=failing_transport(status_code=500))
    with pytest.raises(RemoteStoreError):
      await store.list_all(Collection.CUSTOMERS)

  async def test_connection_error_raises(self, down_remote):
    with pytest.raises(RemoteStoreError):
      await down_remote.replace_all(Collection.CUSTOMERS, [])

  async def test_non_array_body_is_an_error(self):
    store = RemoteStore("http://docstore", "currypoint", transport=failing_transport(status_code=200))
    assert await store.ping() is True
    with pytest.raises(RemoteStoreError):
      await store.list_all(Collection.CUSTOMERS)
