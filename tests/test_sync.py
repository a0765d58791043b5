# tests/test_sync.py

import asyncio

from gateway import PersistenceGateway
from ledger import LedgerService
from local_store import LocalStore
from models import Collection
from remote_store import RemoteStore, RemoteStoreError
from sync import StatusMonitor, StorageMode, SyncOrchestrator
from tests.conftest import FIXED_NOW, failing_transport


class TestStartup:
  async def test_pulls_remote_state_when_reachable(self, engine, remote):
    await remote.store_collection(Collection.CUSTOMERS, [])
    await remote.store_collection(Collection.COUPONS, [])
    gw = PersistenceGateway(SyncOrchestrator(LocalStore(engine), remote, StorageMode.HYBRID))
    await gw.start()

    assert gw.orchestrator.remote_available
    assert gw.get(Collection.CUSTOMERS) == []
    assert gw.local.load(Collection.COUPONS) == []
    # absent remote settings never replace local ones
    assert gw.get(Collection.SETTINGS)["businessName"] == "Curry Point"

  async def test_unreachable_remote_falls_back_to_seed(self, engine, down_remote):
    gw = PersistenceGateway(SyncOrchestrator(LocalStore(engine), down_remote, StorageMode.HYBRID))
    await gw.start()

    assert not gw.orchestrator.remote_available
    assert len(gw.get(Collection.CUSTOMERS)) == 2
    assert gw.orchestrator.status()["remoteConfigured"] is True

  async def test_malformed_remote_reply_keeps_local_data(self, engine):
    bad = RemoteStore("http://docstore", "currypoint", transport=failing_transport(status_code=200))
    gw = PersistenceGateway(SyncOrchestrator(LocalStore(engine), bad, StorageMode.HYBRID))
    await gw.start()

    assert gw.orchestrator.remote_available
    assert len(gw.get(Collection.CUSTOMERS)) == 2
    assert len(gw.get(Collection.PAYMENT_SLABS)) == 5
    assert len(await gw.read(Collection.TRANSACTIONS)) == 4

    await gw.refresh()
    assert len(gw.get(Collection.CUSTOMERS)) == 2

  async def test_local_only_without_remote(self, gateway):
    status = gateway.orchestrator.status()
    assert status["remoteConfigured"] is False
    assert status["mode"] == "local"
    assert gateway.counts() == {"customers": 2, "transactions": 4, "paymentSlabs": 5, "coupons": 3}


class TestReadWrite:
  async def test_write_is_mirrored_to_remote(self, synced_gateway, remote):
    task = synced_gateway.write(Collection.COUPONS, [])
    assert synced_gateway.local.load(Collection.COUPONS) == []
    assert await task is True
    assert await remote.list_all(Collection.COUPONS) == []

  async def test_remote_failure_keeps_local_write(self, synced_gateway):
    errors = []
    synced_gateway.on_error(errors.append)
    synced_gateway.orchestrator.remote.transport = failing_transport(status_code=500)

    task = synced_gateway.write(Collection.COUPONS, [])

    assert await task is False
    assert synced_gateway.get(Collection.COUPONS) == []
    assert synced_gateway.local.load(Collection.COUPONS) == []
    assert len(errors) == 1
    assert isinstance(errors[0], RemoteStoreError)

  async def test_local_mode_skips_remote(self, synced_gateway, remote):
    synced_gateway.orchestrator.set_mode(StorageMode.LOCAL)
    assert await synced_gateway.write(Collection.COUPONS, []) is True
    assert len(await remote.list_all(Collection.COUPONS)) == 3

  async def test_hybrid_read_falls_back_to_local(self, synced_gateway):
    synced_gateway.write(Collection.COUPONS, [])
    await synced_gateway.drain()
    synced_gateway.orchestrator.remote.transport = failing_transport()
    assert await synced_gateway.read(Collection.COUPONS) == []

  async def test_remote_read_prefers_remote(self, synced_gateway, remote):
    synced_gateway.orchestrator.set_mode(StorageMode.REMOTE)
    await remote.store_collection(Collection.COUPONS, [])
    assert await synced_gateway.read(Collection.COUPONS) == []
    assert len(synced_gateway.local.load(Collection.COUPONS)) == 3

  async def test_change_listeners(self, gateway):
    seen = []

    def broken(changed):
      raise RuntimeError("listener bug")

    gateway.add_listener(broken)
    gateway.add_listener(seen.append)
    await gateway.write(Collection.COUPONS, [])
    assert seen == [frozenset({Collection.COUPONS})]

    gateway.remove_listener(seen.append)
    await gateway.write(Collection.COUPONS, [])
    assert len(seen) == 1

  async def test_refresh_adopts_remote_values(self, synced_gateway, remote):
    await remote.store_collection(Collection.COUPONS, [])
    await synced_gateway.refresh()
    assert synced_gateway.get(Collection.COUPONS) == []
    assert synced_gateway.local.load(Collection.COUPONS) == []

  async def test_refresh_ignores_malformed_remote(self, synced_gateway, remote):
    await remote.store_collection(Collection.CUSTOMERS, [{"id": "not-a-number"}])
    await synced_gateway.refresh()
    assert len(synced_gateway.get(Collection.CUSTOMERS)) == 2


class TestBulkSync:
  async def test_push_all_overwrites_remote(self, synced_gateway, remote):
    synced_gateway.orchestrator.set_mode(StorageMode.LOCAL)
    await synced_gateway.write(Collection.COUPONS, [])

    assert await synced_gateway.push_all()
    assert await remote.list_all(Collection.COUPONS) == []
    assert synced_gateway.orchestrator.status()["lastPush"]["ok"] is True

  async def test_pull_all_overwrites_local(self, synced_gateway, remote):
    seen = []
    synced_gateway.add_listener(seen.append)
    await remote.store_collection(Collection.TRANSACTIONS, [])

    assert await synced_gateway.pull_all()
    assert synced_gateway.get(Collection.TRANSACTIONS) == []
    assert seen == [frozenset(Collection)]

  async def test_empty_remote_slabs_keep_local_slabs(self, synced_gateway, remote):
    await remote.store_collection(Collection.PAYMENT_SLABS, [])
    await remote.store_collection(Collection.COUPONS, [])

    assert await synced_gateway.pull_all()
    assert len(synced_gateway.get(Collection.PAYMENT_SLABS)) == 5
    assert synced_gateway.get(Collection.COUPONS) == []
    assert len(await synced_gateway.read(Collection.PAYMENT_SLABS)) == 5

  async def test_pull_aborts_on_malformed_remote(self, synced_gateway, remote):
    await remote.store_collection(Collection.TRANSACTIONS, [])
    await remote.store_collection(Collection.COUPONS, [{"id": 1, "code": "X"}])

    assert not await synced_gateway.pull_all()
    assert len(synced_gateway.get(Collection.TRANSACTIONS)) == 4
    assert synced_gateway.orchestrator.status()["lastPull"]["ok"] is False

  async def test_sync_requires_available_remote(self, engine, down_remote):
    gw = PersistenceGateway(SyncOrchestrator(LocalStore(engine), down_remote, StorageMode.HYBRID))
    await gw.start()
    assert not await gw.push_all()
    assert not await gw.pull_all()

  async def test_concurrent_sync_is_refused(self, synced_gateway):
    synced_gateway.orchestrator.sync_in_progress = True
    assert not await synced_gateway.push_all()
    assert not await synced_gateway.pull_all()

  async def test_push_reports_partial_failure(self, synced_gateway):
    synced_gateway.orchestrator.remote.transport = failing_transport(status_code=503)
    assert not await synced_gateway.push_all()


class TestModes:
  async def test_toggle_cycles_through_modes(self, synced_gateway):
    orchestrator = synced_gateway.orchestrator
    assert orchestrator.mode is StorageMode.HYBRID
    assert orchestrator.toggle_mode() is StorageMode.LOCAL
    assert orchestrator.toggle_mode() is StorageMode.REMOTE
    assert orchestrator.toggle_mode() is StorageMode.HYBRID

  async def test_local_stays_local_without_remote(self, engine, down_remote):
    orchestrator = SyncOrchestrator(LocalStore(engine), down_remote, StorageMode.LOCAL)
    await orchestrator.initialize()
    assert orchestrator.toggle_mode() is StorageMode.LOCAL


class TestStatusMonitor:
  async def test_check_snapshot(self, synced_gateway):
    monitor = StatusMonitor(synced_gateway, interval=60)
    snapshot = await monitor.check()
    assert snapshot["remoteReachable"] is True
    assert snapshot["mode"] == "hybrid"
    assert snapshot["counts"]["customers"] == 2

  async def test_monitor_observes_without_changing_mode(self, synced_gateway):
    synced_gateway.orchestrator.remote.transport = failing_transport()
    monitor = StatusMonitor(synced_gateway, interval=0.01)
    monitor.start()
    assert monitor.running
    await asyncio.sleep(0.05)
    await monitor.stop()

    assert not monitor.running
    assert monitor.snapshot["remoteReachable"] is False
    assert synced_gateway.orchestrator.remote_available is True
    assert synced_gateway.orchestrator.mode is StorageMode.HYBRID


class TestLedgerOverRemote:
  async def test_payment_reaches_remote(self, synced_gateway, remote):
    ledger = LedgerService(synced_gateway, clock=lambda: FIXED_NOW)
    result = await ledger.record_payment(1, 250)

    assert await result.sync is True
    remote_tx = await remote.list_all(Collection.TRANSACTIONS)
    assert remote_tx[-1]["amount"] == 250
    remote_customer = (await remote.list_all(Collection.CUSTOMERS))[0]
    assert remote_customer["points"] == 125 + result.data["pointsEarned"]
