# sync.py
"""
Tier selection and bulk reconciliation between the local and remote stores.

Reads and writes consult the current StorageMode. Remote failures are logged
and degrade to local behaviour; they never propagate to callers.

push_all/pull_all replace whole collections one by one and are not
transactional across collections: an interrupted push can leave the remote
collections at different sync points.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import ValidationError

from local_store import LocalStore
from models import Collection, must_stay_present, parse_collection
from remote_store import RemoteStore, RemoteStoreError

logger = logging.getLogger(__name__)


class StorageMode(str, Enum):
  LOCAL = "local"
  REMOTE = "remote"
  HYBRID = "hybrid"


@dataclass
class SyncReport:
  direction: str  # push|pull
  ok: bool
  at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class SyncOrchestrator:
  def __init__(self, local: LocalStore, remote: Optional[RemoteStore] = None, mode: StorageMode = StorageMode.HYBRID):
    self.local = local
    self.remote = remote
    self.mode = mode
    self.remote_available = False
    self.sync_in_progress = False
    self.last_push: Optional[SyncReport] = None
    self.last_pull: Optional[SyncReport] = None

  async def initialize(self) -> bool:
    """Seed the local tier, probe the remote and pull from it when reachable."""
    self.local.initialize()
    if self.remote is None:
      logger.info("No remote store configured, running local-only")
      return False

    self.remote_available = await self.remote.ping()
    logger.info("Remote store connection: %s", "SUCCESS" if self.remote_available else "FAILED")
    if self.remote_available:
      await self.pull_all()
    return self.remote_available

  @property
  def remote_enabled(self) -> bool:
    return self.remote is not None and self.remote_available and self.mode is not StorageMode.LOCAL

  async def read(self, collection: Collection) -> Any:
    if not self.remote_enabled:
      return self.local.load(collection)

    try:
      value = await self.remote.fetch_collection(collection)
    except RemoteStoreError as exc:
      logger.warning("Remote fetch failed for %s, using local store: %s", collection.value, exc)
      return self.local.load(collection)

    if value is None or (not value and must_stay_present(collection)):
      return self.local.load(collection)
    return value

  async def write_remote(self, collection: Collection, value: Any) -> bool:
    if not self.remote_enabled:
      return True
    try:
      await self.remote.store_collection(collection, value)
    except RemoteStoreError as exc:
      logger.warning("Remote save failed for %s: %s", collection.value, exc)
      return False
    return True

  async def push_all(self) -> bool:
    if self.remote is None or not self.remote_available or self.sync_in_progress:
      return False

    self.sync_in_progress = True
    try:
      snapshot = self.local.load_all()
      results = await asyncio.gather(
        *(self.remote.store_collection(c, snapshot[c]) for c in Collection),
        return_exceptions=True,
      )
      ok = True
      for c, result in zip(Collection, results):
        if isinstance(result, Exception):
          logger.warning("Push failed for %s: %s", c.value, result)
          ok = False
      logger.info("Sync to remote: %s", "SUCCESS" if ok else "FAILED")
      self.last_push = SyncReport("push", ok)
      return ok
    finally:
      self.sync_in_progress = False

  async def pull_all(self) -> bool:
    if self.remote is None or not self.remote_available or self.sync_in_progress:
      return False

    self.sync_in_progress = True
    try:
      ok = await self._pull()
      logger.info("Sync from remote: %s", "SUCCESS" if ok else "FAILED")
      self.last_pull = SyncReport("pull", ok)
      return ok
    finally:
      self.sync_in_progress = False

  async def _pull(self) -> bool:
    try:
      values = await asyncio.gather(*(self.remote.fetch_collection(c) for c in Collection))
    except RemoteStoreError as exc:
      logger.warning("Pull failed: %s", exc)
      return False

    changes: Dict[Collection, Any] = {}
    for c, value in zip(Collection, values):
      if value is None or (not value and must_stay_present(c)):
        continue
      try:
        parse_collection(c, value)
      except ValidationError as exc:
        logger.warning("Remote %s is malformed, pull aborted: %s", c.value, exc)
        return False
      changes[c] = value

    self.local.save_many(changes)
    return True

  def set_mode(self, mode: StorageMode) -> StorageMode:
    self.mode = mode
    logger.info("Storage mode changed to: %s", self.mode.value)
    return self.mode

  def toggle_mode(self) -> StorageMode:
    if self.mode is StorageMode.LOCAL:
      return self.set_mode(StorageMode.REMOTE if self.remote_available else StorageMode.LOCAL)
    if self.mode is StorageMode.REMOTE:
      return self.set_mode(StorageMode.HYBRID)
    return self.set_mode(StorageMode.LOCAL)

  def status(self) -> Dict[str, Any]:
    return {
      "mode": self.mode.value,
      "remoteConfigured": self.remote is not None,
      "remoteAvailable": self.remote_available,
      "syncInProgress": self.sync_in_progress,
      "lastPush": _report(self.last_push),
      "lastPull": _report(self.last_pull),
    }


def _report(report: Optional[SyncReport]) -> Optional[Dict[str, Any]]:
  if report is None:
    return None
  return {"ok": report.ok, "at": report.at.isoformat()}


class StatusMonitor:
  """Periodic remote probe for the sync status display.

  Observes only: it never changes the storage mode or the availability flag.
  """

  def __init__(self, gateway, interval: float = 10):
    self.gateway = gateway
    self.interval = interval
    self.snapshot: Dict[str, Any] = {}
    self._task: Optional[asyncio.Task] = None

  @property
  def running(self) -> bool:
    return self._task is not None and not self._task.done()

  async def check(self) -> Dict[str, Any]:
    orchestrator = self.gateway.orchestrator
    reachable = await orchestrator.remote.ping() if orchestrator.remote is not None else False
    self.snapshot = {
      **orchestrator.status(),
      "remoteReachable": reachable,
      "checkedAt": datetime.now(timezone.utc).isoformat(),
      "counts": self.gateway.counts(),
    }
    return self.snapshot

  async def _run(self) -> None:
    while True:
      try:
        await self.check()
      except Exception:
        logger.exception("Sync status check failed")
      await asyncio.sleep(self.interval)

  def start(self) -> None:
    if not self.running:
      self._task = asyncio.create_task(self._run())

  async def stop(self) -> None:
    if self._task is None:
      return
    self._task.cancel()
    try:
      await self._task
    except asyncio.CancelledError:
      pass
    self._task = None
