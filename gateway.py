# gateway.py
import asyncio
import copy
import logging
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Set

from pydantic import ValidationError

from models import Collection, dump_collection, is_singleton, parse_collection
from remote_store import RemoteStoreError
from sync import SyncOrchestrator

logger = logging.getLogger(__name__)

ChangeListener = Callable[[FrozenSet[Collection]], None]
ErrorListener = Callable[[Exception], None]


class PersistenceGateway:
  """Uniform read/write surface over the five ledger collections.

  The local tier is written synchronously on every commit and the in-memory
  cache always mirrors it. Remote mirroring runs as a background task whose
  outcome callers may await; failures go to the log and to error listeners.
  """

  def __init__(self, orchestrator: SyncOrchestrator):
    self.orchestrator = orchestrator
    self._cache: Dict[Collection, Any] = {}
    self._pending: Set[asyncio.Task] = set()
    self._listeners: List[ChangeListener] = []
    self._error_listeners: List[ErrorListener] = []

  @property
  def local(self):
    return self.orchestrator.local

  async def start(self) -> None:
    await self.orchestrator.initialize()
    self.reload()
    logger.info("Storage cache initialized")

  async def close(self) -> None:
    await self.drain()

  def reload(self) -> None:
    self._cache = self.local.load_all()
    self._notify(frozenset(Collection))

  # ----- listeners -----

  def add_listener(self, listener: ChangeListener) -> None:
    self._listeners.append(listener)

  def remove_listener(self, listener: ChangeListener) -> None:
    if listener in self._listeners:
      self._listeners.remove(listener)

  def on_error(self, listener: ErrorListener) -> None:
    self._error_listeners.append(listener)

  def _notify(self, changed: FrozenSet[Collection]) -> None:
    for listener in list(self._listeners):
      try:
        listener(changed)
      except Exception:
        logger.exception("Change listener failed")

  def _report(self, error: Exception) -> None:
    logger.error("Background save failed: %s", error)
    for listener in list(self._error_listeners):
      try:
        listener(error)
      except Exception:
        logger.exception("Error listener failed")

  # ----- reads -----

  def get(self, collection: Collection) -> Any:
    if collection not in self._cache:
      self._cache[collection] = self.local.load(collection)
    return copy.deepcopy(self._cache[collection])

  def models(self, collection: Collection):
    return parse_collection(collection, self.get(collection))

  async def read(self, collection: Collection) -> Any:
    return await self.orchestrator.read(collection)

  async def refresh(self) -> None:
    """Re-read every collection through the current mode and adopt the result."""
    values = {}
    for c in Collection:
      value = await self.orchestrator.read(c)
      try:
        parse_collection(c, value)
      except ValidationError as exc:
        logger.warning("Ignoring malformed %s from refresh: %s", c.value, exc)
        value = self.local.load(c)
      values[c] = value
    self.local.save_many(values)
    self._cache = values
    self._notify(frozenset(Collection))

  def counts(self) -> Dict[str, int]:
    return {c.value: len(self.get(c)) for c in Collection if not is_singleton(c)}

  # ----- writes -----

  def commit(self, changes: Mapping[Collection, Any]) -> "asyncio.Task[bool]":
    docs = {c: dump_collection(c, v) for c, v in changes.items()}
    self.local.save_many(docs)
    self._cache.update(docs)
    self._notify(frozenset(docs))

    task = asyncio.create_task(self._mirror(docs))
    self._pending.add(task)
    task.add_done_callback(self._on_mirrored)
    return task

  def write(self, collection: Collection, value: Any) -> "asyncio.Task[bool]":
    return self.commit({collection: value})

  async def _mirror(self, docs: Dict[Collection, Any]) -> bool:
    failed = [c.value for c, v in docs.items() if not await self.orchestrator.write_remote(c, v)]
    if failed:
      self._report(RemoteStoreError(f"remote mirror failed for {', '.join(failed)}"))
    return not failed

  def _on_mirrored(self, task: asyncio.Task) -> None:
    self._pending.discard(task)
    if task.cancelled():
      return
    exc = task.exception()
    if exc is not None:
      self._report(exc)

  async def drain(self) -> None:
    if self._pending:
      await asyncio.gather(*list(self._pending), return_exceptions=True)

  # ----- bulk sync and snapshots -----

  async def push_all(self) -> bool:
    await self.drain()
    return await self.orchestrator.push_all()

  async def pull_all(self) -> bool:
    await self.drain()
    ok = await self.orchestrator.pull_all()
    if ok:
      self.reload()
    return ok

  def export_data(self) -> str:
    return self.local.export_data()

  def import_data(self, data: str) -> bool:
    ok = self.local.import_data(data)
    if ok:
      self.reload()
    return ok

  def reset(self) -> None:
    self.local.reset()
    self.reload()
