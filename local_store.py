# local_store.py
"""
Local tier of the ledger.

Each collection is stored as one JSON document in the ``collectionrecord``
table. Writes are synchronous and a multi-collection change is committed in a
single database transaction.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping

from pydantic import ValidationError
from sqlmodel import Session, select

from db import init_db
from models import Collection, CollectionRecord, is_singleton, parse_collection
from seed import default_snapshot

logger = logging.getLogger(__name__)


def _encode(value: Any) -> str:
  return json.dumps(value, ensure_ascii=False)


def _empty(collection: Collection) -> Any:
  return {} if is_singleton(collection) else []


class LocalStore:
  def __init__(self, engine):
    self.engine = engine

  def initialize(self) -> None:
    """Create the table and seed any collection that has never been written."""
    init_db(self.engine)
    defaults = default_snapshot()
    with Session(self.engine) as session:
      present = {r.name for r in session.exec(select(CollectionRecord)).all()}
    missing = {c: defaults[c.value] for c in Collection if c.value not in present}
    if missing:
      logger.info("Seeding local store: %s", ", ".join(c.value for c in missing))
      self.save_many(missing)

  def load(self, collection: Collection) -> Any:
    with Session(self.engine) as session:
      row = session.get(CollectionRecord, collection.value)
    if row is None:
      return _empty(collection)
    return json.loads(row.data)

  def load_all(self) -> Dict[Collection, Any]:
    with Session(self.engine) as session:
      rows = {r.name: r for r in session.exec(select(CollectionRecord)).all()}
    return {
      c: json.loads(rows[c.value].data) if c.value in rows else _empty(c)
      for c in Collection
    }

  def save(self, collection: Collection, value: Any) -> None:
    self.save_many({collection: value})

  def save_many(self, changes: Mapping[Collection, Any]) -> None:
    now = datetime.now(timezone.utc)
    with Session(self.engine) as session:
      for collection, value in changes.items():
        row = session.get(CollectionRecord, collection.value)
        if row is None:
          row = CollectionRecord(name=collection.value, data=_encode(value), updated_at=now)
        else:
          row.data = _encode(value)
          row.updated_at = now
        session.add(row)
      session.commit()

  def export_data(self) -> str:
    snapshot = self.load_all()
    return _encode({c.value: snapshot[c] for c in Collection})

  def import_data(self, data: str) -> bool:
    try:
      parsed = json.loads(data)
    except ValueError as exc:
      logger.error("Invalid data format: %s", exc)
      return False

    if not isinstance(parsed, dict) or any(c.value not in parsed for c in Collection):
      logger.error("Import rejected: expected keys %s", [c.value for c in Collection])
      return False

    try:
      for c in Collection:
        parse_collection(c, parsed[c.value])
    except (ValidationError, TypeError) as exc:
      logger.error("Import rejected: %s", exc)
      return False

    self.save_many({c: parsed[c.value] for c in Collection})
    return True

  def reset(self) -> Dict[Collection, Any]:
    defaults = default_snapshot()
    snapshot = {c: defaults[c.value] for c in Collection}
    self.save_many(snapshot)
    return snapshot
