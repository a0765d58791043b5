# remote_store.py
import logging
from typing import Any, Dict, List, Optional

import httpx

from models import Collection, is_singleton

logger = logging.getLogger(__name__)


class RemoteStoreError(Exception):
  pass


def _strip_internal(doc: Dict[str, Any]) -> Dict[str, Any]:
  return {k: v for k, v in doc.items() if not k.startswith("_")}


class RemoteStore:
  """HTTP client for the shared document store.

  Every collection lives at ``{base_url}/{database}/{collection}``. Methods
  raise RemoteStoreError on transport failures, timeouts, non-2xx replies and
  bodies that are not a JSON array.

  The gateway mirrors whole collections through replace_all; upsert and delete
  complete the per-document contract for other clients of the store.
  """

  def __init__(self, base_url: str, database: str = "currypoint", timeout: float = 5,
               probe_timeout: float = 3, transport: Optional[httpx.AsyncBaseTransport] = None):
    self.base_url = base_url.rstrip("/")
    self.database = database
    self.timeout = timeout
    self.probe_timeout = probe_timeout
    self.transport = transport

  def _url(self, *parts: Any) -> str:
    return "/".join([self.base_url, self.database] + [str(p) for p in parts])

  async def _request(self, method: str, url: str, timeout: Optional[float] = None, **kwargs) -> httpx.Response:
    try:
      async with httpx.AsyncClient(timeout=timeout or self.timeout, transport=self.transport) as client:
        r = await client.request(method, url, **kwargs)
    except httpx.HTTPError as exc:
      raise RemoteStoreError(f"{method} {url} failed: {exc!r}") from exc
    if r.status_code >= 400:
      raise RemoteStoreError(f"{method} {url} returned {r.status_code} {r.text}")
    return r

  async def ping(self) -> bool:
    try:
      await self._request("GET", self._url("ping"), timeout=self.probe_timeout)
    except RemoteStoreError as exc:
      logger.warning("Remote store unreachable: %s", exc)
      return False
    return True

  async def list_all(self, collection: Collection) -> List[Dict[str, Any]]:
    r = await self._request("GET", self._url(collection.value))
    try:
      data = r.json()
    except ValueError as exc:
      raise RemoteStoreError(f"malformed response for {collection.value}") from exc
    if not isinstance(data, list):
      raise RemoteStoreError(f"malformed response for {collection.value}")
    return [_strip_internal(d) for d in data if isinstance(d, dict)]

  async def replace_all(self, collection: Collection, docs: List[Dict[str, Any]]) -> None:
    await self._request("POST", self._url(collection.value), json=docs)

  async def upsert(self, collection: Collection, doc: Dict[str, Any]) -> None:
    await self._request("PUT", self._url(collection.value, doc["id"]), json=doc)

  async def delete(self, collection: Collection, doc_id: int) -> None:
    await self._request("DELETE", self._url(collection.value, doc_id))

  async def fetch_collection(self, collection: Collection) -> Any:
    """Whole collection value; None for an absent settings document."""
    docs = await self.list_all(collection)
    if is_singleton(collection):
      return docs[0] if docs else None
    return docs

  async def store_collection(self, collection: Collection, value: Any) -> None:
    docs = [value] if is_singleton(collection) else list(value)
    await self.replace_all(collection, docs)
