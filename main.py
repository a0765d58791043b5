import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import db
from gateway import PersistenceGateway
from ledger import LedgerService
from local_store import LocalStore
from loyalty_route import router as loyalty_router
from remote_store import RemoteStore
from sync import StatusMonitor, StorageMode, SyncOrchestrator
from sync_route import router as storage_router

load_dotenv()

REMOTE_STORE_URL = os.getenv("REMOTE_STORE_URL", "").strip()
REMOTE_STORE_DB = os.getenv("REMOTE_STORE_DB", "currypoint").strip()
REMOTE_TIMEOUT = float(os.getenv("REMOTE_TIMEOUT", "5"))
REMOTE_PROBE_TIMEOUT = float(os.getenv("REMOTE_PROBE_TIMEOUT", "3"))
STORAGE_MODE = os.getenv("STORAGE_MODE", StorageMode.HYBRID.value).strip()
SYNC_STATUS_INTERVAL = float(os.getenv("SYNC_STATUS_INTERVAL", "10"))
ADMIN_PHONE = os.getenv("ADMIN_PHONE", "+91 9999999999").strip()
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()
CORS_ORIGINS = [
  x.strip()
  for x in os.getenv("CORS_ORIGINS", "http://127.0.0.1:5173,http://localhost:5173").split(",")
  if x.strip()
]

logging.basicConfig(
  level=LOG_LEVEL,
  format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_remote() -> Optional[RemoteStore]:
  if not REMOTE_STORE_URL:
    return None
  return RemoteStore(REMOTE_STORE_URL, REMOTE_STORE_DB, timeout=REMOTE_TIMEOUT,
                     probe_timeout=REMOTE_PROBE_TIMEOUT)


def create_app(engine=None, remote: Optional[RemoteStore] = None, mode: Optional[StorageMode] = None) -> FastAPI:
  """Build the API with its own storage stack.

  ``engine`` and ``remote`` default to the configured database and document
  store; tests pass in-memory replacements.
  """

  @asynccontextmanager
  async def lifespan(app: FastAPI):
    orchestrator = SyncOrchestrator(
      LocalStore(engine or db.engine),
      remote if remote is not None else build_remote(),
      mode or StorageMode(STORAGE_MODE),
    )
    gateway = PersistenceGateway(orchestrator)
    await gateway.start()
    monitor = StatusMonitor(gateway, interval=SYNC_STATUS_INTERVAL)
    monitor.start()

    app.state.gateway = gateway
    app.state.ledger = LedgerService(gateway, admin_phone=ADMIN_PHONE)
    app.state.monitor = monitor
    logger.info("Curry Point ready (mode=%s, remote=%s)", orchestrator.mode.value, orchestrator.remote_available)
    try:
      yield
    finally:
      await monitor.stop()
      await gateway.close()

  app = FastAPI(title="Curry Point Backend", version="1.0.0", lifespan=lifespan)
  app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
  )
  app.include_router(loyalty_router)
  app.include_router(storage_router)

  @app.get("/health")
  def health():
    status = app.state.gateway.orchestrator.status()
    return {"ok": True, "mode": status["mode"], "remote_available": status["remoteAvailable"]}

  return app


app = create_app()


if __name__ == "__main__":
  import uvicorn
  port = int(os.getenv("PORT", 8000))
  uvicorn.run(app, host="0.0.0.0", port=port)
