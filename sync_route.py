# sync_route.py
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel

from deps import get_gateway, get_monitor
from gateway import PersistenceGateway
from sync import StatusMonitor, StorageMode

router = APIRouter(prefix="/api/storage", tags=["storage"])


class ModeRequest(BaseModel):
  mode: StorageMode


@router.get("/status")
def storage_status(gateway: PersistenceGateway = Depends(get_gateway), monitor: StatusMonitor = Depends(get_monitor)):
  return {**gateway.orchestrator.status(), "counts": gateway.counts(), "monitor": monitor.snapshot}

@router.post("/mode/toggle")
def toggle_mode(gateway: PersistenceGateway = Depends(get_gateway)):
  return {"mode": gateway.orchestrator.toggle_mode().value}

@router.put("/mode")
def set_mode(body: ModeRequest, gateway: PersistenceGateway = Depends(get_gateway)):
  return {"mode": gateway.orchestrator.set_mode(body.mode).value}

@router.post("/push")
async def push_all(gateway: PersistenceGateway = Depends(get_gateway)):
  return {"ok": await gateway.push_all()}

@router.post("/pull")
async def pull_all(gateway: PersistenceGateway = Depends(get_gateway)):
  return {"ok": await gateway.pull_all()}

@router.post("/refresh")
async def refresh(gateway: PersistenceGateway = Depends(get_gateway)):
  await gateway.refresh()
  return {"ok": True, "counts": gateway.counts()}

@router.get("/export")
def export_data(gateway: PersistenceGateway = Depends(get_gateway)):
  return Response(content=gateway.export_data(), media_type="application/json")

@router.post("/import")
async def import_data(request: Request, gateway: PersistenceGateway = Depends(get_gateway)):
  raw = (await request.body()).decode("utf-8")
  if not gateway.import_data(raw):
    raise HTTPException(status_code=400, detail="Invalid data format")
  return {"ok": True}

@router.post("/reset")
def reset(gateway: PersistenceGateway = Depends(get_gateway)):
  gateway.reset()
  return {"ok": True}
