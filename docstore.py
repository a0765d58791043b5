# docstore.py
"""
Shared document store backing the remote tier.

Serves ``/{database}/{collection}`` over HTTP with list-all, replace-all,
upsert-by-id and delete-by-id, plus ``/{database}/ping``. Run it as its own
process and point REMOTE_STORE_URL at it.
"""
import json
import logging
import os
from typing import Any, Dict, List, Union

from dotenv import load_dotenv
from fastapi import Body, Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session, select

from db import init_db, make_engine
from models import Document

load_dotenv()

DOCSTORE_DATABASE_URL = os.getenv("DOCSTORE_DATABASE_URL", "sqlite:///./docstore.db").strip()
REMOTE_STORE_DB = os.getenv("REMOTE_STORE_DB", "currypoint").strip()

logger = logging.getLogger(__name__)


def _doc_id(doc: Dict[str, Any]):
  value = doc.get("id")
  return value if isinstance(value, int) else None


def create_docstore_app(engine=None, database: str = REMOTE_STORE_DB) -> FastAPI:
  engine = engine or make_engine(DOCSTORE_DATABASE_URL)
  init_db(engine)

  def get_session():
    with Session(engine) as session:
      yield session

  app = FastAPI(title="Curry Point Document Store", version="1.0.0")
  app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

  def _check_db(db: str) -> None:
    if db != database:
      raise HTTPException(status_code=404, detail=f"Unknown database {db}")

  @app.get("/{db}/ping")
  def ping(db: str):
    _check_db(db)
    return {"status": "OK", "message": "Document store is running"}

  @app.get("/{db}/{collection}")
  def list_documents(db: str, collection: str, session: Session = Depends(get_session)):
    _check_db(db)
    rows = session.exec(select(Document).where(Document.collection == collection).order_by(Document.pk)).all()
    return [json.loads(r.body) for r in rows]

  @app.post("/{db}/{collection}")
  def replace_documents(db: str, collection: str,
                        data: Union[List[Dict[str, Any]], Dict[str, Any]] = Body(...),
                        session: Session = Depends(get_session)):
    _check_db(db)
    for row in session.exec(select(Document).where(Document.collection == collection)).all():
      session.delete(row)
    docs = data if isinstance(data, list) else [data]
    for doc in docs:
      session.add(Document(collection=collection, doc_id=_doc_id(doc), body=json.dumps(doc, ensure_ascii=False)))
    session.commit()
    logger.info("Replaced %s with %d documents", collection, len(docs))
    return {"success": True, "insertedCount": len(docs)}

  @app.put("/{db}/{collection}/{doc_id}")
  def upsert_document(db: str, collection: str, doc_id: int, doc: Dict[str, Any] = Body(...),
                      session: Session = Depends(get_session)):
    _check_db(db)
    row = session.exec(
      select(Document).where(Document.collection == collection, Document.doc_id == doc_id)
    ).first()
    modified = 0
    if row is None:
      row = Document(collection=collection, doc_id=doc_id, body=json.dumps(doc, ensure_ascii=False))
    else:
      row.body = json.dumps(doc, ensure_ascii=False)
      modified = 1
    session.add(row)
    session.commit()
    return {"success": True, "modifiedCount": modified}

  @app.delete("/{db}/{collection}/{doc_id}")
  def delete_document(db: str, collection: str, doc_id: int, session: Session = Depends(get_session)):
    _check_db(db)
    rows = session.exec(
      select(Document).where(Document.collection == collection, Document.doc_id == doc_id)
    ).all()
    for row in rows:
      session.delete(row)
    session.commit()
    return {"success": True, "deletedCount": len(rows)}

  return app


if __name__ == "__main__":
  import uvicorn
  logging.basicConfig(level=logging.INFO)
  port = int(os.getenv("DOCSTORE_PORT", 3001))
  uvicorn.run(create_docstore_app(), host="0.0.0.0", port=port)
