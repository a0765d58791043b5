# db.py
import os
from dotenv import load_dotenv
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./curry_point.db").strip()

def make_engine(url: str):
  if url.startswith("sqlite"):
    # in-memory databases must share one connection across threads
    if url in ("sqlite://", "sqlite:///:memory:"):
      return create_engine(url, echo=False, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    return create_engine(url, echo=False, connect_args={"check_same_thread": False})
  return create_engine(url, echo=False, pool_pre_ping=True)

engine = make_engine(DATABASE_URL)

def init_db(bind=None) -> None:
  SQLModel.metadata.create_all(bind or engine)
