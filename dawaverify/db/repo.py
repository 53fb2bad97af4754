# =============================================
# File: dawaverify/db/repo.py
# Purpose: DB bootstrap: build an engine from a URL (default SQLite) and create tables.
# =============================================

from sqlmodel import SQLModel, create_engine
import os

DB_URL = os.getenv("HISTORY_DB_URL", "sqlite:///./dawaverify.db")

def make_engine(url: str | None = None):
    return create_engine(url or DB_URL, echo=False)

def init_db(engine):
    SQLModel.metadata.create_all(engine)
