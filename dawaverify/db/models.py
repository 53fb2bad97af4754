# =============================================
# File: dawaverify/db/models.py
# Purpose: SQLModel table for keyed blobs (the persisted scan history lives in one row)
# =============================================

from sqlmodel import SQLModel, Field
from datetime import datetime

class StoredBlob(SQLModel, table=True):
    __tablename__ = "stored_blob"

    key: str = Field(primary_key=True)
    value: str
    updated_at: datetime = Field(default_factory=datetime.utcnow)
