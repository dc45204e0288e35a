"""
Database Table Definitions.

This module defines the SQL schema using SQLModel.
We use the 'DBModel' suffix to distinguish these persistence models
from the Pydantic state models (WorkflowInstance, HistoryEntry).
"""

from datetime import datetime, timezone

from sqlalchemy import Column, Text
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class KeyValueDBModel(SQLModel, table=True):
    """
    Persistence model for the key-value store.
    Maps 1-to-1 with the 'key_value_store' table.
    """

    __tablename__ = "key_value_store"

    key: str = Field(primary_key=True, index=True)

    # Opaque text blob (JSON documents in practice). No schema is enforced on read.
    value: str = Field(sa_column=Column(Text, nullable=False))

    updated_at: datetime = Field(default_factory=_utcnow)
