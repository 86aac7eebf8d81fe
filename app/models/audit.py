# app/models/audit.py

from sqlmodel import SQLModel, Field
from sqlalchemy import Column, DateTime
from typing import Optional, Dict, Any
from uuid import UUID, uuid4
from datetime import datetime

from app.models.types import JSONType, utc_now


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    actor_id: Optional[UUID] = Field(default=None, foreign_key="users.id")
    actor_role: Optional[str] = None

    # Snapshot of the actor's name at the time of the action
    actor_name: Optional[str] = None

    action: str = Field(index=True)
    target_table: Optional[str] = None
    target_id: Optional[str] = None

    # Full payload of the change, e.g. {"user_id": "...", "capabilities": {...}}
    details: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSONType))

    timestamp: datetime = Field(
        default_factory=utc_now, sa_type=DateTime(timezone=True), index=True
    )
