# app/models/review_domain.py

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlmodel import SQLModel, Field

from app.models.types import utc_now


class ReviewDomainUnit(SQLModel, table=True):
    """
    Administrator-configured link from a review domain to the central
    department that owns its reviewers. Takes precedence over the
    name-based lookup.
    """
    __tablename__ = "review_domain_units"

    domain: str = Field(
        sa_column=Column(String(32), primary_key=True)
    )

    central_department_id: int = Field(
        sa_column=Column(Integer, ForeignKey("central_departments.id"), nullable=False)
    )

    configured_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")

    configured_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
