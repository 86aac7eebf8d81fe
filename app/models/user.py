# app/models/user.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import Boolean, DateTime, ForeignKey, Integer
from sqlalchemy import Enum as PGEnum
from datetime import datetime
import uuid
from enum import Enum
from typing import Optional

from app.models.types import utc_now


class UserRole(str, Enum):
    Admin = "admin"
    Faculty = "faculty"
    Staff = "staff"      # non-teaching staff; capabilities come from grants only
    Student = "student"


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    name: str = Field(nullable=False)
    email: str = Field(nullable=False, index=True, unique=True)

    role: UserRole = Field(
        sa_column=Column(PGEnum(UserRole, name="user_role"), nullable=False)
    )

    is_active: bool = Field(
        default=True,
        sa_column=Column(Boolean, default=True, nullable=False)
    )

    # Denormalized primary unit pointers; written in the same transaction
    # as the grant that sets the primary flag. At most one is non-null.
    primary_department_id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("departments.id"), nullable=True)
    )

    primary_central_department_id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("central_departments.id"), nullable=True)
    )

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
