# app/models/permission.py

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import SQLModel, Field

from app.models.enums import ReviewDomain
from app.models.types import JSONType, utc_now


class PermissionGrantBase(SQLModel):
    """
    Columns shared by both grant kinds.
    Rows are never deleted; revoke flips is_active off.
    """
    id: Optional[int] = Field(default=None, primary_key=True)

    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)

    # capability key -> bool; only true-valued keys are active
    capabilities: Dict[str, bool] = Field(default_factory=dict, sa_type=JSONType)

    is_primary: bool = Field(default=False)
    is_active: bool = Field(default=True, index=True)

    assigned_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    assigned_at: datetime = Field(
        default_factory=utc_now, sa_type=DateTime(timezone=True)
    )
    updated_at: datetime = Field(
        default_factory=utc_now, sa_type=DateTime(timezone=True)
    )

    def active_capabilities(self) -> List[str]:
        return [key for key, enabled in (self.capabilities or {}).items() if enabled is True]


class DepartmentPermission(PermissionGrantBase, table=True):
    """Grant on an academic (school) department."""
    __tablename__ = "department_permissions"
    __table_args__ = (
        UniqueConstraint("user_id", "department_id", name="uq_department_permission_user_unit"),
    )

    department_id: int = Field(foreign_key="departments.id", index=True)


class CentralDepartmentPermission(PermissionGrantBase, table=True):
    """
    Grant on a central department. Carries one school-id set per review
    domain; the sets are independent of each other.
    """
    __tablename__ = "central_department_permissions"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "central_department_id", name="uq_central_permission_user_unit"
        ),
    )

    central_department_id: int = Field(foreign_key="central_departments.id", index=True)

    assigned_school_ids: List[int] = Field(default_factory=list, sa_type=JSONType)
    assigned_research_school_ids: List[int] = Field(default_factory=list, sa_type=JSONType)
    assigned_book_school_ids: List[int] = Field(default_factory=list, sa_type=JSONType)
    assigned_conference_school_ids: List[int] = Field(default_factory=list, sa_type=JSONType)
    assigned_grant_school_ids: List[int] = Field(default_factory=list, sa_type=JSONType)


# Which column on CentralDepartmentPermission holds each domain's scope
DOMAIN_SCOPE_FIELDS: Dict[ReviewDomain, str] = {
    ReviewDomain.IPR: "assigned_school_ids",
    ReviewDomain.Research: "assigned_research_school_ids",
    ReviewDomain.Book: "assigned_book_school_ids",
    ReviewDomain.Conference: "assigned_conference_school_ids",
    ReviewDomain.Grant: "assigned_grant_school_ids",
}


def get_domain_school_ids(grant: CentralDepartmentPermission, domain: ReviewDomain) -> List[int]:
    return list(getattr(grant, DOMAIN_SCOPE_FIELDS[domain]) or [])


def set_domain_school_ids(
    grant: CentralDepartmentPermission, domain: ReviewDomain, school_ids: List[int]
) -> None:
    # Assign a fresh list so the JSON column is flagged dirty
    setattr(grant, DOMAIN_SCOPE_FIELDS[domain], list(school_ids))
