# app/schemas/permission.py

from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from app.core.permission_catalog import CapabilityDefinition
from app.models.enums import GrantKind, ReviewDomain


# ---------------------------------------------------------
# Everything crosses the wire in camelCase; snake_case is still
# accepted on input.
# ---------------------------------------------------------
class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True


# ---------------------------------------------------------
# REQUESTS
# Fields stay optional so missing values surface as field-specific
# ValidationErrors from the service layer.
# ---------------------------------------------------------
class SchoolDeptGrantRequest(CamelModel):
    user_id: Optional[UUID] = None
    department_id: Optional[int] = None
    permissions: Optional[Dict[str, bool]] = None
    is_primary: bool = False


class CentralDeptGrantRequest(CamelModel):
    user_id: Optional[UUID] = None
    central_dept_id: Optional[int] = None
    permissions: Optional[Dict[str, bool]] = None
    is_primary: bool = False


class SchoolDeptRevokeRequest(CamelModel):
    user_id: Optional[UUID] = None
    department_id: Optional[int] = None


class CentralDeptRevokeRequest(CamelModel):
    user_id: Optional[UUID] = None
    central_dept_id: Optional[int] = None


class AssignSchoolsRequest(CamelModel):
    user_id: Optional[UUID] = None
    school_ids: Optional[List[int]] = None


class ReviewDomainUnitRequest(CamelModel):
    central_dept_id: Optional[int] = None


# ---------------------------------------------------------
# GRANT ROWS
# ---------------------------------------------------------
class GrantReadBase(CamelModel):
    id: int
    user_id: UUID
    capabilities: Dict[str, bool] = {}
    is_primary: bool
    is_active: bool
    assigned_by: Optional[UUID] = None
    assigned_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DepartmentPermissionRead(GrantReadBase):
    department_id: int


class CentralDepartmentPermissionRead(GrantReadBase):
    central_department_id: int
    assigned_school_ids: List[int] = []
    assigned_research_school_ids: List[int] = []
    assigned_book_school_ids: List[int] = []
    assigned_conference_school_ids: List[int] = []
    assigned_grant_school_ids: List[int] = []


# ---------------------------------------------------------
# EFFECTIVE VIEW (derived, recomputed on every read)
# ---------------------------------------------------------
class UnitRef(CamelModel):
    id: int
    code: str
    name: str


class UnitPermissions(CamelModel):
    grant_id: Optional[int] = None
    grant_kind: GrantKind
    unit_id: int
    unit_code: str = ""
    short_name: Optional[str] = None
    department_type: Optional[str] = None
    # Display name of the unit; menus group by it
    category: str
    permissions: List[str] = []
    is_primary: bool = False
    # Present only on central units where the user holds review-class capabilities
    assigned_schools: Dict[str, List[int]] = {}


class EffectivePermissionView(CamelModel):
    user_id: Optional[UUID] = None
    role: Optional[str] = None
    units: List[UnitPermissions] = []
    primary_department: Optional[UnitRef] = None
    primary_central_department: Optional[UnitRef] = None

    def by_category(self) -> Dict[str, List[str]]:
        grouped: Dict[str, List[str]] = {}
        for unit in self.units:
            keys = grouped.setdefault(unit.category, [])
            keys.extend(k for k in unit.permissions if k not in keys)
        return grouped

    def assigned_school_ids(self, domain: ReviewDomain) -> List[int]:
        ids: List[int] = []
        for unit in self.units:
            for school_id in unit.assigned_schools.get(domain.value, []):
                if school_id not in ids:
                    ids.append(school_id)
        return ids


# ---------------------------------------------------------
# CATALOG / CHECK
# ---------------------------------------------------------
class PermissionDefinitionsRead(BaseModel):
    school_departments: List[CapabilityDefinition] = Field(
        default_factory=list, serialization_alias="schoolDepartments"
    )
    central_departments: Dict[str, List[CapabilityDefinition]] = Field(
        default_factory=dict, serialization_alias="centralDepartments"
    )


class PermissionCheckRead(BaseModel):
    success: bool = True
    has_permission: bool = Field(serialization_alias="hasPermission")


# ---------------------------------------------------------
# SCOPE VIEWS
# ---------------------------------------------------------
class SchoolRead(CamelModel):
    id: int
    code: Optional[str] = None
    name: str
    short_name: Optional[str] = None

    class Config:
        from_attributes = True


class MemberRef(CamelModel):
    user_id: UUID
    display_name: str
    permissions: Dict[str, bool] = {}


class DomainMemberRead(CamelModel):
    id: int
    user_id: UUID
    display_name: str
    email: Optional[str] = None
    role: Optional[str] = None
    permissions: Dict[str, bool] = {}
    is_head: bool = False
    is_member: bool = False
    assigned_school_ids: List[int] = []
    assigned_schools: List[SchoolRead] = []
    assigned_at: Optional[datetime] = None


class SchoolWithMembersRead(SchoolRead):
    assigned_members: List[MemberRef] = []
    has_assigned_member: bool = False


class ReviewDomainUnitRead(CamelModel):
    domain: ReviewDomain
    central_department: Optional[UnitRef] = None
    # "mapping" when configured by an administrator, "lookup" when found by name
    source: Optional[str] = None


# ---------------------------------------------------------
# ADMIN LISTING
# ---------------------------------------------------------
class UserPermissionsSummary(CamelModel):
    id: UUID
    name: str
    email: str
    role: str
    primary_department: Optional[UnitRef] = None
    primary_central_department: Optional[UnitRef] = None
    school_departments: List[UnitPermissions] = []
    central_departments: List[UnitPermissions] = []
