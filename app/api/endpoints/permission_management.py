# app/api/endpoints/permission_management.py

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_db_session
from app.core.permission_catalog import (
    list_all_central_definitions,
    list_school_department_definitions,
)
from app.core.rbac import require_admin, require_scope_manager
from app.models.enums import GrantKind
from app.models.user import User
from app.schemas.permission import (
    AssignSchoolsRequest,
    CentralDepartmentPermissionRead,
    CentralDeptGrantRequest,
    CentralDeptRevokeRequest,
    DepartmentPermissionRead,
    PermissionCheckRead,
    PermissionDefinitionsRead,
    ReviewDomainUnitRequest,
    SchoolDeptGrantRequest,
    SchoolDeptRevokeRequest,
)
from app.services import permission_service, scope_service
from app.services.navigation_gate import visible_menu_sections

router = APIRouter(
    prefix="/api/permission-management",
    tags=["Permission Management"]
)


def ok(data=None, message: Optional[str] = None, **extra) -> dict:
    body = {"success": True, "message": message, "data": data}
    body.update(extra)
    return body


# ------------------------------------------------------------
# CATALOG
# ------------------------------------------------------------
@router.get("/definitions")
async def get_definitions(_: User = Depends(get_current_user)):
    return ok(PermissionDefinitionsRead(
        school_departments=list_school_department_definitions(),
        central_departments=list_all_central_definitions(),
    ))


# ------------------------------------------------------------
# EFFECTIVE VIEW / NAVIGATION
# ------------------------------------------------------------
@router.get("/users/{user_id}/permissions")
async def get_user_permissions(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    view = await permission_service.get_effective_permissions(session, current_user, user_id)
    return ok(view)


@router.get("/me/permissions")
async def get_my_permissions(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    return ok(await permission_service.build_effective_view(session, current_user))


@router.get("/me/navigation")
async def get_my_navigation(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    view = await permission_service.build_effective_view(session, current_user)
    return ok(visible_menu_sections(current_user, view))


@router.get("/users")
async def list_users(
    current_user: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    return ok(await permission_service.list_users_with_permissions(session, current_user))


# ------------------------------------------------------------
# GRANT / REVOKE
# ------------------------------------------------------------
@router.post("/school-dept/grant")
async def grant_school_dept(
    payload: SchoolDeptGrantRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    grant = await permission_service.grant_permissions(
        session,
        current_user,
        GrantKind.SchoolDepartment,
        payload.user_id,
        payload.department_id,
        payload.permissions,
        payload.is_primary,
    )
    return ok(DepartmentPermissionRead.model_validate(grant), "Permissions granted successfully")


@router.post("/central-dept/grant")
async def grant_central_dept(
    payload: CentralDeptGrantRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    grant = await permission_service.grant_permissions(
        session,
        current_user,
        GrantKind.CentralDepartment,
        payload.user_id,
        payload.central_dept_id,
        payload.permissions,
        payload.is_primary,
    )
    return ok(CentralDepartmentPermissionRead.model_validate(grant), "Permissions granted successfully")


@router.post("/school-dept/revoke")
async def revoke_school_dept(
    payload: SchoolDeptRevokeRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    await permission_service.revoke_permissions(
        session, current_user, GrantKind.SchoolDepartment, payload.user_id, payload.department_id
    )
    return ok(message="Permissions revoked successfully")


@router.post("/central-dept/revoke")
async def revoke_central_dept(
    payload: CentralDeptRevokeRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    await permission_service.revoke_permissions(
        session, current_user, GrantKind.CentralDepartment, payload.user_id, payload.central_dept_id
    )
    return ok(message="Permissions revoked successfully")


@router.get("/check", response_model=PermissionCheckRead, response_model_by_alias=True)
async def check_permission(
    department_id: Optional[int] = Query(None, alias="departmentId"),
    central_dept_id: Optional[int] = Query(None, alias="centralDeptId"),
    permission_key: Optional[str] = Query(None, alias="permissionKey"),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    allowed = await permission_service.check_user_permission(
        session, current_user, permission_key, department_id, central_dept_id
    )
    return PermissionCheckRead(has_permission=allowed)


# ------------------------------------------------------------
# SCHOOL ASSIGNMENT (per review domain)
# ------------------------------------------------------------
@router.post("/{domain_token}-member/assign-schools")
async def assign_member_schools(
    domain_token: str,
    payload: AssignSchoolsRequest,
    current_user: User = Depends(require_scope_manager),
    session: AsyncSession = Depends(get_db_session),
):
    domain = scope_service.parse_domain(domain_token)
    grant = await scope_service.assign_scope(
        session, current_user, domain, payload.user_id, payload.school_ids
    )
    return ok(CentralDepartmentPermissionRead.model_validate(grant), "Schools assigned successfully")


@router.put("/{domain_token}-member/assign-schools/{user_id}")
async def update_member_schools(
    domain_token: str,
    user_id: UUID,
    payload: AssignSchoolsRequest,
    current_user: User = Depends(require_scope_manager),
    session: AsyncSession = Depends(get_db_session),
):
    domain = scope_service.parse_domain(domain_token)
    grant = await scope_service.assign_scope(
        session, current_user, domain, user_id, payload.school_ids
    )
    return ok(CentralDepartmentPermissionRead.model_validate(grant), "Schools updated successfully")


@router.get("/drd-members/with-{domain_token}-schools")
async def members_with_schools(
    domain_token: str,
    current_user: User = Depends(require_scope_manager),
    session: AsyncSession = Depends(get_db_session),
):
    domain = scope_service.parse_domain(domain_token)
    result = await scope_service.list_members_with_schools(session, current_user, domain)
    return ok(
        {"members": result["members"], "allSchools": result["all_schools"]},
        result["message"],
    )


@router.get("/schools/with-{domain_token}-members")
async def schools_with_members(
    domain_token: str,
    current_user: User = Depends(require_scope_manager),
    session: AsyncSession = Depends(get_db_session),
):
    domain = scope_service.parse_domain(domain_token)
    result = await scope_service.list_schools_with_members(session, current_user, domain)
    return ok(result["schools"], result["message"])


@router.get("/my-assigned-schools")
async def get_my_assigned_schools(
    domain: str = Query("ipr"),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    result = await scope_service.my_assigned_schools(
        session, current_user, scope_service.parse_domain(domain)
    )
    return ok(result["data"], result["message"], permissions=result["permissions"])


# ------------------------------------------------------------
# DOMAIN -> UNIT MAPPING
# ------------------------------------------------------------
@router.get("/review-domains")
async def list_review_domains(
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    return ok(await scope_service.list_domain_units(session))


@router.put("/review-domains/{domain_token}")
async def set_review_domain(
    domain_token: str,
    payload: ReviewDomainUnitRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    domain = scope_service.parse_domain(domain_token)
    await scope_service.set_domain_unit(session, current_user, domain, payload.central_dept_id)
    units = await scope_service.list_domain_units(session)
    return ok(
        next(u for u in units if u.domain == domain),
        "Review domain mapping saved",
    )
