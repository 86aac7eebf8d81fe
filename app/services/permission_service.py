# app/services/permission_service.py

from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple, Type
from uuid import UUID

from loguru import logger
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from app.core.roles import is_admin, resolve_role
from app.models.central_department import CentralDepartment
from app.models.department import Department
from app.models.enums import GrantKind, ReviewDomain
from app.models.permission import (
    CentralDepartmentPermission,
    DepartmentPermission,
    PermissionGrantBase,
    get_domain_school_ids,
)
from app.models.user import User, UserRole
from app.schemas.permission import (
    EffectivePermissionView,
    UnitPermissions,
    UnitRef,
    UserPermissionsSummary,
)
from app.services.audit_service import log_activity

REVIEW_CLASS_SUFFIXES = ("_review", "_approve", "_assign_school")

# kind -> (grant model, unit column on the grant, unit model, request field name, table name)
GRANT_KINDS = {
    GrantKind.SchoolDepartment: (
        DepartmentPermission, "department_id", Department, "departmentId", "department_permissions"
    ),
    GrantKind.CentralDepartment: (
        CentralDepartmentPermission, "central_department_id", CentralDepartment,
        "centralDeptId", "central_department_permissions"
    ),
}


# ============================================================================
# HELPERS
# ============================================================================
def _kind_config(kind: GrantKind) -> Tuple[Type[PermissionGrantBase], str, type, str, str]:
    return GRANT_KINDS[GrantKind(kind)]


CONFLICT_MESSAGE = "Permission update conflicted with a concurrent change. Please retry."


async def _lost_race(session: AsyncSession) -> ConflictError:
    await session.rollback()
    logger.warning("Permission write lost a race on the unique (user, unit) key")
    return ConflictError(CONFLICT_MESSAGE)


async def flush_or_conflict(session: AsyncSession) -> None:
    """Concurrent upserts on the same (user, unit) collide on the unique key."""
    try:
        await session.flush()
    except IntegrityError:
        raise await _lost_race(session)


async def commit_or_conflict(session: AsyncSession) -> None:
    try:
        await session.commit()
    except IntegrityError:
        raise await _lost_race(session)


async def get_user(session: AsyncSession, user_id: UUID) -> Optional[User]:
    result = await session.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_grant(
    session: AsyncSession, kind: GrantKind, user_id: UUID, unit_id: int
) -> Optional[PermissionGrantBase]:
    model, unit_column, *_ = _kind_config(kind)
    result = await session.execute(
        select(model).where(
            (model.user_id == user_id) & (getattr(model, unit_column) == unit_id)
        )
    )
    return result.scalar_one_or_none()


def _require_fields(user_id, unit_id, unit_field: str) -> None:
    if user_id is None:
        raise ValidationError("userId is required")
    if unit_id is None:
        raise ValidationError(f"{unit_field} is required")


def _unit_ref(unit) -> Optional[UnitRef]:
    if unit is None:
        return None
    return UnitRef(id=unit.id, code=unit.code, name=unit.name)


def _clear_primary_pointer(user: User, kind: GrantKind, unit_id: int) -> None:
    if kind == GrantKind.SchoolDepartment and user.primary_department_id == unit_id:
        user.primary_department_id = None
    elif kind == GrantKind.CentralDepartment and user.primary_central_department_id == unit_id:
        user.primary_central_department_id = None


# ============================================================================
# GRANT (upsert on the (user, unit) key)
# ============================================================================
async def grant_permissions(
    session: AsyncSession,
    actor: User,
    kind: GrantKind,
    user_id: Optional[UUID],
    unit_id: Optional[int],
    capabilities: Optional[Dict[str, bool]],
    is_primary: bool = False,
) -> PermissionGrantBase:
    model, unit_column, unit_model, unit_field, table = _kind_config(kind)
    _require_fields(user_id, unit_id, unit_field)
    if capabilities is None:
        raise ValidationError("permissions is required")

    if not is_admin(actor):
        raise AuthorizationError("Not authorized to grant permissions")

    user = await get_user(session, user_id)
    if not user:
        raise NotFoundError("User not found")

    unit = await session.get(unit_model, unit_id)
    if not unit:
        raise NotFoundError("Department not found")

    now = datetime.now(timezone.utc)

    # Demote-others and set-new-primary share this transaction
    if is_primary:
        await session.execute(
            update(model)
            .where((model.user_id == user_id) & (model.is_primary.is_(True)))
            .values(is_primary=False, updated_at=now)
        )
        if kind == GrantKind.SchoolDepartment:
            user.primary_department_id = unit_id
            user.primary_central_department_id = None
        else:
            user.primary_central_department_id = unit_id
            user.primary_department_id = None
    else:
        _clear_primary_pointer(user, kind, unit_id)
    session.add(user)

    grant = await get_grant(session, kind, user_id, unit_id)
    if grant is None:
        grant = model(
            user_id=user_id,
            capabilities=dict(capabilities),
            is_primary=bool(is_primary),
            is_active=True,
            assigned_by=actor.id,
            assigned_at=now,
            updated_at=now,
            **{unit_column: unit_id},
        )
        session.add(grant)
    else:
        grant.capabilities = dict(capabilities)
        grant.is_primary = bool(is_primary)
        grant.is_active = True
        grant.assigned_by = actor.id
        grant.assigned_at = now
        grant.updated_at = now
        session.add(grant)

    await flush_or_conflict(session)

    action = (
        "GRANT_SCHOOL_DEPT_PERMISSIONS"
        if kind == GrantKind.SchoolDepartment
        else "GRANT_CENTRAL_DEPT_PERMISSIONS"
    )
    log_activity(
        session,
        action=action,
        actor=actor,
        target_table=table,
        target_id=grant.id,
        details={
            "user_id": str(user_id),
            unit_column: unit_id,
            "permissions": dict(capabilities),
            "is_primary": bool(is_primary),
        },
    )

    await commit_or_conflict(session)
    await session.refresh(grant)

    logger.info(
        f"{action}: user={user_id} unit={unit_id} primary={bool(is_primary)} by={actor.id}"
    )
    return grant


# ============================================================================
# REVOKE (soft delete, idempotent)
# ============================================================================
async def revoke_permissions(
    session: AsyncSession,
    actor: User,
    kind: GrantKind,
    user_id: Optional[UUID],
    unit_id: Optional[int],
) -> PermissionGrantBase:
    model, unit_column, _, unit_field, table = _kind_config(kind)
    _require_fields(user_id, unit_id, unit_field)

    if not is_admin(actor):
        raise AuthorizationError("Not authorized to revoke permissions")

    grant = await get_grant(session, kind, user_id, unit_id)
    if grant is None:
        raise NotFoundError("Permission grant not found")

    if grant.is_active or grant.is_primary:
        grant.is_active = False
        grant.is_primary = False
        grant.updated_at = datetime.now(timezone.utc)
        session.add(grant)

        user = await get_user(session, user_id)
        if user:
            _clear_primary_pointer(user, kind, unit_id)
            session.add(user)

    action = (
        "REVOKE_SCHOOL_DEPT_PERMISSIONS"
        if kind == GrantKind.SchoolDepartment
        else "REVOKE_CENTRAL_DEPT_PERMISSIONS"
    )
    log_activity(
        session,
        action=action,
        actor=actor,
        target_table=table,
        target_id=grant.id,
        details={"user_id": str(user_id), unit_column: unit_id},
    )

    await commit_or_conflict(session)
    await session.refresh(grant)

    logger.info(f"{action}: user={user_id} unit={unit_id} by={actor.id}")
    return grant


# ============================================================================
# EXACT CHECK (single unit, exact key)
# ============================================================================
async def check_user_permission(
    session: AsyncSession,
    user: User,
    permission_key: Optional[str],
    department_id: Optional[int] = None,
    central_dept_id: Optional[int] = None,
) -> bool:
    if (department_id is None and central_dept_id is None) or not permission_key:
        raise ValidationError("Please provide (departmentId or centralDeptId) and permissionKey")

    if department_id is not None:
        grant = await get_grant(session, GrantKind.SchoolDepartment, user.id, department_id)
    else:
        grant = await get_grant(session, GrantKind.CentralDepartment, user.id, central_dept_id)

    return bool(
        grant
        and grant.is_active
        and (grant.capabilities or {}).get(permission_key) is True
    )


# ============================================================================
# EFFECTIVE VIEW
# ============================================================================
def _holds_review_class(capabilities: List[str]) -> bool:
    return any(key.endswith(REVIEW_CLASS_SUFFIXES) for key in capabilities)


def _school_unit(grant: DepartmentPermission, dept: Department) -> UnitPermissions:
    return UnitPermissions(
        grant_id=grant.id,
        grant_kind=GrantKind.SchoolDepartment,
        unit_id=dept.id,
        unit_code=dept.code,
        short_name=dept.short_name,
        category=dept.name,
        permissions=grant.active_capabilities(),
        is_primary=grant.is_primary,
    )


def _central_unit(grant: CentralDepartmentPermission, dept: CentralDepartment) -> UnitPermissions:
    permissions = grant.active_capabilities()
    assigned = {}
    if _holds_review_class(permissions):
        assigned = {d.value: get_domain_school_ids(grant, d) for d in ReviewDomain}
    return UnitPermissions(
        grant_id=grant.id,
        grant_kind=GrantKind.CentralDepartment,
        unit_id=dept.id,
        unit_code=dept.code,
        short_name=dept.short_name,
        department_type=dept.department_type,
        category=dept.name,
        permissions=permissions,
        is_primary=grant.is_primary,
        assigned_schools=assigned,
    )


async def _active_school_units(session: AsyncSession, user_ids: List[UUID]):
    result = await session.execute(
        select(DepartmentPermission, Department)
        .join(Department, Department.id == DepartmentPermission.department_id)
        .where(
            DepartmentPermission.user_id.in_(user_ids)
            & DepartmentPermission.is_active.is_(True)
        )
        .order_by(Department.name)
    )
    return [(grant.user_id, _school_unit(grant, dept)) for grant, dept in result.all()]


async def _active_central_units(session: AsyncSession, user_ids: List[UUID]):
    result = await session.execute(
        select(CentralDepartmentPermission, CentralDepartment)
        .join(
            CentralDepartment,
            CentralDepartment.id == CentralDepartmentPermission.central_department_id,
        )
        .where(
            CentralDepartmentPermission.user_id.in_(user_ids)
            & CentralDepartmentPermission.is_active.is_(True)
        )
        .order_by(CentralDepartment.name)
    )
    return [(grant.user_id, _central_unit(grant, dept)) for grant, dept in result.all()]


async def _primary_refs(session: AsyncSession, user: User) -> Tuple[Optional[UnitRef], Optional[UnitRef]]:
    primary_dept = None
    primary_central = None
    if user.primary_department_id:
        primary_dept = _unit_ref(await session.get(Department, user.primary_department_id))
    if user.primary_central_department_id:
        primary_central = _unit_ref(
            await session.get(CentralDepartment, user.primary_central_department_id)
        )
    return primary_dept, primary_central


async def build_effective_view(session: AsyncSession, user: User) -> EffectivePermissionView:
    """
    Union of the user's active grants of both kinds. Always read fresh from
    the store; revoked rows are excluded.
    """
    school_units = await _active_school_units(session, [user.id])
    central_units = await _active_central_units(session, [user.id])
    primary_dept, primary_central = await _primary_refs(session, user)

    return EffectivePermissionView(
        user_id=user.id,
        role=resolve_role(user),
        units=[u for _, u in school_units] + [u for _, u in central_units],
        primary_department=primary_dept,
        primary_central_department=primary_central,
    )


async def get_effective_permissions(
    session: AsyncSession, actor: User, user_id: UUID
) -> EffectivePermissionView:
    if actor.id != user_id and not is_admin(actor):
        raise AuthorizationError("Not authorized to view these permissions")

    user = await get_user(session, user_id)
    if not user:
        raise NotFoundError("User not found")

    return await build_effective_view(session, user)


# ============================================================================
# ADMIN LISTING
# ============================================================================
async def list_users_with_permissions(
    session: AsyncSession, actor: User
) -> List[UserPermissionsSummary]:
    if not is_admin(actor):
        raise AuthorizationError("Not authorized")

    result = await session.execute(
        select(User)
        .where(User.role.in_([UserRole.Faculty, UserRole.Staff]))
        .order_by(User.created_at.desc())
    )
    users = result.scalars().all()
    if not users:
        return []

    user_ids = [u.id for u in users]
    school_units: Dict[UUID, List[UnitPermissions]] = {}
    central_units: Dict[UUID, List[UnitPermissions]] = {}
    for owner, unit in await _active_school_units(session, user_ids):
        school_units.setdefault(owner, []).append(unit)
    for owner, unit in await _active_central_units(session, user_ids):
        central_units.setdefault(owner, []).append(unit)

    summaries = []
    for user in users:
        primary_dept, primary_central = await _primary_refs(session, user)
        summaries.append(UserPermissionsSummary(
            id=user.id,
            name=user.name,
            email=user.email,
            role=resolve_role(user),
            primary_department=primary_dept,
            primary_central_department=primary_central,
            school_departments=school_units.get(user.id, []),
            central_departments=central_units.get(user.id, []),
        ))
    return summaries
