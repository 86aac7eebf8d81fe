# app/services/scope_service.py

from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from loguru import logger
from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from app.core.permission_catalog import review_capability
from app.core.roles import is_admin
from app.models.central_department import CentralDepartment
from app.models.enums import ReviewDomain
from app.models.permission import (
    CentralDepartmentPermission,
    get_domain_school_ids,
    set_domain_school_ids,
)
from app.models.review_domain import ReviewDomainUnit
from app.models.school import School
from app.models.user import User
from app.schemas.permission import (
    DomainMemberRead,
    MemberRef,
    ReviewDomainUnitRead,
    SchoolRead,
    SchoolWithMembersRead,
    UnitRef,
)
from app.services.audit_service import log_activity
from app.services.navigation_gate import can_manage_scope
from app.services.permission_service import (
    build_effective_view,
    commit_or_conflict,
    flush_or_conflict,
    get_user,
)

# Every review workflow is owned by the research directorate unless an
# administrator maps the domain to another unit.
DOMAIN_LOOKUP_TOKENS: Dict[ReviewDomain, Tuple[str, ...]] = {
    domain: ("DRD", "Development", "Research") for domain in ReviewDomain
}

# URL token -> domain ("drd" is the historical name of the IPR workflow)
DOMAIN_ROUTE_TOKENS: Dict[str, ReviewDomain] = {
    "drd": ReviewDomain.IPR,
    "ipr": ReviewDomain.IPR,
    "research": ReviewDomain.Research,
    "book": ReviewDomain.Book,
    "conference": ReviewDomain.Conference,
    "grant": ReviewDomain.Grant,
}

MISSING_UNIT_MESSAGE = (
    "{label} department not found. Please create a Central Department "
    "with code or name containing \"DRD\"."
)


def parse_domain(token: str) -> ReviewDomain:
    domain = DOMAIN_ROUTE_TOKENS.get((token or "").strip().lower())
    if domain is None:
        raise NotFoundError(f"Unknown review domain '{token}'")
    return domain


def missing_unit_message(domain: ReviewDomain) -> str:
    label = "DRD" if domain == ReviewDomain.IPR else f"{domain.value.capitalize()} review"
    return MISSING_UNIT_MESSAGE.format(label=label)


# ============================================================================
# DOMAIN -> UNIT
# ============================================================================
def _lookup_rank(unit: CentralDepartment, tokens: Tuple[str, ...]) -> int:
    primary = tokens[0].lower()
    code = (unit.code or "").lower()
    short = (unit.short_name or "").lower()
    name = (unit.name or "").lower()
    if code == primary:
        return 0
    if short == primary:
        return 1
    if primary in code:
        return 2
    if primary in name:
        return 3
    return 4


async def _lookup_domain_unit(
    session: AsyncSession, domain: ReviewDomain
) -> Optional[CentralDepartment]:
    tokens = DOMAIN_LOOKUP_TOKENS[domain]
    primary = tokens[0]
    conditions = [
        CentralDepartment.code.ilike(f"%{primary}%"),
        CentralDepartment.short_name.ilike(primary),
    ]
    conditions.extend(CentralDepartment.name.ilike(f"%{token}%") for token in tokens)

    result = await session.execute(
        select(CentralDepartment).where(or_(*conditions)).order_by(CentralDepartment.id)
    )
    candidates = result.scalars().all()
    if not candidates:
        return None

    candidates = sorted(candidates, key=lambda u: (_lookup_rank(u, tokens), u.id))
    if len(candidates) > 1:
        logger.warning(
            f"Review domain '{domain.value}' matched {len(candidates)} central departments "
            f"by name; using '{candidates[0].code}'. Configure an explicit mapping to pin it."
        )
    return candidates[0]


async def find_domain_unit(
    session: AsyncSession, domain: ReviewDomain
) -> Tuple[Optional[CentralDepartment], Optional[str]]:
    """Configured mapping first, name lookup second. Returns (unit, source)."""
    mapping = await session.get(ReviewDomainUnit, domain.value)
    if mapping:
        unit = await session.get(CentralDepartment, mapping.central_department_id)
        if unit:
            return unit, "mapping"
        logger.warning(
            f"Review domain '{domain.value}' is mapped to missing central department "
            f"{mapping.central_department_id}; falling back to name lookup"
        )

    unit = await _lookup_domain_unit(session, domain)
    return unit, ("lookup" if unit else None)


async def require_domain_unit(session: AsyncSession, domain: ReviewDomain) -> CentralDepartment:
    unit, _ = await find_domain_unit(session, domain)
    if unit is None:
        raise NotFoundError(missing_unit_message(domain))
    return unit


async def set_domain_unit(
    session: AsyncSession,
    actor: User,
    domain: ReviewDomain,
    central_dept_id: Optional[int],
) -> ReviewDomainUnit:
    if central_dept_id is None:
        raise ValidationError("centralDeptId is required")
    if not is_admin(actor):
        raise AuthorizationError("Not authorized to configure review domains")

    unit = await session.get(CentralDepartment, central_dept_id)
    if not unit:
        raise NotFoundError("Central department not found")

    mapping = await session.get(ReviewDomainUnit, domain.value)
    if mapping is None:
        mapping = ReviewDomainUnit(domain=domain.value, central_department_id=unit.id)
    mapping.central_department_id = unit.id
    mapping.configured_by = actor.id
    mapping.configured_at = datetime.now(timezone.utc)
    session.add(mapping)

    log_activity(
        session,
        action="SET_REVIEW_DOMAIN_UNIT",
        actor=actor,
        target_table="review_domain_units",
        target_id=domain.value,
        details={"domain": domain.value, "central_department_id": unit.id},
    )
    await commit_or_conflict(session)
    await session.refresh(mapping)

    logger.info(f"Review domain '{domain.value}' mapped to central department {unit.code}")
    return mapping


async def list_domain_units(session: AsyncSession) -> List[ReviewDomainUnitRead]:
    rows = []
    for domain in ReviewDomain:
        unit, source = await find_domain_unit(session, domain)
        rows.append(ReviewDomainUnitRead(
            domain=domain,
            central_department=UnitRef(id=unit.id, code=unit.code, name=unit.name) if unit else None,
            source=source,
        ))
    return rows


# ============================================================================
# ASSIGN (write one domain's school set)
# ============================================================================
async def ensure_can_manage_scope(session: AsyncSession, actor: User, domain: ReviewDomain) -> None:
    if is_admin(actor):
        return
    view = await build_effective_view(session, actor)
    if not can_manage_scope(domain, actor, view):
        raise AuthorizationError(
            f"You do not have permission to manage {domain.value} school assignments"
        )


async def _domain_grant(
    session: AsyncSession, user_id: UUID, unit_id: int, active_only: bool = True
) -> Optional[CentralDepartmentPermission]:
    query = select(CentralDepartmentPermission).where(
        (CentralDepartmentPermission.user_id == user_id)
        & (CentralDepartmentPermission.central_department_id == unit_id)
    )
    if active_only:
        query = query.where(CentralDepartmentPermission.is_active.is_(True))
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def assign_scope(
    session: AsyncSession,
    actor: User,
    domain: ReviewDomain,
    user_id: Optional[UUID],
    school_ids: Optional[List[int]],
) -> CentralDepartmentPermission:
    """
    Replaces the user's school set for one domain. The other four sets on
    the same row are left untouched. School ids are not checked against the
    schools table; stale ids are filtered out when read.
    """
    await ensure_can_manage_scope(session, actor, domain)

    if user_id is None or school_ids is None:
        raise ValidationError("userId and schoolIds array are required")

    user = await get_user(session, user_id)
    if not user:
        raise NotFoundError("User not found")

    unit = await require_domain_unit(session, domain)
    now = datetime.now(timezone.utc)

    grant = await _domain_grant(session, user_id, unit.id, active_only=False)
    if grant is None:
        grant = CentralDepartmentPermission(
            user_id=user_id,
            central_department_id=unit.id,
            capabilities={review_capability(domain): True},
            is_primary=False,
            is_active=True,
            assigned_by=actor.id,
            assigned_at=now,
            updated_at=now,
        )
        logger.info(f"Creating {domain.value} reviewer grant for user {user_id} on {unit.code}")
    elif not grant.is_active:
        logger.info(f"Updating {domain.value} schools on revoked grant {grant.id}; it stays inactive")

    set_domain_school_ids(grant, domain, list(dict.fromkeys(school_ids)))
    grant.updated_at = now
    session.add(grant)
    await flush_or_conflict(session)

    log_activity(
        session,
        action=f"ASSIGN_{domain.value.upper()}_MEMBER_SCHOOLS",
        actor=actor,
        target_table="central_department_permissions",
        target_id=grant.id,
        details={"user_id": str(user_id), "domain": domain.value, "school_ids": list(school_ids)},
    )
    await commit_or_conflict(session)
    await session.refresh(grant)
    return grant


# ============================================================================
# RESOLVE
# ============================================================================
async def _active_schools(session: AsyncSession, ids: Optional[List[int]] = None) -> List[School]:
    query = select(School).where(School.is_active.is_(True)).order_by(School.name)
    if ids is not None:
        if not ids:
            return []
        query = query.where(School.id.in_(ids))
    result = await session.execute(query)
    return list(result.scalars().all())


async def resolve_assigned_schools(
    session: AsyncSession, user_id: UUID, domain: ReviewDomain
) -> List[School]:
    """Active schools in the user's set for ``domain``, sorted by name. Empty is valid."""
    unit, _ = await find_domain_unit(session, domain)
    if unit is None:
        return []
    grant = await _domain_grant(session, user_id, unit.id)
    if grant is None:
        return []
    return await _active_schools(session, get_domain_school_ids(grant, domain))


async def _domain_members(
    session: AsyncSession, unit_id: int
) -> List[Tuple[CentralDepartmentPermission, User]]:
    result = await session.execute(
        select(CentralDepartmentPermission, User)
        .join(User, User.id == CentralDepartmentPermission.user_id)
        .where(
            (CentralDepartmentPermission.central_department_id == unit_id)
            & CentralDepartmentPermission.is_active.is_(True)
        )
        .order_by(User.name)
    )
    return list(result.all())


def _member_ref(grant: CentralDepartmentPermission, user: User) -> MemberRef:
    return MemberRef(
        user_id=user.id,
        display_name=user.name or user.email,
        permissions=dict(grant.capabilities or {}),
    )


async def resolve_members_for_school(
    session: AsyncSession, domain: ReviewDomain, school_id: int
) -> List[MemberRef]:
    unit, _ = await find_domain_unit(session, domain)
    if unit is None:
        return []
    return [
        _member_ref(grant, user)
        for grant, user in await _domain_members(session, unit.id)
        if school_id in get_domain_school_ids(grant, domain)
    ]


# ============================================================================
# AGGREGATE ADMIN VIEWS (degrade to empty data when the unit is missing)
# ============================================================================
async def list_members_with_schools(
    session: AsyncSession, actor: User, domain: ReviewDomain
) -> dict:
    await ensure_can_manage_scope(session, actor, domain)

    unit, _ = await find_domain_unit(session, domain)
    if unit is None:
        return {"members": [], "all_schools": [], "message": missing_unit_message(domain)}

    schools = await _active_schools(session)
    schools_by_id = {s.id: s for s in schools}
    d = domain.value

    members = []
    for grant, user in await _domain_members(session, unit.id):
        capabilities = dict(grant.capabilities or {})
        assigned_ids = get_domain_school_ids(grant, domain)
        members.append(DomainMemberRead(
            id=grant.id,
            user_id=user.id,
            display_name=user.name or user.email,
            email=user.email,
            role=user.role.value if user.role else None,
            permissions=capabilities,
            is_head=capabilities.get(f"{d}_approve") is True,
            is_member=capabilities.get(f"{d}_review") is True,
            assigned_school_ids=assigned_ids,
            assigned_schools=[
                SchoolRead.model_validate(schools_by_id[sid])
                for sid in assigned_ids if sid in schools_by_id
            ],
            assigned_at=grant.assigned_at,
        ))

    return {
        "members": members,
        "all_schools": [SchoolRead.model_validate(s) for s in schools],
        "message": None,
    }


async def list_schools_with_members(
    session: AsyncSession, actor: User, domain: ReviewDomain
) -> dict:
    await ensure_can_manage_scope(session, actor, domain)

    schools = await _active_schools(session)
    unit, _ = await find_domain_unit(session, domain)

    rows = []
    for school in schools:
        assigned = await resolve_members_for_school(session, domain, school.id) if unit else []
        rows.append(SchoolWithMembersRead(
            id=school.id,
            code=school.code,
            name=school.name,
            short_name=school.short_name,
            assigned_members=assigned,
            has_assigned_member=bool(assigned),
        ))
    return {"schools": rows, "message": None if unit else missing_unit_message(domain)}


async def my_assigned_schools(session: AsyncSession, user: User, domain: ReviewDomain) -> dict:
    unit, _ = await find_domain_unit(session, domain)
    if unit is None:
        return {"data": [], "permissions": {}, "message": missing_unit_message(domain)}

    grant = await _domain_grant(session, user.id, unit.id)
    if grant is None:
        return {"data": [], "permissions": {}, "message": f"User is not a {unit.code} member"}

    schools = await _active_schools(session, get_domain_school_ids(grant, domain))
    return {
        "data": [SchoolRead.model_validate(s) for s in schools],
        "permissions": dict(grant.capabilities or {}),
        "message": None,
    }
