import pytest
from sqlmodel import select

from app.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from app.models.audit import AuditLog
from app.models.enums import GrantKind, ReviewDomain
from app.models.permission import CentralDepartmentPermission, get_domain_school_ids
from app.models.user import UserRole
from app.services import scope_service
from app.services.navigation_gate import visible_menu_sections
from app.services.permission_evaluator import has_any_domain_access
from app.services.permission_service import (
    build_effective_view,
    grant_permissions,
    revoke_permissions,
)
from app.services.scope_service import (
    assign_scope,
    find_domain_unit,
    list_domain_units,
    list_members_with_schools,
    list_schools_with_members,
    my_assigned_schools,
    parse_domain,
    require_domain_unit,
    resolve_assigned_schools,
    resolve_members_for_school,
    set_domain_unit,
)

IPR = ReviewDomain.IPR
RESEARCH = ReviewDomain.Research
CENTRAL = GrantKind.CentralDepartment


@pytest.fixture
def schools(make_school):
    async def _make():
        beta = await make_school("School of Engineering", "SOE")
        alpha = await make_school("School of Biotechnology", "SOBT")
        gamma = await make_school("School of Management", "SOM")
        return alpha, beta, gamma

    return _make


def names(rows):
    return [s.name for s in rows]


# ------------------------------------------------------------------
# DOMAIN -> UNIT
# ------------------------------------------------------------------
def test_parse_domain():
    assert parse_domain("drd") == IPR
    assert parse_domain("IPR") == IPR
    assert parse_domain("conference") == ReviewDomain.Conference
    with pytest.raises(NotFoundError):
        parse_domain("astronomy")


@pytest.mark.asyncio
async def test_lookup_prefers_exact_code(db_session, make_central_unit):
    await make_central_unit("RESCELL", "Research Cell")
    drd = await make_central_unit("DRD", "Directorate of Research & Development")

    unit, source = await find_domain_unit(db_session, IPR)
    assert unit.id == drd.id
    assert source == "lookup"


@pytest.mark.asyncio
async def test_mapping_wins_over_lookup(db_session, admin_user, drd_unit, make_central_unit):
    office = await make_central_unit("ROFF", "Book Publication Office")
    await set_domain_unit(db_session, admin_user, ReviewDomain.Book, office.id)

    unit, source = await find_domain_unit(db_session, ReviewDomain.Book)
    assert (unit.id, source) == (office.id, "mapping")

    # other domains keep resolving by name
    unit, source = await find_domain_unit(db_session, IPR)
    assert (unit.id, source) == (drd_unit.id, "lookup")

    listed = {row.domain: row for row in await list_domain_units(db_session)}
    assert listed[ReviewDomain.Book].central_department.code == "ROFF"
    assert listed[IPR].source == "lookup"


@pytest.mark.asyncio
async def test_set_domain_unit_rules(db_session, admin_user, make_user, drd_unit):
    staff = await make_user()
    with pytest.raises(ValidationError):
        await set_domain_unit(db_session, admin_user, IPR, None)
    with pytest.raises(AuthorizationError):
        await set_domain_unit(db_session, staff, IPR, drd_unit.id)
    with pytest.raises(NotFoundError):
        await set_domain_unit(db_session, admin_user, IPR, 9999)


@pytest.mark.asyncio
async def test_missing_domain_unit(db_session, admin_user, make_user):
    user = await make_user()

    with pytest.raises(NotFoundError, match="Please create a Central Department"):
        await require_domain_unit(db_session, IPR)
    with pytest.raises(NotFoundError):
        await assign_scope(db_session, admin_user, IPR, user.id, [1])

    assert await resolve_assigned_schools(db_session, user.id, IPR) == []

    members = await list_members_with_schools(db_session, admin_user, IPR)
    assert members["members"] == [] and members["all_schools"] == []
    assert "DRD department not found" in members["message"]

    mine = await my_assigned_schools(db_session, user, IPR)
    assert mine["data"] == [] and mine["message"]


# ------------------------------------------------------------------
# ASSIGN / RESOLVE
# ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_reviewer_without_schools_sees_nothing(db_session, admin_user, make_user, drd_unit):
    user = await make_user()
    await grant_permissions(db_session, admin_user, CENTRAL, user.id, drd_unit.id, {"ipr_review": True})

    assert await resolve_assigned_schools(db_session, user.id, IPR) == []
    view = await build_effective_view(db_session, user)
    assert has_any_domain_access(view, ["drd"])
    assert view.assigned_school_ids(IPR) == []


@pytest.mark.asyncio
async def test_assigned_schools_sorted_and_domain_scoped(db_session, admin_user, make_user, drd_unit, schools):
    alpha, beta, _ = await schools()
    user = await make_user()
    await grant_permissions(db_session, admin_user, CENTRAL, user.id, drd_unit.id, {"ipr_review": True})

    await assign_scope(db_session, admin_user, IPR, user.id, [beta.id, alpha.id])

    assert names(await resolve_assigned_schools(db_session, user.id, IPR)) == [
        "School of Biotechnology", "School of Engineering"
    ]
    assert await resolve_assigned_schools(db_session, user.id, RESEARCH) == []


@pytest.mark.asyncio
async def test_domains_are_independent(db_session, admin_user, make_user, drd_unit, schools):
    alpha, beta, gamma = await schools()
    user = await make_user()

    await assign_scope(db_session, admin_user, IPR, user.id, [gamma.id])
    grant = await assign_scope(db_session, admin_user, RESEARCH, user.id, [alpha.id, beta.id])

    assert get_domain_school_ids(grant, IPR) == [gamma.id]
    assert get_domain_school_ids(grant, RESEARCH) == [alpha.id, beta.id]
    assert names(await resolve_assigned_schools(db_session, user.id, IPR)) == ["School of Management"]


@pytest.mark.asyncio
async def test_assign_creates_reviewer_grant(db_session, admin_user, make_user, drd_unit, schools):
    alpha, _, _ = await schools()
    user = await make_user()

    grant = await assign_scope(db_session, admin_user, ReviewDomain.Grant, user.id, [alpha.id, alpha.id])

    assert grant.capabilities == {"grant_review": True}
    assert grant.is_active and not grant.is_primary
    assert get_domain_school_ids(grant, ReviewDomain.Grant) == [alpha.id]

    result = await db_session.execute(select(AuditLog).where(AuditLog.action == "ASSIGN_GRANT_MEMBER_SCHOOLS"))
    entry = result.scalar_one()
    assert entry.actor_id == admin_user.id
    assert entry.target_table == "central_department_permissions"
    assert entry.details["school_ids"] == [alpha.id, alpha.id]


@pytest.mark.asyncio
async def test_assign_keeps_revoked_grant_inactive(db_session, admin_user, make_user, drd_unit, schools):
    alpha, _, _ = await schools()
    user = await make_user()
    await grant_permissions(db_session, admin_user, CENTRAL, user.id, drd_unit.id, {"ipr_review": True})
    await revoke_permissions(db_session, admin_user, CENTRAL, user.id, drd_unit.id)

    grant = await assign_scope(db_session, admin_user, IPR, user.id, [alpha.id])

    assert grant.is_active is False
    assert await resolve_assigned_schools(db_session, user.id, IPR) == []


@pytest.mark.asyncio
async def test_stale_and_inactive_schools_are_filtered(db_session, admin_user, make_user, make_school, drd_unit):
    live = await make_school("School of Law", "SOLJ")
    closed = await make_school("School of Mining", "SOMN", is_active=False)
    user = await make_user()

    await assign_scope(db_session, admin_user, IPR, user.id, [live.id, closed.id, 4242])

    assert names(await resolve_assigned_schools(db_session, user.id, IPR)) == ["School of Law"]


@pytest.mark.asyncio
async def test_assign_validation_and_authorization(db_session, admin_user, make_user, drd_unit):
    user = await make_user()
    reviewer = await make_user()
    await grant_permissions(db_session, admin_user, CENTRAL, reviewer.id, drd_unit.id, {"ipr_review": True})

    with pytest.raises(ValidationError, match="userId and schoolIds array are required"):
        await assign_scope(db_session, admin_user, IPR, user.id, None)
    with pytest.raises(ValidationError):
        await assign_scope(db_session, admin_user, IPR, None, [1])
    with pytest.raises(AuthorizationError):
        await assign_scope(db_session, reviewer, IPR, user.id, [1])


@pytest.mark.asyncio
async def test_head_can_assign_within_own_domain_only(db_session, admin_user, make_user, drd_unit, schools):
    alpha, _, _ = await schools()
    head = await make_user(role=UserRole.Faculty)
    member = await make_user()
    await grant_permissions(
        db_session, admin_user, CENTRAL, head.id, drd_unit.id,
        {"research_approve": True, "research_assign_school": True},
    )

    await assign_scope(db_session, head, RESEARCH, member.id, [alpha.id])
    with pytest.raises(AuthorizationError):
        await assign_scope(db_session, head, IPR, member.id, [alpha.id])

    sections = visible_menu_sections(head, await build_effective_view(db_session, head))
    drd = next(s for s in sections if s.key == "drd")
    assert [i.name for i in drd.items] == ["Research Review", "Research School Assignment"]


# ------------------------------------------------------------------
# AGGREGATE VIEWS
# ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_members_and_schools_views(db_session, admin_user, make_user, drd_unit, schools):
    alpha, beta, gamma = await schools()
    head = await make_user(name="Head")
    member = await make_user(name="Member")
    await grant_permissions(db_session, admin_user, CENTRAL, head.id, drd_unit.id, {"ipr_approve": True})
    await assign_scope(db_session, admin_user, IPR, member.id, [alpha.id, beta.id])

    result = await list_members_with_schools(db_session, admin_user, IPR)
    by_name = {m.display_name: m for m in result["members"]}
    assert by_name["Head"].is_head and not by_name["Head"].is_member
    assert by_name["Member"].is_member and not by_name["Member"].is_head
    assert [s.name for s in by_name["Member"].assigned_schools] == [
        "School of Biotechnology", "School of Engineering"
    ]
    assert len(result["all_schools"]) == 3
    assert result["message"] is None

    rows = (await list_schools_with_members(db_session, admin_user, IPR))["schools"]
    coverage = {row.name: row.has_assigned_member for row in rows}
    assert coverage == {
        "School of Biotechnology": True,
        "School of Engineering": True,
        "School of Management": False,
    }
    assigned = {row.name: [m.display_name for m in row.assigned_members] for row in rows}
    assert assigned["School of Engineering"] == ["Member"]

    members = await resolve_members_for_school(db_session, IPR, alpha.id)
    assert [m.display_name for m in members] == ["Member"]
    assert await resolve_members_for_school(db_session, RESEARCH, alpha.id) == []


@pytest.mark.asyncio
async def test_aggregate_views_require_scope_manager(db_session, make_user, drd_unit):
    staff = await make_user()
    with pytest.raises(AuthorizationError):
        await list_members_with_schools(db_session, staff, IPR)
    with pytest.raises(AuthorizationError):
        await list_schools_with_members(db_session, staff, IPR)


@pytest.mark.asyncio
async def test_my_assigned_schools(db_session, admin_user, make_user, drd_unit, schools):
    alpha, _, _ = await schools()
    user = await make_user()

    assert (await my_assigned_schools(db_session, user, IPR))["message"] == "User is not a DRD member"

    await assign_scope(db_session, admin_user, IPR, user.id, [alpha.id])
    mine = await my_assigned_schools(db_session, user, IPR)
    assert [s.id for s in mine["data"]] == [alpha.id]
    assert mine["permissions"] == {"ipr_review": True}
    assert mine["message"] is None


@pytest.mark.asyncio
async def test_concurrent_first_assignment_is_a_conflict(
    db_session, admin_user, make_user, drd_unit, schools, monkeypatch
):
    alpha, beta, _ = await schools()
    user = await make_user()
    await assign_scope(db_session, admin_user, IPR, user.id, [alpha.id])
    alpha_id = alpha.id

    # A parallel assignment created the row after our lookup
    async def no_row_yet(*args, **kwargs):
        return None

    monkeypatch.setattr(scope_service, "_domain_grant", no_row_yet)

    with pytest.raises(ConflictError, match="Please retry"):
        await assign_scope(db_session, admin_user, RESEARCH, user.id, [beta.id])

    rows = (await db_session.execute(select(CentralDepartmentPermission))).scalars().all()
    assert len(rows) == 1
    assert get_domain_school_ids(rows[0], IPR) == [alpha_id]
    assert get_domain_school_ids(rows[0], RESEARCH) == []
