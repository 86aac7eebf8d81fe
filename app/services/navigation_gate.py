# app/services/navigation_gate.py
"""
Pure derivation of what a user may see and do. The same functions back the
sidebar payload served to the frontend and the route guards in
app/core/rbac.py, so what is shown and what is allowed cannot drift apart.
"""

from typing import Any, List, Optional

from app.core.permission_catalog import scope_manager_capabilities
from app.core.roles import has_inherent_filing_right, is_admin, resolve_role
from app.models.enums import GrantKind, ReviewDomain
from app.schemas.navigation import MenuItem, MenuSection
from app.schemas.permission import EffectivePermissionView
from app.services.permission_evaluator import (
    has_any_capability,
    has_any_domain_access,
    has_capability,
    has_keyword_capability,
)

DOMAIN_LABELS = {
    ReviewDomain.IPR: "IPR",
    ReviewDomain.Research: "Research",
    ReviewDomain.Book: "Book",
    ReviewDomain.Conference: "Conference",
    ReviewDomain.Grant: "Grant",
}

DOMAIN_ROUTES = {
    ReviewDomain.IPR: "/ipr",
    ReviewDomain.Research: "/research",
    ReviewDomain.Book: "/research/book",
    ReviewDomain.Conference: "/research/conference",
    ReviewDomain.Grant: "/research/grant",
}

DOMAIN_ASSIGNMENT_ROUTES = {
    ReviewDomain.IPR: "/admin/drd-school-assignment",
    ReviewDomain.Research: "/admin/research-school-assignment",
    ReviewDomain.Book: "/admin/book-school-assignment",
    ReviewDomain.Conference: "/admin/conference-school-assignment",
    ReviewDomain.Grant: "/admin/grant-school-assignment",
}

DRD_KEYWORDS = ["drd"]
FINANCE_KEYWORDS = ["finance", "incentive", "payment", "audit"]

# Central department dashboards: (key, label, href, unit keywords)
DEPARTMENT_DASHBOARDS = [
    ("hr", "Human Resources", "/hr/dashboard", ["human resource"]),
    ("library", "Library", "/library/dashboard", ["library"]),
    ("it", "IT Department", "/it/dashboard", ["information technology", "it department"]),
    ("admissions", "Admissions", "/admissions/dashboard", ["admission"]),
    ("registrar", "Registrar", "/registrar/dashboard", ["registrar"]),
    ("erp", "ERP", "/erp/dashboard", ["erp"]),
]

ADMIN_ITEMS = [
    MenuItem(name="Analytics", href="/admin/analytics"),
    MenuItem(name="Schools", href="/admin/schools"),
    MenuItem(name="Departments", href="/admin/departments"),
    MenuItem(name="Central Departments", href="/admin/central-departments"),
    MenuItem(name="Employees", href="/admin/employees"),
    MenuItem(name="Students", href="/admin/students"),
    MenuItem(name="Permissions", href="/admin/permissions"),
    MenuItem(name="Review Domains", href="/admin/review-domains"),
    MenuItem(name="DRD School Assignment", href=DOMAIN_ASSIGNMENT_ROUTES[ReviewDomain.IPR]),
    MenuItem(name="Research School Assignment", href=DOMAIN_ASSIGNMENT_ROUTES[ReviewDomain.Research]),
    MenuItem(name="Book School Assignment", href=DOMAIN_ASSIGNMENT_ROUTES[ReviewDomain.Book]),
    MenuItem(name="Conference School Assignment", href=DOMAIN_ASSIGNMENT_ROUTES[ReviewDomain.Conference]),
    MenuItem(name="Grant School Assignment", href=DOMAIN_ASSIGNMENT_ROUTES[ReviewDomain.Grant]),
    MenuItem(name="Audit Logs", href="/admin/audit-logs"),
]


def review_keys(domain: ReviewDomain) -> List[str]:
    d = domain.value
    return [f"{d}_review", f"{d}_approve", f"{d}_assign_school"]


def can_file(domain: ReviewDomain | str, role: Any, view: Optional[EffectivePermissionView]) -> bool:
    """Faculty and students file inherently; everyone else needs <domain>_file_new."""
    if has_inherent_filing_right(role):
        return True
    domain = ReviewDomain(domain)
    return has_capability(view, f"{domain.value}_file_new")


def can_review(domain: ReviewDomain | str, view: Optional[EffectivePermissionView]) -> bool:
    domain = ReviewDomain(domain)
    d = domain.value
    return has_any_capability(view, [f"{d}_review", f"{d}_approve"], strict=True)


def can_manage_scope(domain: ReviewDomain | str, role: Any, view: Optional[EffectivePermissionView]) -> bool:
    """Admin, or the domain's approve / assign_school capability (exact keys only)."""
    if is_admin(role):
        return True
    domain = ReviewDomain(domain)
    return has_any_capability(view, scope_manager_capabilities(domain), strict=True)


def _filing_sections(role: Any, view: Optional[EffectivePermissionView]) -> List[MenuSection]:
    fileable = [d for d in ReviewDomain if can_file(d, role, view)]
    if not fileable:
        return []
    my_work = MenuSection(
        key="my-work",
        name="My Work",
        href="/my-work",
        items=[
            MenuItem(name=f"My {DOMAIN_LABELS[d]}", href=f"{DOMAIN_ROUTES[d]}/my-applications")
            for d in fileable
        ],
    )
    apply = MenuSection(
        key="apply",
        name="Apply",
        href="/apply",
        items=[
            MenuItem(name=f"Apply for {DOMAIN_LABELS[d]}", href=f"{DOMAIN_ROUTES[d]}/apply")
            for d in fileable
        ],
    )
    return [my_work, apply]


def _drd_section(role: Any, view: Optional[EffectivePermissionView]) -> Optional[MenuSection]:
    all_review_keys = [k for d in ReviewDomain for k in review_keys(d)]
    if not has_any_domain_access(view, DRD_KEYWORDS, all_review_keys):
        return None

    items = []
    for domain in ReviewDomain:
        if can_review(domain, view):
            items.append(MenuItem(
                name=f"{DOMAIN_LABELS[domain]} Review",
                href=f"/drd/{domain.value}/review",
            ))
    for domain in ReviewDomain:
        # Admins reach these through the admin section
        if not is_admin(role) and can_manage_scope(domain, role, view):
            items.append(MenuItem(
                name=f"{DOMAIN_LABELS[domain]} School Assignment",
                href=DOMAIN_ASSIGNMENT_ROUTES[domain],
            ))
    return MenuSection(key="drd", name="DRD Dashboard", href="/drd", items=items)


def _department_sections(view: Optional[EffectivePermissionView]) -> List[MenuSection]:
    sections = []
    if has_any_domain_access(view, ["finance"]) or has_keyword_capability(view, FINANCE_KEYWORDS):
        sections.append(MenuSection(
            key="finance",
            name="Finance Processing",
            href="/finance/processing",
        ))
    for key, label, href, keywords in DEPARTMENT_DASHBOARDS:
        if has_any_domain_access(view, keywords):
            sections.append(MenuSection(key=key, name=label, href=href))
    return sections


def _unit_sections(view: Optional[EffectivePermissionView]) -> List[MenuSection]:
    if view is None:
        return []
    sections = []
    for unit in view.units:
        if not unit.permissions:
            continue
        prefix = "school" if unit.grant_kind == GrantKind.SchoolDepartment else "central"
        sections.append(MenuSection(
            key=f"unit:{prefix}:{unit.unit_id}",
            name=unit.category,
            href=f"/departments/{prefix}/{unit.unit_id}",
            capability_count=len(unit.permissions),
        ))
    return sections


def visible_menu_sections(role: Any, view: Optional[EffectivePermissionView]) -> List[MenuSection]:
    """
    Ordered: Dashboard and role-inherent sections, then capability-gated
    domain sections, then the admin section (role == admin only).
    """
    role_name = resolve_role(role)
    sections = [MenuSection(key="dashboard", name="Dashboard", href="/dashboard")]
    sections.extend(_filing_sections(role_name, view))

    drd = _drd_section(role_name, view)
    if drd is not None:
        sections.append(drd)
    sections.extend(_department_sections(view))

    if not is_admin(role_name):
        sections.extend(_unit_sections(view))
    else:
        sections.append(MenuSection(
            key="admin",
            name="Admin",
            href="/admin",
            items=list(ADMIN_ITEMS),
            admin_only=True,
        ))
    return sections
