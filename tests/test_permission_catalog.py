from app.core.permission_catalog import (
    CENTRAL_DEPARTMENT_CATALOG,
    ROUTE_CAPABILITY_MAP,
    default_capabilities_for_role,
    is_known_capability,
    list_central_definitions,
    list_definitions_for_unit_kind,
    list_school_department_definitions,
    route_capabilities,
    scope_manager_capabilities,
)
from app.models.enums import GrantKind, ReviewDomain


def test_school_catalog_starts_with_common_group():
    definitions = list_school_department_definitions()
    assert [d.key for d in definitions[:3]] == ["view_dashboard", "view_reports", "export_data"]
    assert all(d.unit_kind == GrantKind.SchoolDepartment for d in definitions)

    categories = []
    for d in definitions:
        if d.category not in categories:
            categories.append(d.category)
    assert categories == ["General", "Students", "Faculty", "Courses", "Examinations", "Research"]


def test_school_catalog_keys_are_unique():
    keys = [d.key for d in list_school_department_definitions()]
    assert len(keys) == len(set(keys))


def test_central_catalog_unknown_type_is_empty():
    assert list_central_definitions("astronomy") == []
    assert list_central_definitions(None) == []
    assert list_definitions_for_unit_kind(GrantKind.CentralDepartment, "astronomy") == []


def test_central_catalog_is_case_insensitive():
    assert list_central_definitions("HR") == list_central_definitions("hr")
    assert list_central_definitions("hr")


def test_drd_catalog_has_a_quartet_per_domain():
    keys = {d.key for d in list_central_definitions("drd")}
    for domain in ReviewDomain:
        d = domain.value
        assert {f"{d}_file_new", f"{d}_review", f"{d}_approve", f"{d}_assign_school"} <= keys


def test_every_catalog_type_is_present():
    assert set(CENTRAL_DEPARTMENT_CATALOG) == {
        "hr", "erp", "drd", "finance", "library", "it", "admissions", "registrar"
    }


def test_unit_kind_dispatch():
    assert list_definitions_for_unit_kind("school_dept") == list_school_department_definitions()
    assert list_definitions_for_unit_kind(GrantKind.CentralDepartment, "drd") == list_central_definitions("drd")


def test_known_capability():
    assert is_known_capability("ipr_review")
    assert is_known_capability("view_students")
    assert not is_known_capability("launch_rockets")


def test_role_defaults():
    assert default_capabilities_for_role("faculty") == {"ipr_file_new": True}
    assert default_capabilities_for_role("Student") == {"ipr_file_new": True}
    assert default_capabilities_for_role("staff") == {}
    assert default_capabilities_for_role("admin") == {}
    assert default_capabilities_for_role("visitor") == {}


def test_role_defaults_are_copies():
    defaults = default_capabilities_for_role("faculty")
    defaults["ipr_approve"] = True
    assert "ipr_approve" not in default_capabilities_for_role("faculty")


def test_route_map_only_names_catalog_keys():
    for route in ROUTE_CAPABILITY_MAP:
        for domain in ReviewDomain:
            resolved = route_capabilities(*route.split(" ", 1), domain=domain)
            # drd_-prefixed spellings are accepted aliases of catalog keys
            assert all(is_known_capability(k.removeprefix("drd_")) for k in resolved)


def test_route_capabilities_fill_domain():
    route = "/api/permission-management/{domain_token}-member/assign-schools"
    assert route_capabilities("post", route, ReviewDomain.Book) == scope_manager_capabilities(ReviewDomain.Book)
    assert route_capabilities("POST", route) == []
    assert route_capabilities("DELETE", route, ReviewDomain.Book) == []
    assert route_capabilities("GET", "/api/v1/drd-review/pending") == ["ipr_review", "ipr_approve"]


def test_mapped_routes_are_served():
    from app.main import app

    served = {
        f"{method} {route.path}"
        for route in app.routes
        for method in getattr(route, "methods", None) or []
    }
    local = [r for r in ROUTE_CAPABILITY_MAP if "/api/permission-management/" in r]
    assert len(local) == 4
    assert set(local) <= served


def test_scope_manager_capabilities():
    assert scope_manager_capabilities(ReviewDomain.Research) == [
        "research_approve", "drd_research_approve", "research_assign_school"
    ]
