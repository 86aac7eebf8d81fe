import pytest

from app.models.enums import GrantKind
from app.schemas.permission import EffectivePermissionView, UnitPermissions
from app.services.permission_evaluator import (
    canonical_capability,
    capability_variants,
    has_any_capability,
    has_any_domain_access,
    has_capability,
    has_capability_strict,
    has_keyword_capability,
)


def view_with(*permissions, category="Directorate of Research & Development", code="DRD", short_name="DRD"):
    return EffectivePermissionView(
        role="staff",
        units=[UnitPermissions(
            grant_kind=GrantKind.CentralDepartment,
            unit_id=1,
            unit_code=code,
            short_name=short_name,
            category=category,
            permissions=list(permissions),
        )],
    )


@pytest.mark.parametrize("stored", ["ipr_file_new", "drd_ipr_file", "ipr_file", "drd_ipr_file_new", "file_ipr"])
@pytest.mark.parametrize("requested", ["ipr_file_new", "drd_ipr_file", "ipr_file", "drd_ipr_file_new"])
def test_filing_keys_match_across_naming_generations(stored, requested):
    assert has_capability(view_with(stored), requested)
    assert has_capability_strict(view_with(stored), requested)


@pytest.mark.parametrize("key", [
    "ipr_file_new", "ipr_review", "drd_ipr_approve", "research_assign_school",
    "view_students", "drd_drd_book_review",
])
def test_every_variant_is_accepted(key):
    for variant in capability_variants(key):
        assert has_capability_strict(view_with(variant), key), variant
        assert has_capability_strict(view_with(key), variant), variant


def test_canonical_form():
    assert canonical_capability("DRD_IPR_FILE_NEW") == "ipr_file"
    assert canonical_capability("drd_drd_ipr_review") == "ipr_review"
    assert canonical_capability("approve_ipr") == "ipr_approve"
    assert canonical_capability("") == ""


def test_variants_of_empty_key():
    assert capability_variants("") == set()


def test_substring_fallback_is_permissive_only_in_lenient_mode():
    view = view_with("ipr_review_extended")
    assert has_capability(view, "ipr_review")
    assert not has_capability_strict(view, "ipr_review")


def test_unrelated_key_does_not_match():
    view = view_with("ipr_review")
    assert not has_capability(view, "ipr_approve")
    assert not has_capability(view, "research_review")


def test_empty_view_and_key():
    assert not has_capability(None, "ipr_review")
    assert not has_capability(EffectivePermissionView(), "ipr_review")
    assert not has_capability(view_with("ipr_review"), "")


def test_has_any_capability():
    view = view_with("book_approve")
    assert has_any_capability(view, ["book_review", "book_approve"])
    assert not has_any_capability(view, ["grant_review"], strict=True)


def test_domain_access_by_unit_label():
    assert has_any_domain_access(view_with("view_dashboard"), ["drd"])


def test_domain_access_by_exact_key():
    view = view_with("ipr_review", category="Research Office", code="RO", short_name=None)
    assert not has_any_domain_access(view, ["drd"])
    assert has_any_domain_access(view, ["drd"], ["ipr_review", "ipr_approve"])


def test_domain_access_ignores_units_without_capabilities():
    assert not has_any_domain_access(view_with(), ["drd"])


def test_keyword_capability():
    view = view_with("approve_incentive_payment", category="Finance", code="FIN", short_name="FIN")
    assert has_keyword_capability(view, ["incentive"])
    assert not has_keyword_capability(view, ["library"])
