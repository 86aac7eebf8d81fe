# app/core/permission_catalog.py

from typing import Dict, List, Optional

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from app.models.enums import DepartmentType, GrantKind, ReviewDomain
from app.models.user import UserRole


class CapabilityDefinition(BaseModel):
    key: str
    label: str
    category: str
    unit_kind: GrantKind
    department_type: Optional[str] = None
    description: Optional[str] = None

    class Config:
        frozen = True
        alias_generator = to_camel
        populate_by_name = True


def _school(key: str, label: str, category: str) -> CapabilityDefinition:
    return CapabilityDefinition(
        key=key, label=label, category=category, unit_kind=GrantKind.SchoolDepartment
    )


def _central(
    dept_type: DepartmentType, key: str, label: str, category: str, description: str | None = None
) -> CapabilityDefinition:
    return CapabilityDefinition(
        key=key,
        label=label,
        category=category,
        unit_kind=GrantKind.CentralDepartment,
        department_type=dept_type.value,
        description=description,
    )


# ==========================================================
# SCHOOL (ACADEMIC) DEPARTMENTS - one fixed set, grouped
# ==========================================================
SCHOOL_DEPARTMENT_GROUPS: Dict[str, List[CapabilityDefinition]] = {
    "common": [
        _school("view_dashboard", "View Dashboard", "General"),
        _school("view_reports", "View Reports", "General"),
        _school("export_data", "Export Data", "General"),
    ],
    "students": [
        _school("view_students", "View Students", "Students"),
        _school("add_students", "Add Students", "Students"),
        _school("edit_students", "Edit Students", "Students"),
        _school("delete_students", "Delete Students", "Students"),
        _school("approve_students", "Approve Student Data", "Students"),
        _school("view_student_records", "View Student Records", "Students"),
        _school("edit_student_records", "Edit Student Records", "Students"),
        _school("file_ipr", "File IPR Applications", "Students"),
        _school("view_own_ipr", "View Own IPR", "Students"),
        _school("edit_own_ipr", "Edit Own IPR", "Students"),
    ],
    "faculty": [
        _school("view_faculty", "View Faculty", "Faculty"),
        _school("add_faculty", "Add Faculty", "Faculty"),
        _school("edit_faculty", "Edit Faculty", "Faculty"),
        _school("delete_faculty", "Delete Faculty", "Faculty"),
        _school("assign_courses", "Assign Courses", "Faculty"),
        _school("view_workload", "View Workload", "Faculty"),
    ],
    "courses": [
        _school("view_courses", "View Courses", "Courses"),
        _school("add_courses", "Add Courses", "Courses"),
        _school("edit_courses", "Edit Courses", "Courses"),
        _school("delete_courses", "Delete Courses", "Courses"),
        _school("manage_syllabus", "Manage Syllabus", "Courses"),
    ],
    "examinations": [
        _school("view_exams", "View Examinations", "Examinations"),
        _school("create_exams", "Create Examinations", "Examinations"),
        _school("edit_exams", "Edit Examinations", "Examinations"),
        _school("delete_exams", "Delete Examinations", "Examinations"),
        _school("enter_marks", "Enter Marks", "Examinations"),
        _school("approve_marks", "Approve Marks", "Examinations"),
        _school("generate_results", "Generate Results", "Examinations"),
    ],
    "research": [
        _school("view_research", "View Research", "Research"),
        _school("add_research", "Add Research", "Research"),
        _school("edit_research", "Edit Research", "Research"),
        _school("approve_research", "Approve Research", "Research"),
    ],
}


def _review_quartet(domain: ReviewDomain, label: str, head: str) -> List[CapabilityDefinition]:
    category = f"{label} Permissions"
    d = domain.value
    return [
        _central(DepartmentType.DRD, f"{d}_file_new", f"{label} Filing", category,
                 f"Can file new {label} applications"),
        _central(DepartmentType.DRD, f"{d}_review", f"{label} Review", category,
                 f"{head} member - can review {label} applications from assigned schools"),
        _central(DepartmentType.DRD, f"{d}_approve", f"{label} Approve", category,
                 f"{head} head - can give final approval/rejection on {label} applications"),
        _central(DepartmentType.DRD, f"{d}_assign_school", f"Assign Schools ({label})", category,
                 f"{head} head - can assign schools to {label} reviewers"),
    ]


_IPR_DESCRIPTIONS = {
    "ipr_file_new": "Can file new IPR applications (Faculty/Student have this by default)",
    "ipr_review": "DRD Member - Can review IPR applications from assigned schools",
    "ipr_approve": "DRD Head - Can give final approval/rejection on IPR applications",
    "ipr_assign_school": "DRD Head - Can assign schools to DRD member reviewers",
}


def _drd_definitions() -> List[CapabilityDefinition]:
    ipr = [
        _central(DepartmentType.DRD, "ipr_file_new", "IPR Filing", "IPR Permissions",
                 _IPR_DESCRIPTIONS["ipr_file_new"]),
        _central(DepartmentType.DRD, "ipr_review", "IPR Review", "IPR Permissions",
                 _IPR_DESCRIPTIONS["ipr_review"]),
        _central(DepartmentType.DRD, "ipr_approve", "IPR Approve", "IPR Permissions",
                 _IPR_DESCRIPTIONS["ipr_approve"]),
        _central(DepartmentType.DRD, "ipr_assign_school", "Assign Schools to DRD Members",
                 "IPR Permissions", _IPR_DESCRIPTIONS["ipr_assign_school"]),
    ]
    return (
        ipr
        + _review_quartet(ReviewDomain.Research, "Research", "DRD")
        + _review_quartet(ReviewDomain.Book, "Book", "DRD")
        + _review_quartet(ReviewDomain.Conference, "Conference", "DRD")
        + _review_quartet(ReviewDomain.Grant, "Grant", "DRD")
    )


# ==========================================================
# CENTRAL DEPARTMENTS - one fixed set per department type
# ==========================================================
CENTRAL_DEPARTMENT_CATALOG: Dict[str, List[CapabilityDefinition]] = {
    DepartmentType.HR.value: [
        _central(DepartmentType.HR, "view_employees", "View Employees", "HR"),
        _central(DepartmentType.HR, "add_employees", "Add Employees", "HR"),
        _central(DepartmentType.HR, "edit_employees", "Edit Employees", "HR"),
        _central(DepartmentType.HR, "delete_employees", "Delete Employees", "HR"),
        _central(DepartmentType.HR, "manage_attendance", "Manage Attendance", "HR"),
        _central(DepartmentType.HR, "manage_leave", "Manage Leave", "HR"),
        _central(DepartmentType.HR, "manage_payroll", "Manage Payroll", "HR"),
        _central(DepartmentType.HR, "view_salary", "View Salary", "HR"),
        _central(DepartmentType.HR, "edit_salary", "Edit Salary", "HR"),
        _central(DepartmentType.HR, "approve_leave", "Approve Leave", "HR"),
        _central(DepartmentType.HR, "generate_hr_reports", "Generate HR Reports", "HR"),
    ],
    DepartmentType.ERP.value: [
        _central(DepartmentType.ERP, "view_erp_modules", "View ERP Modules", "ERP"),
        _central(DepartmentType.ERP, "configure_erp", "Configure ERP", "ERP"),
        _central(DepartmentType.ERP, "manage_workflows", "Manage Workflows", "ERP"),
        _central(DepartmentType.ERP, "system_admin", "System Administration", "ERP"),
        _central(DepartmentType.ERP, "view_system_logs", "View System Logs", "ERP"),
        _central(DepartmentType.ERP, "manage_integrations", "Manage Integrations", "ERP"),
    ],
    DepartmentType.DRD.value: _drd_definitions(),
    DepartmentType.Finance.value: [
        _central(DepartmentType.Finance, "view_accounts", "View Accounts", "Finance"),
        _central(DepartmentType.Finance, "manage_accounts", "Manage Accounts", "Finance"),
        _central(DepartmentType.Finance, "view_transactions", "View Transactions", "Finance"),
        _central(DepartmentType.Finance, "approve_transactions", "Approve Transactions", "Finance"),
        _central(DepartmentType.Finance, "manage_fees", "Manage Fees", "Finance"),
        _central(DepartmentType.Finance, "generate_invoices", "Generate Invoices", "Finance"),
        _central(DepartmentType.Finance, "view_financial_reports", "View Financial Reports", "Finance"),
        _central(DepartmentType.Finance, "manage_budget", "Manage Budget", "Finance"),
    ],
    DepartmentType.Library.value: [
        _central(DepartmentType.Library, "view_books", "View Books", "Library"),
        _central(DepartmentType.Library, "add_books", "Add Books", "Library"),
        _central(DepartmentType.Library, "edit_books", "Edit Books", "Library"),
        _central(DepartmentType.Library, "delete_books", "Delete Books", "Library"),
        _central(DepartmentType.Library, "issue_books", "Issue Books", "Library"),
        _central(DepartmentType.Library, "return_books", "Return Books", "Library"),
        _central(DepartmentType.Library, "manage_members", "Manage Members", "Library"),
        _central(DepartmentType.Library, "generate_library_reports", "Generate Reports", "Library"),
    ],
    DepartmentType.IT.value: [
        _central(DepartmentType.IT, "manage_infrastructure", "Manage Infrastructure", "IT"),
        _central(DepartmentType.IT, "manage_networks", "Manage Networks", "IT"),
        _central(DepartmentType.IT, "manage_security", "Manage Security", "IT"),
        _central(DepartmentType.IT, "manage_users", "Manage Users", "IT"),
        _central(DepartmentType.IT, "manage_permissions", "Manage Permissions", "IT"),
        _central(DepartmentType.IT, "view_system_health", "View System Health", "IT"),
        _central(DepartmentType.IT, "manage_backups", "Manage Backups", "IT"),
    ],
    DepartmentType.Admissions.value: [
        _central(DepartmentType.Admissions, "view_applications", "View Applications", "Admissions"),
        _central(DepartmentType.Admissions, "review_applications", "Review Applications", "Admissions"),
        _central(DepartmentType.Admissions, "approve_applications", "Approve Applications", "Admissions"),
        _central(DepartmentType.Admissions, "reject_applications", "Reject Applications", "Admissions"),
        _central(DepartmentType.Admissions, "manage_entrance_tests", "Manage Entrance Tests", "Admissions"),
        _central(DepartmentType.Admissions, "generate_admission_reports", "Generate Reports", "Admissions"),
    ],
    DepartmentType.Registrar.value: [
        _central(DepartmentType.Registrar, "view_registrations", "View Registrations", "Registrar"),
        _central(DepartmentType.Registrar, "approve_registrations", "Approve Registrations", "Registrar"),
        _central(DepartmentType.Registrar, "issue_certificates", "Issue Certificates", "Registrar"),
        _central(DepartmentType.Registrar, "manage_transcripts", "Manage Transcripts", "Registrar"),
        _central(DepartmentType.Registrar, "verify_documents", "Verify Documents", "Registrar"),
        _central(DepartmentType.Registrar, "manage_records", "Manage Records", "Registrar"),
    ],
}


# ==========================================================
# ROLE DEFAULTS
# ==========================================================
# Faculty and students hold IPR filing as an inherent right.
# Staff and admin hold nothing until a grant says otherwise.
ROLE_DEFAULT_CAPABILITIES: Dict[str, Dict[str, bool]] = {
    UserRole.Student.value: {"ipr_file_new": True},
    UserRole.Faculty.value: {"ipr_file_new": True},
    UserRole.Staff.value: {},
    UserRole.Admin.value: {},
}

# Capabilities that let a non-admin assign schools within a domain
SCOPE_MANAGER_KEYS = ["{domain}_approve", "drd_{domain}_approve", "{domain}_assign_school"]

# Protected routes -> capability keys that unlock them (any of).
# "{domain}" is filled from the review domain named in the path.
ROUTE_CAPABILITY_MAP: Dict[str, List[str]] = {
    "POST /api/permission-management/{domain_token}-member/assign-schools": SCOPE_MANAGER_KEYS,
    "PUT /api/permission-management/{domain_token}-member/assign-schools/{user_id}": SCOPE_MANAGER_KEYS,
    "GET /api/permission-management/drd-members/with-{domain_token}-schools": SCOPE_MANAGER_KEYS,
    "GET /api/permission-management/schools/with-{domain_token}-members": SCOPE_MANAGER_KEYS,
    # IPR workflow service
    "POST /api/v1/ipr/create": ["ipr_file_new"],
    "GET /api/v1/ipr/my-applications": ["ipr_file_new"],
    "GET /api/v1/drd-review/pending": ["ipr_review", "ipr_approve"],
    "POST /api/v1/drd-review/review/:id": ["ipr_review"],
    "POST /api/v1/drd-review/recommend/:id": ["ipr_review"],
    "POST /api/v1/drd-review/head-approve/:id": ["ipr_approve"],
    "POST /api/v1/drd-review/govt-application/:id": ["ipr_approve"],
    "POST /api/v1/drd-review/publication/:id": ["ipr_approve"],
}


# ==========================================================
# LOOKUPS
# ==========================================================
def list_school_department_definitions() -> List[CapabilityDefinition]:
    """Common group first, then the remaining groups in declaration order."""
    definitions = list(SCHOOL_DEPARTMENT_GROUPS["common"])
    for group, items in SCHOOL_DEPARTMENT_GROUPS.items():
        if group != "common":
            definitions.extend(items)
    return definitions


def list_central_definitions(department_type: Optional[str]) -> List[CapabilityDefinition]:
    # Unknown or missing types have no catalog yet; that is not an error
    if not department_type:
        return []
    return list(CENTRAL_DEPARTMENT_CATALOG.get(department_type.strip().lower(), []))


def list_definitions_for_unit_kind(
    kind: GrantKind | str, department_type: Optional[str] = None
) -> List[CapabilityDefinition]:
    kind = GrantKind(kind)
    if kind == GrantKind.SchoolDepartment:
        return list_school_department_definitions()
    return list_central_definitions(department_type)


def list_all_central_definitions() -> Dict[str, List[CapabilityDefinition]]:
    return {dept_type: list(items) for dept_type, items in CENTRAL_DEPARTMENT_CATALOG.items()}


def is_known_capability(key: str) -> bool:
    if any(d.key == key for d in list_school_department_definitions()):
        return True
    return any(d.key == key for items in CENTRAL_DEPARTMENT_CATALOG.values() for d in items)


def default_capabilities_for_role(role: str) -> Dict[str, bool]:
    return dict(ROLE_DEFAULT_CAPABILITIES.get((role or "").strip().lower(), {}))


def review_capability(domain: ReviewDomain) -> str:
    """Minimal capability given to a reviewer created through school assignment."""
    return f"{domain.value}_review"


def scope_manager_capabilities(domain: ReviewDomain) -> List[str]:
    return [key.format(domain=domain.value) for key in SCOPE_MANAGER_KEYS]


def route_capabilities(
    method: str, path: str, domain: Optional[ReviewDomain] = None
) -> List[str]:
    """
    Keys guarding ``METHOD path`` (path as declared on the route, with its
    placeholders). Domain-templated keys need ``domain``; without it they
    resolve to nothing. Unmapped routes also resolve to nothing.
    """
    keys = ROUTE_CAPABILITY_MAP.get(f"{method.upper()} {path}", [])
    if any("{domain}" in key for key in keys):
        if domain is None:
            return []
        return [key.format(domain=domain.value) for key in keys]
    return list(keys)
