from enum import Enum


class DepartmentType(str, Enum):
    """Central (non-academic) department types that carry their own catalog."""
    HR = "hr"
    ERP = "erp"
    DRD = "drd"
    Finance = "finance"
    Library = "library"
    IT = "it"
    Admissions = "admissions"
    Registrar = "registrar"


class GrantKind(str, Enum):
    SchoolDepartment = "school_dept"
    CentralDepartment = "central_dept"


class ReviewDomain(str, Enum):
    """Review workflows with independent school-assignment scopes."""
    IPR = "ipr"
    Research = "research"
    Book = "book"
    Conference = "conference"
    Grant = "grant"
