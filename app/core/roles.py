# app/core/roles.py

from typing import Any

from app.models.user import UserRole

# Roles that may file in every review domain without an explicit grant
INHERENT_FILING_ROLES = {UserRole.Faculty.value, UserRole.Student.value}


def resolve_role(user_or_role: Any) -> str:
    """
    Normalizes a User, a UserRole or a raw string to a lowercase role name.
    Every role comparison in the service goes through here.
    """
    if user_or_role is None:
        return ""
    role = getattr(user_or_role, "role", user_or_role)
    if isinstance(role, UserRole):
        return role.value.strip().lower()
    return str(role).strip().lower()


def is_admin(user_or_role: Any) -> bool:
    # Hard boundary: no capability substitutes for the admin role
    return resolve_role(user_or_role) == UserRole.Admin.value


def has_inherent_filing_right(user_or_role: Any) -> bool:
    return resolve_role(user_or_role) in INHERENT_FILING_ROLES
