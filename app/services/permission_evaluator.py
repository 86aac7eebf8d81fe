# app/services/permission_evaluator.py
"""
Capability checks over an already-fetched EffectivePermissionView.

Stored capability keys come from two naming generations
(``ipr_file_new`` / ``drd_ipr_file`` / ``ipr_file``). Every key is reduced to
a canonical form before comparison:

    lowercase -> strip leading ``drd_`` -> strip trailing ``_new`` -> alias table

Two keys match when their canonical forms are equal. ``has_capability`` then
falls back to case-insensitive substring containment of the requested key in
a stored key. That fallback is permissive on purpose; security-sensitive
callers use ``has_capability_strict``.

Nothing here raises: an empty or unmatched view simply yields False.
"""

from typing import Iterable, List, Optional, Set

from app.schemas.permission import EffectivePermissionView, UnitPermissions

DRD_PREFIX = "drd_"
NEW_SUFFIX = "_new"

# Legacy key -> canonical key (canonical forms carry no drd_ prefix or _new suffix)
CAPABILITY_ALIASES = {
    "file_ipr": "ipr_file",
    "approve_ipr": "ipr_approve",
}


def _strip_prefix(key: str) -> str:
    while key.startswith(DRD_PREFIX):
        key = key[len(DRD_PREFIX):]
    return key


def _strip_suffix(key: str) -> str:
    return key[: -len(NEW_SUFFIX)] if key.endswith(NEW_SUFFIX) else key


def canonical_capability(key: str) -> str:
    normalized = _strip_suffix(_strip_prefix((key or "").strip().lower()))
    return CAPABILITY_ALIASES.get(normalized, normalized)


def capability_variants(key: str) -> Set[str]:
    """
    Every spelling treated as equivalent to ``key``: the key itself, with the
    drd_ prefix added or removed, with the _new suffix removed, and all
    combinations of those.
    """
    key = (key or "").strip().lower()
    if not key:
        return set()
    stripped = _strip_prefix(key)
    bases = {key, stripped, _strip_suffix(key), _strip_suffix(stripped)}
    variants = set(bases)
    variants.update(DRD_PREFIX + _strip_prefix(b) for b in bases)
    for legacy, canonical in CAPABILITY_ALIASES.items():
        if canonical == canonical_capability(key):
            variants.add(legacy)
    return variants


def _units(view: Optional[EffectivePermissionView]) -> List[UnitPermissions]:
    if view is None:
        return []
    return list(view.units or [])


def _matches(stored: str, requested: str, allow_substring: bool) -> bool:
    stored_l = stored.lower()
    requested_l = requested.strip().lower()
    if canonical_capability(stored_l) == canonical_capability(requested_l):
        return True
    return allow_substring and requested_l in stored_l


def has_capability(view: Optional[EffectivePermissionView], key: str) -> bool:
    if not key:
        return False
    for unit in _units(view):
        if any(_matches(stored, key, allow_substring=True) for stored in unit.permissions):
            return True
    return False


def has_capability_strict(view: Optional[EffectivePermissionView], key: str) -> bool:
    """Variant/alias matching only, no substring fallback."""
    if not key:
        return False
    for unit in _units(view):
        if any(_matches(stored, key, allow_substring=False) for stored in unit.permissions):
            return True
    return False


def has_any_capability(
    view: Optional[EffectivePermissionView], keys: Iterable[str], strict: bool = False
) -> bool:
    check = has_capability_strict if strict else has_capability
    return any(check(view, key) for key in keys)


def has_any_domain_access(
    view: Optional[EffectivePermissionView],
    domain_keywords: Iterable[str],
    domain_keys: Iterable[str] = (),
) -> bool:
    """
    True when a unit's name/code/short name contains one of ``domain_keywords``,
    or when any held key equals one of ``domain_keys`` (case-insensitive).
    Decides whether a domain entry point is shown at all.
    """
    keywords = [k.lower() for k in domain_keywords if k]
    keys = {k.lower() for k in domain_keys if k}

    for unit in _units(view):
        # A unit with no active capabilities grants nothing
        if not unit.permissions:
            continue
        labels = [unit.category, unit.unit_code, unit.short_name or ""]
        haystack = " ".join(labels).lower()
        if any(keyword in haystack for keyword in keywords):
            return True
        if any(p.lower() in keys for p in unit.permissions):
            return True
    return False


def has_keyword_capability(view: Optional[EffectivePermissionView], keywords: Iterable[str]) -> bool:
    """True when any held key contains one of ``keywords`` (finance-style checks)."""
    keywords = [k.lower() for k in keywords if k]
    for unit in _units(view):
        if any(kw in p.lower() for p in unit.permissions for kw in keywords):
            return True
    return False
