# app/services/audit_service.py

from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.roles import resolve_role
from app.models.audit import AuditLog
from app.models.user import User


def log_activity(
    session: AsyncSession,
    action: str,
    actor: Optional[User],
    target_table: Optional[str] = None,
    target_id: Optional[Any] = None,
    details: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Stages an audit row on the caller's session. It is committed (or rolled
    back) together with the change it describes.
    """
    entry = AuditLog(
        actor_id=actor.id if actor else None,
        actor_role=resolve_role(actor) if actor else None,
        actor_name=actor.name if actor else None,
        action=action,
        target_table=target_table,
        target_id=str(target_id) if target_id is not None else None,
        details=details or {},
    )
    session.add(entry)
    return entry
