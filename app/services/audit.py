# ==== AUDIT TRAIL ==== #

"""
Audit trail for administrative mutations.

Every change made through the administration endpoints is written to
``audit_logs`` inside the same transaction as the change itself.
"""

from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.observability.logging import ContextualLogger
from app.storage.models import AuditLog


logger = ContextualLogger(__name__)


async def record_audit(
    db: AsyncSession,
    user_id: Optional[int],
    action: str,
    entity_type: str,
    entity_id: Any,
    old_value: Optional[Dict[str, Any]] = None,
    new_value: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
) -> AuditLog:
    """
    Add an audit log row to the current transaction.

    Args:
        db (AsyncSession): Database session of the mutation being audited
        user_id (Optional[int]): Acting user
        action (str): ``create``, ``update``, ``delete``, ``approve`` ...
        entity_type (str): Entity name (e.g. ``user``)
        entity_id (Any): Entity identifier, stored as text
        old_value (Optional[Dict[str, Any]]): Values before the change
        new_value (Optional[Dict[str, Any]]): Values after the change
        ip_address (Optional[str]): Caller address when known

    Returns:
        AuditLog: Pending audit row
    """
    entry = AuditLog(
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        old_value=old_value,
        new_value=new_value,
        ip_address=ip_address,
    )
    db.add(entry)

    logger.info(
        "Audit record",
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
    )
    return entry
