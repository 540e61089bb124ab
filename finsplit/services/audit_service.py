"""Audit trail for expense lifecycle events raised from the channel."""

from sqlalchemy.orm import Session

from finsplit.models import AuditLog

ENTITY_EXPENSE = "expense"

ACTION_RECEIPT_RECEIVED = "receipt_received"
ACTION_EXPENSE_CONFIRMED = "expense_confirmed"
ACTION_EXPENSE_REJECTED = "expense_rejected"


class AuditService:
    """Static helpers that stage audit rows in the caller's transaction."""

    @staticmethod
    def log(
        db: Session,
        entity_type: str,
        entity_id: int,
        action: str,
        actor_id: int | None = None,
        tenant_id: int | None = None,
        changes: dict | None = None,
    ) -> AuditLog:
        """Add an audit entry to the session without committing.

        Args:
            db: Database session
            entity_type: Audited entity ("expense")
            entity_id: Primary key of the entity
            action: What happened ("expense_confirmed", ...)
            actor_id: Account that triggered it, None for system actions
            tenant_id: Tenant the entity belongs to
            changes: Optional JSON snapshot
        """
        entry = AuditLog(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor_id=actor_id,
            tenant_id=tenant_id,
            changes=changes,
        )
        db.add(entry)
        return entry


__all__ = [
    "AuditService",
    "ENTITY_EXPENSE",
    "ACTION_RECEIPT_RECEIVED",
    "ACTION_EXPENSE_CONFIRMED",
    "ACTION_EXPENSE_REJECTED",
]
