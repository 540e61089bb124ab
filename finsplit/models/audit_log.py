"""Audit log model for tracking expense lifecycle events."""

from typing import Any

from sqlalchemy import JSON, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from finsplit.models import Base, BaseModel


class AuditLog(Base, BaseModel):
    """Audit log entry for changes made through the messaging channel.

    Records who (actor_id) did what (action) to which entity (entity_type,
    entity_id) inside which tenant, with an optional snapshot (changes).
    """

    __tablename__ = "audit_logs"

    entity_type: Mapped[str] = mapped_column(index=False)
    """Entity type being audited: "expense", "tenant"."""

    entity_id: Mapped[int] = mapped_column(index=False)
    """Primary key of the entity being audited."""

    action: Mapped[str] = mapped_column(index=False)
    """Action performed: "receipt_received", "expense_confirmed", ..."""

    actor_id: Mapped[int | None] = mapped_column(
        ForeignKey("accounts.id"), nullable=True, index=False
    )
    """Account that performed the action. None for system actions."""

    tenant_id: Mapped[int | None] = mapped_column(
        ForeignKey("tenants.id"), nullable=True, index=True
    )

    changes: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True, index=False)
    """Optional JSON snapshot: {"status": "confirmed", "via": "whatsapp"}."""

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id}, entity_type={self.entity_type}, entity_id={self.entity_id}, "
            f"action={self.action}, actor_id={self.actor_id}, created_at={self.created_at})>"
        )


__all__ = ["AuditLog"]
