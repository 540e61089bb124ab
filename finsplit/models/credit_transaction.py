"""Credit ledger ORM model."""

from enum import Enum as PyEnum

from sqlalchemy import Enum, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from finsplit.models import Base, BaseModel


class CreditTransactionKind(PyEnum):
    """Direction of a credit movement."""

    ADD = "add"
    REMOVE = "remove"


class CreditTransaction(Base, BaseModel):
    """Ledger row for every change to a tenant's credit balance.

    Receipt charges carry the expense they paid for; the unique expense_id
    makes a second charge for the same expense impossible.
    """

    __tablename__ = "credit_transactions"

    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), nullable=False, index=True)
    amount: Mapped[int] = mapped_column(
        Integer, nullable=False, comment="Signed change applied to Tenant.credits"
    )
    kind: Mapped[CreditTransactionKind] = mapped_column(
        Enum(CreditTransactionKind, native_enum=False),
        nullable=False,
    )
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    expense_id: Mapped[int | None] = mapped_column(
        ForeignKey("expenses.id"),
        nullable=True,
        unique=True,
    )

    __table_args__ = (Index("idx_credit_transaction_tenant", "tenant_id", "created_at"),)

    def __repr__(self) -> str:
        return (
            f"<CreditTransaction(id={self.id}, tenant_id={self.tenant_id}, "
            f"amount={self.amount}, kind={self.kind.value}, expense_id={self.expense_id})>"
        )


__all__ = ["CreditTransaction", "CreditTransactionKind"]
