"""Expense ORM model, including the receipt-intake lifecycle fields."""

from datetime import date
from decimal import Decimal
from enum import Enum as PyEnum
from typing import Any

from sqlalchemy import JSON, Date, Enum, Float, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from finsplit.models import Base, BaseModel


class ExpenseStatus(PyEnum):
    """Lifecycle status of an expense."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class Provenance(PyEnum):
    """Where the extracted receipt data came from."""

    REAL = "real"
    SYNTHETIC = "synthetic"


class Expense(Base, BaseModel):
    """
    An expense paid by one account inside a group.

    Receipts arriving on the channel are written as PENDING and move to
    CONFIRMED or REJECTED when the payer answers. The payer's conversation
    state is the most recently created PENDING row (created_at, then id).
    Rows are never deleted by the intake pipeline.
    """

    __tablename__ = "expenses"

    description: Mapped[str] = mapped_column(String(255), nullable=False)
    description_key: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Normalized description used for duplicate detection",
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    occurred_on: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[ExpenseStatus] = mapped_column(
        Enum(ExpenseStatus, native_enum=False),
        default=ExpenseStatus.PENDING,
        nullable=False,
        index=True,
    )
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)

    payer_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), nullable=False, index=True)
    group_id: Mapped[int] = mapped_column(ForeignKey("groups.id"), nullable=False, index=True)

    # Receipt extraction
    receipt_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    provenance: Mapped[Provenance | None] = mapped_column(
        Enum(Provenance, native_enum=False),
        nullable=True,
    )
    document_kind: Mapped[str | None] = mapped_column(String(100), nullable=True)
    media_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    media_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    source_message_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        unique=True,
        comment="Channel message id that produced this expense (webhook replay guard)",
    )

    payer: Mapped["Account"] = relationship(  # noqa: F821
        "Account",
        back_populates="expenses",
        foreign_keys=[payer_id],
    )
    group: Mapped["Group"] = relationship(  # noqa: F821
        "Group",
        back_populates="expenses",
    )

    __table_args__ = (
        Index("idx_expense_payer_status", "payer_id", "status"),
        Index(
            "idx_expense_duplicate_lookup",
            "payer_id",
            "amount",
            "description_key",
            "occurred_on",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Expense(id={self.id}, payer_id={self.payer_id}, amount={self.amount}, "
            f"date={self.occurred_on}, status={self.status.value})>"
        )


__all__ = ["Expense", "ExpenseStatus", "Provenance"]
