"""Account ORM model for people reachable on the messaging channel."""

from sqlalchemy import Boolean, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from finsplit.models import Base, BaseModel


class Account(Base, BaseModel):
    """
    A person inside a tenant, identified on the channel by phone number.

    The phone is stored in E.164 form (e.g. "+5511987654321") without the
    channel prefix. Entitlements (channel flag, credits) live on the tenant.
    """

    __tablename__ = "accounts"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(
        String(32),
        nullable=True,
        unique=True,
        comment="Channel identifier in E.164 form",
    )
    tenant_id: Mapped[int] = mapped_column(
        ForeignKey("tenants.id"),
        nullable=False,
        index=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    tenant: Mapped["Tenant"] = relationship(  # noqa: F821
        "Tenant",
        back_populates="accounts",
    )
    memberships: Mapped[list["GroupMember"]] = relationship(  # noqa: F821
        "GroupMember",
        back_populates="account",
    )
    expenses: Mapped[list["Expense"]] = relationship(  # noqa: F821
        "Expense",
        back_populates="payer",
        foreign_keys="Expense.payer_id",
    )

    __table_args__ = (Index("idx_account_tenant", "tenant_id"),)

    def __repr__(self) -> str:
        return f"<Account(id={self.id}, name={self.name!r}, phone={self.phone})>"


__all__ = ["Account"]
