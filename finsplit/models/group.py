"""Group and membership ORM models."""

from datetime import datetime, timezone
from enum import Enum as PyEnum

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from finsplit.models import Base, BaseModel


class GroupRole(PyEnum):
    """Role of an account inside a group."""

    ADMIN = "admin"
    MEMBER = "member"


class Group(Base, BaseModel):
    """Expense container shared by the accounts that split its costs."""

    __tablename__ = "groups"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    tenant_id: Mapped[int] = mapped_column(
        ForeignKey("tenants.id"),
        nullable=False,
        index=True,
    )

    tenant: Mapped["Tenant"] = relationship(  # noqa: F821
        "Tenant",
        back_populates="groups",
    )
    members: Mapped[list["GroupMember"]] = relationship(
        "GroupMember",
        back_populates="group",
        cascade="all, delete-orphan",
    )
    expenses: Mapped[list["Expense"]] = relationship(  # noqa: F821
        "Expense",
        back_populates="group",
    )

    def __repr__(self) -> str:
        return f"<Group(id={self.id}, name={self.name!r}, tenant_id={self.tenant_id})>"


class GroupMember(Base, BaseModel):
    """Membership of an account in a group."""

    __tablename__ = "group_members"

    group_id: Mapped[int] = mapped_column(ForeignKey("groups.id"), nullable=False, index=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), nullable=False, index=True)
    role: Mapped[GroupRole] = mapped_column(
        Enum(GroupRole, native_enum=False),
        default=GroupRole.MEMBER,
        nullable=False,
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    group: Mapped["Group"] = relationship("Group", back_populates="members")
    account: Mapped["Account"] = relationship(  # noqa: F821
        "Account",
        back_populates="memberships",
    )

    __table_args__ = (
        UniqueConstraint("group_id", "account_id", name="uq_group_member"),
        Index("idx_group_member_account", "account_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<GroupMember(group_id={self.group_id}, account_id={self.account_id}, "
            f"role={self.role.value})>"
        )


__all__ = ["Group", "GroupMember", "GroupRole"]
