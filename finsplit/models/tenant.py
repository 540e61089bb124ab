"""Tenant ORM model holding plan entitlements and the credit balance."""

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from finsplit.models import Base, BaseModel


class Tenant(Base, BaseModel):
    """
    Customer organization owning accounts and groups.

    Entitlement fields:
    - credits: receipt-extraction balance, debited by the credit meter.
      Non-negative by convention; the permissive policy lets it reach zero
      or below.
    - has_whatsapp: channel-enabled flag for the messaging integration.
    """

    __tablename__ = "tenants"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    plan: Mapped[str] = mapped_column(
        String(50), nullable=False, default="FREE", comment="Plan code (FREE, PREMIUM, ...)"
    )
    credits: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Remaining receipt-extraction credits"
    )
    has_whatsapp: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, comment="Messaging channel enabled for this tenant"
    )

    accounts: Mapped[list["Account"]] = relationship(  # noqa: F821
        "Account",
        back_populates="tenant",
    )
    groups: Mapped[list["Group"]] = relationship(  # noqa: F821
        "Group",
        back_populates="tenant",
    )

    def __repr__(self) -> str:
        return (
            f"<Tenant(id={self.id}, name={self.name!r}, credits={self.credits}, "
            f"has_whatsapp={self.has_whatsapp})>"
        )


__all__ = ["Tenant"]
