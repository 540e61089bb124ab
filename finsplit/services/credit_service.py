"""Tenant credit metering and top-ups.

Each receipt that becomes an expense costs a fixed number of credits. The
charge is a REMOVE ledger row keyed on the expense id (unique), staged in
the same transaction as the expense, so a replayed webhook cannot charge
twice.
"""

import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from finsplit.models import CreditTransaction, CreditTransactionKind, Expense, Tenant

logger = logging.getLogger(__name__)


class CreditMeter:
    """Service for debiting and granting tenant credits."""

    def __init__(self, db: Session, cost_per_receipt: int = 1):
        self.db = db
        self.cost_per_receipt = cost_per_receipt

    def find_charge(self, expense_id: int) -> CreditTransaction | None:
        """Ledger row that paid for an expense, if it was charged."""
        return self.db.execute(
            select(CreditTransaction).where(CreditTransaction.expense_id == expense_id)
        ).scalar_one_or_none()

    def _apply(self, tenant_id: int, delta: int) -> int:
        """Apply a signed change in SQL and return the new balance."""
        self.db.execute(
            update(Tenant).where(Tenant.id == tenant_id).values(credits=Tenant.credits + delta)
        )
        return self.db.execute(select(Tenant.credits).where(Tenant.id == tenant_id)).scalar_one()

    def charge_for_expense(self, tenant_id: int, expense: Expense) -> CreditTransaction:
        """Debit one receipt's cost for an expense, at most once.

        Returns the existing ledger row when the expense was already
        charged. Flushes without committing.
        """
        existing = self.find_charge(expense.id)
        if existing is not None:
            logger.info("credits: expense %s already charged, skipping", expense.id)
            return existing

        charge = CreditTransaction(
            tenant_id=tenant_id,
            amount=-self.cost_per_receipt,
            kind=CreditTransactionKind.REMOVE,
            reason=f"Leitura de recibo (despesa {expense.id})",
            expense_id=expense.id,
        )
        self.db.add(charge)
        self.db.flush()

        balance = self._apply(tenant_id, -self.cost_per_receipt)
        if balance <= 0:
            logger.warning("credits: tenant %s balance is now %s", tenant_id, balance)
        else:
            logger.info("credits: tenant %s charged %s, balance %s", tenant_id, self.cost_per_receipt, balance)
        return charge

    def grant_credits(self, tenant_id: int, amount: int, reason: str) -> CreditTransaction:
        """Administrative top-up recorded as an ADD ledger row.

        Raises:
            ValueError: amount is not positive
        """
        if amount <= 0:
            raise ValueError(f"Credit grant must be positive, got {amount}")

        grant = CreditTransaction(
            tenant_id=tenant_id,
            amount=amount,
            kind=CreditTransactionKind.ADD,
            reason=reason,
        )
        self.db.add(grant)
        self.db.flush()
        balance = self._apply(tenant_id, amount)
        logger.info("credits: tenant %s granted %s (%s), balance %s", tenant_id, amount, reason, balance)
        return grant

    def balance(self, tenant_id: int) -> int:
        return self.db.execute(select(Tenant.credits).where(Tenant.id == tenant_id)).scalar_one()


__all__ = ["CreditMeter"]
