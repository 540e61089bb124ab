"""Strict duplicate lookup for incoming receipts."""

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from finsplit.models import Expense, ExpenseStatus
from finsplit.services.parsers import normalize_description

logger = logging.getLogger(__name__)

# Rejected expenses never block a new one
BLOCKING_STATUSES = (ExpenseStatus.CONFIRMED, ExpenseStatus.PENDING)


class DuplicateDetector:
    """Finds an existing expense with the same payer, amount, description and date.

    Matching is exact equality on the normalized description; no fuzzy
    matching is attempted.
    """

    def __init__(self, db: Session):
        self.db = db

    def find_duplicate(
        self,
        payer_id: int,
        amount: Decimal,
        description: str,
        occurred_on: date,
        exclude_expense_id: int | None = None,
    ) -> Expense | None:
        """Return the oldest matching CONFIRMED or PENDING expense, if any.

        Args:
            payer_id: Account that paid
            amount: Expense amount
            description: Payee or establishment name as extracted
            occurred_on: Receipt date
            exclude_expense_id: Expense to ignore (the one just written)
        """
        stmt = (
            select(Expense)
            .where(
                Expense.payer_id == payer_id,
                Expense.amount == amount,
                Expense.description_key == normalize_description(description),
                Expense.occurred_on == occurred_on,
                Expense.status.in_(BLOCKING_STATUSES),
            )
            .order_by(Expense.created_at.asc(), Expense.id.asc())
            .limit(1)
        )
        if exclude_expense_id is not None:
            stmt = stmt.where(Expense.id != exclude_expense_id)

        existing = self.db.execute(stmt).scalar_one_or_none()
        if existing is not None:
            logger.info(
                "duplicate: payer %s receipt matches expense %s (%s)",
                payer_id,
                existing.id,
                existing.status.value,
            )
        return existing


__all__ = ["DuplicateDetector", "BLOCKING_STATUSES"]
