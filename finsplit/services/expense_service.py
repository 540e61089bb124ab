"""Expense persistence used by the intake pipeline and the chat commands."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from finsplit.models import Account, Expense, ExpenseStatus, Group, Provenance
from finsplit.services.audit_service import (
    ACTION_EXPENSE_CONFIRMED,
    ACTION_EXPENSE_REJECTED,
    ACTION_RECEIPT_RECEIVED,
    ENTITY_EXPENSE,
    AuditService,
)
from finsplit.services.parsers import clean_description, normalize_description
from finsplit.services.receipt_fields import ReceiptExtraction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MonthlyReport:
    """Confirmed expenses of one payer in one calendar month."""

    month: date
    total: Decimal
    count: int


def _json_safe(value):
    """Copy of an extractor payload that the JSON column can store."""
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


class ExpenseService:
    """Service for creating and transitioning channel expenses.

    Methods flush but never commit; the pipeline owns the transaction so
    the expense, its group and its credit charge land in one commit.
    """

    def __init__(self, db: Session):
        self.db = db

    def create_pending_expense(
        self,
        payer: Account,
        group: Group,
        extraction: ReceiptExtraction,
        media_url: str | None = None,
        media_type: str | None = None,
        source_message_id: str | None = None,
    ) -> Expense:
        """Stage a PENDING expense built from a validated extraction.

        Args:
            payer: Account that sent the receipt
            group: Group the expense belongs to
            extraction: Validated extraction (amount, date, payee present)
            media_url: Channel media reference
            media_type: Media content type
            source_message_id: Channel message id, the replay key

        Returns:
            The flushed Expense (id assigned)
        """
        description = clean_description(extraction.payee_or_establishment or "")
        expense = Expense(
            description=description,
            description_key=normalize_description(description),
            amount=extraction.amount,
            occurred_on=extraction.occurred_on,
            status=ExpenseStatus.PENDING,
            category=extraction.category,
            payer_id=payer.id,
            group_id=group.id,
            receipt_data=_json_safe(extraction.raw),
            confidence=extraction.confidence,
            provenance=Provenance(extraction.provenance),
            document_kind=extraction.document_kind,
            media_url=media_url,
            media_type=media_type,
            source_message_id=source_message_id,
        )
        self.db.add(expense)
        self.db.flush()

        AuditService.log(
            self.db,
            entity_type=ENTITY_EXPENSE,
            entity_id=expense.id,
            action=ACTION_RECEIPT_RECEIVED,
            actor_id=payer.id,
            tenant_id=payer.tenant_id,
            changes={
                "status": ExpenseStatus.PENDING.value,
                "provenance": expense.provenance.value,
                "amount": str(expense.amount),
            },
        )
        logger.info(
            "expenses: staged pending expense %s for payer %s (%s, %s)",
            expense.id,
            payer.id,
            expense.amount,
            expense.provenance.value,
        )
        return expense

    def find_by_message_id(self, source_message_id: str) -> Expense | None:
        """Expense already written for a channel message, if any."""
        return self.db.execute(
            select(Expense).where(Expense.source_message_id == source_message_id)
        ).scalar_one_or_none()

    def find_latest_pending_for_payer(self, payer_id: int) -> Expense | None:
        """The payer's most recently created PENDING expense.

        Ties on created_at are broken by id, so the newest row always wins.
        """
        return self.db.execute(
            select(Expense)
            .where(Expense.payer_id == payer_id, Expense.status == ExpenseStatus.PENDING)
            .order_by(Expense.created_at.desc(), Expense.id.desc())
            .limit(1)
        ).scalar_one_or_none()

    def update_status(self, expense: Expense, status: ExpenseStatus, actor: Account) -> Expense:
        """Move a PENDING expense to CONFIRMED or REJECTED and audit it.

        Raises:
            ValueError: expense is not PENDING, target is PENDING, or the
                actor is not the payer
        """
        if expense.status != ExpenseStatus.PENDING:
            raise ValueError(f"Expense {expense.id} is {expense.status.value}, not pending")
        if status == ExpenseStatus.PENDING:
            raise ValueError("Target status must be confirmed or rejected")
        if expense.payer_id != actor.id:
            raise ValueError(f"Account {actor.id} is not the payer of expense {expense.id}")

        previous = expense.status
        expense.status = status
        action = (
            ACTION_EXPENSE_CONFIRMED if status == ExpenseStatus.CONFIRMED else ACTION_EXPENSE_REJECTED
        )
        AuditService.log(
            self.db,
            entity_type=ENTITY_EXPENSE,
            entity_id=expense.id,
            action=action,
            actor_id=actor.id,
            tenant_id=actor.tenant_id,
            changes={"from": previous.value, "to": status.value, "via": "whatsapp"},
        )
        self.db.flush()
        logger.info("expenses: expense %s %s -> %s", expense.id, previous.value, status.value)
        return expense

    def monthly_confirmed_report(self, payer_id: int, today: date | None = None) -> MonthlyReport:
        """Total and count of the payer's CONFIRMED expenses in the current month."""
        today = today or datetime.now(timezone.utc).date()
        month_start = today.replace(day=1)
        # First day of the following month
        next_month = (month_start.replace(day=28) + timedelta(days=4)).replace(day=1)

        total, count = self.db.execute(
            select(func.coalesce(func.sum(Expense.amount), 0), func.count(Expense.id)).where(
                Expense.payer_id == payer_id,
                Expense.status == ExpenseStatus.CONFIRMED,
                Expense.occurred_on >= month_start,
                Expense.occurred_on < next_month,
            )
        ).one()
        return MonthlyReport(
            month=month_start,
            total=Decimal(str(total)).quantize(Decimal("0.01")),
            count=count,
        )


__all__ = ["ExpenseService", "MonthlyReport"]
