"""Unit tests for DuplicateDetector."""

from datetime import date
from decimal import Decimal

import pytest

from finsplit.models import ExpenseStatus
from finsplit.services.duplicate_detector import DuplicateDetector

AMOUNT = Decimal("45.50")
DAY = date(2024, 1, 15)


class TestFindDuplicate:
    """Strict-equality duplicate lookup."""

    @pytest.mark.parametrize("status", [ExpenseStatus.CONFIRMED, ExpenseStatus.PENDING])
    def test_flags_identical_expense(self, db_session, payer, group, make_expense, status):
        existing = make_expense(payer, group, status=status)

        found = DuplicateDetector(db_session).find_duplicate(payer.id, AMOUNT, "Restaurante X", DAY)

        assert found is not None
        assert found.id == existing.id

    def test_description_is_normalized(self, db_session, payer, group, make_expense):
        make_expense(payer, group, status=ExpenseStatus.CONFIRMED)

        found = DuplicateDetector(db_session).find_duplicate(
            payer.id, AMOUNT, "  RESTAURANTE   x ", DAY
        )

        assert found is not None

    def test_rejected_expense_is_ignored(self, db_session, payer, group, make_expense):
        make_expense(payer, group, status=ExpenseStatus.REJECTED)

        assert DuplicateDetector(db_session).find_duplicate(payer.id, AMOUNT, "Restaurante X", DAY) is None

    @pytest.mark.parametrize(
        "amount,description,day",
        [
            (Decimal("45.51"), "Restaurante X", DAY),
            (AMOUNT, "Restaurante Y", DAY),
            (AMOUNT, "Restaurante X", date(2024, 1, 16)),
        ],
    )
    def test_changing_any_field_unflags(self, db_session, payer, group, make_expense, amount, description, day):
        make_expense(payer, group, status=ExpenseStatus.CONFIRMED)

        assert DuplicateDetector(db_session).find_duplicate(payer.id, amount, description, day) is None

    def test_other_payer_is_not_a_duplicate(self, db_session, payer, other_payer, group, make_expense):
        make_expense(payer, group, status=ExpenseStatus.CONFIRMED)

        assert DuplicateDetector(db_session).find_duplicate(other_payer.id, AMOUNT, "Restaurante X", DAY) is None

    def test_no_fuzzy_matching(self, db_session, payer, group, make_expense):
        make_expense(payer, group, description="Restaurante X Ltda", status=ExpenseStatus.CONFIRMED)

        assert DuplicateDetector(db_session).find_duplicate(payer.id, AMOUNT, "Restaurante X", DAY) is None

    def test_excluded_expense_is_skipped(self, db_session, payer, group, make_expense):
        only = make_expense(payer, group)

        found = DuplicateDetector(db_session).find_duplicate(
            payer.id, AMOUNT, "Restaurante X", DAY, exclude_expense_id=only.id
        )

        assert found is None
