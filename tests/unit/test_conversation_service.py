"""Unit tests for the chat command classifier and interpreter."""

import pytest
from sqlalchemy.exc import OperationalError

from finsplit.models import AuditLog, ExpenseStatus
from finsplit.services.conversation_service import (
    Command,
    ConversationState,
    TextCommandInterpreter,
    classify,
    normalize_text,
)
from finsplit.services.errors import PersistenceError
from finsplit.services.localizer import t


class TestNormalizeText:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Não!", "nao"),
            ("  SIM  ", "sim"),
            ("Relatório   do mês", "relatorio do mes"),
            ("créditos?", "creditos"),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_text(raw) == expected


class TestClassify:
    """Tests for classify."""

    @pytest.mark.parametrize("text", ["sim", "Sim", "SIM!", "s", "yes", "confirmar", "ok"])
    def test_affirmative(self, text):
        assert classify(text) == Command.CONFIRM

    @pytest.mark.parametrize("text", ["não", "nao", "Não.", "n", "no", "rejeitar", "cancelar"])
    def test_negative(self, text):
        assert classify(text) == Command.REJECT

    def test_confirmation_tokens_must_be_whole_message(self):
        assert classify("sim, mas depois") == Command.UNKNOWN

    @pytest.mark.parametrize(
        "text,command",
        [
            ("ajuda", Command.HELP),
            ("menu", Command.HELP),
            ("grupos", Command.GROUPS),
            ("lançamento", Command.NEW_EXPENSE),
            ("relatório do mês", Command.REPORT),
            ("planilha", Command.DASHBOARD),
            ("créditos", Command.CREDITS),
            ("credito", Command.CREDITS),
        ],
    )
    def test_commands(self, text, command):
        assert classify(text) == command

    @pytest.mark.parametrize("text", ["", "   ", "bom dia", "quanto gastei?", "1", "2", "saldo"])
    def test_unknown(self, text):
        assert classify(text) == Command.UNKNOWN


class TestConfirmation:
    """Confirmation and rejection of the latest pending expense."""

    @pytest.mark.asyncio
    async def test_nothing_pending(self, db_session, settings, payer):
        outcome = await TextCommandInterpreter(db_session, settings).handle(payer, "sim")

        assert outcome.kind == "nothing_pending"
        assert outcome.reply == t("conversation.nothing_pending")
        assert db_session.query(AuditLog).count() == 0

    @pytest.mark.asyncio
    async def test_rejection_with_nothing_pending(self, db_session, settings, payer):
        outcome = await TextCommandInterpreter(db_session, settings).handle(payer, "não")

        assert outcome.kind == "nothing_pending"

    @pytest.mark.asyncio
    async def test_confirm_latest_pending(self, db_session, settings, payer, group, make_expense):
        older = make_expense(payer, group, amount="10.00")
        newest = make_expense(payer, group, amount="20.00")
        interpreter = TextCommandInterpreter(db_session, settings)

        outcome = await interpreter.handle(payer, "Sim")

        db_session.refresh(older)
        db_session.refresh(newest)
        assert outcome.kind == "confirmed"
        assert outcome.expense_id == newest.id
        assert "https://finsplit.test/dashboard/groups/" in outcome.reply
        assert newest.status == ExpenseStatus.CONFIRMED
        assert older.status == ExpenseStatus.PENDING
        assert interpreter.state_for(payer.id) == ConversationState.AWAITING_CONFIRMATION

    @pytest.mark.asyncio
    async def test_reject(self, db_session, settings, payer, group, make_expense):
        expense = make_expense(payer, group)
        interpreter = TextCommandInterpreter(db_session, settings)

        outcome = await interpreter.handle(payer, "não")

        db_session.refresh(expense)
        assert outcome.kind == "rejected"
        assert outcome.reply == t("conversation.rejected")
        assert expense.status == ExpenseStatus.REJECTED
        assert interpreter.state_for(payer.id) == ConversationState.NO_PENDING

    @pytest.mark.asyncio
    async def test_payers_are_isolated(self, db_session, settings, payer, other_payer, group, make_expense):
        mine = make_expense(payer, group)
        interpreter = TextCommandInterpreter(db_session, settings)

        outcome = await interpreter.handle(other_payer, "sim")

        db_session.refresh(mine)
        assert outcome.kind == "nothing_pending"
        assert mine.status == ExpenseStatus.PENDING

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["1", "2"])
    async def test_numeric_reply_does_not_transition(self, db_session, settings, payer, group, make_expense, text):
        expense = make_expense(payer, group)

        outcome = await TextCommandInterpreter(db_session, settings).handle(payer, text)

        db_session.refresh(expense)
        assert outcome.kind == "unknown_command"
        assert expense.status == ExpenseStatus.PENDING

    @pytest.mark.asyncio
    async def test_commit_failure_raises_persistence_error(
        self, db_session, settings, payer, group, make_expense, monkeypatch
    ):
        make_expense(payer, group)

        def failing_commit():
            raise OperationalError("COMMIT", {}, Exception("database is locked"))

        monkeypatch.setattr(db_session, "commit", failing_commit)

        with pytest.raises(PersistenceError):
            await TextCommandInterpreter(db_session, settings).handle(payer, "sim")


class TestReadOnlyCommands:
    """Commands that never change stored state."""

    @pytest.mark.asyncio
    async def test_help_leaves_pending_untouched(self, db_session, settings, payer, group, make_expense):
        expense = make_expense(payer, group)

        outcome = await TextCommandInterpreter(db_session, settings).handle(payer, "ajuda")

        db_session.refresh(expense)
        assert outcome.kind == "help"
        assert expense.status == ExpenseStatus.PENDING

    @pytest.mark.asyncio
    async def test_groups(self, db_session, settings, payer, group):
        outcome = await TextCommandInterpreter(db_session, settings).handle(payer, "grupos")

        assert outcome.kind == "groups"
        assert "*Casa*" in outcome.reply

    @pytest.mark.asyncio
    async def test_groups_empty(self, db_session, settings, payer):
        outcome = await TextCommandInterpreter(db_session, settings).handle(payer, "grupos")

        assert outcome.reply == t("conversation.groups_empty", link="https://finsplit.test/dashboard")

    @pytest.mark.asyncio
    async def test_expense_howto(self, db_session, settings, payer):
        outcome = await TextCommandInterpreter(db_session, settings).handle(payer, "lançamento")

        assert outcome.kind == "expense_howto"
        assert "https://finsplit.test/dashboard" in outcome.reply

    @pytest.mark.asyncio
    async def test_report(self, db_session, settings, payer):
        outcome = await TextCommandInterpreter(db_session, settings).handle(payer, "relatório")

        assert outcome.kind == "report"
        assert "Despesas confirmadas: 0" in outcome.reply

    @pytest.mark.asyncio
    async def test_dashboard(self, db_session, settings, payer):
        outcome = await TextCommandInterpreter(db_session, settings).handle(payer, "planilha")

        assert outcome.reply == t("conversation.dashboard", link="https://finsplit.test/dashboard")

    @pytest.mark.asyncio
    async def test_credits(self, db_session, settings, payer):
        outcome = await TextCommandInterpreter(db_session, settings).handle(payer, "créditos")

        assert outcome.kind == "credits"
        assert "Créditos disponíveis: 10" in outcome.reply
        assert "WhatsApp: ativo" in outcome.reply

    @pytest.mark.asyncio
    async def test_unknown(self, db_session, settings, payer):
        outcome = await TextCommandInterpreter(db_session, settings).handle(payer, "bom dia")

        assert outcome.kind == "unknown_command"
        assert outcome.reply == t("conversation.unknown")
