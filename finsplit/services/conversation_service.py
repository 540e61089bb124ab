"""Text command interpreter for the chat channel.

There is no conversation session. A payer's state is read from storage on
every message: if they have a PENDING expense they are awaiting
confirmation and "sim"/"não" apply to their most recent one; otherwise
those words get a "nothing pending" reply. Every other command is
read-only.
"""

import logging
import unicodedata
from dataclasses import dataclass
from enum import Enum

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from finsplit.models import Account, ExpenseStatus
from finsplit.services.config import Settings
from finsplit.services.errors import PersistenceError
from finsplit.services.expense_service import ExpenseService
from finsplit.services.group_service import GroupService
from finsplit.services.localizer import t
from finsplit.services.responder import (
    dashboard_link,
    format_confirmed,
    format_credits,
    format_groups,
    format_report,
)

logger = logging.getLogger(__name__)


class ConversationState(Enum):
    NO_PENDING = "no_pending"
    AWAITING_CONFIRMATION = "awaiting_confirmation"


class Command(Enum):
    CONFIRM = "confirm"
    REJECT = "reject"
    HELP = "help"
    GROUPS = "groups"
    NEW_EXPENSE = "new_expense"
    REPORT = "report"
    DASHBOARD = "dashboard"
    CREDITS = "credits"
    UNKNOWN = "unknown"


# Keywords are compared after case folding and accent stripping
AFFIRMATIVE_TOKENS = frozenset({"sim", "s", "yes", "y", "confirmar", "confirmo", "ok"})
NEGATIVE_TOKENS = frozenset({"nao", "no", "n", "rejeitar", "cancelar"})

COMMAND_KEYWORDS: dict[Command, frozenset[str]] = {
    Command.HELP: frozenset({"ajuda", "help", "menu"}),
    Command.GROUPS: frozenset({"grupos", "grupo"}),
    Command.NEW_EXPENSE: frozenset({"lancamento", "despesa"}),
    Command.REPORT: frozenset({"relatorio"}),
    Command.DASHBOARD: frozenset({"planilha", "dashboard"}),
    Command.CREDITS: frozenset({"creditos", "credito"}),
}

_TRAILING_PUNCTUATION = ".!?,;:"


def normalize_text(text: str) -> str:
    """Lowercase, strip accents and surrounding punctuation ("Não!" -> "nao")."""
    decomposed = unicodedata.normalize("NFKD", text.strip().casefold())
    stripped = "".join(char for char in decomposed if not unicodedata.combining(char))
    return " ".join(stripped.split()).strip(_TRAILING_PUNCTUATION).strip()


def classify(text: str) -> Command:
    """Map a message to a command.

    Confirmation tokens must be the whole message; other commands match on
    the whole message or its first word.

    Examples:
        >>> classify("Sim")
        <Command.CONFIRM: 'confirm'>
        >>> classify("não")
        <Command.REJECT: 'reject'>
        >>> classify("relatório do mês")
        <Command.REPORT: 'report'>
    """
    normalized = normalize_text(text or "")
    if not normalized:
        return Command.UNKNOWN
    if normalized in AFFIRMATIVE_TOKENS:
        return Command.CONFIRM
    if normalized in NEGATIVE_TOKENS:
        return Command.REJECT

    first_word = normalized.split(" ", 1)[0].strip(_TRAILING_PUNCTUATION)
    for command, keywords in COMMAND_KEYWORDS.items():
        if normalized in keywords or first_word in keywords:
            return command
    return Command.UNKNOWN


@dataclass(frozen=True)
class CommandOutcome:
    """Result of handling one text message."""

    kind: str
    reply: str
    expense_id: int | None = None


class TextCommandInterpreter:
    """Applies chat commands for one payer."""

    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.settings = settings
        self.expenses = ExpenseService(db)

    def state_for(self, payer_id: int) -> ConversationState:
        if self.expenses.find_latest_pending_for_payer(payer_id) is None:
            return ConversationState.NO_PENDING
        return ConversationState.AWAITING_CONFIRMATION

    async def handle(self, account: Account, text: str) -> CommandOutcome:
        """Handle a text message from a resolved account.

        Raises:
            PersistenceError: a status transition could not be committed
        """
        command = classify(text)
        logger.info("conversation: account %s sent %s command", account.id, command.value)

        if command in (Command.CONFIRM, Command.REJECT):
            return self._transition(account, command)
        if command == Command.HELP:
            return CommandOutcome("help", t("conversation.help"))
        if command == Command.GROUPS:
            groups = GroupService(self.db).list_groups_for_account(account.id)
            return CommandOutcome("groups", format_groups(groups, self.settings.app_url))
        if command == Command.NEW_EXPENSE:
            link = dashboard_link(self.settings.app_url)
            return CommandOutcome("expense_howto", t("conversation.expense_howto", link=link))
        if command == Command.REPORT:
            report = self.expenses.monthly_confirmed_report(account.id)
            return CommandOutcome("report", format_report(report, self.settings.app_url))
        if command == Command.DASHBOARD:
            link = dashboard_link(self.settings.app_url)
            return CommandOutcome("dashboard", t("conversation.dashboard", link=link))
        if command == Command.CREDITS:
            tenant = account.tenant
            return CommandOutcome("credits", format_credits(tenant.credits, tenant.has_whatsapp))
        return CommandOutcome("unknown_command", t("conversation.unknown"))

    def _transition(self, account: Account, command: Command) -> CommandOutcome:
        expense = self.expenses.find_latest_pending_for_payer(account.id)
        if expense is None:
            logger.info("conversation: account %s has nothing pending", account.id)
            return CommandOutcome("nothing_pending", t("conversation.nothing_pending"))

        target = ExpenseStatus.CONFIRMED if command == Command.CONFIRM else ExpenseStatus.REJECTED
        try:
            self.expenses.update_status(expense, target, actor=account)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "conversation: failed to set expense %s to %s", expense.id, target.value, exc_info=True
            )
            raise PersistenceError(f"expense {target.value}") from e

        if target == ExpenseStatus.CONFIRMED:
            return CommandOutcome(
                "confirmed", format_confirmed(expense, self.settings.app_url), expense.id
            )
        return CommandOutcome("rejected", t("conversation.rejected"), expense.id)


__all__ = [
    "Command",
    "CommandOutcome",
    "ConversationState",
    "TextCommandInterpreter",
    "classify",
    "normalize_text",
    "AFFIRMATIVE_TOKENS",
    "NEGATIVE_TOKENS",
]
