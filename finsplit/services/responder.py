"""Reply formatting and outbound delivery on the messaging channel.

Every webhook produces at most one outbound message. Formatting helpers
render localized templates; senders deliver the text.
"""

import logging
from abc import ABC, abstractmethod

import httpx

from finsplit.models import Expense, Provenance
from finsplit.services.channel_gateway import CHANNEL_PREFIX, digits_only, strip_channel_prefix
from finsplit.services.expense_service import MonthlyReport
from finsplit.services.group_service import GroupSummary
from finsplit.services.locale_service import format_amount, format_month, format_short_date
from finsplit.services.localizer import t

logger = logging.getLogger(__name__)


# ============================================================================
# Links
# ============================================================================


def dashboard_link(app_url: str, group_id: int | None = None) -> str:
    """Deep link to the web dashboard, optionally to one group."""
    base = app_url.rstrip("/")
    if group_id is None:
        return f"{base}/dashboard"
    return f"{base}/dashboard/groups/{group_id}"


def signup_link(app_url: str) -> str:
    return f"{app_url.rstrip('/')}/auth/signup"


# ============================================================================
# Receipt replies
# ============================================================================


def format_receipt_summary(expense: Expense, group_name: str) -> str:
    """Summary of a freshly recorded pending expense, asking for confirmation."""
    message = t(
        "receipt.summary",
        payee=expense.description,
        amount=format_amount(expense.amount),
        date=format_short_date(expense.occurred_on),
        document_kind=expense.document_kind or "Recibo",
        category=expense.category or "-",
        group=group_name,
    )
    if expense.provenance == Provenance.SYNTHETIC:
        message += t("receipt.synthetic_notice")
    return message


def format_duplicate_warning(existing: Expense) -> str:
    """Warning naming the existing expense a new receipt matches."""
    return t(
        "receipt.duplicate_warning",
        description=existing.description,
        amount=format_amount(existing.amount),
        date=format_short_date(existing.occurred_on),
        status=t(f"status.{existing.status.value}"),
    )


def format_missing_fields(missing_fields: list[str]) -> str:
    labels = ", ".join(t(f"fields.{name}") for name in missing_fields)
    return t("receipt.missing_fields", missing_fields=labels)


# ============================================================================
# Conversation replies
# ============================================================================


def format_confirmed(expense: Expense, app_url: str) -> str:
    return t(
        "conversation.confirmed",
        amount=format_amount(expense.amount),
        date=format_short_date(expense.occurred_on),
        link=dashboard_link(app_url, expense.group_id),
    )


def format_groups(groups: list[GroupSummary], app_url: str) -> str:
    """Listing for the "grupos" command."""
    link = dashboard_link(app_url)
    if not groups:
        return t("conversation.groups_empty", link=link)

    parts = [t("conversation.groups_header", count=len(groups))]
    for index, group in enumerate(groups, start=1):
        parts.append(
            t(
                "conversation.groups_item",
                index=index,
                name=group.name,
                members=group.member_count,
                expenses=group.expense_count,
            )
        )
    parts.append(t("conversation.groups_footer", link=link))
    return "".join(parts)


def format_report(report: MonthlyReport, app_url: str) -> str:
    return t(
        "conversation.report",
        month=format_month(report.month),
        total=format_amount(report.total),
        count=report.count,
        link=dashboard_link(app_url),
    )


def format_credits(credits: int, channel_enabled: bool) -> str:
    return t(
        "conversation.credits",
        credits=credits,
        channel="ativo" if channel_enabled else "inativo",
    )


# ============================================================================
# Delivery
# ============================================================================


class ChannelSender(ABC):
    """Delivers one plain-text message to a channel address."""

    @abstractmethod
    async def send(self, to: str, body: str) -> bool:
        """Send a message; returns False when delivery failed (already logged)."""


class TwilioSender(ChannelSender):
    """Sends WhatsApp messages through the Twilio Messages REST endpoint."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        api_base: str = "https://api.twilio.com/2010-04-01",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = strip_channel_prefix(from_number)
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def messages_url(self) -> str:
        return f"{self.api_base}/Accounts/{self.account_sid}/Messages.json"

    def _is_own_number(self, address: str) -> bool:
        own = digits_only(self.from_number)
        return bool(own) and digits_only(strip_channel_prefix(address)) == own

    async def send(self, to: str, body: str) -> bool:
        if self._is_own_number(to):
            logger.warning("responder: refusing to send a message to the service's own number")
            return False

        recipient = f"{CHANNEL_PREFIX}{strip_channel_prefix(to)}"
        data = {
            "From": f"{CHANNEL_PREFIX}{self.from_number}",
            "To": recipient,
            "Body": body,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.messages_url,
                    data=data,
                    auth=(self.account_sid, self.auth_token),
                )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("responder: failed to send message to %s: %s", recipient, e, exc_info=True)
            return False

        logger.info("responder: sent %s chars to %s", len(body), recipient)
        return True


__all__ = [
    "ChannelSender",
    "TwilioSender",
    "dashboard_link",
    "signup_link",
    "format_receipt_summary",
    "format_duplicate_warning",
    "format_missing_fields",
    "format_confirmed",
    "format_groups",
    "format_report",
    "format_credits",
]
