"""Receipt-intake pipeline: one inbound message in, at most one reply out.

Media messages run:
    replay guard -> entitlements -> media download -> extraction (with
    fallback) -> field validation -> duplicate lookup -> expense + credit
    charge (one commit) -> summary or duplicate warning

Text messages go to the command interpreter. Every terminal error becomes
an outcome with its reply; nothing here raises to the HTTP layer on
expected failures.
"""

import logging
from dataclasses import dataclass, replace

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from finsplit.models import Account, Expense, Group, Provenance
from finsplit.services.channel_gateway import InboundMessage, is_own_number
from finsplit.services.config import Settings
from finsplit.services.conversation_service import TextCommandInterpreter
from finsplit.services.credit_service import CreditMeter
from finsplit.services.duplicate_detector import DuplicateDetector
from finsplit.services.errors import (
    EntitlementError,
    ExtractionFailure,
    MediaFetchError,
    PersistenceError,
    ReceiptValidationError,
    UnknownSender,
)
from finsplit.services.expense_service import ExpenseService
from finsplit.services.extraction_service import Extractor
from finsplit.services.group_service import GroupService
from finsplit.services.identity_service import Entitlements, IdentityResolver, check_entitlements
from finsplit.services.localizer import t
from finsplit.services.media_fetcher import FetchedMedia, MediaFetcher
from finsplit.services.receipt_fields import ReceiptExtraction, validate_receipt
from finsplit.services.responder import (
    ChannelSender,
    format_duplicate_warning,
    format_missing_fields,
    format_receipt_summary,
    signup_link,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineOutcome:
    """What happened to one inbound message."""

    kind: str
    reply: str | None = None
    expense_id: int | None = None
    sent: bool = False


class IntakeService:
    """Runs the intake pipeline for one inbound message."""

    def __init__(
        self,
        db: Session,
        settings: Settings,
        extractor: Extractor,
        media_fetcher: MediaFetcher,
        sender: ChannelSender,
    ):
        self.db = db
        self.settings = settings
        self.extractor = extractor
        self.media_fetcher = media_fetcher
        self.sender = sender
        self.expenses = ExpenseService(db)

    async def process(self, message: InboundMessage) -> PipelineOutcome:
        """Handle a message and send its reply, if any."""
        if is_own_number(message, self.settings.twilio_phone_number):
            logger.info("intake: ignoring message from the service's own number")
            return PipelineOutcome("ignored")

        outcome = await self._dispatch(message)
        logger.info(
            "intake: sender=%s message_id=%s outcome=%s expense=%s",
            message.sender_identity,
            message.message_id,
            outcome.kind,
            outcome.expense_id,
        )
        if not outcome.reply:
            return outcome

        sent = await self.sender.send(message.channel_address, outcome.reply)
        return replace(outcome, sent=sent)

    async def apologize(self, message: InboundMessage) -> bool:
        """Send the generic apology after an unexpected failure; False if not delivered."""
        return await self.sender.send(message.channel_address, t("errors.unexpected"))

    async def _dispatch(self, message: InboundMessage) -> PipelineOutcome:
        """Route a message, turning any database failure into the persistence apology."""
        try:
            return await self._route(message)
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(
                "intake: database error handling message %s from %s",
                message.message_id,
                message.sender_identity,
                exc_info=True,
            )
            return PipelineOutcome("persistence_error", t("errors.persistence"))

    async def _route(self, message: InboundMessage) -> PipelineOutcome:
        try:
            account, entitlements = IdentityResolver(self.db).resolve(message.sender_identity)
        except UnknownSender as e:
            reply = t("onboarding.signup_prompt", signup_url=signup_link(self.settings.app_url))
            return PipelineOutcome(e.code, reply)

        if message.has_media:
            return await self._handle_receipt(message, account, entitlements)

        try:
            check_entitlements(
                entitlements, self.settings.enforce_entitlements, require_credits=False
            )
        except EntitlementError as e:
            return PipelineOutcome(e.code, t(f"errors.{e.reason}"))

        try:
            result = await TextCommandInterpreter(self.db, self.settings).handle(
                account, message.text or ""
            )
        except PersistenceError as e:
            return PipelineOutcome(e.code, t("errors.persistence"))
        return PipelineOutcome(result.kind, result.reply, result.expense_id)

    # ------------------------------------------------------------------
    # Receipts
    # ------------------------------------------------------------------

    def _find_replay(self, message: InboundMessage) -> Expense | None:
        if not message.message_id:
            return None
        return self.expenses.find_by_message_id(message.message_id)

    def _already_processed(self, expense: Expense) -> PipelineOutcome:
        logger.info("intake: message already produced expense %s, not charging again", expense.id)
        return PipelineOutcome(
            "already_processed",
            format_receipt_summary(expense, expense.group.name),
            expense.id,
        )

    async def _handle_receipt(
        self, message: InboundMessage, account: Account, entitlements: Entitlements
    ) -> PipelineOutcome:
        existing = self._find_replay(message)
        if existing is not None:
            return self._already_processed(existing)

        try:
            check_entitlements(entitlements, self.settings.enforce_entitlements)
        except EntitlementError as e:
            return PipelineOutcome(e.code, t(f"errors.{e.reason}"))

        try:
            media = await self.media_fetcher.fetch(message.media_url)
        except MediaFetchError as e:
            return PipelineOutcome(e.code, t("errors.media_fetch"))

        try:
            result = await self.extractor.extract(media.encoded, hint=message.text)
        except ExtractionFailure as e:
            logger.warning("intake: extraction failed for account %s: %s", account.id, e.reason)
            key = "errors.extraction_quota" if e.quota_exceeded else "errors.extraction_failed"
            return PipelineOutcome(e.code, t(key))

        extraction = ReceiptExtraction.from_payload(
            result.data, confidence=result.confidence, provenance=result.provenance.value
        )
        try:
            validate_receipt(extraction)
        except ReceiptValidationError as e:
            return PipelineOutcome(e.code, format_missing_fields(e.missing_fields))

        duplicate = DuplicateDetector(self.db).find_duplicate(
            payer_id=account.id,
            amount=extraction.amount,
            description=extraction.payee_or_establishment,
            occurred_on=extraction.occurred_on,
        )

        try:
            expense, group = self._record_expense(message, account, entitlements, extraction, media)
        except PersistenceError as e:
            replayed = self._find_replay(message)
            if replayed is not None:
                return self._already_processed(replayed)
            return PipelineOutcome(e.code, t("errors.persistence"))

        if duplicate is not None:
            reply = format_duplicate_warning(duplicate)
            if expense.provenance == Provenance.SYNTHETIC:
                reply += t("receipt.synthetic_notice")
            return PipelineOutcome("duplicate_warning", reply, expense.id)
        return PipelineOutcome("receipt_recorded", format_receipt_summary(expense, group.name), expense.id)

    def _record_expense(
        self,
        message: InboundMessage,
        account: Account,
        entitlements: Entitlements,
        extraction: ReceiptExtraction,
        media: FetchedMedia,
    ) -> tuple[Expense, Group]:
        """Write group, expense, audit row and credit charge in one commit.

        Raises:
            PersistenceError: the transaction failed and was rolled back
        """
        try:
            group = GroupService(self.db, self.settings.default_group_name).find_or_create_default_group(
                account
            )
            expense = self.expenses.create_pending_expense(
                payer=account,
                group=group,
                extraction=extraction,
                media_url=message.media_url,
                media_type=media.content_type,
                source_message_id=message.message_id,
            )
            CreditMeter(self.db, self.settings.credit_cost_per_receipt).charge_for_expense(
                entitlements.tenant_id, expense
            )
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning("intake: integrity error writing expense (replayed message?): %s", e.orig)
            raise PersistenceError("create expense") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("intake: failed to write expense for account %s", account.id, exc_info=True)
            raise PersistenceError("create expense") from e
        return expense, group


def build_intake_service(
    db: Session,
    settings: Settings,
    extractor: Extractor,
    sender: ChannelSender,
) -> IntakeService:
    """IntakeService wired with a media fetcher built from settings."""
    media_fetcher = MediaFetcher(
        account_sid=settings.twilio_account_sid,
        auth_token=settings.twilio_auth_token,
        min_bytes=settings.media_min_bytes,
        timeout=settings.media_timeout_seconds,
    )
    return IntakeService(db, settings, extractor, media_fetcher, sender)


__all__ = ["IntakeService", "PipelineOutcome", "build_intake_service"]
