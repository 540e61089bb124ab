"""Integration tests for the receipt -> sim/não conversation over the pipeline."""

import pytest
from fastapi.testclient import TestClient

from finsplit.api.webhook import app, get_intake_service
from finsplit.models import AuditLog, Expense, ExpenseStatus
from finsplit.services.channel_gateway import InboundMessage
from finsplit.services.intake_service import IntakeService
from finsplit.services.localizer import t

PAYER_PHONE = "+5511987654321"
OTHER_PHONE = "+5521912345678"
MEDIA_URL = "https://api.twilio.com/2010-04-01/Accounts/AC123/Messages/MM1/Media/ME1"


def text_message(text: str, phone: str = PAYER_PHONE) -> InboundMessage:
    return InboundMessage(sender_identity=phone, channel_address=f"whatsapp:{phone}", text=text)


def receipt_message(message_id: str, phone: str = PAYER_PHONE) -> InboundMessage:
    return InboundMessage(
        sender_identity=phone,
        channel_address=f"whatsapp:{phone}",
        media_url=MEDIA_URL,
        media_content_type="image/jpeg",
        message_id=message_id,
    )


@pytest.fixture
def intake(db_session, settings, sender, payload_factory, fetcher_factory, static_extractor_factory):
    """Pipeline with a fixed receipt extractor and in-memory sender."""
    return IntakeService(
        db_session, settings, static_extractor_factory(payload_factory()), fetcher_factory(), sender
    )


class TestConfirmationFlow:
    """Receipt followed by a confirmation or rejection."""

    @pytest.mark.asyncio
    async def test_sim_with_nothing_pending(self, db_session, intake, payer, sender):
        outcome = await intake.process(text_message("sim"))

        assert outcome.kind == "nothing_pending"
        assert sender.last_body == t("conversation.nothing_pending")
        assert db_session.query(Expense).count() == 0

    @pytest.mark.asyncio
    async def test_receipt_then_confirm(self, db_session, intake, payer, group, sender):
        recorded = await intake.process(receipt_message("SM1"))
        confirmed = await intake.process(text_message("Sim"))

        expense = db_session.get(Expense, recorded.expense_id)
        db_session.refresh(expense)
        assert confirmed.kind == "confirmed"
        assert confirmed.expense_id == expense.id
        assert expense.status == ExpenseStatus.CONFIRMED
        assert f"https://finsplit.test/dashboard/groups/{group.id}" in sender.last_body
        actions = [row.action for row in db_session.query(AuditLog).order_by(AuditLog.id)]
        assert actions == ["receipt_received", "expense_confirmed"]

    @pytest.mark.asyncio
    async def test_receipt_then_reject(self, db_session, intake, payer, sender):
        recorded = await intake.process(receipt_message("SM1"))
        rejected = await intake.process(text_message("não"))
        again = await intake.process(text_message("não"))

        expense = db_session.get(Expense, recorded.expense_id)
        db_session.refresh(expense)
        assert rejected.kind == "rejected"
        assert expense.status == ExpenseStatus.REJECTED
        assert again.kind == "nothing_pending"

    @pytest.mark.asyncio
    async def test_confirm_applies_to_most_recent_receipt(self, db_session, intake, payer, sender):
        first = await intake.process(receipt_message("SM1"))
        second = await intake.process(receipt_message("SM2"))

        confirmed = await intake.process(text_message("sim"))

        assert second.kind == "duplicate_warning"
        assert confirmed.expense_id == second.expense_id
        older = db_session.get(Expense, first.expense_id)
        db_session.refresh(older)
        assert older.status == ExpenseStatus.PENDING

    @pytest.mark.asyncio
    async def test_payers_do_not_see_each_others_pending(self, db_session, intake, payer, other_payer, sender):
        recorded = await intake.process(receipt_message("SM1"))

        outcome = await intake.process(text_message("sim", phone=OTHER_PHONE))

        expense = db_session.get(Expense, recorded.expense_id)
        db_session.refresh(expense)
        assert outcome.kind == "nothing_pending"
        assert expense.status == ExpenseStatus.PENDING
        assert sender.messages[-1][0] == f"whatsapp:{OTHER_PHONE}"

    @pytest.mark.asyncio
    async def test_help_keeps_expense_pending(self, db_session, intake, payer, sender):
        recorded = await intake.process(receipt_message("SM1"))

        help_outcome = await intake.process(text_message("ajuda"))
        confirmed = await intake.process(text_message("sim"))

        assert help_outcome.kind == "help"
        assert confirmed.expense_id == recorded.expense_id


class TestWebhookEndToEnd:
    """Form posts through FastAPI into the real pipeline."""

    @pytest.fixture
    def client(self, intake):
        app.dependency_overrides[get_intake_service] = lambda: intake
        try:
            yield TestClient(app)
        finally:
            app.dependency_overrides.clear()

    def test_receipt_and_confirmation_over_http(self, client, db_session, payer, group, sender):
        receipt = client.post(
            "/webhook/whatsapp",
            data={
                "From": f"whatsapp:{PAYER_PHONE}",
                "NumMedia": "1",
                "MediaUrl0": MEDIA_URL,
                "MediaContentType0": "image/jpeg",
                "MessageSid": "SM900",
            },
        )
        replay = client.post(
            "/webhook/whatsapp",
            data={"From": f"whatsapp:{PAYER_PHONE}", "MediaUrl0": MEDIA_URL, "MessageSid": "SM900"},
        )
        confirm = client.post("/webhook/whatsapp", data={"From": f"whatsapp:{PAYER_PHONE}", "Body": "sim"})

        assert receipt.json() == {"ok": True, "outcome": "receipt_recorded"}
        assert replay.json() == {"ok": True, "outcome": "already_processed"}
        assert confirm.json() == {"ok": True, "outcome": "confirmed"}
        assert len(sender.messages) == 3
        db_session.expire_all()
        assert db_session.query(Expense).one().status == ExpenseStatus.CONFIRMED

    def test_unknown_sender_over_http(self, client, db_session, sender):
        response = client.post("/webhook/whatsapp", data={"From": "whatsapp:+5531999990000", "Body": "oi"})

        assert response.status_code == 200
        assert response.json() == {"ok": True, "outcome": "unknown_sender"}
        assert "/auth/signup" in sender.last_body

    def test_unexpected_failure_is_apologized_over_http(self, client, monkeypatch, payer, sender):
        def broken_route(self, message):
            raise RuntimeError("unexpected")

        monkeypatch.setattr(IntakeService, "_route", broken_route)

        response = client.post("/webhook/whatsapp", data={"From": f"whatsapp:{PAYER_PHONE}", "Body": "sim"})

        assert response.status_code == 200
        assert response.json() == {"ok": True, "outcome": "error"}
        assert sender.messages == [(f"whatsapp:{PAYER_PHONE}", t("errors.unexpected"))]
