"""FastAPI webhook endpoint for inbound WhatsApp messages."""

import logging
from typing import Optional

from fastapi import Depends, FastAPI, Request
from sqlalchemy.orm import Session

from finsplit.services import get_db
from finsplit.services.channel_gateway import InboundMessage, parse_inbound_form
from finsplit.services.config import get_settings
from finsplit.services.extraction_service import Extractor, build_extractor
from finsplit.services.intake_service import IntakeService, build_intake_service
from finsplit.services.responder import ChannelSender, TwilioSender

logger = logging.getLogger(__name__)

app = FastAPI(
    title="FinSplit Receipt Intake",
    description="WhatsApp receipt intake and expense confirmation",
    version="0.1.0",
)

# Long-lived collaborators, built on first use (or set directly for testing)
_extractor: Optional[Extractor] = None
_sender: Optional[ChannelSender] = None


def setup_channel(extractor: Optional[Extractor] = None, sender: Optional[ChannelSender] = None) -> None:
    """Install the extractor and channel sender used by the webhook.

    Args:
        extractor: Receipt extractor (default: built from settings)
        sender: Outbound channel sender (default: Twilio sender from settings)
    """
    global _extractor, _sender
    settings = get_settings()
    _extractor = extractor or build_extractor(settings)
    _sender = sender or TwilioSender(
        account_sid=settings.twilio_account_sid,
        auth_token=settings.twilio_auth_token,
        from_number=settings.twilio_phone_number,
        api_base=settings.twilio_api_base,
        timeout=settings.media_timeout_seconds,
    )


def get_intake_service(db: Session = Depends(get_db)) -> IntakeService:
    """Dependency building the pipeline for one request."""
    if _extractor is None or _sender is None:
        setup_channel(_extractor, _sender)
    return build_intake_service(db, get_settings(), _extractor, _sender)


@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint for monitoring."""
    return {"status": "ok"}

@app.post("/webhook/whatsapp")
async def whatsapp_webhook(
    request: Request,
    intake: IntakeService = Depends(get_intake_service),
) -> dict:
    """Receive one channel message and run the intake pipeline.

    Always answers 200. An unexpected failure is logged and, when the
    sender is known, answered with the generic apology.
    """
    message = None
    try:
        form = await request.form()
        message = parse_inbound_form(dict(form))
        if message is None:
            return {"ok": True, "outcome": "ignored"}

        logger.debug(
            "webhook.whatsapp: message_id=%s sender=%s media=%s",
            message.message_id,
            message.sender_identity,
            message.has_media,
        )
        outcome = await intake.process(message)
        return {"ok": True, "outcome": outcome.kind}
    except Exception as e:
        logger.error("Error processing channel message: %s", e, exc_info=True)
        if message is not None:
            await _send_apology(intake, message)
        return {"ok": True, "outcome": "error"}


async def _send_apology(intake: IntakeService, message: InboundMessage) -> None:
    try:
        await intake.apologize(message)
    except Exception as e:
        logger.error("Error sending apology to %s: %s", message.sender_identity, e, exc_info=True)


__all__ = ["app", "setup_channel", "get_intake_service"]
