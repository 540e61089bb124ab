"""Normalize inbound channel webhooks into InboundMessage values.

The channel posts form-encoded fields (Twilio WhatsApp format):
    From=whatsapp:+5511987654321
    Body=sim
    NumMedia=1
    MediaUrl0=https://api.twilio.com/.../Media/ME...
    MediaContentType0=image/jpeg
    MessageSid=SM...

No business logic lives here; malformed payloads produce None and the
HTTP layer acknowledges them without doing any work.
"""

import logging
import re
from dataclasses import dataclass
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "whatsapp:"
_NON_DIGITS = re.compile(r"\D")


@dataclass(frozen=True)
class InboundMessage:
    """A normalized inbound message."""

    sender_identity: str
    """Sender phone in E.164 form, channel prefix stripped."""

    channel_address: str
    """Sender address as the channel expects it for replies."""

    text: Optional[str] = None
    media_url: Optional[str] = None
    media_content_type: Optional[str] = None
    message_id: Optional[str] = None

    @property
    def has_media(self) -> bool:
        return bool(self.media_url)


def strip_channel_prefix(address: str) -> str:
    """Remove the channel prefix from an address ("whatsapp:+55..." -> "+55...")."""
    address = address.strip()
    if address.lower().startswith(CHANNEL_PREFIX):
        return address[len(CHANNEL_PREFIX):].strip()
    return address


def digits_only(phone: str) -> str:
    """Keep only the digits of a phone number."""
    return _NON_DIGITS.sub("", phone)


def _field(form: Mapping[str, str], name: str) -> Optional[str]:
    value = form.get(name)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def parse_inbound_form(form: Mapping[str, str]) -> Optional[InboundMessage]:
    """Build an InboundMessage from webhook form fields.

    Args:
        form: Form fields as posted by the channel

    Returns:
        InboundMessage, or None when the payload has no usable sender or
        carries neither text nor media
    """
    raw_from = _field(form, "From")
    if not raw_from:
        logger.warning("channel.inbound: payload without From field, ignoring")
        return None

    sender = strip_channel_prefix(raw_from)
    if not digits_only(sender):
        logger.warning("channel.inbound: unusable sender identity %r, ignoring", raw_from)
        return None

    text = _field(form, "Body")
    media_url = _field(form, "MediaUrl0")

    if not text and not media_url:
        logger.info("channel.inbound: empty message from %s, ignoring", sender)
        return None

    message = InboundMessage(
        sender_identity=sender,
        channel_address=raw_from,
        text=text,
        media_url=media_url,
        media_content_type=_field(form, "MediaContentType0"),
        message_id=_field(form, "MessageSid"),
    )
    logger.debug(
        "channel.inbound: sender=%s message_id=%s has_media=%s text=%r",
        message.sender_identity,
        message.message_id,
        message.has_media,
        (text or "")[:50],
    )
    return message


def is_own_number(message: InboundMessage, service_number: str) -> bool:
    """Whether a message was sent by the service's own channel number."""
    own = digits_only(strip_channel_prefix(service_number or ""))
    return bool(own) and digits_only(message.sender_identity) == own


__all__ = [
    "InboundMessage",
    "parse_inbound_form",
    "strip_channel_prefix",
    "digits_only",
    "is_own_number",
]
