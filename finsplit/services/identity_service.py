"""Resolve channel senders to accounts and read tenant entitlements."""

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from finsplit.models import Account
from finsplit.services.channel_gateway import digits_only
from finsplit.services.errors import EntitlementError, UnknownSender

logger = logging.getLogger(__name__)

BRAZIL_COUNTRY_CODE = "55"


@dataclass(frozen=True)
class Entitlements:
    """Snapshot of the tenant flags that gate receipt intake."""

    tenant_id: int
    channel_enabled: bool
    credits: int

    @property
    def has_credits(self) -> bool:
        return self.credits > 0


def phone_variants(identity: str) -> list[str]:
    """Candidate stored forms for a sender phone, most specific first.

    Brazilian mobile numbers are stored both with and without the ninth
    digit in the wild, so both shapes are tried.

    Examples:
        >>> phone_variants("+5511987654321")
        ['+5511987654321', '5511987654321', '+551187654321', '551187654321']
    """
    digits = digits_only(identity)
    if not digits:
        return []

    candidates = [identity.strip(), f"+{digits}", digits]

    if digits.startswith(BRAZIL_COUNTRY_CODE):
        area, subscriber = digits[2:4], digits[4:]
        if len(subscriber) == 9 and subscriber.startswith("9"):
            short = f"{BRAZIL_COUNTRY_CODE}{area}{subscriber[1:]}"
            candidates += [f"+{short}", short]
        elif len(subscriber) == 8:
            long = f"{BRAZIL_COUNTRY_CODE}{area}9{subscriber}"
            candidates += [f"+{long}", long]

    seen: list[str] = []
    for candidate in candidates:
        if candidate and candidate not in seen:
            seen.append(candidate)
    return seen


class IdentityResolver:
    """Looks up the account behind a channel sender."""

    def __init__(self, db: Session):
        self.db = db

    def find_account_by_identity(self, identity: str) -> Account | None:
        """Find an active account by channel identifier, trying phone variants.

        Args:
            identity: Sender phone, channel prefix already stripped

        Returns:
            Account with its tenant loaded, or None if nothing matches
        """
        variants = phone_variants(identity)
        if not variants:
            return None

        accounts = (
            self.db.execute(
                select(Account)
                .options(joinedload(Account.tenant))
                .where(Account.phone.in_(variants), Account.is_active.is_(True))
            )
            .scalars()
            .all()
        )
        if not accounts:
            return None

        # Prefer the most specific stored form when several variants exist
        by_phone = {account.phone: account for account in accounts}
        for variant in variants:
            if variant in by_phone:
                if variant != identity:
                    logger.info("identity: matched %s via variant %s", identity, variant)
                return by_phone[variant]
        return accounts[0]

    def resolve(self, identity: str) -> tuple[Account, Entitlements]:
        """Resolve a sender to its account and entitlement snapshot.

        Raises:
            UnknownSender: No active account matches the identity
        """
        account = self.find_account_by_identity(identity)
        if account is None:
            logger.info("identity: no account for sender %s", identity)
            raise UnknownSender(identity)

        tenant = account.tenant
        entitlements = Entitlements(
            tenant_id=tenant.id,
            channel_enabled=bool(tenant.has_whatsapp),
            credits=tenant.credits,
        )
        return account, entitlements


def check_entitlements(
    entitlements: Entitlements, enforce: bool, require_credits: bool = True
) -> None:
    """Apply the entitlement policy to an inbound message.

    With enforcement off, problems are logged and processing proceeds.
    Text commands pass require_credits=False since only receipts cost credits.

    Raises:
        EntitlementError: enforce is True and the channel is disabled or
            the balance is not positive
    """
    if not entitlements.channel_enabled:
        if enforce:
            raise EntitlementError("channel_disabled")
        logger.warning(
            "entitlements: tenant %s has the channel disabled, proceeding", entitlements.tenant_id
        )

    if require_credits and not entitlements.has_credits:
        if enforce:
            raise EntitlementError("no_credits")
        logger.warning(
            "entitlements: tenant %s has %s credits, proceeding",
            entitlements.tenant_id,
            entitlements.credits,
        )


__all__ = ["Entitlements", "IdentityResolver", "check_entitlements", "phone_variants"]
