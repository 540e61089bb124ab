"""Unit tests for IdentityResolver and the entitlement policy."""

import pytest

from finsplit.models import Account
from finsplit.services.errors import EntitlementError, UnknownSender
from finsplit.services.identity_service import (
    Entitlements,
    IdentityResolver,
    check_entitlements,
    phone_variants,
)


class TestPhoneVariants:
    """Tests for phone_variants."""

    def test_mobile_with_ninth_digit(self):
        assert phone_variants("+5511987654321") == [
            "+5511987654321",
            "5511987654321",
            "+551187654321",
            "551187654321",
        ]

    def test_mobile_without_ninth_digit(self):
        variants = phone_variants("+551187654321")

        assert "+5511987654321" in variants
        assert "5511987654321" in variants

    def test_foreign_number(self):
        assert phone_variants("+14155238886") == ["+14155238886", "14155238886"]

    def test_empty(self):
        assert phone_variants("") == []


class TestIdentityResolver:
    """Tests for account lookup."""

    def test_exact_match(self, db_session, payer):
        account = IdentityResolver(db_session).find_account_by_identity("+5511987654321")

        assert account.id == payer.id

    def test_match_without_plus(self, db_session, tenant):
        stored = Account(name="Sem Mais", phone="5531988887777", tenant_id=tenant.id)
        db_session.add(stored)
        db_session.commit()

        account = IdentityResolver(db_session).find_account_by_identity("+5531988887777")

        assert account.id == stored.id

    def test_match_stored_without_ninth_digit(self, db_session, tenant):
        stored = Account(name="Antigo", phone="+553188887777", tenant_id=tenant.id)
        db_session.add(stored)
        db_session.commit()

        account = IdentityResolver(db_session).find_account_by_identity("+5531988887777")

        assert account.id == stored.id

    def test_inactive_account_is_not_found(self, db_session, payer):
        payer.is_active = False
        db_session.commit()

        assert IdentityResolver(db_session).find_account_by_identity("+5511987654321") is None

    def test_resolve_returns_entitlements(self, db_session, payer, tenant):
        account, entitlements = IdentityResolver(db_session).resolve("+5511987654321")

        assert account.id == payer.id
        assert entitlements == Entitlements(tenant_id=tenant.id, channel_enabled=True, credits=10)

    def test_resolve_unknown_sender(self, db_session, payer):
        with pytest.raises(UnknownSender) as exc_info:
            IdentityResolver(db_session).resolve("+5599999999999")

        assert exc_info.value.code == "unknown_sender"


class TestCheckEntitlements:
    """Tests for the entitlement policy."""

    def test_permissive_policy_logs_and_proceeds(self, caplog):
        entitlements = Entitlements(tenant_id=1, channel_enabled=False, credits=0)

        check_entitlements(entitlements, enforce=False)

        assert "channel disabled" in caplog.text
        assert "0 credits" in caplog.text

    def test_enforced_channel_disabled(self):
        entitlements = Entitlements(tenant_id=1, channel_enabled=False, credits=5)

        with pytest.raises(EntitlementError) as exc_info:
            check_entitlements(entitlements, enforce=True)

        assert exc_info.value.reason == "channel_disabled"

    def test_enforced_no_credits(self):
        entitlements = Entitlements(tenant_id=1, channel_enabled=True, credits=0)

        with pytest.raises(EntitlementError) as exc_info:
            check_entitlements(entitlements, enforce=True)

        assert exc_info.value.code == "entitlement_no_credits"

    def test_credits_not_required_for_text(self):
        entitlements = Entitlements(tenant_id=1, channel_enabled=True, credits=0)

        check_entitlements(entitlements, enforce=True, require_credits=False)

    def test_entitled_tenant_passes(self):
        check_entitlements(Entitlements(tenant_id=1, channel_enabled=True, credits=3), enforce=True)
