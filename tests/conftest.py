"""Shared fixtures: in-memory database, seeded accounts and fake channel collaborators."""

import os

# Point the module-level engine at an in-memory database BEFORE importing finsplit
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

from datetime import date  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import Optional  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from finsplit.models import (  # noqa: E402
    Account,
    Base,
    Expense,
    ExpenseStatus,
    Group,
    GroupMember,
    GroupRole,
    Provenance,
    Tenant,
)
from finsplit.services import build_engine  # noqa: E402
from finsplit.services.config import Settings  # noqa: E402
from finsplit.services.extraction_service import ExtractionResult, Extractor  # noqa: E402
from finsplit.services.media_fetcher import MediaFetcher  # noqa: E402
from finsplit.services.parsers import normalize_description  # noqa: E402
from finsplit.services.responder import ChannelSender  # noqa: E402

SERVICE_NUMBER = "+14155238886"
PAYER_PHONE = "+5511987654321"
OTHER_PHONE = "+5521912345678"
MEDIA_URL = "https://api.twilio.com/2010-04-01/Accounts/AC123/Messages/MM1/Media/ME1"


class RecordingSender(ChannelSender):
    """Channel sender that keeps messages in memory."""

    def __init__(self):
        self.messages: list[tuple[str, str]] = []

    async def send(self, to: str, body: str) -> bool:
        self.messages.append((to, body))
        return True

    @property
    def last_body(self) -> Optional[str]:
        return self.messages[-1][1] if self.messages else None


class StaticExtractor(Extractor):
    """Extractor returning a fixed payload."""

    name = "static"

    def __init__(self, payload: dict, confidence: float = 0.95, provenance=Provenance.REAL):
        self.payload = payload
        self.confidence = confidence
        self.provenance = provenance
        self.calls = 0

    async def extract(self, image_b64: str, hint: Optional[str] = None) -> ExtractionResult:
        self.calls += 1
        return ExtractionResult(
            data=dict(self.payload), confidence=self.confidence, provenance=self.provenance
        )


def image_transport(size: int, content_type: str = "image/jpeg", status_code: int = 200):
    """httpx transport serving one image payload of the given size."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            status_code, content=b"\xff" * size, headers={"content-type": content_type}
        )

    return httpx.MockTransport(handler)


def make_media_fetcher(size: int = 45_000, content_type: str = "image/jpeg") -> MediaFetcher:
    return MediaFetcher(
        account_sid="AC123",
        auth_token="secret",
        min_bytes=1000,
        transport=image_transport(size, content_type),
    )


def receipt_payload(
    name: str = "Restaurante X",
    total=45.50,
    issued: str = "2024-01-15",
    transaction_type: str = "compra",
) -> dict:
    """Receipt JSON in the extraction schema."""
    return {
        "recebedor": {"nome": None},
        "estabelecimento": {"nome": name, "tipo": "restaurante"},
        "documento": {"tipo": "recibo"},
        "datas": {"emissao": issued},
        "itens": [{"descricao": "Almoço", "quantidade": 1, "valor_total": total}],
        "totais": {"total_final": total, "moeda": "BRL", "pago": True},
        "tipo_transacao": transaction_type,
        "metodo_pagamento": "cartão",
    }


@pytest.fixture
def db_session():
    """Fresh in-memory database per test."""
    engine = build_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def settings():
    """Settings isolated from the developer's .env file."""
    return Settings(
        _env_file=None,
        twilio_account_sid="AC123",
        twilio_auth_token="secret",
        twilio_phone_number=SERVICE_NUMBER,
        app_url="https://finsplit.test",
        enforce_entitlements=False,
        synthetic_fallback_enabled=True,
    )


@pytest.fixture
def tenant(db_session):
    tenant = Tenant(name="Família Souza", credits=10, has_whatsapp=True, plan="PREMIUM")
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture
def payer(db_session, tenant):
    account = Account(name="Paula Souza", phone=PAYER_PHONE, tenant_id=tenant.id)
    db_session.add(account)
    db_session.commit()
    return account


@pytest.fixture
def other_payer(db_session, tenant):
    account = Account(name="Quintino Souza", phone=OTHER_PHONE, tenant_id=tenant.id)
    db_session.add(account)
    db_session.commit()
    return account


@pytest.fixture
def group(db_session, tenant, payer):
    group = Group(name="Casa", tenant_id=tenant.id)
    db_session.add(group)
    db_session.flush()
    db_session.add(GroupMember(group_id=group.id, account_id=payer.id, role=GroupRole.ADMIN))
    db_session.commit()
    return group


@pytest.fixture
def make_expense(db_session):
    """Factory for committed expenses."""

    def _make(
        payer: Account,
        group: Group,
        amount: str = "45.50",
        description: str = "Restaurante X",
        occurred_on: date = date(2024, 1, 15),
        status: ExpenseStatus = ExpenseStatus.PENDING,
        source_message_id: Optional[str] = None,
    ) -> Expense:
        expense = Expense(
            description=description,
            description_key=normalize_description(description),
            amount=Decimal(amount),
            occurred_on=occurred_on,
            status=status,
            category="Alimentação",
            payer_id=payer.id,
            group_id=group.id,
            provenance=Provenance.REAL,
            confidence=0.95,
            source_message_id=source_message_id,
        )
        db_session.add(expense)
        db_session.commit()
        return expense

    return _make


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def payload_factory():
    return receipt_payload


@pytest.fixture
def fetcher_factory():
    return make_media_fetcher


@pytest.fixture
def static_extractor_factory():
    return StaticExtractor
