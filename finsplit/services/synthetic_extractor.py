"""Deterministic stand-in receipt data used when the AI extractor is unavailable.

The payload is derived only from the length of the base64 image text, so
the same image always yields the same receipt. Size tiers pick a merchant
archetype (small photos look like a bakery slip, large ones like a
supermarket receipt). Every payload carries "simulado": true so replies
and stored rows show the data was not read from the image.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Optional

from finsplit.models import Provenance
from finsplit.services.errors import ExtractionFailure
from finsplit.services.extraction_service import SYNTHETIC_CONFIDENCE, ExtractionResult, Extractor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReceiptArchetype:
    """A plausible receipt shape for one image-size tier."""

    max_length: Optional[int]
    """Exclusive upper bound of base64 length for this tier (None = unbounded)."""
    merchant: str
    merchant_type: str
    category: str
    min_amount: Decimal
    max_amount: Decimal
    items: tuple[str, ...]
    payment_method: str


ARCHETYPES: tuple[ReceiptArchetype, ...] = (
    ReceiptArchetype(
        max_length=20_000,
        merchant="Padaria Pão Dourado",
        merchant_type="padaria",
        category="Alimentação",
        min_amount=Decimal("8.00"),
        max_amount=Decimal("45.00"),
        items=("Pão francês", "Café coado"),
        payment_method="PIX",
    ),
    ReceiptArchetype(
        max_length=50_000,
        merchant="Mercado Bom Preço",
        merchant_type="mercado",
        category="Compras",
        min_amount=Decimal("25.00"),
        max_amount=Decimal("150.00"),
        items=("Arroz 5kg", "Feijão 1kg", "Óleo de soja"),
        payment_method="cartão",
    ),
    ReceiptArchetype(
        max_length=100_000,
        merchant="Restaurante Sabor da Casa",
        merchant_type="restaurante",
        category="Alimentação",
        min_amount=Decimal("40.00"),
        max_amount=Decimal("220.00"),
        items=("Prato executivo", "Suco natural", "Sobremesa"),
        payment_method="cartão",
    ),
    ReceiptArchetype(
        max_length=None,
        merchant="Supermercado Central",
        merchant_type="supermercado",
        category="Compras",
        min_amount=Decimal("120.00"),
        max_amount=Decimal("650.00"),
        items=("Carnes", "Hortifruti", "Laticínios", "Limpeza"),
        payment_method="cartão",
    ),
)

_CENTS = Decimal("0.01")


def select_archetype(length: int) -> ReceiptArchetype:
    """Pick the archetype whose size tier contains the given length."""
    for archetype in ARCHETYPES:
        if archetype.max_length is None or length < archetype.max_length:
            return archetype
    return ARCHETYPES[-1]


def synthetic_amount(length: int, archetype: ReceiptArchetype) -> Decimal:
    """Amount inside the archetype's range, fixed by the image length."""
    span_cents = int((archetype.max_amount - archetype.min_amount) * 100) + 1
    return archetype.min_amount + Decimal(length % span_cents) / 100


def split_amount(total: Decimal, parts: int, seed: int) -> list[Decimal]:
    """Split a total into parts with uneven but deterministic shares.

    The last part absorbs rounding so the shares always sum to the total.
    """
    weights = [((seed >> (index * 3)) % 5) + 1 for index in range(parts)]
    weight_sum = sum(weights)
    shares = [
        (total * weight / weight_sum).quantize(_CENTS, rounding=ROUND_HALF_UP)
        for weight in weights[:-1]
    ]
    shares.append(total - sum(shares, Decimal("0")))
    return shares


def build_synthetic_payload(length: int, today: date) -> dict[str, Any]:
    """Receipt payload in the extraction schema for an image of the given length."""
    archetype = select_archetype(length)
    total = synthetic_amount(length, archetype)
    issued = today - timedelta(days=length % 3)
    shares = split_amount(total, len(archetype.items), length)

    return {
        "simulado": True,
        "recebedor": {"nome": None, "tipo": None},
        "estabelecimento": {
            "nome": archetype.merchant,
            "tipo": archetype.merchant_type,
        },
        "documento": {"tipo": "recibo", "numero_recibo": f"SIM-{length:06d}"},
        "datas": {"emissao": issued.isoformat()},
        "itens": [
            {"descricao": description, "quantidade": 1, "valor_total": float(share)}
            for description, share in zip(archetype.items, shares)
        ],
        "totais": {"total_final": float(total), "moeda": "BRL", "pago": True},
        "tipo_transacao": "compra",
        "metodo_pagamento": archetype.payment_method,
        "categoria": archetype.category,
    }


class SyntheticExtractor(Extractor):
    """Extractor producing simulated receipts from the image size alone."""

    name = "synthetic"

    def __init__(self, today: Callable[[], date] = date.today):
        self._today = today

    async def extract(self, image_b64: str, hint: Optional[str] = None) -> ExtractionResult:
        if not image_b64:
            raise ExtractionFailure("no image data to simulate from")

        length = len(image_b64)
        payload = build_synthetic_payload(length, self._today())
        logger.warning(
            "extraction.synthetic: simulated %s receipt of %s for image length %s",
            payload["estabelecimento"]["tipo"],
            payload["totais"]["total_final"],
            length,
        )
        return ExtractionResult(
            data=payload,
            confidence=SYNTHETIC_CONFIDENCE,
            provenance=Provenance.SYNTHETIC,
        )


__all__ = [
    "ARCHETYPES",
    "ReceiptArchetype",
    "SyntheticExtractor",
    "build_synthetic_payload",
    "select_archetype",
    "split_amount",
    "synthetic_amount",
]
