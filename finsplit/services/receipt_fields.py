"""Typed view over extractor payloads and the required-field validator.

Extractors return the Portuguese JSON schema from the extraction prompt:
payee under "recebedor", establishment under "estabelecimento", total under
"totais.total_final", issue date under "datas.emissao". A few flat English
keys ("merchant", "amount", "date", "category") are accepted as well since
vision models drift towards them.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from finsplit.services.errors import ReceiptValidationError
from finsplit.services.parsers import clean_description, parse_brazilian_amount, parse_receipt_date

logger = logging.getLogger(__name__)

# Required field keys, rendered through the "fields.*" templates
FIELD_PAYEE = "payee"
FIELD_DATE = "date"
FIELD_AMOUNT = "amount"
FIELD_CATEGORY = "category"
REQUIRED_FIELDS = (FIELD_PAYEE, FIELD_DATE, FIELD_AMOUNT, FIELD_CATEGORY)

# Category used when only the transaction type is known
CATEGORY_BY_TRANSACTION_TYPE = {
    "compra": "Compras",
    "pagamento": "Pagamentos",
    "transferência": "Transferências",
    "transferencia": "Transferências",
    "saque": "Saques",
    "depósito": "Depósitos",
    "deposito": "Depósitos",
}


def _section(payload: dict[str, Any], key: str) -> dict[str, Any]:
    value = payload.get(key)
    return value if isinstance(value, dict) else {}


def _first(*values: Any) -> Any:
    """First value that is not None."""
    return next((value for value in values if value is not None), None)


def _text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = clean_description(str(value))
    return text or None


def has_minimum_fields(payload: dict[str, Any]) -> bool:
    """Whether a payload names at least one of: total amount, payee, establishment.

    Extractions without any of the three are unusable and rejected before
    any other validation.
    """
    if not isinstance(payload, dict):
        return False
    total = _first(_section(payload, "totais").get("total_final"), payload.get("amount"))
    payee = _text(_section(payload, "recebedor").get("nome"))
    establishment = _text(_section(payload, "estabelecimento").get("nome")) or _text(
        payload.get("merchant")
    )
    has_total = total is not None and total != "" and not isinstance(total, bool)
    return bool(has_total or payee or establishment)


def default_category(transaction_type: Optional[str]) -> Optional[str]:
    """Category implied by a transaction type ("compra" -> "Compras")."""
    if not transaction_type:
        return None
    key = transaction_type.strip().casefold()
    if key in CATEGORY_BY_TRANSACTION_TYPE:
        return CATEGORY_BY_TRANSACTION_TYPE[key]
    return transaction_type.strip().capitalize()


@dataclass
class LineItem:
    description: str
    quantity: Optional[float] = None
    total: Optional[Decimal] = None


@dataclass
class ReceiptExtraction:
    """Structured receipt fields, every one optional until validated."""

    payee_name: Optional[str] = None
    establishment_name: Optional[str] = None
    amount: Optional[Decimal] = None
    occurred_on: Optional[date] = None
    document_kind: Optional[str] = None
    payment_method: Optional[str] = None
    transaction_type: Optional[str] = None
    category: Optional[str] = None
    line_items: list[LineItem] = field(default_factory=list)
    confidence: float = 0.0
    provenance: str = "real"
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def payee_or_establishment(self) -> Optional[str]:
        return self.payee_name or self.establishment_name

    @property
    def is_simulated(self) -> bool:
        return bool(self.raw.get("simulado"))

    @classmethod
    def from_payload(
        cls, payload: dict[str, Any], confidence: float = 0.0, provenance: str = "real"
    ) -> "ReceiptExtraction":
        """Build the view from an extractor payload.

        Unparsable amounts and dates are treated as absent so the validator
        reports them as missing instead of failing the webhook.
        """
        totais = _section(payload, "totais")
        datas = _section(payload, "datas")

        try:
            amount = parse_brazilian_amount(_first(totais.get("total_final"), payload.get("amount")))
        except ValueError as e:
            logger.info("receipt: ignoring unparsable amount: %s", e)
            amount = None
        if amount is not None and amount <= 0:
            amount = None

        try:
            occurred_on = parse_receipt_date(_first(datas.get("emissao"), payload.get("date")))
        except ValueError as e:
            logger.info("receipt: ignoring unparsable date: %s", e)
            occurred_on = None

        items = []
        raw_items = payload.get("itens")
        for raw_item in raw_items if isinstance(raw_items, list) else []:
            if not isinstance(raw_item, dict):
                continue
            description = _text(raw_item.get("descricao"))
            if not description:
                continue
            try:
                item_total = parse_brazilian_amount(raw_item.get("valor_total"))
            except ValueError:
                item_total = None
            quantity = raw_item.get("quantidade")
            items.append(
                LineItem(
                    description=description,
                    quantity=quantity if isinstance(quantity, (int, float)) else None,
                    total=item_total,
                )
            )

        return cls(
            payee_name=_text(_section(payload, "recebedor").get("nome")),
            establishment_name=_text(_section(payload, "estabelecimento").get("nome"))
            or _text(payload.get("merchant")),
            amount=amount,
            occurred_on=occurred_on,
            document_kind=_text(_section(payload, "documento").get("tipo")),
            payment_method=_text(payload.get("metodo_pagamento")),
            transaction_type=_text(payload.get("tipo_transacao")),
            category=_text(payload.get("categoria")) or _text(payload.get("category")),
            line_items=items,
            confidence=confidence,
            provenance=provenance,
            raw=payload,
        )


def missing_required_fields(extraction: ReceiptExtraction) -> list[str]:
    """Required field keys absent from an extraction, in display order."""
    present = {
        FIELD_PAYEE: extraction.payee_or_establishment is not None,
        FIELD_DATE: extraction.occurred_on is not None,
        FIELD_AMOUNT: extraction.amount is not None,
        FIELD_CATEGORY: bool(extraction.category or default_category(extraction.transaction_type)),
    }
    return [name for name in REQUIRED_FIELDS if not present[name]]


def validate_receipt(extraction: ReceiptExtraction) -> ReceiptExtraction:
    """Check an extraction can become an expense and fill the default category.

    Args:
        extraction: Extraction view built from an extractor payload

    Returns:
        The same extraction with category filled from the transaction type
        when the extractor gave none

    Raises:
        ReceiptValidationError: minimum gate failed or required fields missing
    """
    if not has_minimum_fields(extraction.raw):
        logger.info("receipt: extraction has no total, payee or establishment")
        raise ReceiptValidationError(list(REQUIRED_FIELDS))

    missing = missing_required_fields(extraction)
    if missing:
        logger.info("receipt: missing required fields %s", missing)
        raise ReceiptValidationError(missing)

    if not extraction.category:
        extraction.category = default_category(extraction.transaction_type)
    return extraction


__all__ = [
    "LineItem",
    "ReceiptExtraction",
    "REQUIRED_FIELDS",
    "has_minimum_fields",
    "default_category",
    "missing_required_fields",
    "validate_receipt",
]
