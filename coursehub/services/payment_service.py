"""Mock payment authorization.

Stands in for a real processor: it checks the shape of card-like input
and issues a synthetic receipt.  No card data leaves the process, nothing
is charged, and there is no decline path once validation passes.

Validation rules (all evaluated, every failure reported):
  card number  digits with optional space/dash separators; at least 13
               characters once whitespace is removed
  expiry       MM/YY, month 01-12, not before the current month
  cvv          3 or 4 digits
  name         at least 2 characters after trimming
"""

from __future__ import annotations

import datetime
import logging
import re
import secrets
from collections.abc import Callable
from decimal import Decimal
from uuid import UUID

from coursehub.core.metrics import PAYMENT_AUTHORIZATIONS_TOTAL
from coursehub.models.payment import CardInput, PaymentReceipt, ValidationResult
from coursehub.services.errors import PaymentValidationError
from coursehub.services.receipt_ledger import ReceiptLedger

logger = logging.getLogger(__name__)

_CARD_CHARS_RE = re.compile(r"^[\d-]+$")
_EXPIRY_RE = re.compile(r"^(\d{2})/(\d{2})$")
_CVV_RE = re.compile(r"^\d{3,4}$")
_MIN_CARD_LENGTH = 13


def _utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


def validate_card(card: CardInput, *, today: datetime.date) -> ValidationResult:
    errors: list[str] = []

    compact = re.sub(r"\s", "", card.card_number or "")
    if (
        len(compact) < _MIN_CARD_LENGTH
        or not _CARD_CHARS_RE.match(compact)
        or not card.digits
    ):
        errors.append("Invalid card number")

    match = _EXPIRY_RE.match((card.expiry or "").strip())
    if match is None:
        errors.append("Invalid expiry date (MM/YY format required)")
    else:
        month, year = int(match.group(1)), int(match.group(2))
        current_year = today.year % 100
        if not 1 <= month <= 12:
            errors.append("Invalid month in expiry date")
        elif year < current_year or (year == current_year and month < today.month):
            errors.append("Card has expired")

    if not _CVV_RE.match(card.cvv or ""):
        errors.append("Invalid CVV")

    if len((card.cardholder_name or "").strip()) < 2:
        errors.append("Invalid cardholder name")

    return ValidationResult(is_valid=not errors, errors=tuple(errors))


def card_brand(card_number: str) -> str:
    digits = "".join(ch for ch in card_number if ch.isdigit())
    if digits.startswith("4"):
        return "Visa"
    if digits.startswith(("5", "2")):
        return "Mastercard"
    if digits.startswith("3"):
        return "American Express"
    if digits.startswith("6"):
        return "Discover"
    return "Unknown"


def mask_card_number(card_number: str) -> str:
    digits = "".join(ch for ch in card_number if ch.isdigit())
    if len(digits) < 4:
        return "****"
    return f"**** **** **** {digits[-4:]}"


class PaymentService:
    def __init__(
        self,
        ledger: ReceiptLedger,
        *,
        now: Callable[[], datetime.datetime] = _utc_now,
    ) -> None:
        self._ledger = ledger
        self._now = now

    def validate(self, card: CardInput) -> ValidationResult:
        return validate_card(card, today=self._now().date())

    async def authorize(
        self,
        amount: Decimal,
        currency: str,
        card: CardInput,
        payer_id: UUID,
    ) -> PaymentReceipt:
        result = self.validate(card)
        if not result.is_valid:
            PAYMENT_AUTHORIZATIONS_TOTAL.labels(result="invalid").inc()
            logger.warning(
                "Payment rejected for payer=%s: %s",
                payer_id,
                "; ".join(result.errors),
            )
            raise PaymentValidationError("payment details are invalid", result.errors)

        if amount < 0:
            raise PaymentValidationError("amount must be non-negative")

        receipt = PaymentReceipt(
            transaction_id=f"txn_{secrets.token_hex(12)}",
            payer_id=payer_id,
            amount=amount,
            currency=currency.upper(),
            paid_at=int(self._now().timestamp()),
            method="card",
            card_last4=card.last4,
        )
        await self._ledger.record(receipt)

        PAYMENT_AUTHORIZATIONS_TOTAL.labels(result="authorized").inc()
        logger.info(
            "Payment authorized txn=%s payer=%s amount=%s %s card=%s",
            receipt.transaction_id,
            payer_id,
            receipt.amount,
            receipt.currency,
            mask_card_number(card.card_number),
            extra={"transaction_id": receipt.transaction_id},
        )
        return receipt
