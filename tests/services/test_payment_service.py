from __future__ import annotations

import asyncio
import datetime
import json
import logging
import re
from decimal import Decimal
from uuid import uuid4

import pytest

from coursehub.models.payment import CardInput
from coursehub.services.cache import InMemoryCacheService
from coursehub.services.errors import PaymentValidationError, ValidationError
from coursehub.services.payment_service import (
    PaymentService,
    card_brand,
    mask_card_number,
    validate_card,
)
from coursehub.services.receipt_ledger import ReceiptLedger

TODAY = datetime.date(2026, 10, 18)
NOW = datetime.datetime(2026, 10, 18, 12, 0, tzinfo=datetime.UTC)


def _card(**overrides) -> CardInput:
    fields = {
        "card_number": "4111 1111 1111 1111",
        "expiry": "12/30",
        "cvv": "123",
        "cardholder_name": "Grace Hopper",
    }
    fields.update(overrides)
    return CardInput(**fields)


def _service() -> tuple[PaymentService, ReceiptLedger]:
    ledger = ReceiptLedger(InMemoryCacheService(), ttl_seconds=900)
    return PaymentService(ledger, now=lambda: NOW), ledger


# ---- validate ----


def test_valid_card_passes() -> None:
    result = validate_card(_card(), today=TODAY)
    assert result.is_valid
    assert result.errors == ()


def test_dashed_short_number_meets_length_rule() -> None:
    result = validate_card(_card(card_number="4111-1111-1111"), today=TODAY)
    assert "Invalid card number" not in result.errors


def test_reports_every_failed_rule() -> None:
    result = validate_card(
        _card(card_number="4111-1111-1111", expiry="01/20", cvv="12"), today=TODAY
    )
    assert not result.is_valid
    assert result.errors == ("Card has expired", "Invalid CVV")


@pytest.mark.parametrize("number", ["4111", "4111 1111 abcd 1111", "", "------------------"])
def test_rejects_bad_card_numbers(number: str) -> None:
    assert "Invalid card number" in validate_card(
        _card(card_number=number), today=TODAY
    ).errors


@pytest.mark.parametrize("expiry", ["1230", "12/2030", "1/30", ""])
def test_rejects_malformed_expiry(expiry: str) -> None:
    assert "Invalid expiry date (MM/YY format required)" in validate_card(
        _card(expiry=expiry), today=TODAY
    ).errors


def test_rejects_month_out_of_range_without_expiry_error() -> None:
    errors = validate_card(_card(expiry="13/30"), today=TODAY).errors
    assert errors == ("Invalid month in expiry date",)


def test_current_month_is_not_expired() -> None:
    assert validate_card(_card(expiry="10/26"), today=TODAY).is_valid


def test_previous_month_is_expired() -> None:
    assert validate_card(_card(expiry="09/26"), today=TODAY).errors == (
        "Card has expired",
    )


@pytest.mark.parametrize("cvv", ["123", "1234"])
def test_accepts_three_or_four_digit_cvv(cvv: str) -> None:
    assert validate_card(_card(cvv=cvv), today=TODAY).is_valid


@pytest.mark.parametrize("name", ["", " ", " A "])
def test_rejects_short_cardholder_name(name: str) -> None:
    assert validate_card(_card(cardholder_name=name), today=TODAY).errors == (
        "Invalid cardholder name",
    )


# ---- brand & masking ----


@pytest.mark.parametrize(
    ("number", "brand"),
    [
        ("4111111111111111", "Visa"),
        ("5500 0000 0000 0004", "Mastercard"),
        ("2221000000000009", "Mastercard"),
        ("378282246310005", "American Express"),
        ("6011111111111117", "Discover"),
        ("9999999999999999", "Unknown"),
    ],
)
def test_card_brand(number: str, brand: str) -> None:
    assert card_brand(number) == brand


def test_mask_card_number() -> None:
    assert mask_card_number("4111-1111-1111-1111") == "**** **** **** 1111"
    assert mask_card_number("12") == "****"


def test_card_repr_hides_number_and_cvv() -> None:
    text = repr(_card())
    assert "4111 1111" not in text
    assert "123" not in text
    assert "1111" in text


# ---- authorize ----


def test_authorize_issues_and_records_receipt() -> None:
    service, ledger = _service()
    payer = uuid4()
    receipt = asyncio.run(service.authorize(Decimal("20.00"), "usd", _card(), payer))

    assert receipt.transaction_id.startswith("txn_")
    assert receipt.amount == Decimal("20.00")
    assert receipt.currency == "USD"
    assert receipt.payer_id == payer
    assert receipt.paid_at == int(NOW.timestamp())
    assert receipt.method == "card"
    assert receipt.card_last4 == "1111"
    assert asyncio.run(ledger.get(receipt.transaction_id)) == receipt


def test_authorize_transaction_ids_are_unique() -> None:
    service, _ = _service()
    payer = uuid4()
    ids = {
        asyncio.run(service.authorize(Decimal("5"), "USD", _card(), payer)).transaction_id
        for _ in range(5)
    }
    assert len(ids) == 5


def test_authorize_rejects_invalid_card_with_all_errors() -> None:
    service, _ = _service()
    with pytest.raises(PaymentValidationError) as exc_info:
        asyncio.run(
            service.authorize(
                Decimal("20"), "USD", _card(expiry="01/20", cvv="12"), uuid4()
            )
        )
    assert isinstance(exc_info.value, ValidationError)
    assert exc_info.value.code == "payment_invalid"
    assert exc_info.value.errors == ("Card has expired", "Invalid CVV")


def test_authorize_rejects_negative_amount() -> None:
    service, _ = _service()
    with pytest.raises(PaymentValidationError, match="non-negative"):
        asyncio.run(service.authorize(Decimal("-1"), "USD", _card(), uuid4()))


def test_authorize_never_logs_full_card_number_or_cvv(
    caplog: pytest.LogCaptureFixture,
) -> None:
    service, _ = _service()
    card = _card(card_number="4111111111111111", cvv="987")
    with caplog.at_level(logging.DEBUG, logger="coursehub"):
        asyncio.run(service.authorize(Decimal("20"), "USD", card, uuid4()))
        with pytest.raises(PaymentValidationError):
            asyncio.run(
                service.authorize(Decimal("20"), "USD", _card(cvv="98"), uuid4())
            )

    for record in caplog.records:
        # Transaction and payer IDs are random hex and may contain any digits.
        message = re.sub(r"txn_[0-9a-f]+|[0-9a-f-]{36}", "", record.getMessage())
        assert "4111111111111111" not in message
        assert "987" not in message
    assert any("**** **** **** 1111" in r.getMessage() for r in caplog.records)


# ---- receipt ledger ----


def test_ledger_claim_hands_out_receipt_once() -> None:
    service, ledger = _service()
    receipt = asyncio.run(service.authorize(Decimal("20"), "USD", _card(), uuid4()))

    assert asyncio.run(ledger.claim(receipt.transaction_id)) == receipt
    assert asyncio.run(ledger.get(receipt.transaction_id)) is None
    assert asyncio.run(ledger.claim(receipt.transaction_id)) is None


def test_ledger_record_returns_claimed_receipt() -> None:
    service, ledger = _service()
    receipt = asyncio.run(service.authorize(Decimal("20"), "USD", _card(), uuid4()))

    claimed = asyncio.run(ledger.claim(receipt.transaction_id))
    asyncio.run(ledger.record(claimed))
    assert asyncio.run(ledger.claim(receipt.transaction_id)) == receipt


def test_ledger_claim_of_expired_receipt_is_none() -> None:
    now = [0.0]
    ledger = ReceiptLedger(InMemoryCacheService(clock=lambda: now[0]), ttl_seconds=60)
    service = PaymentService(ledger, now=lambda: NOW)
    receipt = asyncio.run(service.authorize(Decimal("20"), "USD", _card(), uuid4()))

    now[0] = 60.0
    assert asyncio.run(ledger.claim(receipt.transaction_id)) is None


def test_ledger_entries_expire_with_ttl() -> None:
    now = [0.0]
    cache = InMemoryCacheService(clock=lambda: now[0])
    ledger = ReceiptLedger(cache, ttl_seconds=60)
    service = PaymentService(ledger, now=lambda: NOW)
    receipt = asyncio.run(service.authorize(Decimal("20"), "USD", _card(), uuid4()))

    now[0] = 59.0
    assert asyncio.run(ledger.get(receipt.transaction_id)) is not None
    now[0] = 60.0
    assert asyncio.run(ledger.get(receipt.transaction_id)) is None


def test_ledger_stores_json_without_card_data() -> None:
    cache = InMemoryCacheService()
    service = PaymentService(ReceiptLedger(cache, ttl_seconds=60), now=lambda: NOW)
    receipt = asyncio.run(service.authorize(Decimal("20"), "USD", _card(), uuid4()))

    raw, _expires = cache._store[f"receipt:{receipt.transaction_id}"]
    stored = json.loads(raw)
    assert stored["amount"] == "20"
    assert stored["card_last4"] == "1111"
    assert "4111 1111 1111 1111" not in raw
