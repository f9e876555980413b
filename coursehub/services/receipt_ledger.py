"""Short-lived storage for issued payment receipts.

A receipt is written when a payment is authorized, claimed (read and
removed in one step) when the student enrolls, and written back if that
enrollment is rejected.  Receipts that are never redeemed expire with
the cache TTL.
"""

from __future__ import annotations

import json
import logging
from decimal import Decimal
from uuid import UUID

from coursehub.models.payment import PaymentReceipt
from coursehub.services.cache import CacheService

logger = logging.getLogger(__name__)


def _key(transaction_id: str) -> str:
    return f"receipt:{transaction_id}"


def _dump(receipt: PaymentReceipt) -> str:
    return json.dumps(
        {
            "transaction_id": receipt.transaction_id,
            "payer_id": str(receipt.payer_id),
            "amount": str(receipt.amount),
            "currency": receipt.currency,
            "paid_at": receipt.paid_at,
            "method": receipt.method,
            "card_last4": receipt.card_last4,
        }
    )


def _load(raw: str) -> PaymentReceipt:
    data = json.loads(raw)
    return PaymentReceipt(
        transaction_id=data["transaction_id"],
        payer_id=UUID(data["payer_id"]),
        amount=Decimal(data["amount"]),
        currency=data["currency"],
        paid_at=int(data["paid_at"]),
        method=data.get("method", "card"),
        card_last4=data.get("card_last4"),
    )


class ReceiptLedger:
    def __init__(self, cache: CacheService, ttl_seconds: int) -> None:
        self._cache = cache
        self.ttl_seconds = ttl_seconds

    async def record(self, receipt: PaymentReceipt) -> None:
        await self._cache.set(
            _key(receipt.transaction_id), _dump(receipt), self.ttl_seconds
        )

    async def get(self, transaction_id: str) -> PaymentReceipt | None:
        raw = await self._cache.get(_key(transaction_id))
        return _load(raw) if raw is not None else None

    async def claim(self, transaction_id: str) -> PaymentReceipt | None:
        """Take a receipt out of the ledger for redemption.

        Removal and read are one atomic step, so when two enrollments
        present the same transaction ID only one of them gets the receipt.
        A caller that ends up not using it hands it back with ``record``.
        """
        raw = await self._cache.pop(_key(transaction_id))
        if raw is None:
            logger.warning(
                "Receipt %s is unknown, expired or already claimed",
                transaction_id,
                extra={"transaction_id": transaction_id},
            )
            return None
        return _load(raw)
