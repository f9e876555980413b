from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True, slots=True)
class CardInput:
    """Card-like fields typed by the user. Never persisted, never logged."""

    card_number: str
    expiry: str  # MM/YY
    cvv: str
    cardholder_name: str

    def __repr__(self) -> str:
        return f"CardInput(last4={self.last4!r}, expiry={self.expiry!r})"

    @property
    def digits(self) -> str:
        return "".join(ch for ch in self.card_number if ch.isdigit())

    @property
    def last4(self) -> str | None:
        d = self.digits
        return d[-4:] if len(d) >= 4 else None


@dataclass(frozen=True, slots=True)
class ValidationResult:
    is_valid: bool
    errors: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class PaymentReceipt:
    """Proof of a (mock) payment, consumed once by an enrollment."""

    transaction_id: str
    payer_id: UUID
    amount: Decimal
    currency: str
    paid_at: int
    method: str = "card"
    card_last4: str | None = None
