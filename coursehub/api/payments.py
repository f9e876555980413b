"""Mock payment endpoints.

/validate answers 200 with every failed rule in-band so a checkout form
can show all errors at once.  /authorize issues a receipt that the
caller then presents to POST /v1/courses/{course_id}/enroll.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from coursehub.api.dependencies import get_payment_service, require_user
from coursehub.core.config import SETTINGS
from coursehub.models.payment import CardInput
from coursehub.models.principal import Principal
from coursehub.services.payment_service import PaymentService, card_brand

router = APIRouter(prefix="/v1/payments", tags=["payments"])


class CardIn(BaseModel):
    card_number: str
    expiry: str
    cvv: str = Field(repr=False)
    cardholder_name: str

    def to_domain(self) -> CardInput:
        return CardInput(
            card_number=self.card_number,
            expiry=self.expiry,
            cvv=self.cvv,
            cardholder_name=self.cardholder_name,
        )


class ValidationOut(BaseModel):
    is_valid: bool
    errors: list[str]
    brand: str


class AuthorizeIn(BaseModel):
    amount: Decimal
    currency: str | None = None
    card: CardIn


class ReceiptOut(BaseModel):
    transaction_id: str
    amount: Decimal
    currency: str
    paid_at: int
    method: str
    card_last4: str | None


@router.post("/validate", response_model=ValidationOut)
async def validate_payment(
    body: CardIn,
    _principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[PaymentService, Depends(get_payment_service)],
) -> ValidationOut:
    result = service.validate(body.to_domain())
    return ValidationOut(
        is_valid=result.is_valid,
        errors=list(result.errors),
        brand=card_brand(body.card_number),
    )


@router.post(
    "/authorize",
    response_model=ReceiptOut,
    status_code=status.HTTP_201_CREATED,
)
async def authorize_payment(
    body: AuthorizeIn,
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[PaymentService, Depends(get_payment_service)],
) -> ReceiptOut:
    receipt = await service.authorize(
        body.amount,
        body.currency or SETTINGS.default_currency,
        body.card.to_domain(),
        payer_id=principal.user_id,
    )
    return ReceiptOut(
        transaction_id=receipt.transaction_id,
        amount=receipt.amount,
        currency=receipt.currency,
        paid_at=receipt.paid_at,
        method=receipt.method,
        card_last4=receipt.card_last4,
    )
