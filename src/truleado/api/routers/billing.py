"""
truleado.api.routers.billing

Checkout verification for token purchases. Purchases are created under
`/v1/agencies/{agency_id}/token-purchases`.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from truleado.api.deps import billing_service
from truleado.api.schemas import TokenPurchaseOut
from truleado.auth.deps import get_actor
from truleado.auth.models import Actor
from truleado.services.billing_service import BillingService

router = APIRouter(prefix="/v1/token-purchases", tags=["billing"])


class VerifyRequest(BaseModel):
    order_id: str = Field(min_length=1, max_length=128)
    payment_id: str = Field(min_length=1, max_length=128)
    signature: str = Field(min_length=1, max_length=256)


@router.post("/verify", response_model=TokenPurchaseOut)
async def verify_token_purchase(
    body: VerifyRequest,
    actor: Actor = Depends(get_actor),
    svc: BillingService = Depends(billing_service),
) -> TokenPurchaseOut:
    purchase = await svc.verify_token_purchase(
        actor, order_id=body.order_id, payment_id=body.payment_id, signature=body.signature
    )
    return TokenPurchaseOut.model_validate(purchase)
