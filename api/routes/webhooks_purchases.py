"""
Purchase-completion webhook.

The host shop posts here once an order reaches its completed state. The
payload is already normalized by the host: no platform-specific parsing or
signature scheme lives in this router.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from api.dependencies import get_subscription_service
from subscriptions.models import LineItem, PurchaseEvent
from subscriptions.service import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks/purchases", tags=["webhooks"])


class LineItemBody(BaseModel):
    product_id: Optional[int] = Field(None, description="Numeric product id")
    product_slug: Optional[str] = Field(None, description="Product slug")
    quantity: int = Field(1, description="Copies purchased")


class PurchaseCompletedBody(BaseModel):
    order_id: str = Field(..., description="Host order id")
    user_id: Optional[str] = Field(None, description="Purchasing user; guests have none")
    line_items: List[LineItemBody] = Field(default_factory=list)


@router.post("/completed")
def purchase_completed(
    body: PurchaseCompletedBody,
    service: SubscriptionService = Depends(get_subscription_service),
) -> dict:
    """Apply subscription rules to a completed order."""
    event = PurchaseEvent(
        order_id=body.order_id,
        user_id=body.user_id,
        line_items=tuple(
            LineItem(product_id=item.product_id, product_slug=item.product_slug, quantity=item.quantity)
            for item in body.line_items
        ),
    )
    outcome = service.handle_purchase(event)
    return {
        "ok": True,
        "order_id": body.order_id,
        "user_id": outcome.user_id,
        "matches": outcome.matches,
        "roles_assigned": list(outcome.roles_assigned),
        "expires_at": outcome.expiry.isoformat() if outcome.expiry else None,
        "perpetual": outcome.perpetual,
    }
