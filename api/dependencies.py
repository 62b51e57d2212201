"""Request-scoped access to the host's SubscriptionService."""

from fastapi import HTTPException, Request, status

from subscriptions.service import SubscriptionService


def get_subscription_service(request: Request) -> SubscriptionService:
    """Get the subscription service from app state."""
    service = getattr(request.app.state, "subscription_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Subscription service not configured",
        )
    return service
