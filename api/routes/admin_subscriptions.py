"""
Admin routes for role subscriptions.

The host is responsible for restricting these to operators.
"""

from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from api.dependencies import get_subscription_service
from subscriptions.errors import InvalidUserError, SettingsError
from subscriptions.service import SubscriptionService

router = APIRouter(prefix="/admin/subscriptions", tags=["admin", "subscriptions"])


class DaysLeftBody(BaseModel):
    days_left: Optional[Union[int, str]] = Field(None, description="Days from now; blank for perpetual")


class SettingsBody(BaseModel):
    conditions: str = Field("", description="One rule per line: identifier|role|days|default_role")
    default_days_per_copy: Optional[Union[int, str]] = Field(None, description="Fallback days per copy")


def _settings_payload(service: SubscriptionService) -> dict:
    snapshot = service.settings.snapshot()
    return {
        "conditions": service.settings.conditions,
        "default_days_per_copy": snapshot.default_days_per_copy,
        "rules": [
            {
                "identifier": rule.identifier,
                "assigned_role": rule.assigned_role,
                "days_per_copy": rule.days_per_copy,
                "default_role": rule.default_role,
            }
            for rule in snapshot.rules
        ],
    }


@router.get("")
def list_subscriptions(
    user_id: Optional[str] = None,
    service: SubscriptionService = Depends(get_subscription_service),
) -> dict:
    """Users with an expiry record, soonest expiry first."""
    rows = service.subscribers(user_id=user_id)
    return {
        "subscribers": [
            {
                "user_id": row.user_id,
                "expires_at": row.expiry.isoformat() if row.expiry else None,
                "days_left": row.days_left,
                "role": row.role,
            }
            for row in rows
        ],
    }


@router.post("/refresh")
def refresh_subscriptions(service: SubscriptionService = Depends(get_subscription_service)) -> dict:
    """Run the expiry sweep now. Same logic as the daily job."""
    result = service.refresh()
    return {
        "ok": True,
        "ran_at": result.ran_at.isoformat(),
        "reverted": sorted(result.reverted),
        "cleared": result.cleared,
    }


@router.get("/notices")
def get_notices(service: SubscriptionService = Depends(get_subscription_service)) -> dict:
    """Dashboard notices. Reading clears the new-subscription flag."""
    notices = service.notices()
    return {
        "new_subscription": notices.new_subscription,
        "expiring_soon": notices.expiring_soon,
    }


@router.get("/settings")
def get_settings(service: SubscriptionService = Depends(get_subscription_service)) -> dict:
    return _settings_payload(service)


@router.put("/settings")
def update_settings(
    body: SettingsBody,
    service: SubscriptionService = Depends(get_subscription_service),
) -> dict:
    try:
        service.update_settings(body.conditions, body.default_days_per_copy)
    except SettingsError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.to_dict())
    return _settings_payload(service)


@router.put("/{user_id}/days-left")
def update_days_left(
    user_id: str,
    body: DaysLeftBody,
    service: SubscriptionService = Depends(get_subscription_service),
) -> dict:
    """Overwrite remaining days. Blank or non-positive makes the grant perpetual."""
    try:
        expiry = service.set_days_left(user_id, body.days_left)
    except InvalidUserError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.to_dict())
    return {
        "ok": True,
        "user_id": user_id,
        "expires_at": expiry.isoformat() if expiry else None,
    }
