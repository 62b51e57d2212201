"""
Subscription manager error hierarchy.

Provides:
- SubscriptionError: base for all subscription failures
- InvalidUserError: manual adjustment targeted a missing or unknown user
- SettingsError: settings file is unreadable or ill-typed
"""

from typing import Optional


class SubscriptionError(Exception):
    """Base exception for subscription-related failures."""

    error_code = "SUBSCRIPTION_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.error_code, "message": self.message}


class InvalidUserError(SubscriptionError):
    """Raised when an operator adjustment names no user or an unknown one."""

    error_code = "INVALID_USER"

    def __init__(self, user_id: Optional[str]):
        self.user_id = user_id
        super().__init__("Invalid user")

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["user_id"] = self.user_id
        return d


class SettingsError(SubscriptionError):
    """Raised when stored settings cannot be loaded or saved."""

    error_code = "SETTINGS_INVALID"

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)

    def to_dict(self) -> dict:
        d = super().to_dict()
        if self.field is not None:
            d["field"] = self.field
        return d
