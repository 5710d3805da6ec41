"""Domain error taxonomy for the donation engine.

Service functions raise these; ``main.py`` registers a single handler that
turns them into ``{"error": code, "detail": message}`` JSON bodies. Nothing
below the router layer raises ``HTTPException``.
"""
from typing import Any, Optional


class DonationError(Exception):
    code = "donation_error"
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "detail": self.detail}


class ValidationError(DonationError):
    """Malformed input; nothing was attempted."""

    code = "validation_error"
    status_code = 422


class NotEligible(DonationError):
    """Business-rule rejection carrying the failing rule for display."""

    code = "not_eligible"
    status_code = 400

    def __init__(self, reason: str, rule: Optional[str] = None):
        super().__init__(f"Not eligible: {reason}")
        self.reason = reason
        self.rule = rule

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["reason"] = self.reason
        if self.rule:
            body["rule"] = self.rule
        return body


class Forbidden(DonationError):
    code = "forbidden"
    status_code = 403


class NotFound(DonationError):
    code = "not_found"
    status_code = 404


class InvalidTransition(DonationError):
    """State guard failed, or the caller observed a stale status."""

    code = "invalid_transition"
    status_code = 409


class InvalidState(DonationError):
    code = "invalid_state"
    status_code = 409


class AlreadyClaimed(DonationError):
    """Lost the acceptance race."""

    code = "already_claimed"
    status_code = 409


class Expired(DonationError):
    code = "expired"
    status_code = 410
