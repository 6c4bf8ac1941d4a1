"""
Domain-specific exception hierarchy for the coffee chat scheduler.
"""


class CoffeeChatError(Exception):
    """Base class for all application-level errors."""


class CalendarAPIError(CoffeeChatError):
    """Raised when calendar data cannot be fetched or parsed."""


class AuthenticationError(CoffeeChatError):
    """Raised when authentication or token handling fails."""


class SlotSearchError(CoffeeChatError):
    """Raised when a slot search cannot complete because its inputs could not be fetched."""


class TemplateError(CoffeeChatError):
    """Raised when an email template cannot be loaded, parsed or rendered."""


class EmailDeliveryError(CoffeeChatError):
    """Raised when an invitation email cannot be handed to the SMTP server."""

    def __init__(self, recipient: str, reason: str):
        super().__init__(f"Failed to send email to {recipient}: {reason}")
        self.recipient = recipient
        self.reason = reason
