"""Centralized message codes and default user-facing messages."""

from enum import Enum


class MessageCode(str, Enum):
    """Centralized message codes for wallet and query outcomes."""

    # Authentication
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"

    # Token balance
    INSUFFICIENT_TOKENS = "INSUFFICIENT_TOKENS"

    # Request / response errors
    INVALID_REQUEST = "INVALID_REQUEST"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    NETWORK_FAILURE = "NETWORK_FAILURE"

    # Server errors
    SERVER_ERROR = "SERVER_ERROR"
    SERVER_RESOURCE_ERROR = "SERVER_RESOURCE_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"

    # Purchases
    PURCHASE_SERVICE_UNAVAILABLE = "PURCHASE_SERVICE_UNAVAILABLE"
    PURCHASE_FAILED = "PURCHASE_FAILED"
    INVALID_PURCHASE_TRANSITION = "INVALID_PURCHASE_TRANSITION"


# Default messages for each message code
DEFAULT_MESSAGES = {
    MessageCode.NOT_AUTHENTICATED: "Authentication failed. Please sign in again.",
    MessageCode.INSUFFICIENT_TOKENS: "You're out of tokens! Tap the token balance above to get more.",
    MessageCode.INVALID_REQUEST: "Invalid request",
    MessageCode.INVALID_RESPONSE: "Invalid response from server. Please try again.",
    MessageCode.NETWORK_FAILURE: "Network connection lost. Please check your connection and try again.",
    MessageCode.SERVER_ERROR: "Server error. Please try again.",
    MessageCode.SERVER_RESOURCE_ERROR: "The server encountered an error accessing required resources. Our team has been notified with detailed diagnostics.",
    MessageCode.SERVICE_UNAVAILABLE: "The service is temporarily unavailable. Please try again in a moment.",
    MessageCode.PURCHASE_SERVICE_UNAVAILABLE: "Payment service is temporarily unavailable. Please try again later.",
    MessageCode.PURCHASE_FAILED: "Payment failed",
    MessageCode.INVALID_PURCHASE_TRANSITION: "Purchase is not in a state that allows this action",
}


def get_default_message(message_code: MessageCode) -> str:
    """Get default message for a message code."""
    return DEFAULT_MESSAGES.get(message_code, "Unknown error")
