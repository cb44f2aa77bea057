"""Exception taxonomy for the Genie API and the token wallet."""

from typing import TYPE_CHECKING

from genie_tokens.core.messages import MessageCode, get_default_message

if TYPE_CHECKING:
    from genie_tokens.api.schemas import UpsellDetails


class GenieException(Exception):
    """Base exception for the Genie client with unified message codes."""

    def __init__(
        self,
        message_code: MessageCode,
        message: str | None = None,
        details: dict | None = None,
    ):
        self.message_code = message_code
        self.message: str = message or get_default_message(message_code)
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            "message_code": self.message_code,
            "message": self.message,
            "details": self.details,
        }


class NetworkFailure(GenieException):
    def __init__(self, reason: str | None = None):
        super().__init__(
            MessageCode.NETWORK_FAILURE,
            details={"reason": reason} if reason else None,
        )


class NotAuthenticated(GenieException):
    def __init__(self):
        super().__init__(MessageCode.NOT_AUTHENTICATED)


class InvalidResponse(GenieException):
    def __init__(self, reason: str | None = None):
        super().__init__(
            MessageCode.INVALID_RESPONSE,
            details={"reason": reason} if reason else None,
        )


class InvalidRequest(GenieException):
    """The server rejected the request; its message is safe to show."""

    def __init__(self, message: str):
        super().__init__(MessageCode.INVALID_REQUEST, message=message)


class ServerError(GenieException):
    def __init__(self, code: int, server_message: str | None = None):
        self.code = code
        details = {"status_code": code}
        if server_message:
            details["server_message"] = server_message
        super().__init__(
            MessageCode.SERVER_ERROR,
            message=f"Server error ({code}). Please try again.",
            details=details,
        )


class InsufficientTokens(GenieException):
    """Expected business state: the priced operation costs more than the balance.

    ``balance`` is the server's actual balance at the time of the refusal and
    is authoritative over any locally cached value.
    """

    def __init__(
        self,
        required: int,
        balance: int,
        query_type: str = "",
        tier: int = 0,
        upsell: "UpsellDetails | None" = None,
    ):
        self.required = required
        self.balance = balance
        self.query_type = query_type
        self.tier = tier
        self.upsell = upsell
        super().__init__(
            MessageCode.INSUFFICIENT_TOKENS,
            details={"required": required, "balance": balance},
        )


class InvalidPurchaseTransition(GenieException):
    def __init__(self, current: str, target: str):
        super().__init__(
            MessageCode.INVALID_PURCHASE_TRANSITION,
            message=f"Cannot move purchase from {current} to {target}",
            details={"current": current, "target": target},
        )


def user_message_for(error: GenieException) -> str:
    """Chat-style message shown when a priced query fails."""
    if isinstance(error, ServerError):
        if error.code == 500:
            return get_default_message(MessageCode.SERVER_RESOURCE_ERROR)
        if error.code == 503:
            return get_default_message(MessageCode.SERVICE_UNAVAILABLE)
        return error.message
    return error.message
