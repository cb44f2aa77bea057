"""Purchase state machine types."""

from dataclasses import dataclass
from enum import Enum
from typing import Protocol
from uuid import uuid4

from genie_tokens.core.messages import MessageCode
from genie_tokens.modules.balance.reconciler import ReconciliationResult


class PurchaseKind(str, Enum):
    TOKEN_PACK = "token_pack"
    SUBSCRIPTION = "subscription"


class PurchaseState(str, Enum):
    IDLE = "idle"
    AWAITING_PAYMENT_UI = "awaiting_payment_ui"
    PAYMENT_COMPLETED = "payment_completed"
    RECONCILING = "reconciling"
    RECONCILED = "reconciled"
    RECONCILIATION_TIMED_OUT = "reconciliation_timed_out"


# A finished purchase (reconciled or not) leaves the flow ready for the next one
ALLOWED_TRANSITIONS: dict[PurchaseState, set[PurchaseState]] = {
    PurchaseState.IDLE: {PurchaseState.AWAITING_PAYMENT_UI},
    PurchaseState.AWAITING_PAYMENT_UI: {
        PurchaseState.IDLE,
        PurchaseState.PAYMENT_COMPLETED,
    },
    PurchaseState.PAYMENT_COMPLETED: {PurchaseState.RECONCILING},
    PurchaseState.RECONCILING: {
        PurchaseState.RECONCILED,
        PurchaseState.RECONCILIATION_TIMED_OUT,
    },
    PurchaseState.RECONCILED: {PurchaseState.AWAITING_PAYMENT_UI},
    PurchaseState.RECONCILIATION_TIMED_OUT: {PurchaseState.AWAITING_PAYMENT_UI},
}


@dataclass(frozen=True)
class PurchaseIntent:
    """An in-flight purchase, from the buy tap until the payment UI reports back."""

    kind: PurchaseKind
    target: str
    correlation_id: str

    @classmethod
    def for_token_pack(cls, package_id: str) -> "PurchaseIntent":
        return cls(PurchaseKind.TOKEN_PACK, package_id, uuid4().hex)

    @classmethod
    def for_subscription(cls, tier: str, period: str) -> "PurchaseIntent":
        return cls(PurchaseKind.SUBSCRIPTION, f"{tier}:{period}", uuid4().hex)


class PaymentStatus(str, Enum):
    COMPLETED = "completed"
    CANCELED = "canceled"
    FAILED = "failed"


@dataclass(frozen=True)
class PaymentResult:
    status: PaymentStatus
    error_message: str | None = None
    # Set by setup-intent sheets used for subscriptions
    payment_method_id: str | None = None

    @classmethod
    def completed(cls, payment_method_id: str | None = None) -> "PaymentResult":
        return cls(PaymentStatus.COMPLETED, payment_method_id=payment_method_id)

    @classmethod
    def canceled(cls) -> "PaymentResult":
        return cls(PaymentStatus.CANCELED)

    @classmethod
    def failed(cls, error_message: str) -> "PaymentResult":
        return cls(PaymentStatus.FAILED, error_message=error_message)


class PaymentSheet(Protocol):
    """Payment processor UI, presented modally by the host app."""

    async def present(
        self,
        client_secret: str,
        customer_id: str | None = None,
        setup: bool = False,
    ) -> PaymentResult: ...


@dataclass(frozen=True)
class PurchaseOutcome:
    status: PaymentStatus
    intent: PurchaseIntent
    reconciliation: ReconciliationResult | None = None
    message_code: MessageCode | None = None
    error_message: str | None = None

    @property
    def user_visible_error(self) -> str | None:
        """Cancellation and reconciliation timeouts are never shown."""
        if self.status == PaymentStatus.FAILED:
            return self.error_message
        return None
