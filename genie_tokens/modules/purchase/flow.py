"""Purchase flow: payment sheet presentation and hand-off to reconciliation."""

import asyncio
from contextlib import contextmanager
from typing import Iterator

from genie_tokens.api.schemas import CancelSubscriptionResponse
from genie_tokens.core.base import BaseService
from genie_tokens.core.exceptions import (
    GenieException,
    InvalidPurchaseTransition,
    ServerError,
)
from genie_tokens.core.messages import MessageCode, get_default_message
from genie_tokens.events import NotificationBus, WalletEvent
from genie_tokens.infrastructure.genie_client import GenieAPIClient
from genie_tokens.modules.balance.reconciler import (
    BalanceReconciler,
    ReconciliationResult,
    ReconciliationState,
)
from genie_tokens.modules.balance.store import BalanceStore
from genie_tokens.modules.purchase.catalog import (
    SubscriptionPeriod,
    SubscriptionTier,
    map_token_pack_id,
)
from genie_tokens.modules.purchase.models import (
    ALLOWED_TRANSITIONS,
    PaymentResult,
    PaymentSheet,
    PaymentStatus,
    PurchaseIntent,
    PurchaseOutcome,
    PurchaseState,
)


class PurchaseFlow(BaseService):
    """Drives one purchase at a time through the payment sheet and reconciliation."""

    def __init__(
        self,
        api: GenieAPIClient,
        store: BalanceStore,
        reconciler: BalanceReconciler,
        bus: NotificationBus,
        payment_sheet: PaymentSheet,
    ):
        super().__init__()
        self.api = api
        self.store = store
        self.reconciler = reconciler
        self.bus = bus
        self.payment_sheet = payment_sheet
        self.state = PurchaseState.IDLE
        self.intent: PurchaseIntent | None = None

    async def buy_token_pack(
        self, pack_id: str, displayed_price: int | None = None
    ) -> PurchaseOutcome:
        """Purchase a one-time token pack and wait for the top-up to land."""
        package_id = map_token_pack_id(pack_id)
        intent = self._begin(PurchaseIntent.for_token_pack(package_id.value))

        with self._rollback_on_error(intent):
            try:
                payment_intent = await self.api.create_payment_intent(
                    package_id.value
                )
            except GenieException as e:
                return self._abort(intent, e)

            backend_price = payment_intent.package.price
            if displayed_price is not None and displayed_price != backend_price:
                self.logger.warning(
                    "Token pack price mismatch",
                    displayed_price=displayed_price,
                    backend_price=backend_price,
                    package_id=package_id.value,
                )

            result = await self.payment_sheet.present(payment_intent.client_secret)
            if result.status != PaymentStatus.COMPLETED:
                return self._payment_not_completed(intent, result)

            self._transition(PurchaseState.PAYMENT_COMPLETED)
            self.store.invalidate_cache()
            self._transition(PurchaseState.RECONCILING)
            reconciliation = await self.reconciler.reconcile_top_up(
                correlation_id=intent.correlation_id
            )
            return self._complete(intent, reconciliation)

    async def subscribe(
        self,
        tier: SubscriptionTier,
        price_id: str,
        period: SubscriptionPeriod = SubscriptionPeriod.MONTHLY,
    ) -> PurchaseOutcome:
        """Collect a payment method, create the subscription and wait for it to show up."""
        intent = self._begin(PurchaseIntent.for_subscription(tier.value, period.value))

        with self._rollback_on_error(intent):
            try:
                setup_intent = await self.api.create_setup_intent()
            except GenieException as e:
                return self._abort(intent, e)

            result = await self.payment_sheet.present(
                setup_intent.client_secret,
                customer_id=setup_intent.customer_id,
                setup=True,
            )
            if result.status != PaymentStatus.COMPLETED:
                return self._payment_not_completed(intent, result)

            if not result.payment_method_id:
                self.logger.error(
                    "Payment sheet completed without a payment method",
                    correlation_id=intent.correlation_id,
                )
                return self._payment_not_completed(
                    intent, PaymentResult.failed("No payment method was collected")
                )

            try:
                await self.api.create_subscription(
                    tier.value, price_id, result.payment_method_id
                )
            except GenieException as e:
                return self._abort(intent, e)

            self._transition(PurchaseState.PAYMENT_COMPLETED)
            self.store.invalidate_cache()
            await self.bus.emit(WalletEvent.SUBSCRIPTION_UPDATED, {"tier": tier.value})

            self._transition(PurchaseState.RECONCILING)
            reconciliation = await self.reconciler.reconcile_subscription(
                tier.value, correlation_id=intent.correlation_id
            )
            return self._complete(intent, reconciliation)

    async def cancel_subscription(self) -> CancelSubscriptionResponse:
        response = await self.api.cancel_subscription()
        self.logger.info(
            "Subscription cancelled",
            cancel_at_period_end=response.cancel_at_period_end,
        )
        self.store.invalidate_cache()
        await self.store.refresh(bypass_cache=True)
        await self.bus.emit(WalletEvent.SUBSCRIPTION_UPDATED, {"cancelled": True})
        return response

    def _begin(self, intent: PurchaseIntent) -> PurchaseIntent:
        self._transition(PurchaseState.AWAITING_PAYMENT_UI)
        self.intent = intent
        self.logger.info(
            "Purchase started",
            kind=intent.kind.value,
            target=intent.target,
            correlation_id=intent.correlation_id,
        )
        return intent

    def _transition(self, target: PurchaseState) -> None:
        if target not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidPurchaseTransition(self.state.value, target.value)
        self.state = target

    def _abort(self, intent: PurchaseIntent, error: GenieException) -> PurchaseOutcome:
        """The purchase could not reach the payment sheet (or the backend refused it)."""
        if isinstance(error, ServerError) and error.code == 500:
            message_code = MessageCode.PURCHASE_SERVICE_UNAVAILABLE
            message = get_default_message(message_code)
        else:
            message_code = error.message_code
            message = error.message

        self.logger.error(
            "Purchase request failed",
            correlation_id=intent.correlation_id,
            message_code=message_code.value,
            details=error.details,
        )
        self._reset()
        return PurchaseOutcome(
            status=PaymentStatus.FAILED,
            intent=intent,
            message_code=message_code,
            error_message=message,
        )

    def _payment_not_completed(
        self, intent: PurchaseIntent, result: PaymentResult
    ) -> PurchaseOutcome:
        self._reset()
        if result.status == PaymentStatus.CANCELED:
            self.logger.info("Payment canceled", correlation_id=intent.correlation_id)
            return PurchaseOutcome(status=PaymentStatus.CANCELED, intent=intent)

        self.logger.warning(
            "Payment failed",
            correlation_id=intent.correlation_id,
            error=result.error_message,
        )
        return PurchaseOutcome(
            status=PaymentStatus.FAILED,
            intent=intent,
            message_code=MessageCode.PURCHASE_FAILED,
            error_message=f"Payment failed: {result.error_message}",
        )

    def _complete(
        self, intent: PurchaseIntent, reconciliation: ReconciliationResult
    ) -> PurchaseOutcome:
        if reconciliation.state == ReconciliationState.RECONCILED:
            self._transition(PurchaseState.RECONCILED)
        else:
            # Timed out or taken over by a newer purchase; both are silent
            self._transition(PurchaseState.RECONCILIATION_TIMED_OUT)
        self.intent = None
        return PurchaseOutcome(
            status=PaymentStatus.COMPLETED,
            intent=intent,
            reconciliation=reconciliation,
        )

    def _reset(self) -> None:
        self._transition(PurchaseState.IDLE)
        self.intent = None

    @contextmanager
    def _rollback_on_error(self, intent: PurchaseIntent) -> Iterator[None]:
        """Return to IDLE when anything escapes mid-purchase, cancellation included."""
        try:
            yield
        except (Exception, asyncio.CancelledError):
            self.logger.error(
                "Purchase interrupted",
                correlation_id=intent.correlation_id,
                state=self.state.value,
            )
            # Forced: the interrupted state may have no transition back to IDLE
            self.state = PurchaseState.IDLE
            self.intent = None
            raise
