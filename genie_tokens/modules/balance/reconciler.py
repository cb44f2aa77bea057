"""Post-purchase balance reconciliation.

The client gets no signal when the payment webhook has credited the ledger,
so after a purchase completes it polls the balance endpoint until the
purchase is visible or the attempts run out. Running out is not an error for
the user: the purchase most likely went through and the next foreground
refresh will pick it up. It is, however, logged as a structured
``reconciliation_timeout`` event so it stays observable.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum

from genie_tokens.api.schemas import TokenBalanceResponse
from genie_tokens.core.base import BaseService
from genie_tokens.core.exceptions import GenieException
from genie_tokens.events import NotificationBus, WalletEvent
from genie_tokens.modules.balance.polling import (
    PollOutcome,
    Schedule,
    Sleep,
    fixed_schedule,
    poll_until,
    stepped_schedule,
)
from genie_tokens.modules.balance.store import BalanceStore
from genie_tokens.utils.settings.reconciliation import ReconciliationSettings

SUBSCRIPTION_SCHEDULE_STEPS = {1: 1.0, 2: 2.0}
SUBSCRIPTION_SCHEDULE_DEFAULT = 4.0


class ReconciliationState(str, Enum):
    RECONCILED = "reconciled"
    TIMED_OUT = "timed_out"
    SUPERSEDED = "superseded"


@dataclass(frozen=True)
class ReconciliationAttempt:
    attempt_number: int
    max_attempts: int
    initial_top_up_balance: int
    delay_seconds: float


@dataclass(frozen=True)
class ReconciliationResult:
    state: ReconciliationState
    attempts: int
    balance: int

    @property
    def finished(self) -> bool:
        """Reconciled and timed out look the same to the UI."""
        return self.state != ReconciliationState.SUPERSEDED


class BalanceReconciler(BaseService):
    def __init__(
        self,
        store: BalanceStore,
        bus: NotificationBus,
        settings: ReconciliationSettings | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        super().__init__()
        self.store = store
        self.bus = bus
        self.settings = settings or ReconciliationSettings()
        self._sleep = sleep
        self._generation = 0

    async def reconcile_top_up(
        self,
        correlation_id: str | None = None,
        max_attempts: int | None = None,
        delay_seconds: float | None = None,
    ) -> ReconciliationResult:
        """Wait for a token pack purchase to show up in the top-up balance."""
        if max_attempts is None:
            max_attempts = self.settings.TOP_UP_MAX_ATTEMPTS
        if delay_seconds is None:
            delay_seconds = self.settings.TOP_UP_DELAY_SECONDS
        generation = self._start()

        initial_top_up = await self._initial_top_up_balance()
        self.logger.info(
            "Waiting for top-up fulfillment",
            correlation_id=correlation_id,
            initial_top_up_balance=initial_top_up,
        )
        await self._sleep(self.settings.TOP_UP_INITIAL_WAIT_SECONDS)

        schedule = fixed_schedule(delay_seconds)
        outcome = await poll_until(
            fetch=self._attempt_fetcher(max_attempts, initial_top_up, schedule),
            predicate=lambda response: response.top_up_balance > initial_top_up,
            schedule=schedule,
            max_attempts=max_attempts,
            sleep=self._sleep,
            should_continue=lambda: generation == self._generation,
        )

        return await self._finish(
            outcome,
            kind="token_pack",
            correlation_id=correlation_id,
            event=WalletEvent.TOKENS_PURCHASED,
        )

    async def reconcile_subscription(
        self,
        expected_tier: str,
        correlation_id: str | None = None,
        max_attempts: int | None = None,
    ) -> ReconciliationResult:
        """Wait until the balance endpoint reports the purchased tier with an allowance."""
        if max_attempts is None:
            max_attempts = self.settings.SUBSCRIPTION_MAX_ATTEMPTS
        generation = self._start()
        expected = expected_tier.lower()

        await self._sleep(self.settings.SUBSCRIPTION_INITIAL_WAIT_SECONDS)

        def subscription_visible(response: TokenBalanceResponse) -> bool:
            subscription = response.subscription
            return (
                subscription is not None
                and subscription.tier.lower() == expected
                and subscription.monthly_allowance > 0
            )

        schedule = stepped_schedule(
            SUBSCRIPTION_SCHEDULE_STEPS, SUBSCRIPTION_SCHEDULE_DEFAULT
        )
        outcome = await poll_until(
            fetch=self._attempt_fetcher(max_attempts, 0, schedule),
            predicate=subscription_visible,
            schedule=schedule,
            max_attempts=max_attempts,
            sleep=self._sleep,
            should_continue=lambda: generation == self._generation,
        )

        return await self._finish(
            outcome,
            kind="subscription",
            correlation_id=correlation_id,
            event=WalletEvent.SUBSCRIPTION_UPDATED,
            expected_tier=expected_tier,
        )

    def _start(self) -> int:
        # A newer purchase takes over; the older loop stops at its next attempt
        self._generation += 1
        return self._generation

    async def _initial_top_up_balance(self) -> int:
        try:
            response = await self.store.fetch(bypass_cache=True)
        except GenieException as e:
            self.logger.warning(
                "Could not read initial top-up balance, assuming 0",
                error=e.message_code.value,
            )
            return 0
        return response.top_up_balance

    def _attempt_fetcher(
        self, max_attempts: int, initial_top_up: int, schedule: Schedule
    ):
        async def fetch(attempt_number: int) -> TokenBalanceResponse:
            attempt = ReconciliationAttempt(
                attempt_number=attempt_number,
                max_attempts=max_attempts,
                initial_top_up_balance=initial_top_up,
                delay_seconds=schedule(attempt_number),
            )
            response = await self.store.fetch(bypass_cache=True)
            self.logger.info(
                "Reconciliation poll",
                attempt=attempt.attempt_number,
                max_attempts=attempt.max_attempts,
                balance=response.balance,
                top_up_balance=response.top_up_balance,
                initial_top_up_balance=attempt.initial_top_up_balance,
                next_delay_s=attempt.delay_seconds,
            )
            return response

        return fetch

    async def _finish(
        self,
        outcome: PollOutcome[TokenBalanceResponse],
        kind: str,
        correlation_id: str | None,
        event: WalletEvent,
        **context,
    ) -> ReconciliationResult:
        if outcome.superseded:
            self.logger.info(
                "Reconciliation superseded by a newer purchase",
                kind=kind,
                correlation_id=correlation_id,
                attempts=outcome.attempts,
            )
            return ReconciliationResult(
                state=ReconciliationState.SUPERSEDED,
                attempts=outcome.attempts,
                balance=self.store.get(),
            )

        if outcome.succeeded:
            state = ReconciliationState.RECONCILED
            self.logger.info(
                "Purchase reconciled",
                kind=kind,
                correlation_id=correlation_id,
                attempts=outcome.attempts,
                balance=self.store.get(),
                **context,
            )
        else:
            state = ReconciliationState.TIMED_OUT
            self.logger.warning(
                "reconciliation_timeout",
                kind=kind,
                correlation_id=correlation_id,
                attempts=outcome.attempts,
                balance=self.store.get(),
                last_reported_balance=(
                    outcome.last_value.balance if outcome.last_value else None
                ),
                **context,
            )

        await self.bus.emit(event, {"balance": self.store.get(), "state": state.value})
        return ReconciliationResult(
            state=state, attempts=outcome.attempts, balance=self.store.get()
        )
