"""Tests for post-purchase balance reconciliation."""

import asyncio

import pytest

from genie_tokens.core.exceptions import NetworkFailure
from genie_tokens.events import WalletEvent
from genie_tokens.modules.balance.reconciler import (
    BalanceReconciler,
    ReconciliationState,
)
from tests.factories import SubscriptionDetailsFactory, TokenBalanceResponseFactory


def top_up(balance: int, top_up_balance: int):
    return TokenBalanceResponseFactory(
        balance=balance,
        subscription=SubscriptionDetailsFactory(top_up_balance=top_up_balance),
    )


def subscribed(tier: str = "Athlete", allowance: int = 500, balance: int = 500):
    return TokenBalanceResponseFactory(
        balance=balance,
        subscription=SubscriptionDetailsFactory(
            tier=tier, monthly_allowance=allowance
        ),
    )


class TestTopUpReconciliation:
    @pytest.mark.asyncio
    async def test_stops_at_first_poll_showing_the_top_up(
        self, fake_api, store, reconciler, recording_sleep
    ):
        fake_api.balance_script = [
            top_up(20, 0),  # baseline
            top_up(20, 0),
            top_up(20, 0),
            top_up(120, 100),
            top_up(999, 999),
        ]

        result = await reconciler.reconcile_top_up()

        assert result.state == ReconciliationState.RECONCILED
        assert result.attempts == 3
        # baseline plus three polls, attempts four and five never run
        assert fake_api.network_fetches == 4
        assert fake_api.balance_calls == [False] * 4
        assert store.get() == 120
        assert recording_sleep.delays == [3.0, 2.0, 2.0]

    @pytest.mark.asyncio
    async def test_exhaustion_is_silent_and_still_notifies(
        self, fake_api, store, reconciler, recording_sleep, recorded_events
    ):
        fake_api.balance_script = [top_up(20, 0)]

        result = await reconciler.reconcile_top_up()

        assert result.state == ReconciliationState.TIMED_OUT
        assert result.finished is True
        assert result.attempts == 5
        assert fake_api.network_fetches == 6
        assert recording_sleep.delays == [3.0, 2.0, 2.0, 2.0, 2.0]
        assert recorded_events[WalletEvent.TOKENS_PURCHASED].events == [
            {"balance": 20, "state": "timed_out"}
        ]

    @pytest.mark.asyncio
    async def test_success_notifies_tokens_purchased(
        self, fake_api, reconciler, recorded_events
    ):
        fake_api.balance_script = [top_up(0, 0), top_up(100, 100)]

        await reconciler.reconcile_top_up()

        assert recorded_events[WalletEvent.TOKENS_PURCHASED].events == [
            {"balance": 100, "state": "reconciled"}
        ]

    @pytest.mark.asyncio
    async def test_existing_top_up_balance_is_the_baseline(
        self, fake_api, reconciler
    ):
        fake_api.balance_script = [
            top_up(50, 50),
            top_up(50, 50),
            top_up(150, 150),
        ]

        result = await reconciler.reconcile_top_up()

        assert result.state == ReconciliationState.RECONCILED
        assert result.attempts == 2

    @pytest.mark.asyncio
    async def test_failed_baseline_read_assumes_zero(self, fake_api, reconciler):
        fake_api.balance_script = [NetworkFailure("offline"), top_up(100, 100)]

        result = await reconciler.reconcile_top_up()

        assert result.state == ReconciliationState.RECONCILED
        assert result.attempts == 1

    @pytest.mark.asyncio
    async def test_failed_poll_consumes_an_attempt(self, fake_api, reconciler):
        fake_api.balance_script = [
            top_up(0, 0),
            NetworkFailure("offline"),
            top_up(100, 100),
        ]

        result = await reconciler.reconcile_top_up()

        assert result.state == ReconciliationState.RECONCILED
        assert result.attempts == 2

    @pytest.mark.asyncio
    async def test_explicit_limits_override_settings(
        self, fake_api, reconciler, recording_sleep
    ):
        fake_api.balance_script = [top_up(0, 0)]

        result = await reconciler.reconcile_top_up(max_attempts=2, delay_seconds=1)

        assert result.attempts == 2
        assert recording_sleep.delays == [3.0, 1]

    @pytest.mark.asyncio
    async def test_zero_attempts_skips_polling(
        self, fake_api, reconciler, recording_sleep
    ):
        fake_api.balance_script = [top_up(0, 0), top_up(100, 100)]

        result = await reconciler.reconcile_top_up(max_attempts=0)

        assert result.state == ReconciliationState.TIMED_OUT
        assert result.attempts == 0
        assert fake_api.network_fetches == 1
        assert recording_sleep.delays == [3.0]


class TestSubscriptionReconciliation:
    @pytest.mark.asyncio
    async def test_backs_off_until_tier_is_visible(
        self, fake_api, reconciler, recording_sleep, recorded_events
    ):
        fake_api.balance_script = [
            TokenBalanceResponseFactory(balance=10),
            subscribed(tier="Free", allowance=10, balance=10),
            subscribed(tier="Athlete", allowance=0, balance=10),
            subscribed(tier="athlete", allowance=500, balance=510),
        ]

        result = await reconciler.reconcile_subscription("Athlete")

        assert result.state == ReconciliationState.RECONCILED
        assert result.attempts == 4
        assert recording_sleep.delays == [0.5, 1.0, 2.0, 4.0]
        assert recorded_events[WalletEvent.SUBSCRIPTION_UPDATED].events == [
            {"balance": 510, "state": "reconciled"}
        ]

    @pytest.mark.asyncio
    async def test_gives_up_after_eight_attempts(
        self, fake_api, reconciler, recording_sleep, recorded_events
    ):
        fake_api.balance_script = [TokenBalanceResponseFactory(balance=10)]

        result = await reconciler.reconcile_subscription("Legend")

        assert result.state == ReconciliationState.TIMED_OUT
        assert result.attempts == 8
        assert fake_api.network_fetches == 8
        assert recording_sleep.delays == [0.5, 1.0, 2.0, 4.0, 4.0, 4.0, 4.0, 4.0]
        assert recorded_events[WalletEvent.SUBSCRIPTION_UPDATED].events == [
            {"balance": 10, "state": "timed_out"}
        ]


class TestSupersede:
    @pytest.mark.asyncio
    async def test_newer_reconciliation_takes_over(
        self, fake_api, store, bus, reconciliation_settings, recorded_events
    ):
        delays = []
        proceed = asyncio.Event()

        async def sleep(seconds):
            delays.append(seconds)
            if seconds == reconciliation_settings.TOP_UP_INITIAL_WAIT_SECONDS:
                await proceed.wait()
            else:
                await asyncio.sleep(0)

        reconciler = BalanceReconciler(
            store, bus, settings=reconciliation_settings, sleep=sleep
        )
        fake_api.balance_script = [top_up(0, 0), subscribed()]

        older = asyncio.create_task(reconciler.reconcile_top_up())
        while not delays:
            await asyncio.sleep(0)

        newer = await reconciler.reconcile_subscription("Athlete")
        proceed.set()
        superseded = await older

        assert newer.state == ReconciliationState.RECONCILED
        assert superseded.state == ReconciliationState.SUPERSEDED
        assert superseded.finished is False
        assert superseded.attempts == 0
        assert fake_api.network_fetches == 2
        assert recorded_events[WalletEvent.TOKENS_PURCHASED].events == []
