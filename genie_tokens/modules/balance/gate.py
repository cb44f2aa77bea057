"""Insufficient-balance handling and post-query balance correction."""

import asyncio
from dataclasses import dataclass, field
from enum import Enum

from genie_tokens.api.schemas import (
    QueryResponse,
    UpsellSubscriptionOption,
    UpsellTokenPack,
)
from genie_tokens.core.base import BaseService
from genie_tokens.core.exceptions import GenieException, InsufficientTokens
from genie_tokens.events import NotificationBus, WalletEvent
from genie_tokens.modules.balance.polling import Sleep
from genie_tokens.modules.balance.store import BalanceStore


class RecommendedAction(str, Enum):
    SUBSCRIPTION = "subscription"
    TOKEN_PACK = "token_pack"


@dataclass(frozen=True)
class UpsellContext:
    """What the upsell screen needs; lives as long as that screen is shown."""

    required_tokens: int
    current_balance: int
    query_kind: str
    recommended_action: RecommendedAction
    available_plans: tuple[UpsellSubscriptionOption, ...] = field(default=())
    available_packs: tuple[UpsellTokenPack, ...] = field(default=())
    message: str = ""

    @property
    def shortfall(self) -> int:
        return max(0, self.required_tokens - self.current_balance)


# Allowed drift between the expected and the reported post-query balance
BALANCE_MISMATCH_TOLERANCE = 1


class InsufficientBalanceGate(BaseService):
    """Decides, when a priced query returns, whether the user must be offered a purchase.

    The server is the only arbiter of sufficiency: queries are always sent,
    and only an ``InsufficientTokens`` refusal leads to an upsell.
    """

    def __init__(
        self,
        store: BalanceStore,
        bus: NotificationBus,
        self_heal_delay: float = 0.5,
        sleep: Sleep = asyncio.sleep,
    ):
        super().__init__()
        self.store = store
        self.bus = bus
        self.self_heal_delay = self_heal_delay
        self._sleep = sleep
        self._pending: set[asyncio.Task] = set()

    @property
    def self_heal_pending(self) -> bool:
        return any(not task.done() for task in self._pending)

    def handle_insufficient(
        self, error: InsufficientTokens, has_subscription: bool | None = None
    ) -> UpsellContext:
        """Correct the stale balance from the refusal and build the upsell context.

        The operation is not retried.
        """
        previous = self.store.get()
        corrected = self.store.set_balance(error.balance, "insufficient_tokens")

        upsell = error.upsell
        if has_subscription is None:
            has_subscription = upsell.has_subscription if upsell else False

        recommended = (
            RecommendedAction.TOKEN_PACK
            if has_subscription
            else RecommendedAction.SUBSCRIPTION
        )

        self.logger.info(
            "Insufficient tokens, offering upsell",
            required=error.required,
            previous_balance=previous,
            balance=corrected,
            recommended=recommended.value,
        )

        return UpsellContext(
            required_tokens=error.required,
            current_balance=corrected,
            query_kind=error.query_type,
            recommended_action=recommended,
            available_plans=tuple(upsell.subscriptions) if upsell else (),
            available_packs=tuple(upsell.token_packs) if upsell else (),
            message=upsell.message if upsell else "",
        )

    async def apply_query_result(self, response: QueryResponse) -> bool:
        """Store the post-query balance and check it against the expected spend.

        Returns True when the reported balance disagreed with
        ``previous - tokens_used`` by more than one token and a forced
        refresh was scheduled. A mismatch is never surfaced to the user.
        """
        previous = self.store.get()
        balance = self.store.set_balance(response.tokens_remaining, "query_result")

        scheduled = False
        if response.tokens_used > 0:
            expected = previous - response.tokens_used
            if abs(balance - expected) > BALANCE_MISMATCH_TOLERANCE:
                self.logger.warning(
                    "Balance mismatch after query",
                    expected=expected,
                    reported=balance,
                    tokens_used=response.tokens_used,
                )
                scheduled = self._schedule_self_heal()

        await self.bus.emit(
            WalletEvent.TOKEN_BALANCE_UPDATED,
            {"balance": balance, "tokens_used": response.tokens_used},
        )
        return scheduled

    async def wait_for_pending(self) -> None:
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    async def aclose(self) -> None:
        for task in self._pending:
            task.cancel()
        await self.wait_for_pending()

    def _schedule_self_heal(self) -> bool:
        if self.self_heal_pending:
            self.logger.debug("Self-heal refresh already scheduled")
            return False

        task = asyncio.create_task(self._self_heal())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return True

    async def _self_heal(self) -> None:
        await self._sleep(self.self_heal_delay)
        self.store.invalidate_cache()
        # Not refresh(): its single-flight guard drops calls made mid-refresh
        try:
            await self.store.fetch(bypass_cache=True)
        except GenieException as e:
            self.logger.warning(
                "Self-heal balance refresh failed", error=e.message_code.value
            )
