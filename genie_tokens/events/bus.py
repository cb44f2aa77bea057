"""Process-wide notification bus for wallet events."""

import asyncio
import inspect
from collections import defaultdict
from enum import Enum
from typing import Any, Awaitable, Callable

from genie_tokens.utils.logger import get_logger

logger = get_logger(__name__)

Handler = Callable[[dict[str, Any]], Awaitable[None] | None]


class WalletEvent(str, Enum):
    """Named signals screens subscribe to before re-reading the balance."""

    SUBSCRIPTION_UPDATED = "SubscriptionUpdated"
    TOKENS_PURCHASED = "TokensPurchased"
    TOKEN_BALANCE_UPDATED = "TokenBalanceUpdated"


class NotificationBus:
    """In-process fan-out of named wallet events to subscribed handlers.

    Handlers may be plain callables or coroutine functions. A failing handler
    is logged and does not prevent delivery to the others.
    """

    def __init__(self):
        self._handlers: dict[WalletEvent, list[Handler]] = defaultdict(list)

    def subscribe(self, event: WalletEvent, handler: Handler) -> Callable[[], None]:
        self._handlers[event].append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers[event]:
                self._handlers[event].remove(handler)

        return unsubscribe

    async def emit(self, event: WalletEvent, data: dict[str, Any] | None = None):
        payload = data or {}
        handlers = list(self._handlers[event])
        logger.debug(
            "Emitting wallet event", wallet_event=event.value, handlers=len(handlers)
        )

        for handler in handlers:
            try:
                result = handler(payload)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(
                    "Wallet event handler failed", wallet_event=event.value
                )
