import time
from typing import Callable

from cachetools import TTLCache

from genie_tokens.utils.logger import get_logger

logger = get_logger(__name__)

BALANCE_KEY = "balance"


class BalanceCache:
    """Short-lived copy of the last balance returned by the server."""

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._entries: TTLCache[str, int] = TTLCache(maxsize=1, ttl=ttl, timer=clock)

    def get(self) -> int | None:
        balance = self._entries.get(BALANCE_KEY)
        if balance is not None:
            logger.debug("Balance cache hit", balance=balance)
        return balance

    def set(self, balance: int) -> None:
        self._entries[BALANCE_KEY] = balance

    def invalidate(self) -> None:
        self._entries.pop(BALANCE_KEY, None)
        logger.debug("Balance cache invalidated")
