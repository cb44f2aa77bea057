"""Client-side token balance store."""

from typing import Callable, Protocol

from genie_tokens.api.schemas import TokenBalanceResponse
from genie_tokens.core.base import BaseService
from genie_tokens.core.exceptions import GenieException

BalanceObserver = Callable[[int], None]


class BalanceSource(Protocol):
    async def get_token_balance(
        self, use_cache: bool = True
    ) -> TokenBalanceResponse: ...

    def clear_token_balance_cache(self) -> None: ...


def clamp_balance(value: int) -> int:
    """Balances are never shown negative."""
    return max(0, int(value))


class BalanceStore(BaseService):
    """Holds the user's spendable token balance as the UI believes it.

    Every write goes through here. Each write and each fetch bumps a
    monotonic version; a fetch result is applied only when nothing newer has
    happened since the fetch started, so a slow response never overwrites a
    fresher value.
    """

    def __init__(self, source: BalanceSource):
        super().__init__()
        self.source = source
        self._balance: int | None = None
        self._version = 0
        self._refresh_in_flight = False
        self._force_fresh = False
        self._observers: list[BalanceObserver] = []

    @property
    def loaded(self) -> bool:
        return self._balance is not None

    @property
    def version(self) -> int:
        return self._version

    @property
    def refresh_in_flight(self) -> bool:
        return self._refresh_in_flight

    def get(self) -> int:
        """Last known balance; 0 until the first successful load."""
        return self._balance if self._balance is not None else 0

    def subscribe(self, observer: BalanceObserver) -> Callable[[], None]:
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def invalidate_cache(self) -> None:
        """Make the next refresh skip every cache and hit the server."""
        self._force_fresh = True
        self.source.clear_token_balance_cache()

    def set_balance(self, value: int, source: str) -> int:
        """Authoritative overwrite from a server response other than a balance fetch.

        The client's cached balance predates this value, so it is dropped.
        """
        self._version += 1
        self.source.clear_token_balance_cache()
        self._write(clamp_balance(value), source)
        return self.get()

    async def fetch(self, bypass_cache: bool = True) -> TokenBalanceResponse:
        """Fetch the full balance payload and apply its total if still current.

        Errors propagate to the caller. Used directly by reconciliation,
        which needs the subscription and top-up components too.
        """
        self._version += 1
        started_version = self._version

        response = await self.source.get_token_balance(use_cache=not bypass_cache)

        if started_version == self._version:
            self._write(clamp_balance(response.balance), "fetch")
        else:
            self.logger.info(
                "Discarding stale balance fetch",
                fetched_balance=response.balance,
                started_version=started_version,
                current_version=self._version,
            )
        return response

    async def refresh(self, bypass_cache: bool = False) -> int | None:
        """Reload the balance from the server.

        Single-flight: if a refresh is already running this call is dropped
        and returns None, so a caller cannot assume its own call performed
        the update. Failures never raise; a store that has never loaded falls
        back to 0 so there is something to display.
        """
        if self._refresh_in_flight:
            self.logger.debug("Balance refresh already in progress, skipping")
            return None

        bypass = bypass_cache or self._force_fresh
        self._force_fresh = False
        self._refresh_in_flight = True
        try:
            await self.fetch(bypass_cache=bypass)
        except GenieException as e:
            if self._balance is None:
                self.logger.warning(
                    "Initial balance load failed, defaulting to 0",
                    error=e.message_code.value,
                )
                self._write(0, "initial_load_failure")
            else:
                self.logger.warning(
                    "Balance refresh failed, keeping last known value",
                    error=e.message_code.value,
                    balance=self._balance,
                )
            return self.get()
        finally:
            self._refresh_in_flight = False

        return self.get()

    def _write(self, value: int, source: str) -> None:
        previous = self._balance
        self._balance = value
        if previous == value:
            return

        self.logger.info(
            "Token balance updated", previous=previous, balance=value, source=source
        )
        for observer in list(self._observers):
            try:
                observer(value)
            except Exception:
                self.logger.exception("Balance observer failed")
