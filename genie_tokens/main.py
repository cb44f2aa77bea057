from contextlib import asynccontextmanager
from dataclasses import dataclass

from genie_tokens.events import NotificationBus
from genie_tokens.infrastructure.genie_client import (
    AuthTokenProvider,
    GenieAPIClient,
    UserIdProvider,
)
from genie_tokens.modules.balance.gate import InsufficientBalanceGate
from genie_tokens.modules.balance.polling import Sleep
from genie_tokens.modules.balance.reconciler import BalanceReconciler
from genie_tokens.modules.balance.store import BalanceStore
from genie_tokens.modules.purchase.flow import PurchaseFlow
from genie_tokens.modules.purchase.models import PaymentSheet
from genie_tokens.modules.query.service import QueryService
from genie_tokens.utils.logger import bind_session, setup_logging
from genie_tokens.utils.settings.app import AppSettings
from genie_tokens.utils.settings.genie_api import GenieAPISettings
from genie_tokens.utils.settings.reconciliation import ReconciliationSettings


@dataclass
class WalletSession:
    """One app session's wallet: a single store shared by every collaborator."""

    api: GenieAPIClient
    bus: NotificationBus
    store: BalanceStore
    gate: InsufficientBalanceGate
    reconciler: BalanceReconciler
    purchases: PurchaseFlow
    queries: QueryService

    async def aclose(self) -> None:
        await self.gate.aclose()


def create_wallet_session(
    auth_token_provider: AuthTokenProvider,
    payment_sheet: PaymentSheet,
    user_id_provider: UserIdProvider | None = None,
    api: GenieAPIClient | None = None,
    bus: NotificationBus | None = None,
    api_settings: GenieAPISettings | None = None,
    reconciliation_settings: ReconciliationSettings | None = None,
    sleep: Sleep | None = None,
) -> WalletSession:
    api = api or GenieAPIClient(
        auth_token_provider, user_id_provider=user_id_provider, settings=api_settings
    )
    bus = bus or NotificationBus()
    reconciliation_settings = reconciliation_settings or ReconciliationSettings()
    timing = {"sleep": sleep} if sleep else {}

    store = BalanceStore(api)
    gate = InsufficientBalanceGate(
        store,
        bus,
        self_heal_delay=reconciliation_settings.SELF_HEAL_DELAY_SECONDS,
        **timing,
    )
    reconciler = BalanceReconciler(
        store, bus, settings=reconciliation_settings, **timing
    )

    return WalletSession(
        api=api,
        bus=bus,
        store=store,
        gate=gate,
        reconciler=reconciler,
        purchases=PurchaseFlow(api, store, reconciler, bus, payment_sheet),
        queries=QueryService(api, gate),
    )


@asynccontextmanager
async def wallet_session(
    auth_token_provider: AuthTokenProvider,
    payment_sheet: PaymentSheet,
    user_id_provider: UserIdProvider | None = None,
):
    """Open a wallet session with logging configured and the balance loaded."""
    app_settings = AppSettings()
    app_settings.validate_prod()
    logger = setup_logging(app_settings.is_production(), debug=app_settings.DEBUG)
    if user_id_provider:
        bind_session(user_id=user_id_provider())

    session = create_wallet_session(
        auth_token_provider, payment_sheet, user_id_provider=user_id_provider
    )
    logger.info("Starting wallet session", version=app_settings.CLIENT_VERSION)
    await session.store.refresh()

    try:
        yield session
    finally:
        logger.info("Closing wallet session")
        await session.aclose()
