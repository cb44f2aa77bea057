"""Global test configuration and fixtures for the Genie token wallet."""

import logging

import pytest
import structlog

from genie_tokens.events import NotificationBus, WalletEvent
from genie_tokens.modules.balance.gate import InsufficientBalanceGate
from genie_tokens.modules.balance.reconciler import BalanceReconciler
from genie_tokens.modules.balance.store import BalanceStore
from genie_tokens.modules.purchase.flow import PurchaseFlow
from genie_tokens.modules.query.service import QueryService
from genie_tokens.utils.logger import QUIET_LOGGERS
from genie_tokens.utils.settings.reconciliation import ReconciliationSettings
from tests.utils.fakes import (
    EventRecorder,
    FakeGenieAPI,
    FakePaymentSheet,
    RecordingSleep,
)


@pytest.fixture
def fake_api():
    return FakeGenieAPI()


@pytest.fixture
def bus():
    return NotificationBus()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def reconciliation_settings():
    return ReconciliationSettings(
        TOP_UP_MAX_ATTEMPTS=5,
        TOP_UP_DELAY_SECONDS=2,
        TOP_UP_INITIAL_WAIT_SECONDS=3,
        SUBSCRIPTION_MAX_ATTEMPTS=8,
        SUBSCRIPTION_INITIAL_WAIT_SECONDS=0.5,
        SELF_HEAL_DELAY_SECONDS=0.5,
    )


@pytest.fixture
def store(fake_api):
    return BalanceStore(fake_api)


@pytest.fixture
def gate(store, bus, recording_sleep):
    return InsufficientBalanceGate(
        store, bus, self_heal_delay=0.5, sleep=recording_sleep
    )


@pytest.fixture
def reconciler(store, bus, reconciliation_settings, recording_sleep):
    return BalanceReconciler(
        store, bus, settings=reconciliation_settings, sleep=recording_sleep
    )


@pytest.fixture
def payment_sheet():
    return FakePaymentSheet()


@pytest.fixture
def purchase_flow(fake_api, store, reconciler, bus, payment_sheet):
    return PurchaseFlow(fake_api, store, reconciler, bus, payment_sheet)


@pytest.fixture
def query_service(fake_api, gate):
    return QueryService(fake_api, gate)


@pytest.fixture
def recorded_events(bus):
    """Subscribe a recorder to every wallet event."""
    recorders = {event: EventRecorder() for event in WalletEvent}
    for event, recorder in recorders.items():
        bus.subscribe(event, recorder)
    return recorders


@pytest.fixture
def restore_logging():
    """Undo setup_logging so later tests see structlog's defaults again."""
    root_logger = logging.getLogger()
    handlers, level = list(root_logger.handlers), root_logger.level
    quiet_levels = {name: logging.getLogger(name).level for name in QUIET_LOGGERS}
    yield
    root_logger.handlers = handlers
    root_logger.setLevel(level)
    for name, quiet_level in quiet_levels.items():
        logging.getLogger(name).setLevel(quiet_level)
    structlog.reset_defaults()
