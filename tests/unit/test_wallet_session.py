import pytest

from genie_tokens import create_wallet_session, wallet_session
from genie_tokens.utils.settings.reconciliation import ReconciliationSettings
from tests.factories import QueryResponseFactory, TokenBalanceResponseFactory
from tests.utils.fakes import FakeGenieAPI, FakePaymentSheet, RecordingSleep


async def no_token():
    return None


def test_collaborators_share_one_store():
    api = FakeGenieAPI()

    session = create_wallet_session(no_token, FakePaymentSheet(), api=api)

    assert session.gate.store is session.store
    assert session.reconciler.store is session.store
    assert session.purchases.store is session.store
    assert session.queries.gate is session.gate
    assert session.store.source is api


def test_reconciliation_settings_are_applied():
    settings = ReconciliationSettings(SELF_HEAL_DELAY_SECONDS=1.5)

    session = create_wallet_session(
        no_token,
        FakePaymentSheet(),
        api=FakeGenieAPI(),
        reconciliation_settings=settings,
    )

    assert session.gate.self_heal_delay == 1.5
    assert session.reconciler.settings is settings


@pytest.mark.asyncio
async def test_query_then_self_heal_through_session():
    api = FakeGenieAPI([TokenBalanceResponseFactory(balance=55)])
    sleep = RecordingSleep()
    session = create_wallet_session(
        no_token, FakePaymentSheet(), api=api, sleep=sleep
    )
    await session.store.refresh()
    api.query_result = QueryResponseFactory(tokens_used=5, tokens_remaining=20)

    outcome = await session.queries.ask("Hi")
    await session.gate.wait_for_pending()
    await session.aclose()

    assert outcome.self_heal_scheduled is True
    assert sleep.delays == [0.5]
    assert session.store.get() == 55


@pytest.mark.asyncio
async def test_wallet_session_loads_balance_and_falls_back_to_zero(restore_logging):
    async with wallet_session(no_token, FakePaymentSheet()) as session:
        assert session.store.loaded is True
        assert session.store.get() == 0
