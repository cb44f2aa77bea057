"""Tests for priced query orchestration."""

import pytest

from genie_tokens.core.exceptions import (
    InvalidRequest,
    NetworkFailure,
    NotAuthenticated,
    ServerError,
)
from genie_tokens.core.messages import MessageCode, get_default_message
from genie_tokens.modules.balance.gate import RecommendedAction
from genie_tokens.modules.query.service import INSUFFICIENT_TOKENS_CHAT_MESSAGE
from tests.factories import (
    BalanceWarningFactory,
    InsufficientTokensFactory,
    QueryResponseFactory,
    UpsellDetailsFactory,
)


@pytest.mark.asyncio
async def test_successful_query_updates_balance(fake_api, store, query_service):
    store.set_balance(100, "fetch")
    fake_api.query_result = QueryResponseFactory(tokens_used=10, tokens_remaining=90)

    outcome = await query_service.ask("Plan my week", session_id="s-1")

    assert outcome.succeeded is True
    assert outcome.error_message is None
    assert outcome.self_heal_scheduled is False
    assert store.get() == 90
    assert fake_api.query_calls[0]["text"] == "Plan my week"
    assert fake_api.query_calls[0]["session_id"] == "s-1"


@pytest.mark.asyncio
async def test_query_is_sent_even_with_zero_local_balance(
    fake_api, store, query_service
):
    store.set_balance(0, "fetch")
    fake_api.query_result = QueryResponseFactory(tokens_used=0, tokens_remaining=0)

    outcome = await query_service.ask("Hello")

    assert outcome.succeeded is True
    assert len(fake_api.query_calls) == 1


@pytest.mark.asyncio
async def test_insufficient_tokens_produces_upsell(fake_api, store, query_service):
    store.set_balance(300, "fetch")
    fake_api.query_result = InsufficientTokensFactory(
        required=50,
        balance=12,
        upsell=UpsellDetailsFactory(has_subscription=True),
    )

    outcome = await query_service.ask("Build me a meal plan")

    assert outcome.succeeded is False
    assert outcome.error_message == INSUFFICIENT_TOKENS_CHAT_MESSAGE
    assert outcome.upsell.required_tokens == 50
    assert outcome.upsell.recommended_action == RecommendedAction.TOKEN_PACK
    assert store.get() == 12
    assert len(fake_api.query_calls) == 1


@pytest.mark.parametrize(
    "error,expected",
    [
        (ServerError(500), get_default_message(MessageCode.SERVER_RESOURCE_ERROR)),
        (ServerError(503), get_default_message(MessageCode.SERVICE_UNAVAILABLE)),
        (ServerError(502), "Server error (502). Please try again."),
        (InvalidRequest("Query too long"), "Query too long"),
        (NotAuthenticated(), get_default_message(MessageCode.NOT_AUTHENTICATED)),
        (NetworkFailure("offline"), get_default_message(MessageCode.NETWORK_FAILURE)),
    ],
)
@pytest.mark.asyncio
async def test_failures_become_chat_messages(fake_api, query_service, error, expected):
    fake_api.query_result = error

    outcome = await query_service.ask("Hi")

    assert outcome.succeeded is False
    assert outcome.upsell is None
    assert outcome.error_message == expected


@pytest.mark.asyncio
async def test_image_and_video_queries_are_routed(fake_api, query_service):
    await query_service.ask("What is this?", image_base64="aGVsbG8=")
    await query_service.ask("Check my form", frames=["f1", "f2"])

    assert fake_api.query_calls[0]["image_base64"] == "aGVsbG8="
    assert fake_api.query_calls[1]["frames"] == ["f1", "f2"]


@pytest.mark.asyncio
async def test_mismatch_is_not_surfaced(fake_api, store, gate, query_service):
    store.set_balance(100, "fetch")
    fake_api.query_result = QueryResponseFactory(tokens_used=10, tokens_remaining=40)

    outcome = await query_service.ask("Hi")
    await gate.wait_for_pending()

    assert outcome.succeeded is True
    assert outcome.error_message is None
    assert outcome.self_heal_scheduled is True


class TestBalanceWarnings:
    @pytest.mark.asyncio
    async def test_non_critical_warning_shown_once_per_session(
        self, fake_api, query_service
    ):
        fake_api.query_result = QueryResponseFactory(
            balance_warning=BalanceWarningFactory(level="low")
        )

        first = await query_service.ask("one")
        second = await query_service.ask("two")
        query_service.reset_session()
        third = await query_service.ask("three")

        assert first.balance_warning is not None
        assert second.balance_warning is None
        assert third.balance_warning is not None

    @pytest.mark.asyncio
    async def test_critical_warning_always_shown(self, fake_api, query_service):
        fake_api.query_result = QueryResponseFactory(
            balance_warning=BalanceWarningFactory(level="critical")
        )

        first = await query_service.ask("one")
        second = await query_service.ask("two")

        assert first.balance_warning.level == "critical"
        assert second.balance_warning.level == "critical"
