"""Client for the remote Genie API (queries, token balance, purchases)."""

import asyncio
import json
import time
from typing import Any, Awaitable, Callable, TypeVar
from uuid import uuid4

import aiohttp
from pydantic import BaseModel, ValidationError

from genie_tokens.api.schemas import (
    CancelSubscriptionResponse,
    ConversationMessage,
    InsufficientTokensResponse,
    PaymentIntentResponse,
    QueryRequest,
    QueryResponse,
    SetupIntentResponse,
    SubscriptionResponse,
    SubscriptionTierPrice,
    TokenBalanceResponse,
)
from genie_tokens.core.exceptions import (
    InsufficientTokens,
    InvalidRequest,
    InvalidResponse,
    NetworkFailure,
    NotAuthenticated,
    ServerError,
)
from genie_tokens.infrastructure.balance_cache import BalanceCache
from genie_tokens.utils.logger import get_logger
from genie_tokens.utils.settings.genie_api import GenieAPISettings

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

AuthTokenProvider = Callable[[], Awaitable[str | None]]
UserIdProvider = Callable[[], str | None]


class GenieAPIClient:
    """Client for the Genie API used by the wallet and chat surfaces."""

    def __init__(
        self,
        auth_token_provider: AuthTokenProvider,
        user_id_provider: UserIdProvider | None = None,
        settings: GenieAPISettings | None = None,
        balance_cache: BalanceCache | None = None,
    ):
        self.settings = settings or GenieAPISettings()
        self.base_url = self.settings.GENIE_API_URL.rstrip("/")
        self._auth_token_provider = auth_token_provider
        self._user_id_provider = user_id_provider
        self.balance_cache = balance_cache or BalanceCache(
            ttl=self.settings.BALANCE_CACHE_TTL_SECONDS
        )

    # Query

    async def query(
        self,
        text: str,
        session_id: str | None = None,
        is_voice_input: bool = False,
        conversation_history: list[ConversationMessage] | None = None,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> QueryResponse:
        """Send a priced text query. Raises InsufficientTokens on HTTP 402."""
        request = QueryRequest(
            query=text,
            session_id=session_id or str(uuid4()),
            is_voice_input=is_voice_input,
            conversation_history=conversation_history,
            latitude=latitude,
            longitude=longitude,
        )
        return await self._send_query(request)

    async def query_with_image(
        self, text: str, image_base64: str, session_id: str | None = None
    ) -> QueryResponse:
        request = QueryRequest(
            query=text,
            session_id=session_id or str(uuid4()),
            image_base64=image_base64,
        )
        return await self._send_query(request)

    async def query_with_video(
        self, text: str, frames: list[str], session_id: str | None = None
    ) -> QueryResponse:
        request = QueryRequest(
            query=text, session_id=session_id or str(uuid4()), frames=frames
        )
        return await self._send_query(request)

    async def _send_query(self, request: QueryRequest) -> QueryResponse:
        logger.info(
            "Sending Genie query",
            session_id=request.session_id,
            has_image=request.image_base64 is not None,
            frame_count=len(request.frames or []),
        )
        status, body = await self._request(
            "POST",
            "/query",
            payload=request.to_payload(),
            timeout=self.settings.GENIE_API_TIMEOUT,
        )

        if status == 402:
            upsell = self._parse(InsufficientTokensResponse, body)
            logger.info(
                "Insufficient tokens for query",
                required=upsell.required,
                balance=upsell.balance,
                query_type=upsell.query_type,
            )
            raise InsufficientTokens(
                required=upsell.required,
                balance=upsell.balance,
                query_type=upsell.query_type,
                tier=upsell.tier,
                upsell=upsell.upsell,
            )

        if status in (401, 403):
            raise NotAuthenticated()

        if status == 400:
            raise InvalidRequest(
                self._error_message(body) or "The request could not be processed."
            )

        if status != 200:
            if status == 500:
                logger.error("Genie backend internal error", status_code=status)
            elif status == 503:
                logger.warning("Genie service unavailable", status_code=status)
            raise ServerError(status, self._error_message(body))

        return self._parse(QueryResponse, body)

    # Token balance

    async def get_token_balance(self, use_cache: bool = True) -> TokenBalanceResponse:
        """Fetch the authoritative balance, serving a fresh cached value when allowed.

        A cache hit carries only ``balance``; subscription details always
        require a network fetch.
        """
        if use_cache:
            cached_balance = self.balance_cache.get()
            if cached_balance is not None:
                return TokenBalanceResponse(balance=cached_balance)

        started = time.monotonic()
        status, body = await self._request(
            "GET",
            "/tokens/balance",
            timeout=self.settings.GENIE_BALANCE_TIMEOUT,
            include_user_id=True,
        )

        duration = time.monotonic() - started
        if duration > self.settings.SLOW_BALANCE_REQUEST_SECONDS:
            logger.warning("Slow token balance request", duration_s=round(duration, 2))

        if status in (401, 403):
            logger.error("Token balance request not authenticated", status_code=status)
            raise NotAuthenticated()
        if status != 200:
            raise ServerError(status, self._error_message(body))

        balance_response = self._parse(TokenBalanceResponse, body)
        self.balance_cache.set(balance_response.balance)
        logger.info(
            "Token balance fetched",
            balance=balance_response.balance,
            top_up_balance=balance_response.top_up_balance,
        )
        return balance_response

    def clear_token_balance_cache(self) -> None:
        """Drop the cached balance (after a purchase or a suspicious update)."""
        self.balance_cache.invalidate()

    async def initialize_user(self) -> None:
        status, body = await self._request("POST", "/tokens/initialize")
        if status in (401, 403):
            raise NotAuthenticated()
        if status != 200:
            raise ServerError(status, self._error_message(body))

    # Purchases

    async def create_payment_intent(self, package_id: str) -> PaymentIntentResponse:
        logger.info("Creating payment intent", package_id=package_id)
        status, body = await self._request(
            "POST",
            "/tokens/purchase",
            payload={"packageId": package_id},
            include_user_id=True,
        )
        if status != 200:
            server_message = self._error_message(body)
            logger.error(
                "Payment intent request failed",
                status_code=status,
                server_message=server_message,
            )
            raise ServerError(status, server_message)

        return self._parse(PaymentIntentResponse, body)

    async def create_setup_intent(self) -> SetupIntentResponse:
        status, body = await self._request("POST", "/subscriptions/setup-intent")
        if status != 200:
            logger.error("Setup intent request failed", status_code=status)
            raise ServerError(status, self._error_message(body))
        return self._parse(SetupIntentResponse, body)

    async def create_subscription(
        self, tier: str, price_id: str, payment_method_id: str
    ) -> SubscriptionResponse:
        status, body = await self._request(
            "POST",
            "/subscriptions/create",
            payload={
                "tier": tier,
                "priceId": price_id,
                "paymentMethodId": payment_method_id,
            },
        )
        if status != 200:
            server_message = self._error_message(body)
            logger.error(
                "Subscription creation failed",
                status_code=status,
                server_message=server_message,
            )
            raise ServerError(status, server_message)
        return self._parse(SubscriptionResponse, body)

    async def cancel_subscription(self) -> CancelSubscriptionResponse:
        status, body = await self._request("POST", "/subscriptions/cancel")
        if status != 200:
            server_message = self._error_message(body)
            logger.error(
                "Subscription cancellation failed",
                status_code=status,
                server_message=server_message,
            )
            raise ServerError(status, server_message)
        return self._parse(CancelSubscriptionResponse, body)

    async def get_subscription_prices(self) -> list[SubscriptionTierPrice]:
        """Fetch tier prices; an unavailable endpoint yields an empty list."""
        status, body = await self._request("GET", "/subscriptions/prices")
        if status != 200:
            logger.warning(
                "Subscription prices endpoint not available", status_code=status
            )
            return []

        data = self._decode(body)
        if not isinstance(data, list):
            raise InvalidResponse("expected a list of tier prices")
        try:
            return [SubscriptionTierPrice.model_validate(item) for item in data]
        except ValidationError as e:
            raise InvalidResponse(str(e))

    # Transport

    async def _headers(self, include_user_id: bool) -> dict[str, str]:
        token = await self._auth_token_provider()
        if not token:
            raise NotAuthenticated()

        headers = {"Authorization": f"Bearer {token}"}
        if include_user_id and self._user_id_provider:
            user_id = self._user_id_provider()
            if user_id:
                headers["X-User-Id"] = user_id
            else:
                logger.warning("No user id available for balance-scoped request")
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
        timeout: float | None = None,
        include_user_id: bool = False,
    ) -> tuple[int, bytes]:
        headers = await self._headers(include_user_id)
        client_timeout = aiohttp.ClientTimeout(
            total=timeout or self.settings.GENIE_API_TIMEOUT
        )

        async with aiohttp.ClientSession(timeout=client_timeout) as session:
            try:
                async with session.request(
                    method, f"{self.base_url}{path}", json=payload, headers=headers
                ) as response:
                    body = await response.read()
                    logger.debug(
                        "Genie API response",
                        method=method,
                        path=path,
                        status_code=response.status,
                    )
                    return response.status, body
            except asyncio.TimeoutError:
                logger.error("Genie API request timed out", method=method, path=path)
                raise NetworkFailure("timeout")
            except aiohttp.ClientError as e:
                logger.error(
                    "Genie API request failed", method=method, path=path, error=str(e)
                )
                raise NetworkFailure(str(e))

    @staticmethod
    def _decode(body: bytes) -> Any:
        try:
            return json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise InvalidResponse(f"undecodable body: {e}")

    def _parse(self, model: type[M], body: bytes) -> M:
        try:
            return model.model_validate(self._decode(body))
        except ValidationError as e:
            logger.error("Unexpected Genie API payload", model=model.__name__)
            raise InvalidResponse(str(e))

    @staticmethod
    def _error_message(body: bytes) -> str | None:
        try:
            data = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError):
            return None
        if isinstance(data, dict):
            message = data.get("error") or data.get("message")
            return str(message) if message else None
        return None
