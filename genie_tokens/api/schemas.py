"""Genie API wire schemas (requests and responses)."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class GenieModel(BaseModel):
    """Base model for camelCase Genie payloads, addressable by snake_case too."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# Query


class ConversationMessage(GenieModel):
    role: str
    content: str


class QueryRequest(GenieModel):
    query: str
    session_id: str
    is_voice_input: bool = False
    latitude: float | None = None
    longitude: float | None = None
    conversation_history: list[ConversationMessage] | None = None
    image_base64: str | None = None
    frames: list[str] | None = None


class BalanceWarning(GenieModel):
    level: str
    message: str
    recommendation: str | None = None
    suggested_pack: str | None = None
    suggested_plan: str | None = None


class GenieAction(GenieModel):
    type: str
    data: dict[str, Any] = Field(default_factory=dict)


class QueryResponse(GenieModel):
    response: str
    tokens_used: int
    tokens_remaining: int
    tier: int = 0
    handler: str | None = None
    balance_warning: BalanceWarning | None = None
    thinking: list[str] | None = None
    actions: list[GenieAction] | None = None
    title: str | None = None


# Insufficient tokens (HTTP 402)


class UpsellTokenPack(GenieModel):
    id: str
    name: str
    tokens: int
    bonus: int = 0
    price: int
    popular: bool = False


class UpsellSubscriptionOption(GenieModel):
    id: str
    name: str
    tokens: int
    price: int
    per_day: int = 0


class UpsellDetails(GenieModel):
    has_subscription: bool
    message: str = ""
    recommendation: str | None = None
    token_packs: list[UpsellTokenPack] = Field(default_factory=list)
    subscriptions: list[UpsellSubscriptionOption] = Field(default_factory=list)


class InsufficientTokensResponse(GenieModel):
    error: str = "insufficient_tokens"
    required: int
    balance: int
    query_type: str = ""
    tier: int = 0
    upsell: UpsellDetails | None = None


# Balance


class UsageStats(GenieModel):
    queries_this_month: int | None = None
    tokens_used_this_month: int | None = None
    estimated_cost: float | None = None


class SubscriptionDetails(GenieModel):
    tier: str
    status: str = "active"
    monthly_allowance: int = 0
    tokens_used_this_month: int = 0
    tokens_remaining_this_month: int = 0
    top_up_balance: int = 0
    current_period_start: str | None = None
    current_period_end: str | None = None


class TokenPackage(GenieModel):
    tokens: int
    price: int
    name: str


class TokenBalanceResponse(GenieModel):
    balance: int
    usage: UsageStats | None = None
    packages: dict[str, TokenPackage] | None = None
    subscription: SubscriptionDetails | None = None

    @property
    def top_up_balance(self) -> int:
        return self.subscription.top_up_balance if self.subscription else 0


# Purchases


class PaymentIntentResponse(GenieModel):
    client_secret: str
    package: TokenPackage


class SetupIntentResponse(GenieModel):
    client_secret: str
    customer_id: str


class SubscriptionResponse(GenieModel):
    subscription_id: str | None = None
    client_secret: str | None = None
    tier: str | None = None
    status: str | None = None
    message: str | None = None


class CancelSubscriptionResponse(GenieModel):
    success: bool
    message: str
    cancel_at_period_end: bool | None = None
    current_period_end: int | None = None


class SubscriptionTierPrice(GenieModel):
    tier: str
    monthly_price: float
    annual_price: float
    monthly_price_id: str
    annual_price_id: str
