"""Token pack and subscription tier catalog."""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from genie_tokens.api.schemas import SubscriptionTierPrice


class TokenPackPackage(str, Enum):
    """Backend package ids accepted by the purchase endpoint."""

    TOPUP_100 = "topup_100"
    TOPUP_300 = "topup_300"
    TOPUP_500 = "topup_500"


class SubscriptionTier(str, Enum):
    FREE = "Free"
    ATHLETE = "Athlete"
    CHAMPION = "Champion"
    LEGEND = "Legend"


class SubscriptionPeriod(str, Enum):
    MONTHLY = "monthly"
    ANNUAL = "annual"


@dataclass(frozen=True)
class SubscriptionTierConfig:
    monthly_tokens: int
    monthly_price: Decimal
    annual_price: Decimal


SUBSCRIPTION_TIERS: dict[SubscriptionTier, SubscriptionTierConfig] = {
    SubscriptionTier.FREE: SubscriptionTierConfig(
        monthly_tokens=10, monthly_price=Decimal("0"), annual_price=Decimal("0")
    ),
    SubscriptionTier.ATHLETE: SubscriptionTierConfig(
        monthly_tokens=500,
        monthly_price=Decimal("9.99"),
        annual_price=Decimal("99.90"),
    ),
    SubscriptionTier.CHAMPION: SubscriptionTierConfig(
        monthly_tokens=1500,
        monthly_price=Decimal("19.99"),
        annual_price=Decimal("199.90"),
    ),
    SubscriptionTier.LEGEND: SubscriptionTierConfig(
        monthly_tokens=5000,
        monthly_price=Decimal("49.99"),
        annual_price=Decimal("499.90"),
    ),
}

# Upsell pack ids shown in the app, mapped to backend package ids
TOKEN_PACK_ALIASES: dict[str, TokenPackPackage] = {
    "quickboost": TokenPackPackage.TOPUP_100,
    "powerpack": TokenPackPackage.TOPUP_300,
    "probundle": TokenPackPackage.TOPUP_500,
}


def map_token_pack_id(pack_id: str) -> TokenPackPackage:
    """Resolve an upsell pack id to the package id the purchase endpoint expects."""
    normalized = pack_id.lower()
    if normalized in TOKEN_PACK_ALIASES:
        return TOKEN_PACK_ALIASES[normalized]

    if "100" in normalized or "quick" in normalized:
        return TokenPackPackage.TOPUP_100
    if "300" in normalized or "power" in normalized:
        return TokenPackPackage.TOPUP_300
    if "500" in normalized or "pro" in normalized or "700" in normalized:
        return TokenPackPackage.TOPUP_500
    return TokenPackPackage.TOPUP_100


def resolve_price_id(
    prices: list[SubscriptionTierPrice],
    tier: SubscriptionTier,
    period: SubscriptionPeriod,
) -> str | None:
    """Pick the payment processor price id for a tier and billing period."""
    for price in prices:
        if price.tier.lower() == tier.value.lower():
            if period == SubscriptionPeriod.ANNUAL:
                return price.annual_price_id
            return price.monthly_price_id
    return None
