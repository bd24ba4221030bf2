"""Order pricing rules.

Pricing is computed exactly once, when the order is placed, from the price
snapshot of each line. Later catalogue price changes never touch an existing
order.

Rules:
    items     = sum(price * quantity)
    discount  = 10% of every line with quantity >= 5, plus promo code discount
    shipping  = standard fee (waived above the free-shipping threshold or by
                the FREESHIPPING promo) + surcharge of the chosen option
    tax       = tax rate * (items - discount)
    total     = items - discount + tax + shipping
"""

from dataclasses import dataclass
from enum import Enum

from protean.exceptions import ValidationError

from ordering.config import Settings, get_settings


class PromoKind(Enum):
    PERCENTAGE = "percentage"
    FREE_SHIPPING = "free_shipping"


@dataclass(frozen=True)
class PromoCode:
    code: str
    kind: PromoKind
    min_order_value: float
    rate: float = 0.0


PROMO_CODES = {
    "WELCOME15": PromoCode("WELCOME15", PromoKind.PERCENTAGE, min_order_value=500_000.0, rate=0.15),
    "FREESHIPPING": PromoCode("FREESHIPPING", PromoKind.FREE_SHIPPING, min_order_value=800_000.0),
}


@dataclass(frozen=True)
class PriceBreakdown:
    items_price: float
    discount_amount: float
    tax_price: float
    shipping_price: float
    total_price: float


def shipping_surcharge(shipping_option: str, settings: Settings) -> float:
    return {
        "standard": 0.0,
        "express": settings.express_surcharge,
        "same_day": settings.same_day_surcharge,
    }[shipping_option]


def resolve_promo_code(code: str | None, items_price: float) -> PromoCode | None:
    """Look up ``code``. Unknown codes and unmet minimums are rejected."""
    if not code:
        return None

    promo = PROMO_CODES.get(code.strip().upper())
    if promo is None:
        raise ValidationError({"promo_code": [f"Unknown promo code {code}"]})
    if items_price < promo.min_order_value:
        raise ValidationError({"promo_code": [f"{promo.code} requires a minimum order of {promo.min_order_value:,.0f}"]})
    return promo


def calculate_pricing(
    lines,
    shipping_option: str = "standard",
    promo_code: str | None = None,
    settings: Settings | None = None,
) -> PriceBreakdown:
    """Price a list of ``(unit_price, quantity)`` pairs."""
    settings = settings or get_settings()

    items_price = sum(price * quantity for price, quantity in lines)

    discount = sum(
        price * quantity * settings.bulk_discount_rate
        for price, quantity in lines
        if quantity >= settings.bulk_discount_quantity
    )

    promo = resolve_promo_code(promo_code, items_price)
    if promo is not None and promo.kind == PromoKind.PERCENTAGE:
        discount += items_price * promo.rate

    waive_standard_fee = items_price > settings.free_shipping_threshold or (
        promo is not None and promo.kind == PromoKind.FREE_SHIPPING
    )
    shipping = (0.0 if waive_standard_fee else settings.standard_shipping_fee) + shipping_surcharge(
        shipping_option, settings
    )

    items_price = round(items_price, 2)
    discount = round(min(discount, items_price), 2)
    shipping = round(shipping, 2)
    tax = round((items_price - discount) * settings.tax_rate, 2)

    # The total is the sum of the rounded components so a breakdown always adds up.
    return PriceBreakdown(
        items_price=items_price,
        discount_amount=discount,
        tax_price=tax,
        shipping_price=shipping,
        total_price=round(items_price - discount + tax + shipping, 2),
    )
