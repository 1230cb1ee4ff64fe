"""
Marketplace fee split.

Every booking paid through Stripe carries a fixed platform fee. The platform
keeps PLATFORM_SHARE_PERCENT of that fixed fee and the barber gets the rest;
the percentage is applied to the fixed fee only, never to the service price.

All amounts are integer cents.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from utils.errors import FeeReconciliationMismatch, ValidationError

FULL_SERVICE = "full"
FEE_ONLY = "fee"
DEVELOPER = "developer"
PAYMENT_MODES = (FULL_SERVICE, FEE_ONLY)

DEFAULT_PLATFORM_FEE_CENTS = 338
DEFAULT_PLATFORM_SHARE_PERCENT = 60

_CENT = Decimal("0.01")


@dataclass(frozen=True)
class FeeSplit:
    mode: str
    price: int            # service (+ add-on) cents charged through Stripe
    fixed_fee: int
    platform_fee: int     # kept by the platform
    barber_payout: int    # owed to the barber

    @property
    def amount(self) -> int:
        """Total charged to the client."""
        return self.price + self.fixed_fee

    @property
    def application_fee(self) -> int:
        # fee-only charges are pure commission: nothing is transferred
        if self.mode == FEE_ONLY:
            return self.amount
        return self.platform_fee

    @property
    def transfer_amount(self) -> int:
        return self.amount - self.application_fee

    def to_dict(self):
        return {
            "mode": self.mode,
            "price": self.price,
            "fixed_fee": self.fixed_fee,
            "platform_fee": self.platform_fee,
            "barber_payout": self.barber_payout,
            "amount": self.amount,
            "application_fee": self.application_fee,
        }


def to_cents(value) -> int:
    """Major units (Decimal, str, float, int) to integer cents, half-up."""
    if value is None:
        raise ValidationError("Amount is required")
    amount = value if isinstance(value, Decimal) else Decimal(str(value))
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    return (Decimal(int(cents)) / 100).quantize(_CENT)


def fee_shares(fixed_fee=DEFAULT_PLATFORM_FEE_CENTS, share_percent=DEFAULT_PLATFORM_SHARE_PERCENT):
    """(platform_share, barber_share) of the fixed fee.

    The barber share is the remainder, so the two always add up to the fee.
    """
    if fixed_fee < 0 or not 0 <= share_percent <= 100:
        raise ValidationError("Invalid fee configuration")
    platform_share = (fixed_fee * share_percent + 50) // 100
    return platform_share, fixed_fee - platform_share


def compute_split(mode, price_cents=0, fixed_fee=DEFAULT_PLATFORM_FEE_CENTS,
                  share_percent=DEFAULT_PLATFORM_SHARE_PERCENT) -> FeeSplit:
    if mode not in PAYMENT_MODES:
        raise ValidationError(f"Unknown payment type: {mode}")
    if price_cents is None or int(price_cents) < 0:
        raise ValidationError("Service price must be zero or more")

    platform_share, barber_share = fee_shares(fixed_fee, share_percent)

    if mode == FEE_ONLY:
        split = FeeSplit(mode, 0, fixed_fee, platform_share, barber_share)
    else:
        price = int(price_cents)
        split = FeeSplit(mode, price, fixed_fee, platform_share, price + barber_share)

    validate_split(split)
    return split


def developer_split() -> FeeSplit:
    return FeeSplit(DEVELOPER, 0, 0, 0, 0)


def validate_split(split: FeeSplit) -> FeeSplit:
    """platform_fee + barber_payout must equal what was charged (price + fixed fee)."""
    if min(split.price, split.fixed_fee, split.platform_fee, split.barber_payout) < 0:
        raise FeeReconciliationMismatch("Fee split contains a negative amount")
    if split.platform_fee + split.barber_payout - split.price != split.fixed_fee:
        raise FeeReconciliationMismatch(
            f"Fee split does not reconcile: platform_fee={split.platform_fee} "
            f"barber_payout={split.barber_payout} price={split.price} fixed_fee={split.fixed_fee}"
        )
    return split
