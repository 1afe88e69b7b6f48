"""Platform fee calculation."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from draftboard.config import FeeConfig
from draftboard.exceptions import InvalidAmount

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Coerce to a cent-quantized Decimal (half-up)."""
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidAmount(f"Not a valid amount: {value!r}")
    if not amount.is_finite():
        raise InvalidAmount(f"Not a valid amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class FeeBreakdown:
    gross: Decimal
    fee: Decimal
    net: Decimal


class FeePolicy:
    """fee = max(gross * rate, minimum), net = gross - fee."""

    def __init__(self, rate: Decimal = Decimal("0.05"), minimum: Decimal = Decimal("0.50")):
        self.rate = Decimal(rate)
        self.minimum = to_money(minimum)

    @classmethod
    def from_config(cls, config: FeeConfig) -> "FeePolicy":
        return cls(rate=config.rate, minimum=config.minimum)

    def compute_fee(self, gross) -> FeeBreakdown:
        gross = to_money(gross)
        if gross <= 0:
            raise InvalidAmount(f"Gross amount must be positive, got {gross}")

        fee = max((gross * self.rate).quantize(CENT, rounding=ROUND_HALF_UP), self.minimum)
        return FeeBreakdown(gross=gross, fee=fee, net=gross - fee)
