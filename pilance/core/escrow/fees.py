"""Platform fee policy, one rate per payment channel.

Job escrow deducts its fee from the gross amount; wallet payments add their
fee and the Pi network fee on top. Both rates come from settings so they are
configured side by side.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from pilance.common.enums import PaymentChannel
from pilance.common.exceptions import ValidationFailedError
from pilance.config import settings


def fee_rates() -> dict[PaymentChannel, Decimal]:
    return {
        PaymentChannel.JOB_ESCROW: Decimal(settings.ESCROW_FEE_RATE),
        PaymentChannel.WALLET: Decimal(settings.WALLET_FEE_RATE),
    }


def smallest_unit() -> Decimal:
    return Decimal(1).scaleb(-settings.CURRENCY_DECIMAL_PLACES)


def quantize(amount: Decimal) -> Decimal:
    return amount.quantize(smallest_unit(), rounding=ROUND_HALF_UP)


def format_rate(rate: Decimal) -> str:
    return f"{(rate * 100).normalize():f}%"


@dataclass(frozen=True)
class EscrowSplit:
    amount: Decimal
    platform_fee: Decimal
    net_amount: Decimal
    fee_rate: Decimal

    def breakdown(self) -> dict:
        return {
            "total": self.amount,
            "platform_fee": self.platform_fee,
            "freelancer_receives": self.net_amount,
            "fee_percentage": format_rate(self.fee_rate),
        }


@dataclass(frozen=True)
class WalletCharge:
    user_amount: Decimal
    platform_fee: Decimal
    pi_network_fee: Decimal
    total_amount: Decimal

    def breakdown(self) -> dict:
        return {
            "user_amount": self.user_amount,
            "platform_fee": self.platform_fee,
            "pi_network_fee": self.pi_network_fee,
            "total_amount": self.total_amount,
        }


def checked_amount(amount: Decimal) -> Decimal:
    """Positive amount expressed in whole smallest units."""
    amount = Decimal(amount)
    if amount != quantize(amount):
        raise ValidationFailedError(
            f"amount must have at most {settings.CURRENCY_DECIMAL_PLACES} decimal places"
        )
    amount = quantize(amount)
    if amount <= 0:
        raise ValidationFailedError("amount must be positive")
    return amount


def split_escrow(amount: Decimal) -> EscrowSplit:
    """Fee is rounded to the smallest unit; net is the exact remainder."""
    amount = checked_amount(amount)
    rate = fee_rates()[PaymentChannel.JOB_ESCROW]
    fee = quantize(amount * rate)
    return EscrowSplit(amount=amount, platform_fee=fee, net_amount=amount - fee, fee_rate=rate)


def charge_wallet(amount: Decimal) -> WalletCharge:
    amount = checked_amount(amount)
    fee = quantize(amount * fee_rates()[PaymentChannel.WALLET])
    network_fee = quantize(Decimal(settings.PI_NETWORK_FEE))
    return WalletCharge(
        user_amount=amount,
        platform_fee=fee,
        pi_network_fee=network_fee,
        total_amount=amount + fee + network_fee,
    )


def reward_points(amount: Decimal) -> int:
    return int(Decimal(amount) * settings.REWARD_POINTS_PER_UNIT)
