from decimal import Decimal
from unittest.mock import patch

import pytest

from pilance.common.enums import PaymentChannel
from pilance.common.exceptions import ValidationFailedError
from pilance.core.escrow.fees import charge_wallet, fee_rates, format_rate, reward_points, split_escrow


def test_escrow_split_for_standard_job():
    split = split_escrow(Decimal("4200"))
    assert split.platform_fee == Decimal("336")
    assert split.net_amount == Decimal("3864")
    assert split.breakdown() == {
        "total": Decimal("4200"),
        "platform_fee": Decimal("336"),
        "freelancer_receives": Decimal("3864"),
        "fee_percentage": "8%",
    }


def test_escrow_fee_rounds_to_smallest_pi_unit():
    split = split_escrow(Decimal("0.0000013"))
    # 0.0000013 * 0.08 = 0.000000104 -> 0.0000001
    assert split.platform_fee == Decimal("0.0000001")
    assert split.net_amount + split.platform_fee == split.amount


def test_escrow_split_never_loses_precision():
    for raw in ("1", "33.3333333", "999999.9999999", "12.5"):
        split = split_escrow(Decimal(raw))
        assert split.net_amount + split.platform_fee == split.amount


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
def test_non_positive_amounts_rejected(amount):
    with pytest.raises(ValidationFailedError):
        split_escrow(amount)
    with pytest.raises(ValidationFailedError):
        charge_wallet(amount)


def test_wallet_charge_adds_fees_on_top():
    charge = charge_wallet(Decimal("100"))
    assert charge.breakdown() == {
        "user_amount": Decimal("100"),
        "platform_fee": Decimal("5"),
        "pi_network_fee": Decimal("0.01"),
        "total_amount": Decimal("105.01"),
    }


def test_rates_are_configured_per_channel():
    with patch("pilance.core.escrow.fees.settings.ESCROW_FEE_RATE", Decimal("0.1")):
        rates = fee_rates()
        assert rates[PaymentChannel.JOB_ESCROW] == Decimal("0.1")
        assert rates[PaymentChannel.WALLET] == Decimal("0.05")
        assert split_escrow(Decimal("200")).platform_fee == Decimal("20")


def test_format_rate():
    assert format_rate(Decimal("0.08")) == "8%"
    assert format_rate(Decimal("0.125")) == "12.5%"


def test_reward_points_floor():
    assert reward_points(Decimal("4200")) == 21000
    assert reward_points(Decimal("0.3")) == 1


def test_amounts_finer_than_smallest_unit_rejected():
    with pytest.raises(ValidationFailedError, match="7 decimal places"):
        split_escrow(Decimal("0.00000001"))
    with pytest.raises(ValidationFailedError, match="7 decimal places"):
        charge_wallet(Decimal("100.00000004"))
    assert split_escrow(Decimal("4200.0000000")).amount == Decimal("4200")
