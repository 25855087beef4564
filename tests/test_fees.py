import pytest
from decimal import Decimal

from orders.errors import ValidationError
from orders.policy import MarketplacePolicy
from payments.fees import SERVICE_FEE, to_amount, total_amount


def test_total_amount_adds_service_fee():
    assert SERVICE_FEE == Decimal("1200")
    assert total_amount(1500) == Decimal("2700")
    assert total_amount("2000") == Decimal("3200")


def test_total_amount_is_stable():
    assert total_amount(Decimal("1499.50")) == total_amount(Decimal("1499.50")) == Decimal("2699.50")


def test_total_amount_uses_policy_fee():
    policy = MarketplacePolicy(service_fee=Decimal("500"))
    assert total_amount(1500, policy) == Decimal("2000")


def test_to_amount_keeps_float_input_exact():
    assert to_amount(0.1) == Decimal("0.1")


@pytest.mark.parametrize("value", [True, "abc", "", None, "NaN", "Infinity"])
def test_to_amount_rejects_non_numbers(value):
    with pytest.raises(ValidationError) as excinfo:
        to_amount(value, "amount")
    assert "amount" in excinfo.value.fields
