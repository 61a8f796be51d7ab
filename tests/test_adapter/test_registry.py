"""
Tests for the requirement registry and network constants.
"""

from decimal import Decimal

import pytest

from x402_vara.adapters import RequirementRegistry, SessionPolicy
from x402_vara.adapters.substrate.constants import amount_to_value, value_to_amount
from x402_vara.sessions import SessionKind

PAY_TO = "kGpayee"


def test_register_and_lookup():
    registry = RequirementRegistry()
    requirement = registry.register(
        "/api/pay/session",
        amount="1.00",
        asset="vara",
        network="vara-testnet",
        pay_to=PAY_TO,
        description="24-hour access",
        session=SessionPolicy("time-bounded", 86400),
    )

    assert registry.lookup("/api/pay/session") == requirement
    assert requirement.price.amount == Decimal("1.00")
    assert requirement.price.asset == "VARA"
    assert registry.policy("/api/pay/session").kind == SessionKind.TIME_BOUNDED
    assert "/api/pay/session" in registry
    assert len(registry) == 1


def test_unknown_resource():
    registry = RequirementRegistry()
    assert registry.lookup("/nope") is None
    assert registry.policy("/nope") is None


def test_duplicate_resource_is_rejected():
    registry = RequirementRegistry()
    registry.register("/a", amount="1", asset="VARA", network="vara", pay_to=PAY_TO)
    with pytest.raises(ValueError, match="already registered"):
        registry.register("/a", amount="2", asset="VARA", network="vara", pay_to=PAY_TO)


def test_unsupported_network_or_asset():
    registry = RequirementRegistry()
    with pytest.raises(ValueError, match="network"):
        registry.register("/a", amount="1", asset="VARA", network="kusama", pay_to=PAY_TO)
    with pytest.raises(ValueError, match="asset"):
        registry.register("/a", amount="1", asset="USDC", network="vara", pay_to=PAY_TO)


def test_amount_below_smallest_unit_is_rejected():
    registry = RequirementRegistry()
    with pytest.raises(ValueError):
        registry.register("/a", amount="0.0000000000001", asset="VARA", network="vara", pay_to=PAY_TO)


def test_session_policy_validation():
    with pytest.raises(ValueError):
        SessionPolicy("single-use", 0)
    with pytest.raises(ValueError):
        SessionPolicy("weekly", 60)


def test_amount_conversions():
    assert amount_to_value(amount="1.00", decimals=12) == 10 ** 12
    assert amount_to_value(amount=0.1, decimals=12) == 10 ** 11
    assert value_to_amount(value=10 ** 11, decimals=12) == Decimal("0.1")
    with pytest.raises(ValueError):
        amount_to_value(amount="-1", decimals=12)
    with pytest.raises(ValueError):
        value_to_amount(value="1.5", decimals=12)
