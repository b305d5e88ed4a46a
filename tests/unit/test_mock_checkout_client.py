"""Tests for the mock external shopping mall."""
import pytest

from cartcommit.adapters.checkout.mock import MOCK_SHOP_URL, MockCheckoutClient
from cartcommit.domain.cart.models import CustomOptions, ExternalCartItem


async def no_sleep(seconds: float) -> None:
    no_sleep.calls.append(seconds)


no_sleep.calls = []


@pytest.mark.asyncio
async def test_mock_success_shape():
    client = MockCheckoutClient(latency_ms=0, failure_rate=0.0)
    result = await client.add_to_cart({"product_name": "Desk"})

    assert result.success is True
    assert result.external_cart_id.startswith("mock_cart_")
    assert result.redirect_url == f"{MOCK_SHOP_URL}/cart/{result.external_cart_id}"
    assert result.attempts == 1
    assert client.calls == [{"product_name": "Desk"}]


@pytest.mark.asyncio
async def test_mock_always_fails_at_full_rate():
    client = MockCheckoutClient(latency_ms=0, failure_rate=1.0)
    result = await client.add_to_cart({"product_name": "Desk"})

    assert result.success is False
    assert result.error_code == "MOCK_RANDOM_FAILURE"
    assert result.raw_response["success"] is False


@pytest.mark.asyncio
async def test_mock_is_deterministic_with_seed():
    a = MockCheckoutClient(latency_ms=0, failure_rate=0.5, seed=42)
    b = MockCheckoutClient(latency_ms=0, failure_rate=0.5, seed=42)

    outcomes_a = [(await a.add_to_cart({})).success for _ in range(20)]
    outcomes_b = [(await b.add_to_cart({})).success for _ in range(20)]

    assert outcomes_a == outcomes_b
    assert True in outcomes_a and False in outcomes_a


@pytest.mark.asyncio
async def test_mock_simulates_latency():
    no_sleep.calls.clear()
    client = MockCheckoutClient(latency_ms=200, failure_rate=0.0, sleep=no_sleep)
    await client.add_to_cart({})
    assert no_sleep.calls == [0.2]


@pytest.mark.asyncio
async def test_mock_accepts_models_and_health():
    client = MockCheckoutClient(latency_ms=0, failure_rate=0.0)
    item = ExternalCartItem(
        product_name="Desk",
        quantity=1,
        unit_price=100,
        custom_options=CustomOptions(dimensions="1", material="wood", specifications="s"),
        total_price=100,
    )
    result = await client.add_to_cart(item)

    assert result.raw_request["product_id"] == "custom_desk"
    assert await client.health_check() is True
