"""Mock external shopping mall for development and tests."""
import asyncio
import logging
import random
import time
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from cartcommit.adapters.checkout.client import _as_payload
from cartcommit.domain.interfaces import CallResult, CheckoutClient

logger = logging.getLogger(__name__)

MOCK_SHOP_URL = "https://mock-shop.example.com"


class MockCheckoutClient(CheckoutClient):
    """Simulates latency and random upstream failures.

    Every call is recorded in ``calls`` so tests can assert on exactly what
    would have crossed the wire.
    """

    def __init__(
        self,
        latency_ms: int = 200,
        failure_rate: float = 0.1,
        seed: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.latency_ms = latency_ms
        self.failure_rate = failure_rate
        self._rng = random.Random(seed)
        self._sleep = sleep
        self.calls: List[Dict[str, Any]] = []

    async def add_to_cart(self, item: Mapping[str, Any]) -> CallResult:
        payload = _as_payload(item)
        self.calls.append(payload)
        logger.info(f"[MockCheckoutClient] add_to_cart product={payload.get('product_name')}")

        if self.latency_ms:
            await self._sleep(self.latency_ms / 1000)

        if self._rng.random() < self.failure_rate:
            response = {
                "success": False,
                "error": "Mock API random failure",
                "error_code": "MOCK_RANDOM_FAILURE",
            }
            return CallResult(
                success=False,
                raw_request=payload,
                raw_response=response,
                error=response["error"],
                error_code=response["error_code"],
                attempts=1,
            )

        cart_id = f"mock_cart_{int(time.time() * 1000)}_{self._rng.randrange(36 ** 9):09x}"
        redirect_url = f"{MOCK_SHOP_URL}/cart/{cart_id}"
        response = {
            "success": True,
            "cart_id": cart_id,
            "redirect_url": redirect_url,
            "message": "Added to cart (mock)",
        }
        return CallResult(
            success=True,
            raw_request=payload,
            raw_response=response,
            external_cart_id=cart_id,
            redirect_url=redirect_url,
            attempts=1,
        )

    async def health_check(self) -> bool:
        return True
