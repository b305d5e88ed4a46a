import copy
import json

import httpx
import pytest

from cartcommit.adapters.checkout.client import CheckoutConfig, ExternalCheckoutClient
from cartcommit.adapters.memory_store.stores import MemoryDesignStore, MemoryPurchaseAuditStore
from cartcommit.domain.cart.orchestrator import CartCommitOrchestrator, DesignLocks
from cartcommit.domain.cart.pricing import PriceReverifier
from cartcommit.domain.security.manager import SecurityManager
from cartcommit.main import app

REFERENCE_PRICE = 116700

VALID_ITEM = {
    "designId": "d1",
    "quantity": 1,
    "customizations": {
        "width_cm": 120,
        "depth_cm": 60,
        "height_cm": 75,
        "material": "wood",
        "calculated_price": REFERENCE_PRICE,
        "price_breakdown": {
            "base_price": 50000,
            "material_modifier": 1.0,
            "volume_m3": 0.54,
            "total": REFERENCE_PRICE,
        },
        "name": "My Desk",
    },
}


class FakeShop:
    """httpx handler standing in for the external shopping mall."""

    def __init__(self):
        self.fail = False
        self.error_code = None
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/health"):
            return httpx.Response(200, json={"status": "ok"})

        body = json.loads(request.content)
        self.requests.append(body)
        if self.error_code:
            return httpx.Response(200, json={"success": False, "error_code": self.error_code})
        if self.fail:
            return httpx.Response(503, json={"success": False, "message": "Service temporarily unavailable"})

        n = len(self.requests)
        return httpx.Response(200, json={
            "success": True,
            "cart_id": f"ext-{n}",
            "redirect_url": f"https://shop.example.com/cart/ext-{n}",
        })


async def _no_sleep(seconds: float) -> None:
    return None


def catalog_pricing(width_cm, depth_cm, height_cm, material):
    # Catalog quote for the reference desk
    return {"total": REFERENCE_PRICE}


@pytest.fixture(autouse=True)
def clear_overrides():
    """Automatically clear FastAPI dependency overrides before each test."""
    app.dependency_overrides = {}
    yield
    app.dependency_overrides = {}


@pytest.fixture
def valid_item():
    return copy.deepcopy(VALID_ITEM)


@pytest.fixture
def shop():
    return FakeShop()


@pytest.fixture
def checkout_client(shop):
    return ExternalCheckoutClient(
        CheckoutConfig(base_url="https://shop.example.com/api", api_key="sk-test", retry_count=3),
        transport=httpx.MockTransport(shop),
        sleep=_no_sleep,
    )


@pytest.fixture
def security():
    return SecurityManager(bytes(range(32)))


@pytest.fixture
def designs():
    store = MemoryDesignStore()
    store.add_design("d1", "u1", name="My Desk")
    store.add_design("d2", "u2", name="Someone else's desk")
    return store


@pytest.fixture
def audit_store():
    return MemoryPurchaseAuditStore()


@pytest.fixture
def reverifier():
    return PriceReverifier(pricing=catalog_pricing)


@pytest.fixture
def design_locks():
    return DesignLocks()


@pytest.fixture
def orchestrator(checkout_client, designs, audit_store, security, reverifier, design_locks):
    return CartCommitOrchestrator(
        checkout=checkout_client,
        designs=designs,
        statuses=designs,
        audit_store=audit_store,
        security=security,
        reverifier=reverifier,
        locks=design_locks,
    )
