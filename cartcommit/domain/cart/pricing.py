"""Server-side price reverification.

The client-submitted price is never trusted: it is recomputed from the raw
dimensions and material and must agree within an absolute tolerance before
anything is sent to the external shop.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from cartcommit.domain.cart.models import Customizations
from cartcommit.domain.interfaces import PricingFunction

logger = logging.getLogger(__name__)

DEFAULT_PRICE_TOLERANCE = 0.01

BASE_PRICE_PER_M3 = 50_000  # KRW
BASE_MANUFACTURING = 50_000
SHIPPING = 30_000
TAX_RATE = 0.1

MATERIAL_MODIFIERS = {
    "wood": 1.0,
    "mdf": 0.8,
    "steel": 1.15,
    "metal": 1.5,
    "glass": 2.0,
    "fabric": 0.8,
}


def standard_price(width_cm: float, depth_cm: float, height_cm: float, material: str) -> Dict[str, Any]:
    """Configurator price: volume x unit price x modifier + fixed costs + VAT."""
    if width_cm <= 0 or depth_cm <= 0 or height_cm <= 0:
        raise ValueError("Invalid dimensions: all dimensions must be positive")
    if material not in MATERIAL_MODIFIERS:
        raise ValueError(f"Invalid material type: {material}")

    volume_m3 = round(width_cm / 100 * depth_cm / 100 * height_cm / 100, 6)
    modifier = MATERIAL_MODIFIERS[material]
    material_cost = round(volume_m3 * BASE_PRICE_PER_M3 * modifier)
    subtotal = material_cost + BASE_MANUFACTURING + SHIPPING
    tax = round(subtotal * TAX_RATE)

    return {
        "volume_m3": volume_m3,
        "base_price": BASE_PRICE_PER_M3,
        "material_modifier": modifier,
        "material_cost": material_cost,
        "base_cost": BASE_MANUFACTURING,
        "shipping_cost": SHIPPING,
        "subtotal": subtotal,
        "tax": tax,
        "total": subtotal + tax,
        "currency": "KRW",
    }


@dataclass(frozen=True)
class PriceCheck:
    is_valid: bool
    client_price: float
    server_price: Optional[float]
    difference: Optional[float]
    tolerance: float
    error: Optional[str] = None

    def details(self) -> Dict[str, Any]:
        details = {
            "clientPrice": self.client_price,
            "serverPrice": self.server_price,
            "difference": self.difference,
            "tolerance": self.tolerance,
        }
        if self.error:
            details["error"] = self.error
        return details


class PriceReverifier:
    def __init__(self, pricing: PricingFunction = standard_price, tolerance: float = DEFAULT_PRICE_TOLERANCE):
        self.pricing = pricing
        self.tolerance = tolerance

    def reverify(self, customizations: Customizations) -> PriceCheck:
        client_price = customizations.calculated_price
        try:
            quote = self.pricing(
                customizations.width_cm,
                customizations.depth_cm,
                customizations.height_cm,
                customizations.material,
            )
            server_price = float(quote["total"])
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Server-side price calculation failed: {e}")
            return PriceCheck(
                is_valid=False,
                client_price=client_price,
                server_price=None,
                difference=None,
                tolerance=self.tolerance,
                error="Price calculation failed",
            )

        difference = abs(server_price - client_price)
        return PriceCheck(
            is_valid=difference <= self.tolerance,
            client_price=client_price,
            server_price=server_price,
            difference=difference,
            tolerance=self.tolerance,
        )
