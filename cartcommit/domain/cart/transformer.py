"""Design data -> external shopping mall cart item."""
from typing import Any, Dict, Mapping, Optional

from cartcommit.domain.cart.models import CartItemData, CustomOptions, ExternalCartItem, PriceBreakdown

PRODUCT_ID = "custom_desk"

MATERIAL_DISPLAY_NAMES = {
    "wood": "Solid wood",
    "mdf": "MDF",
    "steel": "Steel",
    "metal": "Metal",
    "glass": "Glass",
    "fabric": "Fabric",
}

MATERIAL_DESCRIPTIONS = {
    "wood": "Natural solid wood with excellent durability",
    "mdf": "Economical, easily machined medium-density fibreboard",
    "steel": "Sturdy, modern steel frame",
    "metal": "Premium metal finish",
    "glass": "Clear, refined tempered glass",
    "fabric": "Soft, warm upholstery fabric",
}


def build_specifications(
    width_cm: float,
    depth_cm: float,
    height_cm: float,
    material: str,
    price: PriceBreakdown,
    color: Optional[str] = None,
) -> str:
    volume_m3 = width_cm * depth_cm * height_cm / 1_000_000
    specs = [
        "[Dimensions]",
        f"Width: {width_cm:g}cm",
        f"Depth: {depth_cm:g}cm",
        f"Height: {height_cm:g}cm",
        f"Volume: {volume_m3:.3f}m3",
        "",
        "[Material]",
        f"Type: {MATERIAL_DISPLAY_NAMES.get(material, material)} ({material})",
    ]
    if material in MATERIAL_DESCRIPTIONS:
        specs.append(f"Characteristics: {MATERIAL_DESCRIPTIONS[material]}")
    if color:
        specs.append(f"Color: {color}")

    specs += ["", "[Price]", f"Unit price: {price.total:,.0f} {price.currency}"]
    if price.material_modifier != 1.0:
        specs.append(f"Material modifier: {price.material_modifier:g}")

    return "\n".join(specs)


def to_external_cart_item(item: CartItemData) -> ExternalCartItem:
    c = item.customizations
    return ExternalCartItem(
        product_id=PRODUCT_ID,
        product_name=c.name,
        quantity=item.quantity,
        unit_price=c.calculated_price,
        custom_options=CustomOptions(
            dimensions=f"{c.width_cm:g}cm x {c.depth_cm:g}cm x {c.height_cm:g}cm",
            material=MATERIAL_DISPLAY_NAMES.get(c.material, c.material),
            specifications=build_specifications(
                c.width_cm, c.depth_cm, c.height_cm, c.material, c.price_breakdown, c.color
            ),
        ),
        total_price=item.quantity * c.calculated_price,
    )


def parse_external_response(response: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Normalize the vendor's response spellings into one shape."""
    if not isinstance(response, Mapping):
        return {"success": False, "error": "Empty response"}

    if response.get("success") is True or response.get("status") == "success":
        return {
            "success": True,
            "cart_id": response.get("cart_id") or response.get("cartId") or response.get("id"),
            "redirect_url": (
                response.get("redirect_url")
                or response.get("redirectUrl")
                or response.get("checkout_url")
            ),
        }

    return {
        "success": False,
        "error_code": response.get("error_code"),
        "error": (
            response.get("error")
            or response.get("message")
            or response.get("error_message")
            or "Unknown error"
        ),
    }
