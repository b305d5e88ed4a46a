"""Structural validation of submitted cart items."""
from typing import Any, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError as SchemaError

from cartcommit.domain.cart.models import CartItemData, Customizations

VALID_MATERIALS = ("wood", "mdf", "steel", "metal", "glass", "fabric")

# Inclusive ranges in centimetres
WIDTH_RANGE_CM = (60, 300)
DEPTH_RANGE_CM = (40, 200)
HEIGHT_RANGE_CM = (60, 120)
QUANTITY_RANGE = (1, 10)


def _in_range(value: float, bounds: Tuple[float, float]) -> bool:
    return bounds[0] <= value <= bounds[1]


def validate_dimensions(width_cm: float, depth_cm: float, height_cm: float) -> bool:
    return (
        _in_range(width_cm, WIDTH_RANGE_CM)
        and _in_range(depth_cm, DEPTH_RANGE_CM)
        and _in_range(height_cm, HEIGHT_RANGE_CM)
    )


def validate_material(material: str) -> bool:
    return material in VALID_MATERIALS


def validate_customizations(c: Customizations) -> List[str]:
    errors = []
    if not validate_dimensions(c.width_cm, c.depth_cm, c.height_cm):
        errors.append(
            "Dimensions out of range: width {}-{}cm, depth {}-{}cm, height {}-{}cm".format(
                *WIDTH_RANGE_CM, *DEPTH_RANGE_CM, *HEIGHT_RANGE_CM
            )
        )
    if not validate_material(c.material):
        errors.append(f"Unsupported material: {c.material}")
    if c.calculated_price < 0:
        errors.append("calculated_price must not be negative")
    if not c.name or not c.name.strip():
        errors.append("Design name is required")
    return errors


def parse_cart_item(
    raw: Union[CartItemData, Mapping[str, Any]]
) -> Tuple[Optional[CartItemData], List[str]]:
    """Parse and validate a cart item.

    Returns the parsed item and an empty list, or ``None`` and the list of
    human-readable problems.
    """
    if isinstance(raw, CartItemData):
        item = raw
    else:
        try:
            item = CartItemData.model_validate(raw)
        except SchemaError as e:
            errors = []
            for err in e.errors():
                loc = ".".join(str(p) for p in err["loc"])
                errors.append(f"{loc}: {err['msg']}")
            return None, errors

    errors = []
    if not item.design_id or not item.design_id.strip():
        errors.append("A valid design ID is required")
    if not _in_range(item.quantity, QUANTITY_RANGE):
        errors.append("Quantity must be between {} and {}".format(*QUANTITY_RANGE))
    errors.extend(validate_customizations(item.customizations))

    if errors:
        return None, errors
    return item, []
