"""Tests for cart item validation, transformation and egress redaction."""
import copy

import pytest

from cartcommit.domain.cart.models import CartItemData, CartOutcome
from cartcommit.domain.cart.transformer import parse_external_response, to_external_cart_item
from cartcommit.domain.cart.validation import parse_cart_item, validate_dimensions, validate_material
from cartcommit.domain.redaction import MASK, mask_sensitive_data, redact_for_external
from cartcommit.errors import LOCAL_FAILURES, InternalError, NotFoundError, PriceMismatchError

VALID_ITEM = {
    "designId": "d1",
    "quantity": 1,
    "customizations": {
        "width_cm": 120,
        "depth_cm": 60,
        "height_cm": 75,
        "material": "wood",
        "calculated_price": 116700,
        "price_breakdown": {
            "base_price": 50000,
            "material_modifier": 1.0,
            "volume_m3": 0.54,
            "total": 116700,
        },
        "name": "My Desk",
        "color": "walnut",
    },
}


def _item(**customizations):
    data = copy.deepcopy(VALID_ITEM)
    data["customizations"].update(customizations)
    return data


def test_valid_item_parses():
    item, errors = parse_cart_item(VALID_ITEM)
    assert errors == []
    assert isinstance(item, CartItemData)
    assert item.design_id == "d1"
    assert item.customizations.price_breakdown.currency == "KRW"


def test_snake_case_design_id_accepted():
    data = copy.deepcopy(VALID_ITEM)
    data["design_id"] = data.pop("designId")
    item, errors = parse_cart_item(data)
    assert errors == []
    assert item.design_id == "d1"


def test_quantity_defaults_to_one():
    data = copy.deepcopy(VALID_ITEM)
    del data["quantity"]
    item, _ = parse_cart_item(data)
    assert item.quantity == 1


@pytest.mark.parametrize("overrides", [
    {"width_cm": 59},
    {"width_cm": 301},
    {"depth_cm": 39},
    {"depth_cm": 201},
    {"height_cm": 59},
    {"height_cm": 121},
    {"material": "plastic"},
    {"name": "   "},
    {"calculated_price": -1},
])
def test_out_of_range_customizations_rejected(overrides):
    item, errors = parse_cart_item(_item(**overrides))
    assert item is None
    assert errors


@pytest.mark.parametrize("quantity", [0, 11, -1])
def test_quantity_range(quantity):
    data = copy.deepcopy(VALID_ITEM)
    data["quantity"] = quantity
    item, errors = parse_cart_item(data)
    assert item is None
    assert any("Quantity" in e for e in errors)


def test_blank_design_id_rejected():
    data = copy.deepcopy(VALID_ITEM)
    data["designId"] = " "
    item, errors = parse_cart_item(data)
    assert item is None
    assert "A valid design ID is required" in errors


def test_price_breakdown_requires_fields():
    data = copy.deepcopy(VALID_ITEM)
    del data["customizations"]["price_breakdown"]["volume_m3"]
    item, errors = parse_cart_item(data)
    assert item is None
    assert any("volume_m3" in e for e in errors)


def test_non_numeric_dimension_rejected():
    item, errors = parse_cart_item(_item(width_cm="wide"))
    assert item is None
    assert any("width_cm" in e for e in errors)


def test_boundaries_inclusive():
    assert validate_dimensions(60, 40, 60) is True
    assert validate_dimensions(300, 200, 120) is True
    assert validate_material("glass") is True
    assert validate_material("Glass") is False


def test_external_item_projection():
    item, _ = parse_cart_item(VALID_ITEM)
    external = to_external_cart_item(item)

    assert external.product_id == "custom_desk"
    assert external.product_name == "My Desk"
    assert external.unit_price == 116700
    assert external.total_price == 116700
    assert external.custom_options.dimensions == "120cm x 60cm x 75cm"
    assert external.custom_options.material == "Solid wood"
    specs = external.custom_options.specifications
    assert "Volume: 0.540m3" in specs
    assert "Color: walnut" in specs
    assert "Unit price: 116,700 KRW" in specs
    assert "Material modifier" not in specs


def test_external_item_never_carries_identifiers():
    item, _ = parse_cart_item(VALID_ITEM)
    dumped = to_external_cart_item(item).model_dump(mode="json")
    flat = repr(dumped)
    assert "d1" not in flat
    assert "design" not in flat.lower()


def test_total_price_scales_with_quantity():
    data = copy.deepcopy(VALID_ITEM)
    data["quantity"] = 3
    item, _ = parse_cart_item(data)
    assert to_external_cart_item(item).total_price == 350100


def test_redact_for_external_drops_internal_and_sensitive_keys():
    payload = {
        "product_name": "Desk",
        "user_id": "u1",
        "designId": "d1",
        "custom_options": {
            "material": "wood",
            "auth_token": "t",
            "nested": [{"apiKey": "k", "keep": 1}],
        },
        "session_id": "s",
        "Password": "p",
    }
    assert redact_for_external(payload) == {
        "product_name": "Desk",
        "custom_options": {"material": "wood", "nested": [{"keep": 1}]},
    }


def test_mask_sensitive_data_keeps_shape():
    masked = mask_sensitive_data({"api_key": "k", "items": [{"secret": "s", "name": "n"}]})
    assert masked == {"api_key": MASK, "items": [{"secret": MASK, "name": "n"}]}


@pytest.mark.parametrize("response,expected", [
    ({"success": True, "cart_id": "c1", "redirect_url": "https://x/c1"}, ("c1", "https://x/c1")),
    ({"status": "success", "cartId": "c2", "redirectUrl": "https://x/c2"}, ("c2", "https://x/c2")),
    ({"success": True, "id": "c3", "checkout_url": "https://x/c3"}, ("c3", "https://x/c3")),
])
def test_parse_external_response_success_spellings(response, expected):
    parsed = parse_external_response(response)
    assert parsed["success"] is True
    assert (parsed["cart_id"], parsed["redirect_url"]) == expected


def test_parse_external_response_failure():
    parsed = parse_external_response({"success": False, "message": "nope", "error_code": "INVALID_PRICE"})
    assert parsed == {"success": False, "error_code": "INVALID_PRICE", "error": "nope"}
    assert parse_external_response(None)["success"] is False


def test_outcome_serializes_camel_case():
    outcome = CartOutcome.failure("EXTERNAL_API_FAILED", "down", fallback=True, retry_url="/cart/retry/a1")
    body = outcome.to_response()
    assert body["retryUrl"] == "/cart/retry/a1"
    assert body["fallback"] is True
    assert body["error"]["code"] == "EXTERNAL_API_FAILED"
    assert "cartId" not in body
    assert outcome.error_code == "EXTERNAL_API_FAILED"


def test_outcome_from_typed_errors():
    mismatch = CartOutcome.from_error(PriceMismatchError("Price changed", details={"serverPrice": 116700}))
    assert mismatch.success is False
    assert mismatch.error_code == "PRICE_MISMATCH"
    assert mismatch.error.details == {"serverPrice": 116700}

    missing = CartOutcome.from_error(NotFoundError("gone", code="REQUEST_NOT_FOUND"))
    assert missing.error_code == "REQUEST_NOT_FOUND"
    assert missing.message == "gone"

    assert CartOutcome.from_error(InternalError("boom")).error_code == "INTERNAL_ERROR"
    assert not isinstance(InternalError("boom"), LOCAL_FAILURES)
