"""Tests for canonical JSON and integrity digests."""
import pytest

from cartcommit.domain.cart.models import PriceBreakdown
from cartcommit.domain.security.integrity import IntegrityHasher, canonical_json_bytes, canonicalize

ITEM = {
    "product_id": "custom_desk",
    "product_name": "My Desk",
    "quantity": 1,
    "unit_price": 116700,
    "custom_options": {"dimensions": "120cm x 60cm x 75cm", "material": "Solid wood"},
}


def test_digest_ignores_key_order():
    hasher = IntegrityHasher()
    reordered = {
        "custom_options": {"material": "Solid wood", "dimensions": "120cm x 60cm x 75cm"},
        "unit_price": 116700,
        "quantity": 1,
        "product_name": "My Desk",
        "product_id": "custom_desk",
    }
    assert hasher.digest(ITEM) == hasher.digest(reordered)


def test_digest_detects_price_change():
    hasher = IntegrityHasher()
    tampered = {**ITEM, "unit_price": 1000}
    assert hasher.digest(ITEM) != hasher.digest(tampered)


def test_digest_detects_nested_change():
    hasher = IntegrityHasher()
    tampered = {**ITEM, "custom_options": {**ITEM["custom_options"], "material": "Glass"}}
    assert hasher.digest(ITEM) != hasher.digest(tampered)


def test_digest_format():
    digest = IntegrityHasher().digest(ITEM)
    assert len(digest) == 64
    assert digest == digest.lower()
    int(digest, 16)


def test_integral_floats_hash_like_ints():
    hasher = IntegrityHasher()
    assert hasher.digest({"price": 116700.0}) == hasher.digest({"price": 116700})
    assert hasher.digest({"price": 116700.5}) != hasher.digest({"price": 116700})


def test_arrays_of_objects_are_order_independent():
    hasher = IntegrityHasher()
    a = {"items": [{"id": 2, "tags": ["b", "a"]}, {"id": 1, "tags": ["c"]}]}
    b = {"items": [{"tags": ["c"], "id": 1}, {"tags": ["a", "b"], "id": 2}]}
    assert hasher.digest(a) == hasher.digest(b)


def test_canonicalize_nested_arrays():
    assert canonicalize([[3, 1], [2]]) == [[1, 3], [2]]
    assert canonical_json_bytes({"b": 1, "a": [2, 1]}) == b'{"a":[1,2],"b":1}'


def test_canonicalize_keeps_unicode():
    assert canonical_json_bytes({"name": "책상"}) == '{"name":"책상"}'.encode("utf-8")


def test_canonicalize_pydantic_model():
    price = PriceBreakdown(base_price=50000, material_modifier=1.0, volume_m3=0.54, total=116700)
    data = canonicalize(price)
    assert data["total"] == 116700
    assert data["material_modifier"] == 1


def test_canonicalize_rejects_unknown_types():
    with pytest.raises(TypeError):
        canonicalize({"when": object()})


def test_verify():
    hasher = IntegrityHasher()
    digest = hasher.digest(ITEM)

    assert hasher.verify(ITEM, digest) is True
    assert hasher.verify(ITEM, digest.upper()) is True
    assert hasher.verify({**ITEM, "quantity": 2}, digest) is False
    assert hasher.verify(ITEM, "0" * 64) is False
    assert hasher.verify(ITEM, None) is False
    assert hasher.verify({"bad": object()}, digest) is False
    assert hasher.verify({"nan": float("nan")}, digest) is False
