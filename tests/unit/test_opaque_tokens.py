"""Tests for opaque cart IDs and auth tokens."""
import pytest

from cartcommit.domain.security.codec import CryptoCodec
from cartcommit.domain.security.tokens import CART_ID_PREFIX, OpaqueTokenCodec, b64u_encode

KEY = bytes(range(32))
NOW = 1_700_000_000.0


class FakeClock:
    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tokens(clock):
    return OpaqueTokenCodec(CryptoCodec(KEY), clock=clock)


def _alter(token: str, index: int) -> str:
    c = token[index]
    replacement = "A" if c != "A" else "B"
    return token[:index] + replacement + token[index + 1:] if index != -1 else token[:-1] + replacement


def test_cart_id_roundtrip(tokens):
    token = tokens.encode_cart_id("u1", "d1", 1_699_999_999_000)

    assert token.startswith(CART_ID_PREFIX)
    claims = tokens.decode_cart_id(token)
    assert claims.is_valid is True
    assert claims.user_id == "u1"
    assert claims.design_id == "d1"
    assert claims.timestamp == 1_699_999_999_000


def test_cart_id_default_timestamp_uses_clock(tokens):
    claims = tokens.decode_cart_id(tokens.encode_cart_id("u1", "d1"))
    assert claims.timestamp == int(NOW * 1000)


def test_cart_id_is_opaque_and_unique(tokens):
    a = tokens.encode_cart_id("u1", "d1", 1)
    b = tokens.encode_cart_id("u1", "d1", 1)
    assert a != b
    assert "u1" not in a and "d1" not in a


@pytest.mark.parametrize("cut", [1, 2, 3, 4, 7, 20])
def test_truncated_cart_id_is_invalid(tokens, cut):
    token = tokens.encode_cart_id("u1", "d1", 1)
    claims = tokens.decode_cart_id(token[:-cut])
    assert claims.is_valid is False
    assert claims.user_id == ""


@pytest.mark.parametrize("index", [-2, -3, -6, 10, 40])
def test_altered_cart_id_is_invalid(tokens, index):
    token = tokens.encode_cart_id("u1", "d1", 1)
    assert tokens.decode_cart_id(_alter(token, index)).is_valid is False


@pytest.mark.parametrize("token", ["", "cart_", "cart_!!!!", "notacart", None, 123, "cart_e30"])
def test_garbage_cart_id_never_raises(tokens, token):
    assert tokens.decode_cart_id(token).is_valid is False


def test_cart_id_from_other_key_is_invalid(tokens):
    other = OpaqueTokenCodec(CryptoCodec(bytes(32)))
    assert tokens.decode_cart_id(other.encode_cart_id("u1", "d1", 1)).is_valid is False


def test_token_kinds_are_not_interchangeable(tokens):
    cart_token = tokens.encode_cart_id("u1", "d1", 1)
    auth_token = tokens.encode_auth_token("u1", cart_token)

    assert tokens.decode_auth_token(cart_token[len(CART_ID_PREFIX):]).is_valid is False
    assert tokens.decode_cart_id(CART_ID_PREFIX + auth_token).is_valid is False


def test_auth_token_roundtrip(tokens):
    token = tokens.encode_auth_token("u1", "cart_abc", expires_in_seconds=60)
    claims = tokens.decode_auth_token(token)

    assert claims.is_valid is True
    assert claims.is_expired is False
    assert claims.user_id == "u1"
    assert claims.cart_id == "cart_abc"
    assert claims.expires_at == int(NOW * 1000) + 60_000


def test_auth_token_default_ttl(tokens):
    claims = tokens.decode_auth_token(tokens.encode_auth_token("u1", "c1"))
    assert claims.expires_at == int(NOW * 1000) + 3600 * 1000


def test_auth_token_negative_ttl_is_expired(tokens):
    claims = tokens.decode_auth_token(tokens.encode_auth_token("u1", "c1", expires_in_seconds=-1))
    assert claims.is_expired is True
    assert claims.is_valid is False
    assert claims.user_id == "u1"


def test_auth_token_expiry_judged_at_verification(tokens, clock):
    token = tokens.encode_auth_token("u1", "c1", expires_in_seconds=10)

    clock.now = NOW + 10
    assert tokens.decode_auth_token(token).is_valid is True

    clock.now = NOW + 11
    claims = tokens.decode_auth_token(token)
    assert claims.is_expired is True
    assert claims.is_valid is False


@pytest.mark.parametrize("token", ["", "garbage", "e30", None])
def test_garbage_auth_token_never_raises(tokens, token):
    claims = tokens.decode_auth_token(token)
    assert claims.is_valid is False
    assert claims.user_id is None


@pytest.mark.parametrize("depth", [1500, 5000])
def test_deeply_nested_envelope_is_invalid(tokens, depth):
    body = b64u_encode(b"[" * depth)

    assert tokens.decode_cart_id(CART_ID_PREFIX + body).is_valid is False
    assert tokens.decode_auth_token(body).is_valid is False


def test_oversized_token_is_invalid(tokens):
    assert tokens.decode_auth_token("A" * 10_000).is_valid is False
