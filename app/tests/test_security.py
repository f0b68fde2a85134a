import re

import jwt

from app.core.config import get_settings
from app.core.security import (
    create_access,
    generate_raw_token,
    hash_password,
    hash_token,
    verify_password,
)

URL_SAFE = re.compile(r"^[A-Za-z0-9_-]+$")


def test_generated_tokens_are_url_safe_and_long_enough():
    token = generate_raw_token()

    # 32 random bytes encode to 43 base64url characters without padding.
    assert len(token) >= 43
    assert URL_SAFE.match(token)


def test_generated_tokens_do_not_repeat():
    tokens = {generate_raw_token() for _ in range(200)}
    assert len(tokens) == 200


def test_hash_token_is_lowercase_sha256_hex():
    digest = hash_token("abc")

    assert digest == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    assert len(digest) == 64
    assert digest == digest.lower()


def test_hash_token_is_deterministic_and_differs_from_input():
    raw = generate_raw_token()

    assert hash_token(raw) == hash_token(raw)
    assert hash_token(raw) != raw
    assert hash_token(raw) != hash_token(raw + "x")


def test_password_hash_round_trip():
    hashed = hash_password("ValidP@ss1")

    assert hashed != "ValidP@ss1"
    assert verify_password("ValidP@ss1", hashed)
    assert not verify_password("ValidP@ss2", hashed)
    assert not verify_password("ValidP@ss1", "not-an-argon2-hash")


def test_access_token_carries_role_and_tenant():
    settings = get_settings()
    token = create_access("user-1", "owner", "tenant-1")

    payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algo])
    assert payload["sub"] == "user-1"
    assert payload["role"] == "owner"
    assert payload["tid"] == "tenant-1"
    assert payload["exp"] > payload["iat"]
