import base64
import json
import time

from cityguard_api.app.core.security import (
    REFRESH_TOKEN,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)

from .conftest import API


def test_access_token_round_trip():
    token = create_access_token({"sub": "7", "role": "OWNER"})
    payload = decode_token(token)
    assert payload["sub"] == "7"
    assert payload["role"] == "OWNER"
    assert payload["type"] == "access"
    assert payload["exp"] > time.time()


def test_token_header_names_hmac_sha256():
    header = create_access_token({"sub": "7"}).split(".")[0]
    decoded = json.loads(base64.urlsafe_b64decode(header + "=" * (-len(header) % 4)))
    assert decoded == {"alg": "HS256", "typ": "JWT"}


def test_tampered_token_is_rejected():
    token = create_access_token({"sub": "7", "role": "USER"})
    header, payload, signature = token.split(".")
    forged = create_access_token({"sub": "7", "role": "ADMIN"}).split(".")[1]
    assert decode_token(f"{header}.{forged}.{signature}") is None
    assert decode_token("not-a-token") is None


def test_expired_token_is_rejected():
    token = create_access_token({"sub": "1"}, expires_delta=-10)
    assert decode_token(token) is None


def test_refresh_token_is_not_an_access_token():
    token, jti, exp = create_refresh_token(3)
    assert decode_token(token) is None
    payload = decode_token(token, expected_type=REFRESH_TOKEN)
    assert payload["jti"] == jti
    assert payload["exp"] == exp


def test_password_hashing():
    hashed = hash_password("secret123")
    assert hashed != hash_password("secret123")
    assert verify_password("secret123", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("secret123", "garbage")
    assert not verify_password("secret123", None)


def test_missing_token_gives_401_envelope(client):
    resp = client.get(f"{API}/users/me")
    assert resp.status_code == 401
    body = resp.json()
    assert body["success"] is False
    assert body["message"]


def test_token_of_deactivated_user_is_rejected(client, admin, regular_user):
    resp = client.patch(
        f"{API}/users/{regular_user['id']}", json={"isActive": False}, headers=admin["headers"]
    )
    assert resp.status_code == 200
    assert client.get(f"{API}/users/me", headers=regular_user["headers"]).status_code == 401


def test_role_gate(client, regular_user):
    resp = client.get(f"{API}/users/", headers=regular_user["headers"])
    assert resp.status_code == 403
    assert resp.json()["success"] is False


def test_health(client):
    resp = client.get(f"{API}/health/")
    assert resp.status_code == 200
    assert resp.json()["data"]["database"] == "ok"
