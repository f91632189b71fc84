import reset_password

from .conftest import API


def test_reset_password(client, make_user):
    user = make_user(email="forgot@example.com")
    assert reset_password.main(["--email", "FORGOT@example.com", "--password", "brand-new-pass"]) == 0

    old = client.post(f"{API}/users/login", json={"email": user["email"], "password": "secret123"})
    assert old.status_code == 401
    new = client.post(f"{API}/users/login", json={"email": user["email"], "password": "brand-new-pass"})
    assert new.status_code == 200


def test_reset_password_errors(client):
    assert reset_password.main(["--email", "ghost@example.com", "--password", "brand-new-pass"]) == 2
    assert reset_password.main(["--email", "ghost@example.com", "--password", "123"]) == 1
