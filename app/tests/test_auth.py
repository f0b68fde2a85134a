from urllib.parse import parse_qs, urlparse

from sqlalchemy import select

from app.models.users import ROLE_OWNER, Account, Invitation, User, as_utc, utcnow

API = "/api/v1/auth"


def test_login_returns_token_usable_as_bearer(client, owner, owner_password):
    response = client.post(
        f"{API}/login", json={"email": "Owner@Example.com", "password": owner_password}
    )

    assert response.status_code == 200
    assert response.headers["Cache-Control"] == "no-store"
    access = response.json()["access_token"]

    client.cookies.clear()
    me = client.get(f"{API}/me", headers={"Authorization": f"Bearer {access}"})
    assert me.status_code == 200
    assert me.json()["email"] == "owner@example.com"
    assert me.json()["account_id"] == str(owner.account_id)


def test_login_rejects_wrong_password(client, owner):
    response = client.post(
        f"{API}/login", json={"email": owner.email, "password": "Wrong@Pass1"}
    )

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid credentials"


def test_malformed_authorization_header_is_unauthorized(client, owner):
    response = client.get(f"{API}/me", headers={"Authorization": "Token abc"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid authorization header"


def test_garbage_bearer_token_is_unauthorized(client):
    response = client.get(f"{API}/me", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401


def test_invite_then_register_end_to_end(
    client, db_session, owner, owner_password, sent_emails
):
    login = client.post(
        f"{API}/login", json={"email": owner.email, "password": owner_password}
    )
    owner_token = login.json()["access_token"]
    client.cookies.clear()

    invite = client.post(
        f"{API}/invite",
        json={"email": "new@example.com"},
        headers={"Authorization": f"Bearer {owner_token}"},
    )
    assert invite.status_code == 200
    assert invite.json()["success"] is True

    db_session.expire_all()
    invitation = db_session.execute(select(Invitation)).scalar_one()
    assert invitation.accepted_at is None
    assert as_utc(invitation.expires_at) > utcnow()

    [email] = sent_emails
    raw_token = parse_qs(urlparse(email["link"]).query)["token"][0]
    assert invitation.token_hash != raw_token

    register = client.post(
        f"{API}/register", json={"token": raw_token, "password": "ValidP@ss1"}
    )
    assert register.status_code == 201
    user_id = register.json()["userId"]

    db_session.expire_all()
    new_user = db_session.execute(
        select(User).where(User.email == "new@example.com")
    ).scalar_one()
    assert str(new_user.id) == user_id
    assert new_user.role == ROLE_OWNER
    assert new_user.email_verified is True
    new_account = db_session.get(Account, new_user.account_id)
    assert new_account.name == "new"
    assert new_account.id != owner.account_id
    assert db_session.get(Invitation, invitation.id).accepted_at is not None

    # The invitee can sign in right away and invite others from their own account.
    invitee_login = client.post(
        f"{API}/login", json={"email": "new@example.com", "password": "ValidP@ss1"}
    )
    assert invitee_login.status_code == 200
    invitee_token = invitee_login.json()["access_token"]
    client.cookies.clear()

    listing = client.get(
        f"{API}/invitations", headers={"Authorization": f"Bearer {invitee_token}"}
    )
    assert listing.status_code == 200
    assert listing.json() == []


def test_health_reports_ok(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
