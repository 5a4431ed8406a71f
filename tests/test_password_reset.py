from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from seshprep.database import get_db
from seshprep.dependencies import get_mailer
from seshprep.errors import InvalidRecoveryCredential, ValidationFailed
from seshprep.main import app
from seshprep.security import verify_password
from seshprep.services import recovery
from seshprep.services.accounts import authenticate
from seshprep.utils.timeutils import utcnow


@pytest.fixture
def client(db_session: Session, mailer):
    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_mailer] = lambda: mailer
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_unknown_email_sends_nothing(db_session: Session, mailer):
    assert recovery.request_recovery(db_session, mailer, "nobody@example.com") is None
    assert mailer.outbox == []


def test_request_mails_link_and_code(db_session: Session, make_user, mailer):
    make_user("singer@example.com")

    issue = recovery.request_recovery(db_session, mailer, "  Singer@Example.com ")

    assert issue is not None
    [message] = mailer.outbox
    assert message.to_email == "singer@example.com"
    assert issue.otp in message.text_content
    assert "/reset-password?token_hash=" in issue.reset_url
    assert "type=recovery" in issue.reset_url
    # only digests are stored
    assert issue.grant.link_digest != issue.token_hash
    assert issue.grant.otp_digest != issue.otp


def test_link_token_works_once(db_session: Session, make_user, mailer):
    user = make_user("singer@example.com")
    issue = recovery.request_recovery(db_session, mailer, user.email)

    session = recovery.open_recovery_session(db_session, recovery.TokenHash(issue.token_hash))

    assert session.user.id == user.id
    assert session.access_token and session.refresh_token
    with pytest.raises(InvalidRecoveryCredential):
        recovery.open_recovery_session(db_session, recovery.TokenHash(issue.token_hash))


@pytest.mark.parametrize("variant", ["code", "otp"])
def test_code_and_otp_open_a_session(db_session: Session, make_user, mailer, variant):
    user = make_user("singer@example.com")
    issue = recovery.request_recovery(db_session, mailer, user.email)
    credential = recovery.Code(issue.code) if variant == "code" else recovery.Otp(issue.otp, "SINGER@example.com")

    session = recovery.open_recovery_session(db_session, credential)

    assert session.user.id == user.id


def test_wrong_otp_is_rejected(db_session: Session, make_user, mailer):
    user = make_user("singer@example.com")
    issue = recovery.request_recovery(db_session, mailer, user.email)
    wrong = "000000" if issue.otp != "000000" else "111111"

    with pytest.raises(InvalidRecoveryCredential):
        recovery.open_recovery_session(db_session, recovery.Otp(wrong, user.email))


def test_token_pair_sets_password_once(db_session: Session, make_user, mailer):
    user = make_user("singer@example.com", password="old-password")
    issue = recovery.request_recovery(db_session, mailer, user.email)
    session = recovery.open_recovery_session(db_session, recovery.Code(issue.code))
    pair = recovery.TokenPair(session.access_token, session.refresh_token)

    recovery.update_password(db_session, pair, "brand-new-password")
    db_session.commit()

    assert verify_password("brand-new-password", user.password_hash)
    assert authenticate(db_session, user.email, "brand-new-password").id == user.id
    with pytest.raises(InvalidRecoveryCredential):
        recovery.update_password(db_session, pair, "another-password")


def test_forged_refresh_token_is_rejected(db_session: Session, make_user, mailer):
    user = make_user("singer@example.com")
    issue = recovery.request_recovery(db_session, mailer, user.email)
    session = recovery.open_recovery_session(db_session, recovery.TokenHash(issue.token_hash))

    with pytest.raises(InvalidRecoveryCredential):
        recovery.open_recovery_session(db_session, recovery.TokenPair(session.access_token, "not-the-refresh"))


def test_expired_grant_is_rejected(db_session: Session, make_user, mailer):
    user = make_user("singer@example.com")
    issued_at = utcnow() - timedelta(hours=2)
    issue = recovery.request_recovery(db_session, mailer, user.email, now=issued_at)

    with pytest.raises(InvalidRecoveryCredential) as exc:
        recovery.open_recovery_session(db_session, recovery.TokenHash(issue.token_hash))
    assert exc.value.message == "Invalid or expired recovery token"


def test_weak_password_is_rejected(db_session: Session, make_user, mailer):
    user = make_user("singer@example.com")
    issue = recovery.request_recovery(db_session, mailer, user.email)

    with pytest.raises(ValidationFailed):
        recovery.update_password(db_session, recovery.TokenHash(issue.token_hash), "123")


def test_credential_precedence():
    assert recovery.credential_from_params(
        token_hash="h", code="c", access_token="a", refresh_token="r"
    ) == recovery.TokenPair("a", "r")
    assert recovery.credential_from_params(token_hash="h", code="c") == recovery.TokenHash("h")
    assert recovery.credential_from_params(token="123456", email="a@b.co", code="c") == recovery.Otp("123456", "a@b.co")
    assert recovery.credential_from_params(code="c") == recovery.Code("c")
    with pytest.raises(InvalidRecoveryCredential):
        recovery.credential_from_params(token="123456")


def test_request_endpoint_answers_the_same_for_unknown_accounts(client: TestClient, make_user, mailer):
    make_user("singer@example.com")

    known = client.post("/password-reset/request", json={"email": "singer@example.com"})
    unknown = client.post("/password-reset/request", json={"email": "ghost@example.com"})

    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()
    assert len(mailer.outbox) == 1


def test_session_endpoint_requires_a_credential(client: TestClient):
    response = client.get("/password-reset/session")

    assert response.status_code == 400
    assert response.json()["detail"] == "Missing or invalid recovery credentials"


def test_reset_flow_over_http(client: TestClient, db_session: Session, make_user, mailer):
    user = make_user("singer@example.com")
    issue = recovery.request_recovery(db_session, mailer, user.email)
    db_session.commit()

    opened = client.get("/password-reset/session", params={"token_hash": issue.token_hash})
    assert opened.status_code == 200
    tokens = opened.json()

    updated = client.post(
        "/password-reset/update",
        json={
            "password": "brand-new-password",
            "access_token": tokens["access_token"],
            "refresh_token": tokens["refresh_token"],
        },
    )
    assert updated.status_code == 200

    login = client.post("/auth/login", json={"email": user.email, "password": "brand-new-password"})
    assert login.status_code == 200

    # recovery tokens are not sign-in tokens
    me = client.get("/users/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
    assert me.status_code == 401
