import pytest
from cryptography.fernet import Fernet
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import text

from auth_utils import create_access_token, decode_access_token, hash_password, verify_password
from dependencies import limiter
from encryption import EncryptedString
from schemas import TaskCreate, UserCreate, UserUpdate


# --- Test 1: Security Headers ---
def test_security_headers(client):
    response = client.get("/health")
    assert response.status_code == 200
    headers = response.headers
    assert "default-src 'self'" in headers["content-security-policy"]
    assert headers.get("x-content-type-options") == "nosniff"
    assert headers.get("x-frame-options") == "DENY"


def test_untrusted_host_is_rejected(client):
    response = client.get("/health", headers={"Host": "evil.example.org"})
    assert response.status_code == 400


# --- Test 2: Input Sanitization (Bleach / XSS) ---
def test_input_sanitization():
    unsafe_input = "<script>alert('XSS')</script>Meeting<b onmouseover=alert(1)>bold</b>"
    task = TaskCreate(title=unsafe_input, tags=["<i>work</i>"])
    assert "<script>" not in task.title
    assert "<b>" not in task.title
    assert "Meeting" in task.title
    assert "bold" in task.title
    assert task.tags == ["work"]


@pytest.mark.parametrize("email", ["a b@c.de", "x@@y.de", "<script>@example.com", "kein-at-zeichen", "user@nodot"])
def test_malformed_email_is_rejected(email):
    with pytest.raises(PydanticValidationError):
        UserCreate(email=email, password="secret1", name="n")


def test_admin_user_update_treats_empty_email_as_unchanged():
    update = UserUpdate(name="", email="")
    assert update.name is None
    assert update.email is None
    with pytest.raises(PydanticValidationError):
        UserUpdate(email="x@@y.de")


def test_register_with_malformed_email_is_validation_error(client):
    res = client.post("/api/auth/register", json={"email": "a b@c", "password": "secret123", "name": "Ann"})
    assert res.status_code == 400
    assert res.json()["kind"] == "validation_error"
    assert "email" in res.json()["detail"]


# --- Test 3: Encryption at rest ---
def test_encrypted_string_round_trip():
    column_type = EncryptedString(key=Fernet.generate_key())
    stored = column_type.process_bind_param("Geheime Nutzerdaten 123", None)
    assert "Geheime" not in stored
    assert column_type.process_result_value(stored, None) == "Geheime Nutzerdaten 123"


def test_encrypted_string_passes_through_legacy_plaintext():
    column_type = EncryptedString(key=Fernet.generate_key())
    assert column_type.process_result_value("alter Klartext", None) == "alter Klartext"


def test_task_title_is_encrypted_in_database(task_service, db, make_user, principal_of):
    owner = make_user("Alice")
    task = task_service.create_task(principal_of(owner), TaskCreate(title="Streng geheim", description="Details"))

    raw_title, raw_description = db.execute(
        text("SELECT title, description FROM tasks WHERE id = :id"), {"id": task.id}
    ).one()
    assert "Streng geheim" not in raw_title
    assert "Details" not in raw_description
    assert task_service.get_task(principal_of(owner), task.id).title == "Streng geheim"


# --- Test 4: Tokens & Passwords ---
def test_password_hashing():
    hashed = hash_password("testpassword123")
    assert hashed != "testpassword123"
    assert verify_password("testpassword123", hashed)
    assert not verify_password("falsch", hashed)


def test_token_round_trip_and_forgery():
    token = create_access_token("user-1", "user")
    identity = decode_access_token(token)
    assert identity.subject_id == "user-1"
    assert identity.role == "user"

    assert decode_access_token(token + "x") is None
    assert decode_access_token("") is None
    assert decode_access_token(None) is None


def test_expired_token_is_rejected():
    assert decode_access_token(create_access_token("user-1", "user", expires_minutes=-1)) is None


def test_missing_token_is_unauthenticated_not_forbidden(client):
    response = client.get("/api/tasks")
    assert response.status_code == 401
    assert response.json()["kind"] == "unauthenticated"


def test_token_for_unknown_user_is_unauthenticated(client):
    headers = {"Authorization": f"Bearer {create_access_token('ghost', 'admin')}"}
    response = client.get("/api/admin/users", headers=headers)
    assert response.status_code == 401


def test_role_claim_in_token_is_not_trusted(client, make_user):
    # Token behauptet admin, gespeicherte Rolle ist user
    user = make_user("Mallory")
    headers = {"Authorization": f"Bearer {create_access_token(user.id, 'admin')}"}
    assert client.get("/api/admin/users", headers=headers).status_code == 403


# --- Test 5: Rate Limiting ---
def test_rate_limiting_login(client):
    """The login endpoint answers 429 once the per-minute limit is used up."""
    limiter.reset()
    limiter.enabled = True
    payload = {"email": "attacker@example.com", "password": "wrongpassword"}
    try:
        statuses = [client.post("/api/auth/login", json=payload).status_code for _ in range(15)]
    finally:
        limiter.enabled = False
        limiter.reset()

    assert 429 in statuses
    assert statuses[0] == 401
