"""Login, tokens e health check."""
from app.config import settings
from app.infra.db import SessionLocal
from app.infra.models import UserORM, UserRole
from app.infra.storage_s3 import StorageError
from app.main import ensure_admin
from app.services.security import create_access_token, decode_access_token, hash_password


def _add_user(email, password, role=UserRole.CUSTOMER):
    with SessionLocal() as s:
        s.add(UserORM(name="Fulano", email=email, password_hash=hash_password(password), role=role))
        s.commit()


def test_login_returns_token(client):
    _add_user("ana@loja.test", "segredo123", role=UserRole.ADMIN)
    resp = client.post("/auth/login", json={"email": " Ana@Loja.test ", "password": "segredo123"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["token_type"] == "bearer"
    claims = decode_access_token(body["access_token"])
    assert claims["role"] == "ADMIN"
    with SessionLocal() as s:
        user = s.query(UserORM).filter(UserORM.email == "ana@loja.test").one()
    assert claims["sub"] == str(user.id)

    resp = client.get("/site-settings/initialize", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert resp.status_code == 200


def test_login_wrong_password(client):
    _add_user("ana@loja.test", "segredo123")
    resp = client.post("/auth/login", json={"email": "ana@loja.test", "password": "errada"})
    assert resp.status_code == 401
    assert resp.json() == {"error": "Credenciais inválidas."}


def test_expired_token_is_rejected(client, admin_id):
    token = create_access_token(sub=str(admin_id), role="ADMIN", expires_minutes=-5)
    resp = client.get("/site-settings/initialize", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert resp.headers["WWW-Authenticate"] == "Bearer"


def test_token_for_deleted_user_is_rejected(client):
    token = create_access_token(sub="999", role="ADMIN")
    resp = client.get("/site-settings/initialize", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


def test_ensure_admin_is_idempotent():
    with SessionLocal() as s:
        ensure_admin(s)
        ensure_admin(s)
        admins = s.query(UserORM).filter(UserORM.role == UserRole.ADMIN).all()
    assert len(admins) == 1
    assert admins[0].email == "admin@admin.com"


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True
    assert body["db"] == {"ok": True, "error": None}
    assert body["storage"] is None
    assert client.head("/health").status_code == 200


def test_unknown_route_uses_error_envelope(client):
    resp = client.get("/nao-existe")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Not Found"}


def test_responses_carry_request_id(client):
    resp = client.get("/health", headers={"X-Request-Id": "abc-123"})
    assert resp.headers["X-Request-Id"] == "abc-123"


def test_health_checks_storage_when_enabled(client, storage, monkeypatch):
    monkeypatch.setattr(settings, "HEALTH_CHECK_STORAGE", True)
    body = client.get("/health").json()
    assert body["ok"] is True
    assert body["storage"] == {"ok": True, "error": None}


def test_health_reports_storage_failure(client, storage, monkeypatch):
    def failing_ping():
        raise StorageError("Credenciais do storage não configuradas.")

    monkeypatch.setattr(settings, "HEALTH_CHECK_STORAGE", True)
    monkeypatch.setattr(storage, "ping", failing_ping)
    body = client.get("/health").json()
    assert body["ok"] is False
    assert body["storage"] == {"ok": False, "error": "Credenciais do storage não configuradas."}
