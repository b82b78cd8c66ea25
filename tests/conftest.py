"""Configuração compartilhada: SQLite em memória, storage falso e tokens."""
import os

# antes de importar o app: settings e engine são criados no import
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.infra.db import engine, SessionLocal
from app.infra.models import (
    Base,
    ProductORM,
    ProductVariationORM,
    SiteSettingORM,
    UserORM,
    UserRole,
)
from app.infra.storage_s3 import get_storage
from app.services.security import create_access_token

from fakes import FakeStorage


@pytest.fixture(autouse=True)
def _tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def storage():
    fake = FakeStorage()
    app.dependency_overrides[get_storage] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_storage, None)


@pytest.fixture
def client(storage):
    return TestClient(app)


def _make_user(email: str, role: UserRole) -> int:
    with SessionLocal() as s:
        user = UserORM(name=email.split("@")[0], email=email, password_hash="x", role=role)
        s.add(user)
        s.commit()
        return user.id


@pytest.fixture
def admin_id():
    return _make_user("admin@loja.test", UserRole.ADMIN)


@pytest.fixture
def admin_headers(admin_id):
    token = create_access_token(sub=str(admin_id), role=UserRole.ADMIN.value)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def customer_headers():
    user_id = _make_user("cliente@loja.test", UserRole.CUSTOMER)
    token = create_access_token(sub=str(user_id), role=UserRole.CUSTOMER.value)
    return {"Authorization": f"Bearer {token}"}


def add_product(**fields) -> int:
    values = {
        "name": "Produto",
        "price": Decimal("10"),
        "stock": 1,
        "sizes": [],
        "images": [],
        "is_active": True,
    }
    values.update(fields)
    with SessionLocal() as s:
        product = ProductORM(**values)
        s.add(product)
        s.commit()
        return product.id


def add_variation(product_id: int, **fields) -> int:
    values = {"name": "Variação", "price": Decimal("10"), "stock": 1, "images": [], "is_active": True}
    values.update(fields)
    with SessionLocal() as s:
        variation = ProductVariationORM(product_id=product_id, **values)
        s.add(variation)
        s.commit()
        return variation.id


def add_setting(key: str, value: str, type_: str = "text") -> None:
    with SessionLocal() as s:
        s.add(SiteSettingORM(key=key, value=value, type=type_))
        s.commit()


@pytest.fixture
def make_product():
    return add_product


@pytest.fixture
def make_variation():
    return add_variation


@pytest.fixture
def make_setting():
    return add_setting
