from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dotenv import load_dotenv
load_dotenv()

from app.config import settings
from app.infra.db import engine, SessionLocal
from app.infra.models import Base, UserORM, UserRole
from app.infra.observability import RequestLoggingMiddleware, setup_logging
from app.services.security import hash_password
from app.api.error_handlers import register_error_handlers

from app.api.routers.auth import router as auth_router
from app.api.routers.health import router as health_router
from app.api.routers.products import router as products_router
from app.api.routers.variations import router as variations_router
from app.api.routers.site_settings import router as site_settings_router

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

ALLOW_ORIGINS_LIST = settings.allowed_origins


app = FastAPI(title="Storefront Catalog API")

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOW_ORIGINS_LIST,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)

register_error_handlers(app)

logger.info("[CORS] allow_origins = %s", ALLOW_ORIGINS_LIST)


def ensure_admin(db: Session) -> None:
    """
    Cria um usuário admin caso não exista.
    Configure via variáveis de ambiente:
      ADMIN_EMAIL, ADMIN_PASSWORD, ADMIN_NAME
    """
    email = settings.ADMIN_EMAIL.strip().lower()
    password = settings.ADMIN_PASSWORD.strip()
    name = settings.ADMIN_NAME.strip()

    if not email or not password:
        logger.warning("[startup] admin vars inválidas; pulando criação do admin")
        return

    existing = db.query(UserORM).filter(UserORM.email == email).first()
    if existing:
        return

    user = UserORM(
        name=name,
        email=email,
        password_hash=hash_password(password),
        role=UserRole.ADMIN,
    )
    db.add(user)
    try:
        db.commit()
        logger.info("[startup] admin criado")
    except IntegrityError:
        db.rollback()
        # corrida entre instâncias subindo juntas
        logger.info("[startup] admin já existe")


@app.on_event("startup")
def _startup() -> None:
    logger.info("[startup] creating tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("[startup] tables created/checked")

    db = SessionLocal()
    try:
        ensure_admin(db)
    finally:
        db.close()


app.include_router(health_router, tags=["health"])
app.include_router(auth_router, prefix="/auth", tags=["auth"])
app.include_router(products_router, prefix="/products", tags=["products"])
app.include_router(variations_router, prefix="/variations", tags=["variations"])
app.include_router(site_settings_router, prefix="/site-settings", tags=["site-settings"])
