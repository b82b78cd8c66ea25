# app/api/routers/health.py
from __future__ import annotations

import time
from typing import Any

from fastapi import APIRouter, Response
from sqlalchemy import text

from app.api.deps import Storage
from app.config import settings
from app.infra.db import engine
from app.infra.storage_s3 import S3Storage

router = APIRouter()


def _safe_err(e: Exception) -> str:
    s = str(e) or e.__class__.__name__
    # evita vazar url/credenciais (best effort)
    for k in ("postgres://", "postgresql://", "postgresql+psycopg2://"):
        if k in s:
            s = "db_error"
    return s[:300]


@router.head("/health", include_in_schema=False)
def health_head() -> Response:
    # monitores costumam usar HEAD. Retorna só status/headers.
    return Response(status_code=200)


@router.get("/health")
def health(storage: S3Storage = Storage) -> dict[str, Any]:
    started = time.time()

    # 1) DB check
    db_ok = False
    db_error: str | None = None
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        db_ok = True
    except Exception as e:
        db_error = _safe_err(e)

    # 2) (Opcional) storage check, habilita com HEALTH_CHECK_STORAGE=1
    storage_ok: bool | None = None
    storage_error: str | None = None
    if settings.HEALTH_CHECK_STORAGE:
        try:
            storage.ping()
            storage_ok = True
        except Exception as e:
            storage_ok = False
            storage_error = _safe_err(e)

    ok = db_ok and (storage_ok in (None, True))
    elapsed_ms = int((time.time() - started) * 1000)

    return {
        "ok": ok,
        "db": {"ok": db_ok, "error": db_error},
        "storage": (None if storage_ok is None else {"ok": storage_ok, "error": storage_error}),
        "elapsed_ms": elapsed_ms,
    }
