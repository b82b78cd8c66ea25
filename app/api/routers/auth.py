from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy import select

from app.api.deps import DBSession
from app.infra.models import UserORM
from app.schemas.auth import LoginIn, TokenOut
from app.services.security import verify_password, create_access_token

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/login", response_model=TokenOut)
def login(payload: LoginIn, db: Session = DBSession):
    email = payload.email.strip().lower()

    user = db.execute(select(UserORM).where(UserORM.email == email)).scalars().first()
    if not user or not verify_password(payload.password, user.password_hash):
        logger.warning("login recusado para %s", email)
        raise HTTPException(status_code=401, detail="Credenciais inválidas.")

    token = create_access_token(sub=str(user.id), role=user.role.value)
    return TokenOut(access_token=token)
