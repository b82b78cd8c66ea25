from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.api.deps import DBSession
from app.infra.models import UserORM, UserRole
from app.services.security import decode_access_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def _user_from_token(token: Optional[str], db: Session) -> Optional[UserORM]:
    if not token:
        return None
    payload = decode_access_token(token)
    if payload is None:
        return None
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        return None
    return db.get(UserORM, user_id)


def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = DBSession,
) -> UserORM:
    user = _user_from_token(token, db)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token inválido ou expirado.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_optional_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = DBSession,
) -> Optional[UserORM]:
    # rotas públicas: token inválido vira anônimo
    return _user_from_token(token, db)


def require_admin(user: UserORM = Depends(get_current_user)) -> UserORM:
    if user.role != UserRole.ADMIN:
        raise HTTPException(status_code=403, detail="Acesso restrito a administradores.")
    return user


def is_admin(user: Optional[UserORM]) -> bool:
    return user is not None and user.role == UserRole.ADMIN
