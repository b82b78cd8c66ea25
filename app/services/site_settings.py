from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.infra.models import SettingType, SiteSettingORM
from app.infra.storage_s3 import S3Storage
from app.services.media import accessible_url

logger = logging.getLogger(__name__)

VIDEO_SETTING_KEY = "site_background_video_url"

DEFAULT_SETTINGS: list[tuple[str, str]] = [
    ("announcement_text", "Frete grátis em compras acima de R$ 199"),
    ("hero_banner_title", "Nova Coleção"),
    ("hero_banner_subtitle", "Até 70% OFF + 20% no primeiro pedido"),
    ("site_background_type", "color"),
    ("site_background_value", "#f5f5f5"),
    (VIDEO_SETTING_KEY, ""),
]

# sempre presentes na resposta pública, mesmo sem linha no banco
BACKGROUND_DEFAULTS = {
    "site_background_type": "color",
    "site_background_value": "#f5f5f5",
    VIDEO_SETTING_KEY: "",
}

# guardam a key do storage; a URL é resolvida a cada leitura
MEDIA_TYPES = frozenset({SettingType.IMAGE.value, SettingType.VIDEO.value})


@dataclass(frozen=True)
class MediaRule:
    pattern: re.Pattern
    max_bytes: int
    label: str
    extra_mimetypes: frozenset = frozenset()

    def accepts(self, filename: Optional[str], content_type: Optional[str]) -> bool:
        ext = extname(filename).lower()
        ct = (content_type or "").lower()
        ext_ok = bool(self.pattern.search(ext))
        ct_ok = bool(self.pattern.search(ct)) or ct in self.extra_mimetypes
        return ext_ok and ct_ok


IMAGE_RULE = MediaRule(
    pattern=re.compile(r"jpeg|jpg|png|gif|webp"),
    max_bytes=10 * 1024 * 1024,
    label="10MB",
)

VIDEO_RULE = MediaRule(
    pattern=re.compile(r"mp4|webm|ogg|avi|mov|wmv"),
    max_bytes=50 * 1024 * 1024,
    label="50MB",
    # mimetypes de .mov/.avi não contêm a extensão
    extra_mimetypes=frozenset({"video/quicktime", "video/x-msvideo", "video/avi"}),
)


def extname(filename: Optional[str]) -> str:
    """Extensão com o ponto (".png") ou "" quando não há."""
    return os.path.splitext(os.path.basename(filename or ""))[1]


def is_missing_table(e: SQLAlchemyError) -> bool:
    orig = getattr(e, "orig", None)
    if getattr(orig, "pgcode", None) == "42P01":
        return True
    msg = str(orig or e)
    return any(m in msg for m in ("does not exist", "no such table", "não existe"))


def as_text(value: Union[str, int, float, bool, None]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def resolve_value(storage: S3Storage, type_: str, value: Optional[str]) -> Optional[str]:
    if type_ in MEDIA_TYPES and value:
        return accessible_url(storage, value) or ""
    return value


def load_settings_map(db: Session, storage: S3Storage) -> dict[str, dict[str, Optional[str]]]:
    rows = db.execute(select(SiteSettingORM).order_by(SiteSettingORM.key)).scalars().all()
    out = {
        row.key: {"value": resolve_value(storage, row.type, row.value), "type": row.type}
        for row in rows
    }
    for key, value in BACKGROUND_DEFAULTS.items():
        if key not in out:
            out[key] = {"value": value, "type": SettingType.TEXT.value}
    return out


def upsert_setting(
    db: Session,
    key: str,
    value: Optional[str],
    *,
    user_id: Optional[int],
    type_: Optional[str] = None,
) -> tuple[SiteSettingORM, bool]:
    """Atualiza (ou cria, com tipo `text` por padrão) a configuração.

    Retorna (setting, criada).
    """
    now = datetime.now(timezone.utc)
    setting = db.get(SiteSettingORM, key)
    created = setting is None
    if created:
        setting = SiteSettingORM(
            key=key,
            type=type_ or SettingType.TEXT.value,
        )
        db.add(setting)
    elif type_:
        setting.type = type_

    setting.value = value
    setting.updated_at = now
    setting.updated_by = user_id
    db.flush()
    return setting, created


def initialize_defaults(db: Session) -> int:
    existing = set(db.execute(select(SiteSettingORM.key)).scalars().all())
    missing = [(k, v) for k, v in DEFAULT_SETTINGS if k not in existing]
    for key, value in missing:
        db.add(SiteSettingORM(key=key, value=value, type=SettingType.TEXT.value))
    db.flush()
    if missing:
        logger.info("configurações padrão inseridas: %s", ", ".join(k for k, _ in missing))
    return len(missing)
