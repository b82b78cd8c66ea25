from __future__ import annotations

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, UploadFile, File, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.deps import DBSession, Storage
from app.api.auth_deps import require_admin
from app.infra.models import SettingType, SiteSettingORM, UserORM
from app.infra.storage_s3 import S3Storage, StorageError
from app.schemas.site_settings import (
    MessageOut,
    SettingEnvelope,
    SettingImageOut,
    SettingOut,
    SettingsMapOut,
    SettingUpdate,
    SettingVideoOut,
)
from app.services import site_settings as svc
from app.services.media import now_ms

logger = logging.getLogger(__name__)

router = APIRouter()


async def _read_media(file: UploadFile, rule: svc.MediaRule, invalid_msg: str) -> bytes:
    if not rule.accepts(file.filename, file.content_type):
        raise HTTPException(status_code=400, detail=invalid_msg)
    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="Arquivo vazio.")
    if len(data) > rule.max_bytes:
        raise HTTPException(status_code=400, detail=f"Arquivo excede o tamanho máximo de {rule.label}.")
    return data


def _setting_out(storage: S3Storage, setting: SiteSettingORM) -> SettingOut:
    out = SettingOut.model_validate(setting)
    return out.model_copy(update={"value": svc.resolve_value(storage, setting.type, setting.value)})


@router.get("", response_model=SettingsMapOut)
def list_settings(db: Session = DBSession, storage: S3Storage = Storage):
    try:
        settings_map = svc.load_settings_map(db, storage)
    except SQLAlchemyError as e:
        if svc.is_missing_table(e):
            logger.warning("tabela site_settings não existe; rode `python -m app.init_db`")
            return SettingsMapOut(settings={})
        logger.error("erro ao buscar configurações: %s", e)
        raise HTTPException(status_code=500, detail="Erro ao buscar configurações.")

    logger.info("configurações carregadas: %d", len(settings_map))
    return SettingsMapOut(settings=settings_map)


@router.get("/initialize", response_model=MessageOut)
def initialize_settings(
    db: Session = DBSession,
    admin: UserORM = Depends(require_admin),
):
    try:
        svc.initialize_defaults(db)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("erro ao inserir configurações padrão: %s", e)
        raise HTTPException(status_code=500, detail="Erro ao inicializar configurações")
    return MessageOut(message="Configurações inicializadas com sucesso")


@router.get("/{key}", response_model=SettingEnvelope)
def get_setting(key: str, db: Session = DBSession, storage: S3Storage = Storage):
    setting = db.get(SiteSettingORM, key)
    if not setting:
        raise HTTPException(status_code=404, detail="Configuração não encontrada")
    return SettingEnvelope(setting=_setting_out(storage, setting))


@router.put("/{key}", response_model=SettingEnvelope)
def update_setting(
    key: str,
    payload: SettingUpdate,
    db: Session = DBSession,
    storage: S3Storage = Storage,
    admin: UserORM = Depends(require_admin),
):
    if "value" not in payload.model_fields_set:
        raise HTTPException(status_code=400, detail="Valor é obrigatório")

    try:
        setting, created = svc.upsert_setting(db, key, svc.as_text(payload.value), user_id=admin.id)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("erro ao salvar configuração %s: %s", key, e)
        raise HTTPException(status_code=500, detail="Erro ao salvar configuração.")

    message = "Configuração criada com sucesso" if created else "Configuração atualizada com sucesso"
    return SettingEnvelope(setting=_setting_out(storage, setting), message=message)


# registrada antes de "/{key}/upload" para não ser capturada por ela
@router.post("/site_background_video/upload", response_model=SettingVideoOut)
async def upload_background_video(
    video: Optional[UploadFile] = File(default=None),
    db: Session = DBSession,
    storage: S3Storage = Storage,
    admin: UserORM = Depends(require_admin),
):
    if video is None or not video.filename:
        raise HTTPException(status_code=400, detail="Nenhum vídeo enviado")

    data = await _read_media(
        video, svc.VIDEO_RULE,
        "Apenas vídeos são permitidos (MP4, WebM, OGG, AVI, MOV, WMV)",
    )

    file_path = f"site_background_video_{now_ms()}{svc.extname(video.filename)}"
    logger.info("upload de vídeo %s (%d bytes)", file_path, len(data))
    try:
        await asyncio.to_thread(storage.upload, file_path, data, video.content_type)
    except StorageError as e:
        logger.error("erro ao fazer upload do vídeo %s: %s", file_path, e.message)
        raise HTTPException(
            status_code=500,
            detail={"error": "Erro ao fazer upload do vídeo", "detail": e.message, "path": file_path},
        )

    try:
        setting, _ = svc.upsert_setting(
            db, svc.VIDEO_SETTING_KEY, file_path,
            user_id=admin.id, type_=SettingType.VIDEO.value,
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        storage.delete_best_effort(file_path)
        logger.error("erro ao salvar vídeo de fundo: %s", e)
        raise HTTPException(status_code=500, detail="Erro ao salvar configuração.")

    out = _setting_out(storage, setting)
    return SettingVideoOut(
        setting=out,
        video_url=out.value or "",
        message="Vídeo enviado com sucesso",
    )


@router.post("/{key}/upload", response_model=SettingImageOut)
async def upload_setting_image(
    key: str,
    image: Optional[UploadFile] = File(default=None),
    db: Session = DBSession,
    storage: S3Storage = Storage,
    admin: UserORM = Depends(require_admin),
):
    if image is None or not image.filename:
        raise HTTPException(status_code=400, detail="Nenhuma imagem enviada")

    data = await _read_media(
        image, svc.IMAGE_RULE,
        "Apenas imagens são permitidas (JPEG, PNG, GIF, WEBP)",
    )

    setting = db.get(SiteSettingORM, key)
    if not setting:
        raise HTTPException(status_code=404, detail="Configuração não encontrada")

    # raiz do bucket, sem subpasta
    file_path = f"{key}_{now_ms()}{svc.extname(image.filename)}"
    logger.info("upload de imagem %s (%d bytes)", file_path, len(data))
    try:
        await asyncio.to_thread(storage.upload, file_path, data, image.content_type)
    except StorageError as e:
        logger.error("erro ao fazer upload de %s: %s", file_path, e.message)
        if e.forbidden:
            raise HTTPException(
                status_code=403,
                detail={
                    "error": "Upload bloqueado pelas políticas de segurança do storage.",
                    "hint": f"Configure as políticas de acesso do bucket {storage.bucket}.",
                    "details": e.message,
                },
            )
        raise HTTPException(
            status_code=500,
            detail={"error": "Erro ao fazer upload da imagem", "detail": e.message, "path": file_path},
        )

    try:
        setting, _ = svc.upsert_setting(
            db, key, file_path,
            user_id=admin.id, type_=SettingType.IMAGE.value,
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        storage.delete_best_effort(file_path)
        logger.error("erro ao salvar imagem da configuração %s: %s", key, e)
        raise HTTPException(status_code=500, detail="Erro ao salvar configuração.")

    out = _setting_out(storage, setting)
    return SettingImageOut(
        setting=out,
        image_url=out.value or "",
        message="Imagem enviada com sucesso",
    )
