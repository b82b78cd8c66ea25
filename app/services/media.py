"""Imagens do catálogo: leitura dos uploads, envio ao storage e URLs acessíveis.

O banco guarda apenas as keys do storage; toda resposta troca as keys por URLs
(pública quando o bucket é público, senão assinada).
"""
from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from fastapi import HTTPException, UploadFile

from app.infra.models import ProductORM, ProductVariationORM
from app.infra.storage_s3 import S3Storage, StorageError, normalize_content_type
from app.schemas.products import ProductDetailOut, ProductOut, VariationOut

logger = logging.getLogger(__name__)

MAX_IMAGES = 5
MAX_IMAGE_BYTES = 10 * 1024 * 1024  # 10MB por imagem
ALLOWED_IMAGE_CT = {"image/jpeg", "image/png", "image/webp", "image/gif"}


@dataclass
class ImagePayload:
    filename: str
    content_type: str
    data: bytes


@dataclass
class UploadResult:
    keys: list[str] = field(default_factory=list)
    interrupted: bool = False


def now_ms() -> int:
    return int(time.time() * 1000)


def file_extension(filename: Optional[str], default: str = "jpg") -> str:
    name = os.path.basename(filename or "")
    if "." not in name:
        return default
    ext = name.rsplit(".", 1)[1].strip()
    return ext or default


def _is_url(value: str) -> bool:
    return value.startswith("http://") or value.startswith("https://")


async def read_images(files: Sequence[UploadFile], max_files: int = MAX_IMAGES) -> list[ImagePayload]:
    # navegadores mandam uma parte vazia quando nenhum arquivo é escolhido
    files = [f for f in files if f.filename]
    if len(files) > max_files:
        raise HTTPException(status_code=400, detail=f"Máximo de {max_files} imagens.")

    payloads: list[ImagePayload] = []
    for f in files:
        ct = normalize_content_type(f.content_type)
        if ct not in ALLOWED_IMAGE_CT:
            raise HTTPException(
                status_code=415,
                detail=f"Tipo de arquivo não suportado: {f.content_type}. Use jpeg/png/webp/gif.",
            )
        data = await f.read()
        if not data:
            raise HTTPException(status_code=400, detail="Arquivo de imagem vazio.")
        if len(data) > MAX_IMAGE_BYTES:
            raise HTTPException(status_code=400, detail="Imagem excede 10MB.")
        payloads.append(ImagePayload(filename=f.filename or "", content_type=ct, data=data))
    return payloads


def upload_images(storage: S3Storage, images: Sequence[ImagePayload], key_prefix: str) -> UploadResult:
    """Envia as imagens em ordem para `{key_prefix}/{ms}_{i}.{ext}`.

    Falha tolerável (políticas/bucket) interrompe o lote mantendo o que já subiu;
    qualquer outra falha remove o que subiu neste lote e propaga o StorageError.
    """
    result = UploadResult()
    key_prefix = key_prefix.strip("/")
    for i, img in enumerate(images):
        key = f"{key_prefix}/{now_ms()}_{i}.{file_extension(img.filename)}"
        try:
            storage.upload(key, img.data, img.content_type)
        except StorageError as e:
            if e.tolerable:
                logger.warning(
                    "storage recusou %s (%s); seguindo sem as imagens restantes. "
                    "Verifique se o bucket existe e as políticas de acesso.",
                    key, e.message,
                )
                result.interrupted = True
                break
            logger.error("erro no upload de %s: %s", key, e.message)
            for done in result.keys:
                storage.delete_best_effort(done)
            raise
        result.keys.append(key)

    logger.info("upload %s: %d/%d imagens", key_prefix, len(result.keys), len(images))
    return result


def accessible_url(storage: S3Storage, key: Optional[str]) -> Optional[str]:
    """URL pública da key; sem URL pública, tenta uma URL assinada."""
    if not key:
        return None
    if _is_url(key):
        return key

    public = None
    try:
        public = storage.public_url(key)
        if public:
            return public
        return storage.presign_get_url(key)
    except StorageError as e:
        logger.error("erro ao assinar URL para %s: %s", key, e.message)
        return public
    except Exception:
        logger.exception("erro ao gerar URL para %s", key)
        return public


def accessible_urls(storage: S3Storage, keys: Optional[Iterable[str]]) -> list[str]:
    if not keys:
        return []
    urls = []
    for key in keys:
        url = accessible_url(storage, key)
        if url is None:
            logger.warning("não foi possível gerar URL para a imagem %s", key)
            continue
        urls.append(url)
    return urls


def variation_out(storage: S3Storage, variation: ProductVariationORM) -> VariationOut:
    out = VariationOut.model_validate(variation)
    urls = accessible_urls(storage, variation.images)
    return out.model_copy(update={"images": urls, "image": urls[0] if urls else None})


def product_out(storage: S3Storage, product: ProductORM) -> ProductOut:
    out = ProductOut.model_validate(product)
    urls = accessible_urls(storage, product.images)
    return out.model_copy(update={"images": urls, "image": urls[0] if urls else None})


def product_detail_out(
    storage: S3Storage,
    product: ProductORM,
    variations: Sequence[ProductVariationORM],
) -> ProductDetailOut:
    base = product_out(storage, product)
    return ProductDetailOut(
        **base.model_dump(),
        variations=[variation_out(storage, v) for v in variations],
    )
