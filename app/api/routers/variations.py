from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Optional, List

from fastapi import APIRouter, HTTPException, UploadFile, File, Form, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.deps import DBSession, Storage
from app.api.auth_deps import require_admin
from app.infra.models import ProductORM, ProductVariationORM, UserORM
from app.infra.storage_s3 import S3Storage, StorageError
from app.schemas.products import DeletedOut, VariationEnvelope, VariationListOut
from app.services import catalog
from app.services.media import read_images, upload_images, variation_out

logger = logging.getLogger(__name__)

router = APIRouter()


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


def _upload_error(e: StorageError) -> HTTPException:
    return HTTPException(
        status_code=500,
        detail={"error": "Erro ao fazer upload das imagens", "detail": e.message},
    )


@router.post("", response_model=VariationEnvelope, status_code=201)
async def create_variation(
    db: Session = DBSession,
    storage: S3Storage = Storage,
    admin: UserORM = Depends(require_admin),

    product_id: Optional[int] = Form(default=None),
    name: Optional[str] = Form(default=None),
    color: Optional[str] = Form(default=None),
    size: Optional[str] = Form(default=None),
    price: Decimal = Form(default=Decimal("0"), ge=0),
    stock: int = Form(default=0, ge=0),

    images: List[UploadFile] = File(default=[]),
):
    if not product_id or not (name or "").strip():
        raise HTTPException(status_code=400, detail="Campos obrigatórios: product_id e name")

    if not db.get(ProductORM, product_id):
        raise HTTPException(status_code=404, detail="Produto não encontrado")

    payloads = await read_images(images)
    try:
        result = await asyncio.to_thread(
            upload_images, storage, payloads, key_prefix=f"variations/{product_id}"
        )
    except StorageError as e:
        raise _upload_error(e)

    variation = ProductVariationORM(
        product_id=product_id,
        name=name.strip(),
        color=_clean(color),
        size=_clean(size),
        price=price,
        stock=stock,
        images=list(result.keys),
    )
    db.add(variation)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        for key in result.keys:
            storage.delete_best_effort(key)
        logger.error("erro ao criar variação: %s", e)
        raise HTTPException(status_code=400, detail="Não foi possível criar a variação.")
    db.refresh(variation)

    logger.info("variação %s criada para o produto %s", variation.id, product_id)
    return VariationEnvelope(variation=variation_out(storage, variation))


@router.get("/product/{product_id}", response_model=VariationListOut)
def list_product_variations(
    product_id: int,
    db: Session = DBSession,
    storage: S3Storage = Storage,
):
    try:
        variations = catalog.active_variations(db, product_id)
    except SQLAlchemyError as e:
        logger.error("erro ao buscar variações do produto %s: %s", product_id, e)
        raise HTTPException(status_code=500, detail="Erro ao buscar variações.")
    return VariationListOut(variations=[variation_out(storage, v) for v in variations])


@router.put("/{variation_id}", response_model=VariationEnvelope)
async def update_variation(
    variation_id: int,
    db: Session = DBSession,
    storage: S3Storage = Storage,
    admin: UserORM = Depends(require_admin),

    name: Optional[str] = Form(None),
    color: Optional[str] = Form(None),
    size: Optional[str] = Form(None),
    price: Optional[Decimal] = Form(None, ge=0),
    stock: Optional[int] = Form(None, ge=0),
    is_active: Optional[bool] = Form(None),

    images: List[UploadFile] = File(default=[]),
):
    variation = db.get(ProductVariationORM, variation_id)
    if not variation:
        raise HTTPException(status_code=404, detail="Variação não encontrada")

    payloads = await read_images(images)

    if name is not None:
        if not name.strip():
            raise HTTPException(status_code=400, detail="Nome da variação não pode ser vazio.")
        variation.name = name.strip()
    if color is not None:
        variation.color = _clean(color)
    if size is not None:
        variation.size = _clean(size)
    if price is not None:
        variation.price = price
    if stock is not None:
        variation.stock = stock
    if is_active is not None:
        variation.is_active = is_active

    new_keys: list[str] = []
    if payloads:
        try:
            result = await asyncio.to_thread(
                upload_images, storage, payloads, key_prefix=f"variations/{variation.product_id}"
            )
        except StorageError as e:
            db.rollback()
            raise _upload_error(e)
        new_keys = result.keys
        if new_keys:
            variation.images = [*(variation.images or []), *new_keys]

    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        for key in new_keys:
            storage.delete_best_effort(key)
        logger.error("erro ao atualizar variação %s: %s", variation_id, e)
        raise HTTPException(status_code=400, detail="Não foi possível atualizar a variação.")
    db.refresh(variation)

    return VariationEnvelope(variation=variation_out(storage, variation))


@router.delete("/{variation_id}", response_model=DeletedOut)
def delete_variation(
    variation_id: int,
    db: Session = DBSession,
    storage: S3Storage = Storage,
    admin: UserORM = Depends(require_admin),
):
    variation = db.get(ProductVariationORM, variation_id)
    if not variation:
        raise HTTPException(status_code=404, detail="Variação não encontrada")

    keys = list(variation.images or [])
    db.delete(variation)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("erro ao excluir variação %s: %s", variation_id, e)
        raise HTTPException(status_code=400, detail="Não foi possível excluir a variação.")

    for key in keys:
        storage.delete_best_effort(key)
    return DeletedOut(ok=True)
