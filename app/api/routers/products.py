from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Optional, List

from fastapi import APIRouter, HTTPException, Query, UploadFile, File, Form, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.deps import DBSession, Storage
from app.api.auth_deps import get_optional_user, is_admin, require_admin
from app.infra.models import ProductORM, UserORM
from app.infra.storage_s3 import S3Storage, StorageError
from app.schemas.products import (
    DeletedOut,
    ProductDetailEnvelope,
    ProductEnvelope,
    ProductListOut,
)
from app.services import catalog
from app.services.media import (
    product_detail_out,
    product_out,
    read_images,
    upload_images,
)

logger = logging.getLogger(__name__)

router = APIRouter()

WARNING_CREATED_NO_IMAGES = (
    "Produto criado mas imagens não foram salvas. Configure as políticas de acesso do storage."
)
WARNING_UPDATED_NO_IMAGES = (
    "Produto atualizado mas imagens não foram salvas. Configure as políticas de acesso do storage."
)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


def _clean_sizes(sizes: Optional[List[str]]) -> list[str]:
    return [s.strip() for s in (sizes or []) if s and s.strip()]


def _upload_error(e: StorageError) -> HTTPException:
    return HTTPException(
        status_code=500,
        detail={"error": "Erro ao fazer upload das imagens", "detail": e.message},
    )


@router.post("", response_model=ProductEnvelope, status_code=201)
async def create_product(
    db: Session = DBSession,
    storage: S3Storage = Storage,
    admin: UserORM = Depends(require_admin),

    name: str = Form(..., min_length=1, max_length=160),
    description: Optional[str] = Form(default=None),
    price: Decimal = Form(default=Decimal("0"), ge=0),
    stock: int = Form(default=0, ge=0),
    type: Optional[str] = Form(default=None),
    color: Optional[str] = Form(default=None),
    brand: Optional[str] = Form(default=None),
    sizes: Optional[List[str]] = Form(default=None),
    discount: Optional[Decimal] = Form(default=None, ge=0, le=100),
    is_active: bool = Form(default=True),

    images: List[UploadFile] = File(default=[], description="Até 5 imagens"),
):
    payloads = await read_images(images)

    product = ProductORM(
        name=name.strip(),
        description=description,
        price=price,
        stock=stock,
        type=_clean(type),
        color=_clean(color),
        brand=_clean(brand),
        sizes=_clean_sizes(sizes),
        discount=discount,
        is_active=is_active,
        images=[],
    )
    db.add(product)
    try:
        db.flush()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("erro ao criar produto: %s", e)
        raise HTTPException(status_code=400, detail="Não foi possível criar o produto.")

    try:
        result = await asyncio.to_thread(
            upload_images, storage, payloads, key_prefix=f"products/{product.id}"
        )
    except StorageError as e:
        db.rollback()
        raise _upload_error(e)

    if result.keys:
        product.images = list(result.keys)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        for key in result.keys:
            storage.delete_best_effort(key)
        logger.error("erro ao salvar produto criado: %s", e)
        raise HTTPException(status_code=400, detail="Não foi possível criar o produto.")
    db.refresh(product)

    logger.info("produto %s criado com %d imagens", product.id, len(result.keys))
    warning = WARNING_CREATED_NO_IMAGES if payloads and not result.keys else None
    return ProductEnvelope(product=product_out(storage, product), warning=warning)


@router.get("", response_model=ProductListOut)
def list_products(
    db: Session = DBSession,
    storage: S3Storage = Storage,
    user: Optional[UserORM] = Depends(get_optional_user),

    search: Optional[str] = Query(default=None, description="Busca pelo nome"),
    brand: Optional[str] = Query(default=None),
    brands: Optional[str] = Query(default=None, description="Marcas separadas por vírgula"),
    types: Optional[str] = Query(default=None, description="Tipos separados por vírgula"),
    categories: Optional[str] = Query(default=None, description="roupas, calcados, acessorios"),
    sizes: Optional[str] = Query(default=None, description="Tamanhos separados por vírgula"),
    colors: Optional[str] = Query(default=None, description="Cores separadas por vírgula"),
    price_range: Optional[str] = Query(default=None, alias="priceRange"),
    discount_range: Optional[str] = Query(default=None, alias="discountRange"),
    sort: Optional[str] = Query(default="newest"),
):
    filters = catalog.ProductFilters(
        search=search,
        brand=brand,
        brands=brands,
        types=types,
        categories=categories,
        sizes=sizes,
        colors=colors,
        price_range=price_range,
        discount_range=discount_range,
        sort=sort,
    )
    try:
        products = catalog.list_products(db, filters, include_inactive=is_admin(user))
    except SQLAlchemyError as e:
        logger.error("erro ao listar produtos: %s", e)
        raise HTTPException(status_code=500, detail="Erro ao buscar produtos.")

    return ProductListOut(products=[product_out(storage, p) for p in products])


@router.get("/{product_id}", response_model=ProductDetailEnvelope)
def get_product(
    product_id: int,
    db: Session = DBSession,
    storage: S3Storage = Storage,
    user: Optional[UserORM] = Depends(get_optional_user),
):
    product = catalog.get_product(db, product_id, include_inactive=is_admin(user))
    if not product:
        raise HTTPException(status_code=404, detail="Produto não encontrado")

    try:
        variations = catalog.active_variations(db, product.id)
    except SQLAlchemyError as e:
        logger.error("erro ao buscar variações do produto %s: %s", product.id, e)
        variations = []

    return ProductDetailEnvelope(product=product_detail_out(storage, product, variations))


@router.put("/{product_id}", response_model=ProductEnvelope)
async def update_product(
    product_id: int,
    db: Session = DBSession,
    storage: S3Storage = Storage,
    admin: UserORM = Depends(require_admin),

    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[Decimal] = Form(None, ge=0),
    stock: Optional[int] = Form(None, ge=0),
    type: Optional[str] = Form(None),
    color: Optional[str] = Form(None),
    brand: Optional[str] = Form(None),
    sizes: Optional[List[str]] = Form(None),
    discount: Optional[Decimal] = Form(None, ge=0, le=100),
    is_active: Optional[bool] = Form(None),

    images: List[UploadFile] = File(default=[]),
):
    product = db.get(ProductORM, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Produto não encontrado")

    payloads = await read_images(images)

    if name is not None:
        if not name.strip():
            raise HTTPException(status_code=400, detail="Nome do produto não pode ser vazio.")
        product.name = name.strip()
    if description is not None:
        product.description = description
    if price is not None:
        product.price = price
    if stock is not None:
        product.stock = stock
    if type is not None:
        product.type = _clean(type)
    if color is not None:
        product.color = _clean(color)
    if brand is not None:
        product.brand = _clean(brand)
    if sizes is not None:
        product.sizes = _clean_sizes(sizes)
    if discount is not None:
        product.discount = discount
    if is_active is not None:
        product.is_active = is_active

    new_keys: list[str] = []
    if payloads:
        try:
            result = await asyncio.to_thread(
                upload_images, storage, payloads, key_prefix=f"products/{product.id}"
            )
        except StorageError as e:
            db.rollback()
            raise _upload_error(e)
        new_keys = result.keys
        if new_keys:
            # lista nova para o ORM detectar a mudança no JSON
            product.images = [*(product.images or []), *new_keys]

    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        for key in new_keys:
            storage.delete_best_effort(key)
        logger.error("erro ao atualizar produto %s: %s", product_id, e)
        raise HTTPException(status_code=400, detail="Não foi possível atualizar o produto.")
    db.refresh(product)

    warning = WARNING_UPDATED_NO_IMAGES if payloads and not new_keys else None
    return ProductEnvelope(product=product_out(storage, product), warning=warning)


@router.delete("/{product_id}", response_model=DeletedOut)
def delete_product(
    product_id: int,
    db: Session = DBSession,
    storage: S3Storage = Storage,
    admin: UserORM = Depends(require_admin),
):
    product = db.get(ProductORM, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Produto não encontrado")

    keys = list(product.images or [])
    for variation in product.variations:
        keys.extend(variation.images or [])

    db.delete(product)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("erro ao excluir produto %s: %s", product_id, e)
        raise HTTPException(status_code=400, detail="Não foi possível excluir o produto.")

    for key in keys:
        storage.delete_best_effort(key)
    return DeletedOut(ok=True)
