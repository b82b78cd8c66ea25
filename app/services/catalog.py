from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from sqlalchemy import Select, select, type_coerce
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Session

from app.infra.models import ProductORM, ProductVariationORM

# categorias da vitrine -> tipos de produto
CATEGORY_TYPES: dict[str, list[str]] = {
    "roupas": [
        "camisa", "moleton", "vestido", "calca", "calca-normal", "calca-jogador",
        "bermuda-jeans", "bermuda-jogador", "bermuda-tectel", "bermuda-elastano",
        "blusa-times", "conjunto", "kit", "short", "camiseta",
    ],
    "calcados": ["sapato"],
    "acessorios": ["bone", "acessorio"],
}

# (mínimo, mínimo inclusivo, máximo) ; máximo sempre inclusivo
PRICE_RANGES: dict[str, tuple[float, bool, Optional[float]]] = {
    "0-50": (0, True, 50),
    "50-100": (50, False, 100),
    "100-200": (100, False, 200),
    "200+": (200, False, None),
}

DISCOUNT_RANGES: dict[str, tuple[float, bool, Optional[float]]] = {
    "10-30": (10, True, 30),
    "30-50": (30, False, 50),
    "50+": (50, False, None),
}

SORTS = {
    "price_asc": (ProductORM.price.asc(),),
    "price_desc": (ProductORM.price.desc(),),
    "name_asc": (ProductORM.name.asc(),),
    "name_desc": (ProductORM.name.desc(),),
    "newest": (ProductORM.created_at.desc(), ProductORM.id.desc()),
}


def split_csv(raw: Optional[str]) -> list[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def types_for_categories(categories: Sequence[str]) -> list[str]:
    types: list[str] = []
    for category in categories:
        types.extend(CATEGORY_TYPES.get(category, []))
    return types


@dataclass
class ProductFilters:
    search: Optional[str] = None
    brand: Optional[str] = None
    brands: Optional[str] = None
    types: Optional[str] = None
    categories: Optional[str] = None
    sizes: Optional[str] = None
    colors: Optional[str] = None
    price_range: Optional[str] = None
    discount_range: Optional[str] = None
    sort: Optional[str] = None


def _apply_range(stmt: Select, column, ranges: dict, key: Optional[str]) -> Select:
    if not key or key == "all" or key not in ranges:
        return stmt
    low, low_inclusive, high = ranges[key]
    stmt = stmt.where(column >= low if low_inclusive else column > low)
    if high is not None:
        stmt = stmt.where(column <= high)
    return stmt


def build_product_query(
    filters: ProductFilters,
    *,
    include_inactive: bool = False,
    dialect_name: str = "postgresql",
) -> Select:
    stmt = select(ProductORM)

    if not include_inactive:
        stmt = stmt.where(ProductORM.is_active.is_(True))

    if filters.search:
        stmt = stmt.where(ProductORM.name.ilike(f"%{filters.search}%"))

    if filters.brand:
        stmt = stmt.where(ProductORM.brand == filters.brand)

    brands = split_csv(filters.brands)
    if brands:
        stmt = stmt.where(ProductORM.brand.in_(brands))

    types = split_csv(filters.types)
    if types:
        stmt = stmt.where(ProductORM.type.in_(types))

    category_types = types_for_categories(split_csv(filters.categories))
    if category_types:
        stmt = stmt.where(ProductORM.type.in_(category_types))

    sizes = split_csv(filters.sizes)
    if sizes and dialect_name == "postgresql":
        # sizes @> '["M", "G"]'
        stmt = stmt.where(type_coerce(ProductORM.sizes, JSONB).contains(sizes))

    colors = split_csv(filters.colors)
    if colors:
        stmt = stmt.where(ProductORM.color.in_(colors))

    stmt = _apply_range(stmt, ProductORM.price, PRICE_RANGES, filters.price_range)
    stmt = _apply_range(stmt, ProductORM.discount, DISCOUNT_RANGES, filters.discount_range)

    order = SORTS.get(filters.sort or "newest", SORTS["newest"])
    return stmt.order_by(*order)


def has_all_sizes(product: ProductORM, sizes: Sequence[str]) -> bool:
    return set(sizes).issubset(product.sizes or [])


def list_products(db: Session, filters: ProductFilters, *, include_inactive: bool = False) -> list[ProductORM]:
    dialect_name = db.get_bind().dialect.name
    stmt = build_product_query(filters, include_inactive=include_inactive, dialect_name=dialect_name)
    products = list(db.execute(stmt).scalars().all())

    sizes = split_csv(filters.sizes)
    if sizes and dialect_name != "postgresql":
        # sem operador de contenção JSON fora do Postgres
        products = [p for p in products if has_all_sizes(p, sizes)]
    return products


def get_product(db: Session, product_id: int, *, include_inactive: bool = False) -> Optional[ProductORM]:
    stmt = select(ProductORM).where(ProductORM.id == product_id)
    if not include_inactive:
        stmt = stmt.where(ProductORM.is_active.is_(True))
    return db.execute(stmt).scalars().first()


def active_variations(db: Session, product_id: int) -> list[ProductVariationORM]:
    stmt = (
        select(ProductVariationORM)
        .where(
            ProductVariationORM.product_id == product_id,
            ProductVariationORM.is_active.is_(True),
        )
        .order_by(ProductVariationORM.color.asc(), ProductVariationORM.size.asc())
    )
    return list(db.execute(stmt).scalars().all())
