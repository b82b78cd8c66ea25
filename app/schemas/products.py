from __future__ import annotations

from datetime import datetime
from pydantic import BaseModel, ConfigDict
from typing import Optional, List


class VariationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    name: str
    color: Optional[str] = None
    size: Optional[str] = None
    price: float
    stock: int
    is_active: bool
    created_at: Optional[datetime] = None

    # URLs acessíveis (nunca as keys do storage)
    images: List[str] = []
    image: Optional[str] = None


class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    price: float
    stock: int
    type: Optional[str] = None
    color: Optional[str] = None
    brand: Optional[str] = None
    sizes: List[str] = []
    discount: Optional[float] = None
    is_active: bool
    created_at: Optional[datetime] = None

    images: List[str] = []
    image: Optional[str] = None


class ProductDetailOut(ProductOut):
    variations: List[VariationOut] = []


class ProductEnvelope(BaseModel):
    product: ProductOut
    warning: Optional[str] = None


class ProductDetailEnvelope(BaseModel):
    product: ProductDetailOut


class ProductListOut(BaseModel):
    products: List[ProductOut]


class VariationEnvelope(BaseModel):
    variation: VariationOut


class VariationListOut(BaseModel):
    variations: List[VariationOut]


class DeletedOut(BaseModel):
    ok: bool = True
