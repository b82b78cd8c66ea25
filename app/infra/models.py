from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import (
    String, Integer, DateTime, Numeric, ForeignKey, Text, Boolean, JSON,
    Enum as SAEnum, UniqueConstraint, Index, func
)
from sqlalchemy.dialects.postgresql import JSONB

from sqlalchemy.orm import (
    DeclarativeBase, Mapped, mapped_column, relationship
)


# arrays (tamanhos, keys de imagens) ficam em JSONB no Postgres
JSONList = JSON().with_variant(JSONB(), "postgresql")


# base
class Base(DeclarativeBase):
    pass

# enums
class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    CUSTOMER = "CUSTOMER"

class SettingType(str, enum.Enum):
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"

# models
class UserORM(Base):
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    email: Mapped[str] = mapped_column(String(160), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    role: Mapped[UserRole] = mapped_column(
        SAEnum(UserRole, name="user_role"), nullable=False, default=UserRole.CUSTOMER
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

class ProductORM(Base):
    __tablename__ = "products"
    __table_args__ = (
        Index("ix_products_is_active", "is_active"),
        Index("ix_products_brand_type", "brand", "type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    name: Mapped[str] = mapped_column(String(160), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    type: Mapped[Optional[str]] = mapped_column(String(60), nullable=True)
    color: Mapped[Optional[str]] = mapped_column(String(60), nullable=True)
    brand: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    sizes: Mapped[List[str]] = mapped_column(JSONList, nullable=False, default=list)

    # keys do storage, nunca URLs
    images: Mapped[List[str]] = mapped_column(JSONList, nullable=False, default=list)

    discount: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    variations: Mapped[List["ProductVariationORM"]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

class ProductVariationORM(Base):
    __tablename__ = "product_variations"
    __table_args__ = (
        Index("ix_product_variations_product_id", "product_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )

    name: Mapped[str] = mapped_column(String(160), nullable=False)
    color: Mapped[Optional[str]] = mapped_column(String(60), nullable=True)
    size: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)

    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    images: Mapped[List[str]] = mapped_column(JSONList, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    product: Mapped["ProductORM"] = relationship(back_populates="variations")

class SiteSettingORM(Base):
    __tablename__ = "site_settings"

    key: Mapped[str] = mapped_column(String(120), primary_key=True)
    value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default=SettingType.TEXT.value)

    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
