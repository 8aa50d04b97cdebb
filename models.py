from datetime import datetime
from typing import Optional

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class SpendingTier(Base, TimestampMixin):
    __tablename__ = "spending_tiers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    color: Mapped[Optional[str]] = mapped_column(String(9))
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    categories: Mapped[list["SpendingTierCategory"]] = relationship(
        back_populates="tier",
        cascade="all, delete-orphan",
        order_by="SpendingTierCategory.position",
    )


class SpendingTierCategory(Base):
    __tablename__ = "spending_tier_categories"
    __table_args__ = (
        UniqueConstraint("tier_id", "category", name="uq_tier_category"),
        Index("ix_tier_categories_tier_position", "tier_id", "position"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tier_id: Mapped[int] = mapped_column(
        ForeignKey("spending_tiers.id", ondelete="CASCADE"), nullable=False
    )
    category: Mapped[str] = mapped_column(String(200), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    tier: Mapped[SpendingTier] = relationship(back_populates="categories")


class Preference(Base, TimestampMixin):
    __tablename__ = "preferences"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[str] = mapped_column(String(500), nullable=False)
