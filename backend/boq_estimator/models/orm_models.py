"""ORM Models for the BOQ Estimator — SQLAlchemy 2.0"""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy import (
    String, Text, Integer, Numeric, DateTime,
    ForeignKey, UniqueConstraint, Index
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from boq_estimator.db import Base


def gen_uuid():
    return str(uuid.uuid4())


# ── PROJECTS ──────────────────────────────────────────────────────────────────
class BOQProject(Base):
    __tablename__ = "boq_projects"
    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=gen_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    client: Mapped[Optional[str]] = mapped_column(String(255))
    budget: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2))
    location: Mapped[Optional[str]] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    versions: Mapped[list["BOQVersionRecord"]] = relationship(
        "BOQVersionRecord", back_populates="project", cascade="all, delete-orphan"
    )


# ── VERSIONS ──────────────────────────────────────────────────────────────────
class BOQVersionRecord(Base):
    __tablename__ = "boq_versions"
    __table_args__ = (UniqueConstraint("project_id", "version_number", name="uq_boq_version_number"),)
    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=gen_uuid)
    project_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("boq_projects.id", ondelete="CASCADE"), nullable=False
    )
    version_number: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="draft")   # draft | submitted
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    project: Mapped["BOQProject"] = relationship("BOQProject", back_populates="versions")
    items: Mapped[list["BOQItemRecord"]] = relationship(
        "BOQItemRecord", back_populates="version", cascade="all, delete-orphan"
    )


# ── ITEMS ─────────────────────────────────────────────────────────────────────
class BOQItemRecord(Base):
    __tablename__ = "boq_items"
    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=gen_uuid)
    project_id: Mapped[str] = mapped_column(UUID(as_uuid=False), ForeignKey("boq_projects.id"), nullable=False)
    version_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("boq_versions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    work_package: Mapped[str] = mapped_column(String(50), nullable=False)
    table_data: Mapped[dict] = mapped_column(JSONB, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    version: Mapped["BOQVersionRecord"] = relationship("BOQVersionRecord", back_populates="items")


class BOQVersionEdits(Base):
    __tablename__ = "boq_version_edits"
    version_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("boq_versions.id", ondelete="CASCADE"), primary_key=True
    )
    edits: Mapped[dict] = mapped_column(JSONB, default=dict)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


# ── WORKING SET ───────────────────────────────────────────────────────────────
class WorkingSetRow(Base):
    __tablename__ = "boq_working_rows"
    __table_args__ = (
        UniqueConstraint("version_id", "row_id", name="uq_working_row"),
        Index("ix_working_rows_batch", "version_id", "batch_id"),
    )
    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=gen_uuid)
    project_id: Mapped[str] = mapped_column(UUID(as_uuid=False), ForeignKey("boq_projects.id"), nullable=False)
    version_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("boq_versions.id", ondelete="CASCADE"), nullable=False
    )
    row_id: Mapped[str] = mapped_column(String(120), nullable=False)
    batch_id: Mapped[str] = mapped_column(String(40), nullable=False)
    material_id: Mapped[str] = mapped_column(String(64), nullable=False)
    data: Mapped[dict] = mapped_column(JSONB, default=dict)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


# ── CATALOG ───────────────────────────────────────────────────────────────────
class Shop(Base):
    __tablename__ = "shops"
    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=gen_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(255))
    materials: Mapped[list["CatalogMaterial"]] = relationship("CatalogMaterial", back_populates="shop")


class CatalogMaterial(Base):
    __tablename__ = "catalog_materials"
    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=gen_uuid)
    product: Mapped[Optional[str]] = mapped_column(String(255))
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[Optional[str]] = mapped_column(String(50), index=True)
    category: Mapped[Optional[str]] = mapped_column(String(100))
    sub_category: Mapped[Optional[str]] = mapped_column(String(100))
    brand: Mapped[Optional[str]] = mapped_column(String(100))
    unit: Mapped[Optional[str]] = mapped_column(Text)
    rate: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    shop_id: Mapped[Optional[str]] = mapped_column(UUID(as_uuid=False), ForeignKey("shops.id"))
    shop: Mapped[Optional["Shop"]] = relationship("Shop", back_populates="materials")
