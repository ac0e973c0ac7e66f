from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import Boolean, Column, Float, ForeignKey, Index, Integer, String, text
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlmodel import Field, SQLModel


class Clinic(SQLModel, table=True):
    __tablename__ = "clinics"

    id: UUID = Field(
        default_factory=uuid4,
        sa_column=Column(PGUUID(as_uuid=True), primary_key=True),
    )
    name: str = Field(sa_column=Column(String, nullable=False))
    # When true, lot codes must carry the L/R position inside the drawer
    require_lot_location: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, server_default="false"),
    )


class Drug(SQLModel, table=True):
    """
    Shared, clinic-independent catalog entry.

    The two unique indexes back the insert-or-fetch-on-conflict path used by
    ``SqlCatalogStore.insert_drug``: one drug per NDC, and one drug per
    (medication name ignoring case, strength, strength unit, form).
    """

    __tablename__ = "drugs"
    __table_args__ = (
        Index(
            "uq_drugs_natural_key",
            text("lower(medication_name)"),
            "strength",
            "strength_unit",
            "form",
            unique=True,
        ),
        Index(
            "uq_drugs_ndc_id",
            "ndc_id",
            unique=True,
            postgresql_where=text("ndc_id IS NOT NULL"),
        ),
    )

    id: UUID = Field(
        default_factory=uuid4,
        sa_column=Column(PGUUID(as_uuid=True), primary_key=True),
    )
    medication_name: str = Field(sa_column=Column(String, nullable=False, index=True))
    generic_name: str | None = Field(default=None, sa_column=Column(String, nullable=True))
    strength: float = Field(sa_column=Column(Float, nullable=False))
    strength_unit: str = Field(sa_column=Column(String, nullable=False))
    ndc_id: str | None = Field(default=None, sa_column=Column(String, nullable=True))
    form: str = Field(sa_column=Column(String, nullable=False))


class Unit(SQLModel, table=True):
    __tablename__ = "units"
    __table_args__ = (
        Index("ix_units_clinic_available", "clinic_id", "available_quantity"),
    )

    id: UUID = Field(
        default_factory=uuid4,
        sa_column=Column(PGUUID(as_uuid=True), primary_key=True),
    )
    clinic_id: UUID = Field(
        sa_column=Column(PGUUID(as_uuid=True), ForeignKey("clinics.id"), nullable=False, index=True)
    )
    drug_id: UUID = Field(
        sa_column=Column(PGUUID(as_uuid=True), ForeignKey("drugs.id"), nullable=False, index=True)
    )
    available_quantity: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, server_default="0"),
    )
