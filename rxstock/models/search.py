"""Typed projections exchanged between the catalog store and the services.

Rows coming out of the database are validated into these models once, inside
the store adapter; the search engine and the upsert resolver only ever see
fully typed records.
"""
from __future__ import annotations

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class DrugRecord(BaseModel):
    """A catalog drug as read from the store."""

    id: UUID
    medication_name: str
    generic_name: Optional[str] = None
    strength: float
    strength_unit: str
    ndc_id: Optional[str] = None
    form: str

    model_config = {"frozen": True, "from_attributes": True}


class InventoryRow(BaseModel):
    """One in-stock unit of a clinic joined to its drug."""

    unit_id: UUID
    clinic_id: UUID
    available_quantity: int
    drug: DrugRecord

    model_config = {"frozen": True}


class SearchResult(DrugRecord):
    """Drug fields plus whether the match came from the clinic's current stock."""

    in_inventory: bool = False

    @classmethod
    def from_drug(cls, drug: DrugRecord, in_inventory: bool) -> "SearchResult":
        return cls(**drug.model_dump(), in_inventory=in_inventory)


class DrugFields(BaseModel):
    """Attributes accepted by ``DrugUpsertResolver.get_or_create_drug``."""

    medication_name: str = Field(min_length=1)
    generic_name: Optional[str] = None
    strength: float
    strength_unit: str
    ndc_id: Optional[str] = None
    form: str

    model_config = {"frozen": True}

    @field_validator("ndc_id", "generic_name", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def resolved_generic_name(self) -> str:
        return self.generic_name or self.medication_name
