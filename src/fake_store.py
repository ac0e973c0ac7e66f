"""In-memory ``CatalogStore`` used by the service and schema tests."""
from __future__ import annotations

from typing import Optional
from uuid import UUID, uuid4

from rxstock.models.search import DrugFields, DrugRecord, InventoryRow
from rxstock.services.catalog_store import StoreError


def make_drug(medication_name: str, strength: float = 5.0, strength_unit: str = "mg",
              ndc_id: Optional[str] = None, generic_name: Optional[str] = None,
              form: str = "tablet") -> DrugRecord:
    return DrugRecord(
        id=uuid4(),
        medication_name=medication_name,
        generic_name=generic_name,
        strength=strength,
        strength_unit=strength_unit,
        ndc_id=ndc_id,
        form=form,
    )


class FakeCatalogStore:
    def __init__(self, catalog=None, lot_location=None) -> None:
        self.catalog: list[DrugRecord] = list(catalog or [])
        self.inventory: list[InventoryRow] = []
        self.lot_location: dict[UUID, bool] = dict(lot_location or {})
        self.failing: set[str] = set()
        self.calls: list[str] = []

    def stock(self, clinic_id: UUID, drug: DrugRecord, quantity: int = 10) -> None:
        self.inventory.append(
            InventoryRow(unit_id=uuid4(), clinic_id=clinic_id, available_quantity=quantity, drug=drug)
        )

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.failing:
            raise StoreError(f"{operation} unavailable")

    async def query_inventory(self, clinic_id: UUID) -> list[InventoryRow]:
        self._enter("query_inventory")
        return [
            row for row in self.inventory
            if row.clinic_id == clinic_id and row.available_quantity > 0
        ]

    async def query_catalog_by_text(self, pattern: str, limit: int,
                                    ndc_pattern: Optional[str] = None) -> list[DrugRecord]:
        self._enter("query_catalog_by_text")
        needle = pattern.lower()
        ndc_needle = ndc_pattern.lower() if ndc_pattern is not None else None
        matches = [
            drug for drug in self.catalog
            if needle in drug.medication_name.lower()
            or (drug.generic_name is not None and needle in drug.generic_name.lower())
            or (ndc_needle is not None and drug.ndc_id is not None and ndc_needle in drug.ndc_id.lower())
        ]
        return matches[:limit]

    async def query_catalog_by_exact_ndc(self, ndc: str) -> Optional[DrugRecord]:
        self._enter("query_catalog_by_exact_ndc")
        return next((drug for drug in self.catalog if drug.ndc_id == ndc), None)

    async def query_catalog_by_attributes(self, medication_name: str, strength: float,
                                          strength_unit: str, form: str) -> Optional[DrugRecord]:
        self._enter("query_catalog_by_attributes")
        return next(
            (
                drug for drug in self.catalog
                if drug.medication_name.lower() == medication_name.lower()
                and drug.strength == strength
                and drug.strength_unit == strength_unit
                and drug.form == form
            ),
            None,
        )

    async def insert_drug(self, fields: DrugFields) -> UUID:
        self._enter("insert_drug")
        drug = DrugRecord(
            id=uuid4(),
            medication_name=fields.medication_name,
            generic_name=fields.resolved_generic_name,
            strength=fields.strength,
            strength_unit=fields.strength_unit,
            ndc_id=fields.ndc_id,
            form=fields.form,
        )
        self.catalog.append(drug)
        return drug.id

    async def requires_lot_location(self, clinic_id: UUID) -> bool:
        self._enter("requires_lot_location")
        return self.lot_location.get(clinic_id, False)
