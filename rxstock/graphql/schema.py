from __future__ import annotations

from datetime import date
from typing import Any, Optional
from uuid import UUID

import strawberry
from strawberry.types import Info

from rxstock.models.search import DrugFields, SearchResult
from rxstock.services.catalog_store import CatalogStore
from rxstock.services.drug_resolver import DrugUpsertResolver
from rxstock.services.lot_codes import (
    generate_qr_code,
    get_lot_description,
    validate_clinic_lot_code,
    validate_lot_code,
)
from rxstock.services.normalizer import parse_dosage
from rxstock.services.search import DrugSearchEngine


@strawberry.type
class DrugSearchResultNode:
    id: strawberry.ID
    medication_name: str
    generic_name: Optional[str]
    strength: float
    strength_unit: str
    ndc_id: Optional[str]
    form: str
    in_inventory: bool


@strawberry.type
class DosageNode:
    strength: float
    strength_unit: str


@strawberry.input
class DrugInput:
    medication_name: str
    strength: float
    strength_unit: str
    form: str
    generic_name: Optional[str] = None
    ndc_id: Optional[str] = None


def build_context(store: CatalogStore) -> dict[str, Any]:
    """Services shared by every resolver; built once by the app entry point."""
    return {
        "catalog_store": store,
        "search_engine": DrugSearchEngine(store),
        "drug_resolver": DrugUpsertResolver(store),
    }


def _parse_uuid(value: Any, field: str) -> UUID:
    try:
        return UUID(str(value))
    except ValueError:
        raise ValueError(f"Invalid {field}")


def _to_node(result: SearchResult) -> DrugSearchResultNode:
    return DrugSearchResultNode(
        id=strawberry.ID(str(result.id)),
        medication_name=result.medication_name,
        generic_name=result.generic_name,
        strength=result.strength,
        strength_unit=result.strength_unit,
        ndc_id=result.ndc_id,
        form=result.form,
        in_inventory=result.in_inventory,
    )


@strawberry.type
class Query:
    @strawberry.field
    async def search_drugs(self, info: Info, query: str, clinic_id: strawberry.ID) -> list[DrugSearchResultNode]:
        engine: DrugSearchEngine = info.context["search_engine"]
        results = await engine.search_drugs(query, _parse_uuid(clinic_id, "clinic_id"))
        return [_to_node(r) for r in results]

    @strawberry.field
    async def search_drug_by_ndc(
        self,
        info: Info,
        ndc: str,
        clinic_id: Optional[strawberry.ID] = None,
    ) -> Optional[DrugSearchResultNode]:
        """Exact NDC lookup used by the barcode scanner."""
        engine: DrugSearchEngine = info.context["search_engine"]
        clinic_uuid = _parse_uuid(clinic_id, "clinic_id") if clinic_id is not None else None
        result = await engine.search_drug_by_ndc(ndc, clinic_uuid)
        return _to_node(result) if result is not None else None

    @strawberry.field
    async def search_medications_by_name(
        self,
        info: Info,
        query: str,
        clinic_id: strawberry.ID,
    ) -> list[DrugSearchResultNode]:
        engine: DrugSearchEngine = info.context["search_engine"]
        results = await engine.search_medications_by_name(query, _parse_uuid(clinic_id, "clinic_id"))
        return [_to_node(r) for r in results]

    @strawberry.field
    def parse_dosage(self, dosage: str) -> DosageNode:
        parsed = parse_dosage(dosage)
        return DosageNode(strength=parsed.strength, strength_unit=parsed.strength_unit)

    @strawberry.field
    async def validate_lot_code(
        self,
        info: Info,
        lot_code: str,
        clinic_id: Optional[strawberry.ID] = None,
        require_location: bool = False,
    ) -> bool:
        """With a clinic id the clinic's own location setting wins over ``require_location``."""
        if clinic_id is None:
            return validate_lot_code(lot_code, require_location)
        store: CatalogStore = info.context["catalog_store"]
        return await validate_clinic_lot_code(store, _parse_uuid(clinic_id, "clinic_id"), lot_code)

    @strawberry.field
    def lot_description(self, lot_code: str) -> str:
        return get_lot_description(lot_code)

    @strawberry.field
    def generate_qr_code(
        self,
        lot_code: str,
        entry_date: date,
        medication_name: str,
        dosage: str,
        sequence: Optional[int] = None,
    ) -> str:
        return generate_qr_code(lot_code, entry_date, medication_name, dosage, sequence)


@strawberry.type
class Mutation:
    @strawberry.mutation
    async def get_or_create_drug(self, info: Info, drug: DrugInput) -> strawberry.ID:
        """Return the catalog id for these attributes, creating the drug if needed."""
        resolver: DrugUpsertResolver = info.context["drug_resolver"]
        fields = DrugFields(
            medication_name=drug.medication_name,
            generic_name=drug.generic_name,
            strength=drug.strength,
            strength_unit=drug.strength_unit,
            ndc_id=drug.ndc_id,
            form=drug.form,
        )
        drug_id = await resolver.get_or_create_drug(fields)
        return strawberry.ID(str(drug_id))


schema = strawberry.Schema(query=Query, mutation=Mutation)
