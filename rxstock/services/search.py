from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Hashable, Optional, TypeVar
from uuid import UUID

from rxstock.models.search import DrugRecord, SearchResult
from rxstock.services.catalog_store import CatalogStore, StoreError
from rxstock.services.normalizer import normalize_ndc

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2
SEARCH_LIMIT = 10
CATALOG_SEARCH_LIMIT = 20
NAME_SEARCH_LIMIT = 15
NAME_CATALOG_SEARCH_LIMIT = 30

T = TypeVar("T")


def _is_searchable(query: Optional[str]) -> bool:
    return bool(query) and len(query.strip()) >= MIN_QUERY_LENGTH


def _name_contains(drug: DrugRecord, needle_lower: str) -> bool:
    return needle_lower in drug.medication_name.lower() or (
        drug.generic_name is not None and needle_lower in drug.generic_name.lower()
    )


def _ndc_key(drug: DrugRecord) -> Hashable:
    # Drugs without an NDC are distinct entries, never collapsed into one
    if drug.ndc_id:
        return ("ndc", drug.ndc_id)
    return ("id", drug.id)


def _medication_key(drug: DrugRecord) -> Hashable:
    return (drug.medication_name.lower(), drug.strength, drug.strength_unit)


class DrugSearchEngine:
    """
    Drug lookup across a clinic's in-stock inventory and the shared catalog.

    Inventory matches always come first so staff pick stock the clinic
    already holds.  A failed read of either source is logged and treated as
    an empty source; the other source still answers.
    """

    def __init__(self, store: CatalogStore) -> None:
        self._store = store

    async def _read_source(self, source: str, read: Awaitable[T], default: T) -> T:
        try:
            return await read
        except StoreError as exc:
            logger.warning("%s read failed, continuing without it: %s", source, exc)
            return default

    async def search_drugs(self, query: str, clinic_id: UUID) -> list[SearchResult]:
        """Match by NDC digits or by medication/generic name, deduplicated by NDC."""
        if not _is_searchable(query):
            return []

        text = query.strip()
        text_lower = text.lower()
        digits = normalize_ndc(text)

        inventory, catalog = await asyncio.gather(
            self._read_source("Inventory", self._store.query_inventory(clinic_id), []),
            self._read_source(
                "Catalog",
                self._store.query_catalog_by_text(text, CATALOG_SEARCH_LIMIT, ndc_pattern=digits or text),
                [],
            ),
        )

        results: list[SearchResult] = []
        seen: set[Hashable] = set()

        for row in inventory:
            drug = row.drug
            ndc_match = bool(digits) and digits in normalize_ndc(drug.ndc_id)
            if not (ndc_match or _name_contains(drug, text_lower)):
                continue
            key = _ndc_key(drug)
            if key in seen:
                continue
            seen.add(key)
            results.append(SearchResult.from_drug(drug, in_inventory=True))

        for drug in catalog:
            key = _ndc_key(drug)
            if key in seen:
                continue
            seen.add(key)
            results.append(SearchResult.from_drug(drug, in_inventory=False))

        logger.debug(
            "search_drugs(%r): %d inventory rows, %d catalog rows, %d results",
            text, len(inventory), len(catalog), len(results),
        )
        return results[:SEARCH_LIMIT]

    async def search_drug_by_ndc(self, ndc: str, clinic_id: Optional[UUID] = None) -> Optional[SearchResult]:
        """
        Exact NDC lookup for barcode scans.

        In-stock units of the clinic are compared on normalized digits; the
        catalog fallback uses the NDC exactly as scanned.
        """
        if not ndc or not ndc.strip():
            return None

        normalized = normalize_ndc(ndc)
        if clinic_id is not None and normalized:
            inventory = await self._read_source("Inventory", self._store.query_inventory(clinic_id), [])
            for row in inventory:
                if normalize_ndc(row.drug.ndc_id) == normalized:
                    return SearchResult.from_drug(row.drug, in_inventory=True)

        drug = await self._read_source("Catalog", self._store.query_catalog_by_exact_ndc(ndc), None)
        if drug is None:
            return None
        return SearchResult.from_drug(drug, in_inventory=False)

    async def search_medications_by_name(self, query: str, clinic_id: UUID) -> list[SearchResult]:
        """
        Name-only search collapsing equivalent drugs.

        Entries sharing (medication name, strength, strength unit) are one
        result regardless of NDC.  Output is sorted inventory-first, then by
        medication name.
        """
        if not _is_searchable(query):
            return []

        text_lower = query.strip().lower()

        inventory, catalog = await asyncio.gather(
            self._read_source("Inventory", self._store.query_inventory(clinic_id), []),
            self._read_source(
                "Catalog",
                self._store.query_catalog_by_text(text_lower, NAME_CATALOG_SEARCH_LIMIT),
                [],
            ),
        )

        results: list[SearchResult] = []
        seen: set[Hashable] = set()

        for row in inventory:
            drug = row.drug
            if not _name_contains(drug, text_lower):
                continue
            key = _medication_key(drug)
            if key in seen:
                continue
            seen.add(key)
            results.append(SearchResult.from_drug(drug, in_inventory=True))

        for drug in catalog:
            key = _medication_key(drug)
            if key in seen:
                continue
            seen.add(key)
            results.append(SearchResult.from_drug(drug, in_inventory=False))

        # Stable sort: ties keep inventory/catalog arrival order
        results.sort(key=lambda result: (not result.in_inventory, result.medication_name.casefold()))
        return results[:NAME_SEARCH_LIMIT]
