"""Find-or-create for catalog drugs used by check-in.

Resolution order:
    1. exact catalog match on the supplied NDC
    2. catalog match on medication name (case-insensitive) + strength,
       strength unit and form
    3. insert a new catalog row

Lookups that fail are logged and treated as "not found"; the insert is the
only step whose failure reaches the caller, because check-in needs a real
drug id.  Two concurrent calls for the same new drug converge on one id
through the unique indexes behind ``CatalogStore.insert_drug``.
"""
from __future__ import annotations

import logging
from typing import Awaitable, Optional
from uuid import UUID

from rxstock.models.search import DrugFields, DrugRecord
from rxstock.services.catalog_store import CatalogStore, StoreError

logger = logging.getLogger(__name__)


class DrugUpsertResolver:
    def __init__(self, store: CatalogStore) -> None:
        self._store = store

    async def _lookup(self, step: str, read: Awaitable[Optional[DrugRecord]]) -> Optional[DrugRecord]:
        try:
            return await read
        except StoreError as exc:
            logger.warning("Drug lookup by %s failed, treating as not found: %s", step, exc)
            return None

    async def get_or_create_drug(self, fields: DrugFields) -> UUID:
        if fields.ndc_id:
            existing = await self._lookup("NDC", self._store.query_catalog_by_exact_ndc(fields.ndc_id))
            if existing is not None:
                return existing.id

        existing = await self._lookup(
            "attributes",
            self._store.query_catalog_by_attributes(
                fields.medication_name,
                fields.strength,
                fields.strength_unit,
                fields.form,
            ),
        )
        if existing is not None:
            return existing.id

        # StoreError from the write propagates unchanged
        return await self._store.insert_drug(fields)
