"""Catalog store adapter.

The search engine and the upsert resolver talk to storage only through the
``CatalogStore`` protocol.  ``SqlCatalogStore`` implements it on PostgreSQL
with SQLModel/SQLAlchemy; every user-supplied value travels as a bound
parameter and every row is validated into a typed projection before it leaves
this module.

Every storage failure (driver error, timeout, malformed row) surfaces as
``StoreError``.  Deciding whether that failure is fatal is the caller's job.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Protocol
from uuid import UUID, uuid4

from pydantic import ValidationError
from sqlalchemy import func, or_
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from rxstock.models.drug import Clinic, Drug, Unit
from rxstock.models.search import DrugFields, DrugRecord, InventoryRow

logger = logging.getLogger(__name__)

_LIKE_ESCAPE = "\\"


class StoreError(RuntimeError):
    """Raised when the underlying store cannot complete a read or a write."""


class CatalogStore(Protocol):
    async def query_inventory(self, clinic_id: UUID) -> list[InventoryRow]: ...

    async def query_catalog_by_text(
        self,
        pattern: str,
        limit: int,
        ndc_pattern: Optional[str] = None,
    ) -> list[DrugRecord]: ...

    async def query_catalog_by_exact_ndc(self, ndc: str) -> Optional[DrugRecord]: ...

    async def query_catalog_by_attributes(
        self,
        medication_name: str,
        strength: float,
        strength_unit: str,
        form: str,
    ) -> Optional[DrugRecord]: ...

    async def insert_drug(self, fields: DrugFields) -> UUID: ...

    async def requires_lot_location(self, clinic_id: UUID) -> bool: ...


# ---------------------------------------------------------------------------
# Statement builders (pure; no session needed, compiled in tests)
# ---------------------------------------------------------------------------

def _contains_pattern(value: str) -> str:
    """Wrap *value* for ILIKE substring matching with LIKE wildcards escaped."""
    escaped = (
        value.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", f"{_LIKE_ESCAPE}%")
        .replace("_", f"{_LIKE_ESCAPE}_")
    )
    return f"%{escaped}%"


def _inventory_statement(clinic_id: UUID):
    return (
        select(Unit, Drug)
        .join(Drug, Unit.drug_id == Drug.id)
        .where(Unit.clinic_id == clinic_id)
        .where(Unit.available_quantity > 0)
    )


def _catalog_text_statement(pattern: str, limit: int, ndc_pattern: Optional[str] = None):
    name_like = _contains_pattern(pattern)
    conditions = [
        Drug.medication_name.ilike(name_like, escape=_LIKE_ESCAPE),
        Drug.generic_name.ilike(name_like, escape=_LIKE_ESCAPE),
    ]
    if ndc_pattern is not None:
        conditions.append(Drug.ndc_id.ilike(_contains_pattern(ndc_pattern), escape=_LIKE_ESCAPE))
    return select(Drug).where(or_(*conditions)).limit(limit)


def _exact_ndc_statement(ndc: str):
    return select(Drug).where(Drug.ndc_id == ndc).limit(1)


def _attributes_statement(medication_name: str, strength: float, strength_unit: str, form: str):
    return (
        select(Drug)
        .where(func.lower(Drug.medication_name) == medication_name.lower())
        .where(Drug.strength == strength)
        .where(Drug.strength_unit == strength_unit)
        .where(Drug.form == form)
        .limit(1)
    )


def _insert_drug_statement(fields: DrugFields, drug_id: Optional[UUID] = None):
    table = Drug.__table__
    return (
        pg_insert(table)
        .values(
            id=drug_id or uuid4(),
            medication_name=fields.medication_name,
            generic_name=fields.resolved_generic_name,
            strength=fields.strength,
            strength_unit=fields.strength_unit,
            ndc_id=fields.ndc_id,
            form=fields.form,
        )
        .on_conflict_do_nothing()
        .returning(table.c.id)
    )


def _lot_location_statement(clinic_id: UUID):
    return select(Clinic.require_lot_location).where(Clinic.id == clinic_id)


# ---------------------------------------------------------------------------
# SQL implementation
# ---------------------------------------------------------------------------

class SqlCatalogStore:
    """
    ``CatalogStore`` over an async SQLAlchemy session factory.

    Each call opens its own session, so independent calls (e.g. the inventory
    and catalog reads of one search) can run concurrently.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self, action: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except (SQLAlchemyError, OSError, ValidationError) as exc:
            raise StoreError(f"{action}: {exc}") from exc

    async def query_inventory(self, clinic_id: UUID) -> list[InventoryRow]:
        async with self._session("Failed to query inventory") as session:
            rows = (await session.exec(_inventory_statement(clinic_id))).all()
            return [
                InventoryRow(
                    unit_id=unit.id,
                    clinic_id=unit.clinic_id,
                    available_quantity=unit.available_quantity,
                    drug=DrugRecord.model_validate(drug),
                )
                for unit, drug in rows
            ]

    async def query_catalog_by_text(
        self,
        pattern: str,
        limit: int,
        ndc_pattern: Optional[str] = None,
    ) -> list[DrugRecord]:
        async with self._session("Failed to search drugs") as session:
            drugs = (await session.exec(_catalog_text_statement(pattern, limit, ndc_pattern))).all()
            return [DrugRecord.model_validate(drug) for drug in drugs]

    async def query_catalog_by_exact_ndc(self, ndc: str) -> Optional[DrugRecord]:
        async with self._session("Failed to look up drug by NDC") as session:
            drug = (await session.exec(_exact_ndc_statement(ndc))).first()
            return DrugRecord.model_validate(drug) if drug is not None else None

    async def query_catalog_by_attributes(
        self,
        medication_name: str,
        strength: float,
        strength_unit: str,
        form: str,
    ) -> Optional[DrugRecord]:
        statement = _attributes_statement(medication_name, strength, strength_unit, form)
        async with self._session("Failed to look up drug by attributes") as session:
            drug = (await session.exec(statement)).first()
            return DrugRecord.model_validate(drug) if drug is not None else None

    async def insert_drug(self, fields: DrugFields) -> UUID:
        """
        Insert a catalog drug and return its id.

        On a unique-index conflict (same NDC, or same name/strength/unit/form
        inserted concurrently) the existing row's id is returned instead.
        """
        async with self._session("Failed to create drug") as session:
            result = await session.execute(_insert_drug_statement(fields))
            drug_id = result.scalar_one_or_none()
            await session.commit()

            if drug_id is not None:
                logger.info("Created drug %s (%s %s%s %s)", drug_id, fields.medication_name,
                            fields.strength, fields.strength_unit, fields.form)
                return drug_id

            existing = None
            if fields.ndc_id:
                existing = (await session.exec(_exact_ndc_statement(fields.ndc_id))).first()
            if existing is None:
                existing = (
                    await session.exec(
                        _attributes_statement(
                            fields.medication_name, fields.strength, fields.strength_unit, fields.form
                        )
                    )
                ).first()

        if existing is None:
            raise StoreError("Failed to create drug: insert conflicted but no existing row was found")
        logger.info("Drug insert conflicted, reusing %s", existing.id)
        return existing.id

    async def requires_lot_location(self, clinic_id: UUID) -> bool:
        async with self._session("Failed to read clinic settings") as session:
            value = (await session.exec(_lot_location_statement(clinic_id))).first()
            return bool(value)
