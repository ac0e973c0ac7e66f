import unittest
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError

from rxstock.models.drug import Drug
from rxstock.models.search import DrugFields
from rxstock.services.catalog_store import (
    SqlCatalogStore,
    StoreError,
    _attributes_statement,
    _catalog_text_statement,
    _contains_pattern,
    _insert_drug_statement,
    _inventory_statement,
)


def _compile(statement):
    compiled = statement.compile(dialect=postgresql.dialect())
    return str(compiled), compiled.params


class _SessionFactory:
    """Stands in for ``async_sessionmaker``: yields *session* or fails on enter."""

    def __init__(self, session=None, error=None):
        self.session = session
        self.error = error

    def __call__(self):
        return self

    async def __aenter__(self):
        if self.error is not None:
            raise self.error
        return self.session

    async def __aexit__(self, *exc_info):
        return False


class StatementTests(unittest.TestCase):
    def test_contains_pattern_escapes_wildcards(self):
        self.assertEqual(_contains_pattern("amlo"), "%amlo%")
        self.assertEqual(_contains_pattern("50%_off"), "%50\\%\\_off%")
        self.assertEqual(_contains_pattern("a\\b"), "%a\\\\b%")

    def test_catalog_text_binds_user_text(self):
        hostile = "x'; DROP TABLE drugs; --"
        sql, params = _compile(_catalog_text_statement(hostile, 20))

        self.assertNotIn("DROP TABLE", sql)
        self.assertIn(f"%{hostile}%", params.values())
        self.assertIn(20, params.values())
        self.assertEqual(sql.count("ILIKE"), 2)
        self.assertIn("ESCAPE", sql)

    def test_catalog_text_adds_ndc_condition(self):
        sql, params = _compile(_catalog_text_statement("0069", 20, ndc_pattern="0069"))

        self.assertEqual(sql.count("ILIKE"), 3)
        self.assertIn("drugs.ndc_id", sql)

    def test_inventory_joins_in_stock_units(self):
        clinic_id = uuid4()
        sql, params = _compile(_inventory_statement(clinic_id))

        self.assertIn("JOIN drugs", sql)
        self.assertIn("units.available_quantity >", sql)
        self.assertIn(clinic_id, params.values())

    def test_attributes_lookup_ignores_name_case(self):
        sql, params = _compile(_attributes_statement("Amlodipine", 5.0, "mg", "tablet"))

        self.assertIn("lower(drugs.medication_name)", sql)
        self.assertIn("amlodipine", params.values())

    def test_insert_does_nothing_on_conflict(self):
        fields = DrugFields(medication_name="Amlodipine", strength=5.0, strength_unit="mg", form="tablet")
        sql, params = _compile(_insert_drug_statement(fields))

        self.assertIn("ON CONFLICT DO NOTHING", sql)
        self.assertIn("RETURNING drugs.id", sql)
        self.assertEqual(params["generic_name"], "Amlodipine")
        self.assertIsNone(params["ndc_id"])

    def test_drug_unique_indexes(self):
        indexes = {index.name: index for index in Drug.__table__.indexes}

        self.assertTrue(indexes["uq_drugs_natural_key"].unique)
        self.assertTrue(indexes["uq_drugs_ndc_id"].unique)
        self.assertIsNotNone(indexes["uq_drugs_ndc_id"].dialect_options["postgresql"]["where"])


class SqlCatalogStoreTests(unittest.IsolatedAsyncioTestCase):
    async def test_driver_errors_become_store_error(self):
        error = OperationalError("SELECT 1", {}, Exception("connection refused"))
        store = SqlCatalogStore(_SessionFactory(error=error))

        with self.assertRaises(StoreError) as ctx:
            await store.query_inventory(uuid4())
        self.assertIs(ctx.exception.__cause__, error)

    async def test_timeouts_become_store_error(self):
        store = SqlCatalogStore(_SessionFactory(error=TimeoutError("timed out")))

        with self.assertRaises(StoreError):
            await store.query_catalog_by_exact_ndc("1111")

    async def test_insert_returns_new_id(self):
        new_id = uuid4()
        session = AsyncMock()
        insert_result = MagicMock()
        insert_result.scalar_one_or_none.return_value = new_id
        session.execute.return_value = insert_result
        store = SqlCatalogStore(_SessionFactory(session=session))

        fields = DrugFields(medication_name="Amlodipine", strength=5.0, strength_unit="mg", form="tablet")
        self.assertEqual(await store.insert_drug(fields), new_id)
        session.commit.assert_awaited_once()
        session.exec.assert_not_called()

    async def test_insert_conflict_reuses_existing_row(self):
        existing_id = uuid4()
        session = AsyncMock()
        insert_result = MagicMock()
        insert_result.scalar_one_or_none.return_value = None
        session.execute.return_value = insert_result
        lookup = MagicMock()
        lookup.first.return_value = MagicMock(id=existing_id)
        session.exec.return_value = lookup
        store = SqlCatalogStore(_SessionFactory(session=session))

        fields = DrugFields(
            medication_name="Amlodipine", strength=5.0, strength_unit="mg", form="tablet", ndc_id="1111"
        )
        self.assertEqual(await store.insert_drug(fields), existing_id)

    async def test_insert_conflict_without_row_raises(self):
        session = AsyncMock()
        insert_result = MagicMock()
        insert_result.scalar_one_or_none.return_value = None
        session.execute.return_value = insert_result
        lookup = MagicMock()
        lookup.first.return_value = None
        session.exec.return_value = lookup
        store = SqlCatalogStore(_SessionFactory(session=session))

        fields = DrugFields(medication_name="Amlodipine", strength=5.0, strength_unit="mg", form="tablet")
        with self.assertRaises(StoreError):
            await store.insert_drug(fields)

    async def test_unknown_clinic_does_not_require_location(self):
        session = AsyncMock()
        lookup = MagicMock()
        lookup.first.return_value = None
        session.exec.return_value = lookup
        store = SqlCatalogStore(_SessionFactory(session=session))

        self.assertFalse(await store.requires_lot_location(uuid4()))


if __name__ == "__main__":
    unittest.main()
