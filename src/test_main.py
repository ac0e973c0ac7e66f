import unittest
from datetime import date
from types import SimpleNamespace
from uuid import uuid4

from fastapi import HTTPException

from fake_store import FakeCatalogStore
from rxstock.graphql.schema import build_context
from rxstock.main import export_labels, get_context, health


def _request(store):
    state = SimpleNamespace(catalog_store=store, graphql_context=build_context(store))
    return SimpleNamespace(app=SimpleNamespace(state=state))


class LabelExportEndpointTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.clinic_id = uuid4()
        self.store = FakeCatalogStore()
        self.request = _request(self.store)

    async def _export(self, **overrides):
        params = {
            "clinic_id": self.clinic_id,
            "lot_code": "bl",
            "entry_date": date(2026, 2, 5),
            "medication_name": "Amlodipine",
            "dosage": "5mg",
        }
        params.update(overrides)
        return await export_labels(self.request, **params)

    async def test_csv_download(self):
        response = await self._export(quantity=2)

        self.assertEqual(response.media_type, "text/csv; charset=utf-8")
        self.assertIn('filename="labels_BL_20260205.csv"', response.headers["content-disposition"])
        self.assertIn(b"BL-020526-AMLO-05-02", response.body)

    async def test_excel_download(self):
        response = await self._export(lot_code="A", medication_name="ASA", dosage="81mg", fmt="EXCEL")

        self.assertIn(".xlsx", response.headers["content-disposition"])
        self.assertTrue(response.body.startswith(b"PK"))

    async def test_invalid_lot_code_is_bad_request(self):
        with self.assertRaises(HTTPException) as ctx:
            await self._export(lot_code="B9")
        self.assertEqual(ctx.exception.status_code, 400)

    async def test_clinic_setting_requires_drawer_side(self):
        self.store.lot_location[self.clinic_id] = True

        with self.assertRaises(HTTPException) as ctx:
            await self._export(lot_code="B")
        self.assertEqual(ctx.exception.status_code, 400)

        response = await self._export(lot_code="BR")
        self.assertIn(b"BR-020526-AMLO-05", response.body)

    async def test_quantity_above_two_digit_sequence_is_bad_request(self):
        with self.assertRaises(HTTPException) as ctx:
            await self._export(quantity=100)
        self.assertEqual(ctx.exception.status_code, 400)

    async def test_unknown_format_is_bad_request(self):
        with self.assertRaises(HTTPException) as ctx:
            await self._export(fmt="pdf")
        self.assertEqual(ctx.exception.status_code, 400)


class AppTests(unittest.IsolatedAsyncioTestCase):
    async def test_health(self):
        self.assertEqual(await health(), {"status": "ok"})

    async def test_context_is_copied_per_request(self):
        request = _request(FakeCatalogStore())
        shared = request.app.state.graphql_context

        context = await get_context(request)
        context["extra"] = True

        self.assertIs(context["search_engine"], shared["search_engine"])
        self.assertNotIn("extra", shared)


if __name__ == "__main__":
    unittest.main()
