import unittest
from uuid import uuid4

from fake_store import FakeCatalogStore, make_drug
from rxstock.graphql.schema import build_context, schema


class GraphQLSchemaTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.clinic_id = uuid4()
        self.store = FakeCatalogStore()
        self.context = build_context(self.store)

    async def _execute(self, query, **variables):
        result = await schema.execute(query, variable_values=variables or None, context_value=self.context)
        return result

    async def test_search_drugs(self):
        stocked = make_drug("Amlodipine", ndc_id="0001")
        self.store.stock(self.clinic_id, stocked)
        self.store.catalog = [make_drug("Amlodipine Besylate", ndc_id="0002")]

        result = await self._execute(
            """
            query Search($clinicId: ID!) {
                searchDrugs(query: "amlo", clinicId: $clinicId) { id medicationName inInventory }
            }
            """,
            clinicId=str(self.clinic_id),
        )

        self.assertIsNone(result.errors)
        rows = result.data["searchDrugs"]
        self.assertEqual(rows[0], {"id": str(stocked.id), "medicationName": "Amlodipine", "inInventory": True})
        self.assertFalse(rows[1]["inInventory"])

    async def test_search_drug_by_ndc_not_found(self):
        result = await self._execute('query { searchDrugByNdc(ndc: "9999") { id } }')

        self.assertIsNone(result.errors)
        self.assertIsNone(result.data["searchDrugByNdc"])

    async def test_search_medications_by_name(self):
        self.store.catalog = [make_drug("Lisinopril", ndc_id="1"), make_drug("Lisinopril", ndc_id="2")]

        result = await self._execute(
            """
            query Names($clinicId: ID!) {
                searchMedicationsByName(query: "lisin", clinicId: $clinicId) { medicationName strength }
            }
            """,
            clinicId=str(self.clinic_id),
        )

        self.assertIsNone(result.errors)
        self.assertEqual(result.data["searchMedicationsByName"], [{"medicationName": "Lisinopril", "strength": 5.0}])

    async def test_invalid_clinic_id(self):
        result = await self._execute('query { searchDrugs(query: "amlo", clinicId: "not-a-uuid") { id } }')

        self.assertIsNotNone(result.errors)
        self.assertIn("Invalid clinic_id", result.errors[0].message)

    async def test_code_grammar_fields(self):
        result = await self._execute(
            """
            query {
                parseDosage(dosage: "10mg/5ml") { strength strengthUnit }
                validateLotCode(lotCode: "B", requireLocation: true)
                lotDescription(lotCode: "bl")
                generateQrCode(
                    lotCode: "BL", entryDate: "2026-02-05", medicationName: "Amlodipine", dosage: "5mg", sequence: 2
                )
            }
            """
        )

        self.assertIsNone(result.errors)
        self.assertEqual(result.data["parseDosage"], {"strength": 10.0, "strengthUnit": "mg"})
        self.assertFalse(result.data["validateLotCode"])
        self.assertEqual(result.data["lotDescription"], "Drawer B Left")
        self.assertEqual(result.data["generateQrCode"], "BL-020526-AMLO-05-02")

    async def test_validate_lot_code_uses_clinic_setting(self):
        self.store.lot_location[self.clinic_id] = True

        result = await self._execute(
            """
            query Lot($clinicId: ID!) {
                drawerOnly: validateLotCode(lotCode: "B", clinicId: $clinicId)
                withSide: validateLotCode(lotCode: "BR", clinicId: $clinicId)
            }
            """,
            clinicId=str(self.clinic_id),
        )

        self.assertIsNone(result.errors)
        self.assertEqual(result.data, {"drawerOnly": False, "withSide": True})

    async def test_get_or_create_drug_is_idempotent(self):
        mutation = """
            mutation {
                getOrCreateDrug(drug: {medicationName: "Amlodipine", strength: 5, strengthUnit: "mg", form: "tablet"})
            }
        """

        first = await self._execute(mutation)
        second = await self._execute(mutation)

        self.assertIsNone(first.errors)
        self.assertEqual(first.data["getOrCreateDrug"], second.data["getOrCreateDrug"])
        self.assertEqual(len(self.store.catalog), 1)


if __name__ == "__main__":
    unittest.main()
