import sys
import unittest
from datetime import date, datetime, timezone
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from importflow.builder import build_identity, build_record, build_records, is_structurally_empty  # noqa: E402
from importflow.records import ImportStatus, Origin  # noqa: E402
from importflow.store import OverrideStore  # noqa: E402

TODAY = date(2024, 6, 1)
STAMP = datetime(2024, 5, 20, 9, 0, tzinfo=timezone.utc)


def row(**values):
    base = {
        "NUMERO_SC": "SC-1",
        "NUMERO_PO": 4500012001,
        "NUMERO_PC": "PC-9001",
        "NECESS_SC": None,
        "NECESS_PC": datetime(2024, 6, 11),
        "RAZAO_FORNEC": "Shanghai Valves Co",
        "DESCR_PROD": "Válvula esfera",
        "VOLUME_PC": 120,
    }
    base.update(values)
    return base


class BuildRecordTests(unittest.TestCase):
    def setUp(self):
        self.store = OverrideStore.in_memory()

    def build(self, raw, ordinal=0):
        return build_record(raw, ordinal, self.store, TODAY)

    def test_imported_record_fields(self):
        record = self.build(row(NECESS_SC="2024-05-01"), ordinal=4)
        self.assertEqual(record.identity, "4500012001-PC-9001-4")
        self.assertEqual(record.ordinal, 4)
        self.assertEqual(record.origin, Origin.IMPORTED)
        self.assertEqual(record.po_number, "4500012001")
        self.assertEqual(record.sc_number, "SC-1")
        self.assertEqual(record.request_need_date, date(2024, 5, 1))
        self.assertEqual(record.contract_need_date, date(2024, 6, 11))
        self.assertEqual(record.days_until_need, 10)
        self.assertEqual(record.status, ImportStatus.CRITICO)
        self.assertIsNone(record.shipped_at)
        self.assertFalse(record.excluded)
        self.assertEqual(record.volume, 120)

    def test_blank_po_means_national(self):
        for po in (None, "", "   "):
            with self.subTest(po=po):
                record = self.build(row(NUMERO_PO=po, NECESS_PC=datetime(2024, 5, 1)), ordinal=2)
                self.assertEqual(record.origin, Origin.NATIONAL)
                self.assertEqual(record.status, ImportStatus.NACIONAL)
                self.assertEqual(record.identity, "NAT-PC-9001-2")
                self.assertEqual(record.po_number, "")
                self.assertEqual(record.days_until_need, -31)

    def test_structurally_empty_row_yields_nothing(self):
        empty = row(NUMERO_PO=None, NUMERO_PC=None, DESCR_PROD=None)
        self.assertTrue(is_structurally_empty(empty))
        self.assertIsNone(self.build(empty))
        self.assertIsNone(self.build({}))

    def test_row_with_only_product_is_kept_as_national(self):
        record = self.build({"DESCR_PROD": "Parafuso"})
        self.assertEqual(record.origin, Origin.NATIONAL)
        self.assertEqual(record.identity, "NAT-N/A-0")
        self.assertEqual(record.supplier, "-")
        self.assertEqual(record.volume, "-")

    def test_missing_contract_number_defaults_to_na(self):
        record = self.build(row(NUMERO_PC=None))
        self.assertEqual(record.pc_number, "N/A")
        self.assertEqual(record.identity, "4500012001-N/A-0")

    def test_float_identifiers_render_without_decimal(self):
        record = self.build(row(NUMERO_PO=4500012001.0, NUMERO_PC=9001.0))
        self.assertEqual(record.identity, "4500012001-9001-0")

    def test_invalid_contract_date_defaults_to_today(self):
        record = self.build(row(NECESS_PC="sem data"))
        self.assertEqual(record.contract_need_date, TODAY)
        self.assertEqual(record.days_until_need, 0)
        self.assertEqual(record.status, ImportStatus.CRITICO)

    def test_invalid_request_date_is_absent(self):
        record = self.build(row(NECESS_SC="??"))
        self.assertIsNone(record.request_need_date)

    def test_day_delta_ignores_time_of_day(self):
        record = self.build(row(NECESS_PC=datetime(2024, 6, 2, 0, 30)))
        self.assertEqual(record.days_until_need, 1)

    def test_numeric_serial_need_date(self):
        record = self.build(row(NECESS_PC=45444))
        self.assertEqual(record.contract_need_date, date(2024, 6, 1))
        self.assertEqual(record.days_until_need, 0)

    def test_classification_windows(self):
        cases = {
            date(2024, 5, 31): ImportStatus.ATRASADO,
            date(2024, 6, 30): ImportStatus.CRITICO,
            date(2024, 7, 1): ImportStatus.ALERTA,
            date(2024, 7, 31): ImportStatus.ALERTA,
            date(2024, 8, 1): ImportStatus.PRODUCAO,
        }
        for need, status in cases.items():
            with self.subTest(need=need):
                self.assertEqual(self.build(row(NECESS_PC=need)).status, status)

    def test_shipped_override_wins_over_classification(self):
        self.store.shipped.set("4500012001-PC-9001-0", STAMP)
        record = self.build(row(NECESS_PC=datetime(2024, 1, 1)))
        self.assertEqual(record.status, ImportStatus.EMBARCADO)
        self.assertEqual(record.shipped_at, STAMP)
        self.assertEqual(record.days_until_need, -152)

    def test_shipped_override_is_ignored_for_national_rows(self):
        self.store.shipped.set("NAT-PC-9001-0", STAMP)
        record = self.build(row(NUMERO_PO=None))
        self.assertEqual(record.status, ImportStatus.NACIONAL)
        self.assertIsNone(record.shipped_at)

    def test_excluded_override_sets_flag_only(self):
        self.store.excluded.set("4500012001-PC-9001-0", STAMP)
        record = self.build(row())
        self.assertTrue(record.excluded)
        self.assertEqual(record.status, ImportStatus.CRITICO)

    def test_placeholders_for_missing_descriptive_fields(self):
        record = self.build(row(RAZAO_FORNEC=None, VOLUME_PC="  ", NUMERO_SC=None))
        self.assertEqual(record.supplier, "-")
        self.assertEqual(record.volume, "-")
        self.assertIsNone(record.sc_number)

    def test_date_volume_becomes_text(self):
        record = self.build(row(VOLUME_PC=datetime(2024, 1, 1)))
        self.assertEqual(record.volume, "2024-01-01 00:00:00")
        self.assertEqual(record.status, ImportStatus.CRITICO)

    def test_unrecognized_columns_are_ignored(self):
        record = self.build(row(COMPRADOR="Ana", OBS="urgente"))
        self.assertEqual(record.identity, "4500012001-PC-9001-0")


class BuildRecordsTests(unittest.TestCase):
    def test_ordinal_is_sheet_position_even_after_skipped_rows(self):
        store = OverrideStore.in_memory()
        rows = [row(), {"VOLUME_PC": 1}, row(NUMERO_PO=None)]
        records = build_records(rows, store, TODAY)
        self.assertEqual([r.identity for r in records], ["4500012001-PC-9001-0", "NAT-PC-9001-2"])

    def test_duplicate_business_keys_get_distinct_identities(self):
        records = build_records([row(), row()], OverrideStore.in_memory(), TODAY)
        self.assertEqual(len({r.identity for r in records}), 2)

    def test_rebuilding_unchanged_rows_reattaches_overrides(self):
        store = OverrideStore.in_memory()
        rows = [row(), row(NUMERO_PO=4500012002), row(NUMERO_PO=None)]
        first = build_records(rows, store, TODAY)
        store.shipped.set(first[1].identity, STAMP)
        store.excluded.set(first[2].identity, STAMP)

        second = build_records(rows, store, TODAY)
        self.assertEqual([r.identity for r in first], [r.identity for r in second])
        self.assertEqual(second[1].status, ImportStatus.EMBARCADO)
        self.assertTrue(second[2].excluded)
        self.assertEqual(second[0], first[0])

    def test_empty_rows_are_logged_not_raised(self):
        with self.assertLogs("importflow.builder", level="DEBUG") as logs:
            records = build_records([{}], OverrideStore.in_memory(), TODAY)
        self.assertEqual(records, [])
        self.assertTrue(any("empty" in line for line in logs.output))

    def test_identity_helper(self):
        self.assertEqual(build_identity(None, "PC1", 3), "NAT-PC1-3")
        self.assertEqual(build_identity("45", "PC1", 3), "45-PC1-3")


if __name__ == "__main__":
    unittest.main()
