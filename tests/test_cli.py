from __future__ import annotations

import json
import os
import subprocess
import sys
import tempfile
import unittest
from datetime import datetime
from pathlib import Path

from openpyxl import Workbook


ROOT = Path(__file__).resolve().parents[1]
CLI = [sys.executable, "-m", "importflow.cli"]
FIXED_TODAY = "2024-06-01"

SHEET = (
    "NUMERO_SC,NUMERO_PO,NUMERO_PC,NECESS_PC,RAZAO_FORNEC,DESCR_PROD,VOLUME_PC\n"
    "SC-1,4500012001,PC-9001,2024-05-29,Shanghai Valves Co,Valvula,120\n"
    "SC-2,4500012002,PC-9002,2024-06-13,Hamburg Pumpen GmbH,Bomba,4\n"
    "SC-3,4500012003,PC-9003,2024-07-16,Osaka Bearings,Rolamento,800\n"
    "SC-4,,PC-7001,2024-06-16,Metalurgica Paulista,Chapa,2 ton\n"
    ",,,,,,\n"
    "SC-5,4500012005,PC-9005,2024-12-01,Texas Instruments,Controlador,10\n"
)


def run_cli(*args: str, store_dir: Path, env: dict[str, str] | None = None) -> subprocess.CompletedProcess[str]:
    merged_env = dict(os.environ)
    merged_env["IMPORTFLOW_TODAY"] = FIXED_TODAY
    merged_env["IMPORTFLOW_STORE_DIR"] = str(store_dir)
    merged_env["PYTHONIOENCODING"] = "utf-8"
    merged_env.pop("IMPORTFLOW_LOG_LEVEL", None)
    if env:
        merged_env.update(env)
    return subprocess.run(
        [*CLI, *args],
        cwd=ROOT,
        capture_output=True,
        text=True,
        encoding="utf-8",
        env=merged_env,
    )


class ImportflowCliTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmpdir = Path(self._tmp.name)
        self.store_dir = self.tmpdir / "store"
        self.sheet = self.tmpdir / "controle.csv"
        self.sheet.write_text(SHEET, encoding="utf-8")

    def tearDown(self):
        self._tmp.cleanup()

    def cli(self, *args: str, **kwargs) -> subprocess.CompletedProcess[str]:
        return run_cli(*args, store_dir=self.store_dir, **kwargs)

    def test_summary_json_reports_counts(self):
        proc = self.cli("summary", str(self.sheet), "--json")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["contract"], {"name": "importflow.summary", "version": "1.0.0"})
        self.assertEqual(payload["stats"]["total_imported"], 4)
        self.assertEqual(payload["stats"]["total_national"], 1)
        self.assertEqual(payload["stats"]["atrasado"], 1)
        self.assertEqual(payload["stats"]["critico"], 1)
        self.assertEqual(payload["stats"]["alerta"], 1)
        self.assertEqual(payload["stats"]["producao"], 1)
        self.assertEqual(payload["stats"]["follow_up_needed"], 2)
        self.assertEqual(payload["status_shares"]["ATRASADO"], 25)
        self.assertEqual(payload["top_delayed_suppliers"], [{"supplier": "Shanghai Valves..", "count": 1}])
        self.assertEqual(payload["run_summary"]["command"], "summary")

    def test_summary_text_goes_to_stderr(self):
        proc = self.cli("summary", str(self.sheet))
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual(proc.stdout, "")
        self.assertIn("Follow-up needed: 2", proc.stderr)

    def test_fail_on_follow_up_returns_exit_3(self):
        proc = self.cli("summary", str(self.sheet), "--fail-on-follow-up")
        self.assertEqual(proc.returncode, 3, proc.stderr)

    def test_list_json_is_sorted_by_urgency(self):
        proc = self.cli("list", str(self.sheet), "--json")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(
            [record["status"] for record in payload["records"]],
            ["ATRASADO", "CRITICO", "ALERTA", "PRODUCAO", "NACIONAL"],
        )
        self.assertEqual(payload["records"][0]["identity"], "4500012001-PC-9001-0")
        self.assertEqual(payload["records"][0]["timeline_fraction"], 1.0)
        self.assertEqual(payload["records"][-1]["identity"], "NAT-PC-7001-3")
        self.assertEqual(payload["counts"]["total"], 5)

    def test_list_filters(self):
        proc = self.cli("list", str(self.sheet), "--search", "osaka", "--json")
        payload = json.loads(proc.stdout)
        self.assertEqual([record["identity"] for record in payload["records"]], ["4500012003-PC-9003-2"])

        proc = self.cli("list", str(self.sheet), "--from", "2024-06-10", "--to", "2024-06-30", "--json")
        payload = json.loads(proc.stdout)
        self.assertEqual(
            [record["identity"] for record in payload["records"]],
            ["4500012002-PC-9002-1", "NAT-PC-7001-3"],
        )

    def test_list_text_output(self):
        proc = self.cli("list", str(self.sheet), "--view", "CRITICO")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertIn("Itens Importados - Críticos (<30 dias)", proc.stdout)
        self.assertIn("4500012002-PC-9002-1", proc.stdout)
        self.assertNotIn("4500012001-PC-9001-0", proc.stdout)

    def test_ship_persists_across_runs(self):
        proc = self.cli("ship", str(self.sheet), "4500012002-PC-9002-1", "--json")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertTrue(payload["changed"])
        self.assertEqual(payload["record"]["status"], "EMBARCADO")
        self.assertTrue(payload["record"]["shipped_at"].endswith("Z"))

        stored = json.loads((self.store_dir / "importflow_shipped_items.json").read_text(encoding="utf-8"))
        self.assertIn("4500012002-PC-9002-1", stored)

        summary = json.loads(self.cli("summary", str(self.sheet), "--json").stdout)
        self.assertEqual(summary["stats"]["embarcado"], 1)
        self.assertEqual(summary["stats"]["critico"], 0)

        proc = self.cli("unship", str(self.sheet), "4500012002-PC-9002-1", "--json")
        self.assertEqual(json.loads(proc.stdout)["record"]["status"], "CRITICO")

    def test_ship_national_is_unchanged(self):
        proc = self.cli("ship", str(self.sheet), "NAT-PC-7001-3", "--json")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertFalse(payload["changed"])
        self.assertEqual(payload["run_summary"]["status"], "unchanged")
        self.assertEqual(payload["record"]["status"], "NACIONAL")

    def test_exclude_and_restore(self):
        proc = self.cli("exclude", str(self.sheet), "4500012001-PC-9001-0")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        listing = json.loads(self.cli("list", str(self.sheet), "--view", "EXCLUIDOS", "--json").stdout)
        self.assertEqual([record["identity"] for record in listing["records"]], ["4500012001-PC-9001-0"])

        self.cli("restore", str(self.sheet), "4500012001-PC-9001-0")
        listing = json.loads(self.cli("list", str(self.sheet), "--view", "EXCLUIDOS", "--json").stdout)
        self.assertEqual(listing["records"], [])

    def test_date_in_volume_column_still_serializes(self):
        workbook_path = self.tmpdir / "volume_date.xlsx"
        wb = Workbook()
        ws = wb.active
        ws.append(["NUMERO_PO", "NUMERO_PC", "NECESS_PC", "DESCR_PROD", "VOLUME_PC"])
        ws.append([4501, 2, 45458, "Junta", datetime(2024, 1, 1)])
        wb.save(workbook_path)

        proc = self.cli("list", str(workbook_path), "--json")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        records = json.loads(proc.stdout)["records"]
        self.assertEqual(len(records), 1)
        self.assertTrue(records[0]["volume"].startswith("2024-01-01"))

        proc = self.cli("ship", str(workbook_path), "4501-2-0", "--json")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual(json.loads(proc.stdout)["record"]["status"], "EMBARCADO")

    def test_unknown_identity_returns_exit_1(self):
        proc = self.cli("ship", str(self.sheet), "does-not-exist")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("does-not-exist", proc.stderr)

    def test_unreadable_workbook_returns_exit_2(self):
        broken = self.tmpdir / "broken.xlsx"
        broken.write_bytes(b"not a workbook")
        proc = self.cli("summary", str(broken))
        self.assertEqual(proc.returncode, 2)
        self.assertIn("Could not read workbook", proc.stderr)

    def test_missing_file_returns_exit_1(self):
        proc = self.cli("summary", str(self.tmpdir / "missing.xlsx"))
        self.assertEqual(proc.returncode, 1)
        self.assertIn("File not found", proc.stderr)

    def test_bad_today_override_returns_exit_1(self):
        proc = self.cli("summary", str(self.sheet), env={"IMPORTFLOW_TODAY": "yesterday"})
        self.assertEqual(proc.returncode, 1)
        self.assertIn("Invalid date", proc.stderr)

    def test_bad_arguments_return_exit_1(self):
        proc = self.cli("list", str(self.sheet), "--view", "SOMEWHERE")
        self.assertEqual(proc.returncode, 1)
        proc = self.cli("list", str(self.sheet), "--from", "01/06/2024")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("--from expects YYYY-MM-DD", proc.stderr)

    def test_version(self):
        proc = self.cli("version")
        self.assertEqual(proc.returncode, 0)
        self.assertEqual(proc.stdout.strip(), "0.1.0")


if __name__ == "__main__":
    unittest.main()
