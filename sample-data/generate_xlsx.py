#!/usr/bin/env python3
"""
Generates sample-data/controle_importacao.xlsx, a procurement follow-up sheet
for trying out importflow.

Run from the repo root:
    python sample-data/generate_xlsx.py

What is baked in (relative to the day the script runs):
  Sheet "Importacao"
    - Imported items spread across every urgency window (overdue, <30 days,
      30-60 days, >60 days)
    - National items (blank NUMERO_PO)
    - Need dates as native date cells, serial numbers and text
    - A duplicated PO/PC pair (identities stay unique through the row ordinal)
    - A ghost row with only VOLUME_PC filled (skipped on import)
    - An unparseable NECESS_PC (falls back to today)
  Sheet "Notas"
    - Ignored; only the first sheet is imported
"""

from datetime import date, timedelta
from pathlib import Path

import openpyxl

OUTPUT = Path(__file__).parent / "controle_importacao.xlsx"
TODAY = date.today()


def ahead(days: int) -> date:
    return TODAY + timedelta(days=days)


def serial(day: date) -> int:
    return (day - date(1899, 12, 30)).days


wb = openpyxl.Workbook()

# ── Sheet 1: Importacao ──────────────────────────────────────────────────────
ws = wb.active
ws.title = "Importacao"
ws.append(["NUMERO_SC", "NUMERO_PO", "NUMERO_PC", "NECESS_SC", "NECESS_PC", "RAZAO_FORNEC", "DESCR_PROD", "VOLUME_PC"])

data = [
    # SC      PO            PC        NECESS_SC          NECESS_PC               supplier                    product                    volume
    ["SC-101", 4500012001, "PC-9001", ahead(-20),       ahead(-5),              "Shanghai Valves Co",       "Válvula esfera 2\"",      120],
    ["SC-102", 4500012002, "PC-9002", None,             ahead(12),              "Hamburg Pumpen GmbH",      "Bomba centrífuga",        4],
    ["SC-103", 4500012003, "PC-9003", ahead(20),        serial(ahead(45)),      "Osaka Bearings",           "Rolamento 6205",          800],
    ["SC-104", 4500012004, "PC-9004", None,             ahead(120).isoformat(), "Texas Instruments",        "Controlador lógico",      10],
    ["SC-105", 4500012004, "PC-9004", None,             ahead(61),              "Texas Instruments",        "Controlador lógico",      10],
    ["SC-106", None,       "PC-7001", None,             ahead(15),              "Metalúrgica Paulista",     "Chapa aço 3mm",           "2 ton"],
    ["SC-107", "",         "PC-7002", None,             ahead(-3),              "Plásticos do Sul",         "Tampa PP",                5000],
    [None,     None,       None,      None,             None,                   None,                       None,                      1],
    ["SC-108", 4500012005, "PC-9005", None,             "sem data",             "Shanghai Valves Co",       "Válvula gaveta 4\"",      30],
    ["SC-109", 4500012006, "PC-9006", None,             ahead(-40),             "Shanghai Valves Co",       "Flange ANSI 150",         200],
]

for row in data:
    ws.append(row)

for cell in ws["E"][1:] + ws["D"][1:]:
    if isinstance(cell.value, date):
        cell.number_format = "DD/MM/YYYY"

# ── Sheet 2: Notas (ignored) ─────────────────────────────────────────────────
notes = wb.create_sheet("Notas")
notes.append(["Planilha gerada para testes do importflow."])

wb.save(OUTPUT)
print(f"Created: {OUTPUT}")
