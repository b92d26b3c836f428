"""
builder.py — spreadsheet rows to ImportRecord

Rows are untyped {column: value} dicts straight from the loader. Each one is
validated field by field; nothing is assumed about which columns exist.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Iterable, Mapping

from importflow.cells import cell_text, cell_value, is_blank, optional_date, required_date
from importflow.records import PLACEHOLDER, ImportRecord, ImportStatus, Origin
from importflow.status import classify
from importflow.store import OverrideStore

logger = logging.getLogger(__name__)

COL_PO = "NUMERO_PO"
COL_PC = "NUMERO_PC"
COL_SC = "NUMERO_SC"
COL_REQUEST_NEED = "NECESS_SC"
COL_CONTRACT_NEED = "NECESS_PC"
COL_SUPPLIER = "RAZAO_FORNEC"
COL_PRODUCT = "DESCR_PROD"
COL_VOLUME = "VOLUME_PC"

RECOGNIZED_COLUMNS = (
    COL_PO,
    COL_PC,
    COL_SC,
    COL_REQUEST_NEED,
    COL_CONTRACT_NEED,
    COL_SUPPLIER,
    COL_PRODUCT,
    COL_VOLUME,
)

MISSING_CONTRACT = "N/A"
NATIONAL_PREFIX = "NAT"


def is_structurally_empty(row: Mapping[str, Any]) -> bool:
    return all(is_blank(row.get(column)) for column in (COL_PO, COL_PC, COL_PRODUCT))


def build_identity(po_number: str | None, pc_number: str, ordinal: int) -> str:
    if po_number is None:
        return f"{NATIONAL_PREFIX}-{pc_number}-{ordinal}"
    return f"{po_number}-{pc_number}-{ordinal}"


def days_between(need_date: date, today: date) -> int:
    return (need_date - today).days


def build_record(
    row: Mapping[str, Any],
    ordinal: int,
    store: OverrideStore,
    today: date,
    shipped: Mapping[str, Any] | None = None,
    excluded: Mapping[str, Any] | None = None,
) -> ImportRecord | None:
    """
    Build one record from one row, or None for a structurally empty row.

    `shipped`/`excluded` are preloaded override snapshots; when omitted the
    store is read directly.
    """
    if is_structurally_empty(row):
        return None

    po_number = cell_text(row.get(COL_PO))
    origin = Origin.NATIONAL if po_number is None else Origin.IMPORTED
    pc_number = cell_text(row.get(COL_PC)) or MISSING_CONTRACT
    identity = build_identity(po_number, pc_number, ordinal)

    contract_need_date = required_date(row.get(COL_CONTRACT_NEED), today)
    days_until_need = days_between(contract_need_date, today)

    if shipped is None:
        shipped = store.shipped.load()
    if excluded is None:
        excluded = store.excluded.load()

    shipped_at = None
    if origin is Origin.NATIONAL:
        status = ImportStatus.NACIONAL
    elif identity in shipped:
        status = ImportStatus.EMBARCADO
        shipped_at = shipped[identity]
    else:
        status = classify(days_until_need)

    return ImportRecord(
        identity=identity,
        ordinal=ordinal,
        origin=origin,
        po_number=po_number or "",
        pc_number=pc_number,
        sc_number=cell_text(row.get(COL_SC)),
        request_need_date=optional_date(row.get(COL_REQUEST_NEED)),
        contract_need_date=contract_need_date,
        supplier=cell_text(row.get(COL_SUPPLIER)) or PLACEHOLDER,
        product=cell_text(row.get(COL_PRODUCT)) or PLACEHOLDER,
        volume=cell_value(row.get(COL_VOLUME), PLACEHOLDER),
        days_until_need=days_until_need,
        status=status,
        shipped_at=shipped_at,
        excluded=identity in excluded,
    )


def build_records(
    rows: Iterable[Mapping[str, Any]],
    store: OverrideStore,
    today: date,
) -> list[ImportRecord]:
    shipped = store.shipped.load()
    excluded = store.excluded.load()

    records: list[ImportRecord] = []
    skipped = 0
    for ordinal, row in enumerate(rows):
        record = build_record(row, ordinal, store, today, shipped=shipped, excluded=excluded)
        if record is None:
            skipped += 1
            logger.debug("Skipping structurally empty row %d", ordinal)
            continue
        records.append(record)

    logger.info("Built %d records (%d empty rows skipped)", len(records), skipped)
    return records
