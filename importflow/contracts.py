"""Versioned JSON payloads emitted by the importflow CLI."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from importflow.records import ImportRecord
from importflow.store import format_timestamp

CONTRACT_VERSIONS = {
    "importflow.summary": "1.0.0",
    "importflow.records": "1.0.0",
    "importflow.transition": "1.0.0",
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_contract(name: str) -> dict[str, str]:
    version = CONTRACT_VERSIONS[name]
    return {"name": name, "version": version}


def build_run_summary(
    *,
    command: str,
    input_path: Path,
    status: str = "ok",
    metrics: dict[str, Any] | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "tool": "importflow",
        "command": command,
        "status": status,
        "generated_at": utc_now_iso(),
        "input_file": str(input_path),
        "warnings_count": len(warnings or []),
        "warnings": list(warnings or []),
        "metrics": metrics or {},
    }


def serialize_record(record: ImportRecord) -> dict[str, Any]:
    return {
        "identity": record.identity,
        "ordinal": record.ordinal,
        "origin": record.origin.value,
        "po_number": record.po_number,
        "pc_number": record.pc_number,
        "sc_number": record.sc_number,
        "request_need_date": record.request_need_date.isoformat() if record.request_need_date else None,
        "contract_need_date": record.contract_need_date.isoformat(),
        "supplier": record.supplier,
        "product": record.product,
        "volume": record.volume,
        "days_until_need": record.days_until_need,
        "status": record.status.value,
        "shipped_at": format_timestamp(record.shipped_at) if record.shipped_at else None,
        "excluded": record.excluded,
    }


def build_payload(name: str, body: dict[str, Any], run_summary: dict[str, Any]) -> dict[str, Any]:
    contract = build_contract(name)
    return {
        "contract": contract,
        "schema_version": contract["version"],
        **body,
        "run_summary": run_summary,
    }
