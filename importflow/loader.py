"""
loader.py — spreadsheet decoding for importflow

Supports: .xlsx .xlsm .xls .ods .csv .tsv .txt

Public API:
    result = load_sheet_rows("path/to/controle.xlsx")
    rows   = result["rows"]

Result dict keys:
    rows              — list of {column: value} dicts, blank cells as None
    detected_format   — "xlsx", "csv", etc.
    detected_encoding — encoding name for text files; None for workbooks
    sheet_name        — sheet that was read; None for text files
    sheet_names       — all sheets in the workbook; None for text files
    original_rows     — row count including header row
    original_columns  — column count
    warnings          — list of warning strings

Only the first sheet of a workbook is read. Cell values keep their native
types (dates, numbers, strings) so the cell normalizer can interpret them.
"""

from __future__ import annotations

import csv
import io
import logging
from pathlib import Path
from typing import Any, Optional

import pandas as pd

logger = logging.getLogger(__name__)

# ── Format groups ──────────────────────────────────────────────────────────────
TEXT_FORMATS  = {".csv", ".tsv", ".txt"}
EXCEL_FORMATS = {".xlsx", ".xlsm", ".xls"}
ODS_FORMATS   = {".ods"}
ALL_FORMATS   = TEXT_FORMATS | EXCEL_FORMATS | ODS_FORMATS


class SpreadsheetDecodeError(ValueError):
    """The file could not be decoded as a spreadsheet."""


# ══════════════════════════════════════════════════════════════════════════════
# TEXT DECODING
# ══════════════════════════════════════════════════════════════════════════════

def _detect_encoding(raw: bytes) -> str:
    import chardet

    result = chardet.detect(raw)
    return result.get("encoding") or "utf-8"


def _read_text_safely(raw: bytes, preferred_encoding: str) -> str:
    """
    Decode raw bytes line-by-line.

    Strategy per line: UTF-8, then the detected encoding, then latin-1, and
    finally CP1252 with replacement so decoding never crashes.
    """
    decoded_lines: list[str] = []
    for raw_line in raw.split(b"\n"):
        decoded: str | None = None
        for enc in ("utf-8", preferred_encoding, "latin-1"):
            if not enc:
                continue
            try:
                decoded = raw_line.decode(enc)
                break
            except (LookupError, UnicodeDecodeError):
                continue
        if decoded is None:
            decoded = raw_line.decode("cp1252", errors="replace")
        decoded_lines.append(decoded.replace("\x00", ""))
    return "\n".join(decoded_lines).lstrip("\ufeff")


def _detect_delimiter(text: str) -> str:
    sample_lines = [line for line in text.splitlines() if line.strip()][:25]
    sample = "\n".join(sample_lines)
    if not sample:
        return ","
    try:
        return csv.Sniffer().sniff(sample, delimiters=",;\t|").delimiter
    except csv.Error:
        pass
    counts = {delim: sample_lines[0].count(delim) for delim in (",", ";", "\t", "|")}
    best = max(counts, key=counts.get)
    return best if counts[best] else ","


# ══════════════════════════════════════════════════════════════════════════════
# FORMAT LOADERS
# ══════════════════════════════════════════════════════════════════════════════

def _frame_rows(df: pd.DataFrame) -> list[dict[str, Any]]:
    df = df.rename(columns=lambda column: str(column).strip())
    df = df.astype(object).where(pd.notna(df), None)
    return df.to_dict(orient="records")


def _load_text(raw: bytes, suffix: str) -> dict:
    encoding = _detect_encoding(raw)
    text = _read_text_safely(raw, encoding)
    delimiter = "\t" if suffix == ".tsv" else _detect_delimiter(text)

    try:
        df = pd.read_csv(
            io.StringIO(text),
            dtype=str,
            sep=delimiter,
            engine="python",
            skip_blank_lines=False,
        )
    except Exception as exc:
        raise SpreadsheetDecodeError(f"Could not parse {suffix} file: {exc}") from exc

    return {
        "rows":              _frame_rows(df),
        "detected_format":   suffix.lstrip("."),
        "detected_encoding": encoding,
        "sheet_name":        None,
        "sheet_names":       None,
        "original_rows":     len(df) + 1,
        "original_columns":  len(df.columns),
        "warnings":          [],
    }


def _load_workbook(raw: bytes, suffix: str, engine: Optional[str]) -> dict:
    warnings: list[str] = []
    try:
        with pd.ExcelFile(io.BytesIO(raw), engine=engine) as xf:
            sheet_names = list(xf.sheet_names)
            if not sheet_names:
                raise SpreadsheetDecodeError("Workbook has no sheets.")
            first = sheet_names[0]
            df = xf.parse(sheet_name=first, dtype=object)
    except SpreadsheetDecodeError:
        raise
    except ImportError:
        raise
    except Exception as exc:
        raise SpreadsheetDecodeError(f"Could not read workbook: {exc}") from exc

    if len(sheet_names) > 1:
        warnings.append(
            f"Multiple sheets found ({len(sheet_names)} total); "
            f"used '{first}'. Ignored: {sheet_names[1:]}"
        )

    return {
        "rows":              _frame_rows(df),
        "detected_format":   suffix.lstrip("."),
        "detected_encoding": None,
        "sheet_name":        first,
        "sheet_names":       sheet_names,
        "original_rows":     len(df) + 1,
        "original_columns":  len(df.columns),
        "warnings":          warnings,
    }


def _require(module: str, message: str) -> None:
    try:
        __import__(module)
    except ImportError:
        raise ImportError(message)


# ══════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════════════════════

def load_sheet_rows(source: "str | Path | bytes", filename: Optional[str] = None) -> dict:
    """
    Decode a spreadsheet into untyped row dicts.

    Args:
        source:   Path to the file, or the raw bytes of an uploaded file.
        filename: Name used to pick the format when `source` is bytes.

    Raises:
        FileNotFoundError       if a path does not exist.
        SpreadsheetDecodeError  if the format is unsupported or unreadable.
        ImportError             if a required optional dependency is missing.
    """
    if isinstance(source, (bytes, bytearray)):
        if not filename:
            raise SpreadsheetDecodeError("A filename is required to decode uploaded bytes.")
        raw = bytes(source)
        suffix = Path(filename).suffix.lower()
    else:
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        suffix = path.suffix.lower()
        raw = None if suffix not in ALL_FORMATS else path.read_bytes()

    if suffix not in ALL_FORMATS:
        supported = ", ".join(sorted(ALL_FORMATS))
        raise SpreadsheetDecodeError(
            f"Unsupported format '{suffix or '[missing extension]'}'. Supported: {supported}"
        )

    if suffix in TEXT_FORMATS:
        result = _load_text(raw, suffix)
    elif suffix == ".xls":
        _require("xlrd", ".xls files require xlrd — run: pip install xlrd")
        result = _load_workbook(raw, suffix, engine="xlrd")
    elif suffix in ODS_FORMATS:
        _require("odf", ".ods files require odfpy — run: pip install odfpy")
        result = _load_workbook(raw, suffix, engine="odf")
    else:
        result = _load_workbook(raw, suffix, engine="openpyxl")

    logger.info(
        "Decoded %s: %d data rows, %d columns",
        result["detected_format"],
        len(result["rows"]),
        result["original_columns"],
    )
    return result
