"""
query.py — search, filters and urgency ordering for record tables

The caller scopes the collection (active or excluded) before querying.
Unset filters are skipped; they never mean "match nothing".
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import date
from typing import Iterable, NamedTuple

from importflow.records import PLACEHOLDER, ImportRecord, ImportStatus

STATUS_PRIORITY = {
    ImportStatus.ATRASADO: 1,
    ImportStatus.CRITICO: 2,
    ImportStatus.ALERTA: 3,
    ImportStatus.PRODUCAO: 4,
    ImportStatus.EMBARCADO: 5,
    ImportStatus.NACIONAL: 6,
}
UNMAPPED_PRIORITY = 99

TIMELINE_WINDOW_DAYS = 90
TIMELINE_MIN_FRACTION = 0.05


@dataclass(frozen=True)
class RecordQuery:
    text: str = ""
    supplier: str = ""
    product: str = ""
    status: ImportStatus | str | None = None
    need_date_from: date | None = None
    need_date_to: date | None = None

    @property
    def is_active(self) -> bool:
        return bool(
            self.text
            or self.supplier
            or self.product
            or self.status
            or self.need_date_from
            or self.need_date_to
        )


class TimelineBar(NamedTuple):
    fraction: float
    tone: str


def _contains(value: object, needle: str) -> bool:
    return needle in str(value if value is not None else "").lower()


def matches_text(record: ImportRecord, text: str) -> bool:
    if not text:
        return True
    needle = text.lower()
    return any(
        _contains(value, needle)
        for value in (record.sc_number, record.po_number, record.pc_number, record.supplier, record.product)
    )


def _status_value(status: ImportStatus | str) -> str:
    return status.value if isinstance(status, ImportStatus) else str(status)


def matches(record: ImportRecord, query: RecordQuery) -> bool:
    if not matches_text(record, query.text):
        return False
    if query.supplier and record.supplier != query.supplier:
        return False
    if query.product and not _contains(record.product, query.product.lower()):
        return False
    if query.status and record.status.value != _status_value(query.status):
        return False
    if query.need_date_from and record.contract_need_date < query.need_date_from:
        return False
    if query.need_date_to and record.contract_need_date > query.need_date_to:
        return False
    return True


def urgency_key(record: ImportRecord) -> tuple[int, int]:
    return STATUS_PRIORITY.get(record.status, UNMAPPED_PRIORITY), record.days_until_need


def sort_by_urgency(records: Iterable[ImportRecord]) -> list[ImportRecord]:
    # sorted() is stable, so full ties keep input order.
    return sorted(records, key=urgency_key)


def run_query(records: Iterable[ImportRecord], query: RecordQuery | None = None) -> list[ImportRecord]:
    query = query or RecordQuery()
    return sort_by_urgency(record for record in records if matches(record, query))


def timeline_fraction(days_until_need: int) -> float:
    """Bar fill: empty-ish 90+ days out, full at or past the need date."""
    if days_until_need < 0:
        fraction = 1.0
    elif days_until_need > TIMELINE_WINDOW_DAYS:
        fraction = TIMELINE_MIN_FRACTION
    else:
        fraction = 1.0 - days_until_need / TIMELINE_WINDOW_DAYS
    return max(TIMELINE_MIN_FRACTION, fraction)


def timeline_tone(days_until_need: int) -> str:
    if days_until_need < 0:
        return "late"
    if days_until_need < 30:
        return "critical"
    if days_until_need < 60:
        return "warning"
    return "on_track"


def timeline_bar(days_until_need: int) -> TimelineBar:
    return TimelineBar(timeline_fraction(days_until_need), timeline_tone(days_until_need))


def unique_suppliers(records: Iterable[ImportRecord]) -> list[str]:
    return sorted({record.supplier for record in records if record.supplier and record.supplier != PLACEHOLDER})


def unique_statuses(records: Iterable[ImportRecord]) -> list[ImportStatus]:
    return list(dict.fromkeys(record.status for record in records))


def table_counts(records: Iterable[ImportRecord]) -> dict[str, int]:
    counts = Counter(record.status.value for record in records)
    summary = {status.value: counts.get(status.value, 0) for status in ImportStatus}
    summary["total"] = sum(counts.values())
    return summary
