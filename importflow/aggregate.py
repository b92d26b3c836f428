"""Summary counts over the working record collection."""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import asdict, dataclass
from typing import Iterable

from importflow.records import ImportRecord, ImportStatus

IMPORTED_STATUSES = (
    ImportStatus.ATRASADO,
    ImportStatus.CRITICO,
    ImportStatus.ALERTA,
    ImportStatus.PRODUCAO,
    ImportStatus.EMBARCADO,
)
FOLLOW_UP_STATUSES = {ImportStatus.CRITICO, ImportStatus.ALERTA}
SUPPLIER_LABEL_LIMIT = 15


@dataclass(frozen=True)
class DashboardStats:
    total_imported: int = 0
    total_national: int = 0
    atrasado: int = 0
    critico: int = 0
    alerta: int = 0
    producao: int = 0
    embarcado: int = 0
    follow_up_needed: int = 0

    def count_for(self, status: ImportStatus) -> int:
        if status is ImportStatus.NACIONAL:
            return self.total_national
        return getattr(self, status.value.lower())

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def partition(records: Iterable[ImportRecord]) -> tuple[list[ImportRecord], list[ImportRecord]]:
    """Split into (active, excluded), keeping input order."""
    active: list[ImportRecord] = []
    excluded: list[ImportRecord] = []
    for record in records:
        (excluded if record.excluded else active).append(record)
    return active, excluded


def summarize(records: Iterable[ImportRecord]) -> DashboardStats:
    """Counts over non-excluded records only."""
    counts: Counter[ImportStatus] = Counter()
    for record in records:
        if not record.excluded:
            counts[record.status] += 1

    total_national = counts[ImportStatus.NACIONAL]
    return DashboardStats(
        total_imported=sum(counts[status] for status in IMPORTED_STATUSES),
        total_national=total_national,
        atrasado=counts[ImportStatus.ATRASADO],
        critico=counts[ImportStatus.CRITICO],
        alerta=counts[ImportStatus.ALERTA],
        producao=counts[ImportStatus.PRODUCAO],
        embarcado=counts[ImportStatus.EMBARCADO],
        follow_up_needed=sum(counts[status] for status in FOLLOW_UP_STATUSES),
    )


def sidebar_counts(records: Iterable[ImportRecord]) -> dict[str, int]:
    records = list(records)
    stats = summarize(records)
    counts = {status.value: stats.count_for(status) for status in ImportStatus}
    counts["total_imported"] = stats.total_imported
    counts["total_national"] = stats.total_national
    counts["total_excluded"] = sum(1 for record in records if record.excluded)
    return counts


def _percent(value: int, total: int) -> int:
    if total <= 0:
        return 0
    return math.floor(value * 100 / total + 0.5)


def status_shares(stats: DashboardStats) -> dict[str, int]:
    """Whole-number percentage of imported records per status."""
    return {status.value: _percent(stats.count_for(status), stats.total_imported) for status in IMPORTED_STATUSES}


def _supplier_label(name: str) -> str:
    if len(name) > SUPPLIER_LABEL_LIMIT:
        return name[:SUPPLIER_LABEL_LIMIT] + ".."
    return name


def top_delayed_suppliers(records: Iterable[ImportRecord], limit: int = 5) -> list[tuple[str, int]]:
    counts: Counter[str] = Counter()
    for record in records:
        if record.excluded or record.status is not ImportStatus.ATRASADO:
            continue
        if record.supplier:
            counts[_supplier_label(record.supplier)] += 1
    return counts.most_common(limit)
