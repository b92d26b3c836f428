"""
session.py — the working record collection

Records are rebuilt wholesale on every import and swapped in with a single
assignment, so readers see either the previous collection or the new one.
Manual transitions replace one record and swap the whole tuple the same way.
"""

from __future__ import annotations

import logging
import threading
from datetime import date, datetime
from pathlib import Path
from typing import Callable, Optional

from importflow.aggregate import DashboardStats, partition, sidebar_counts, summarize
from importflow.builder import build_records
from importflow.loader import load_sheet_rows
from importflow.records import ImportRecord, ImportStatus
from importflow.status import exclude, mark_shipped, restore, unmark_shipped
from importflow.store import OverrideStore

logger = logging.getLogger(__name__)

VIEW_HOME = "HOME"
VIEW_ALL = "ALL"
VIEW_EXCLUDED = "EXCLUIDOS"

VIEW_TITLES = {
    VIEW_ALL: "Todos os Itens",
    ImportStatus.ATRASADO.value: "Itens Importados - Atrasados",
    ImportStatus.CRITICO.value: "Itens Importados - Críticos (<30 dias)",
    ImportStatus.ALERTA.value: "Itens Importados - Alerta Follow-up (30-60 dias)",
    ImportStatus.PRODUCAO.value: "Itens Importados - Em Produção",
    ImportStatus.EMBARCADO.value: "Histórico de Embarcados",
    ImportStatus.NACIONAL.value: "Itens Nacionais (Sem Follow-up)",
    VIEW_EXCLUDED: "Gerenciar Itens Excluídos",
}


def view_title(view: str) -> str:
    return VIEW_TITLES.get(view, "Itens")


class ImportSession:
    def __init__(self, store: OverrideStore, today: Optional[date] = None) -> None:
        self.store = store
        self._today = today
        self._records: tuple[ImportRecord, ...] = ()
        self._lock = threading.Lock()
        self.source_name: str | None = None
        self.warnings: list[str] = []

    @property
    def today(self) -> date:
        return self._today or date.today()

    @property
    def records(self) -> tuple[ImportRecord, ...]:
        return self._records

    def import_file(self, source: "str | Path | bytes", filename: Optional[str] = None) -> tuple[ImportRecord, ...]:
        """Decode and build a fresh collection; on failure the current one stays."""
        loaded = load_sheet_rows(source, filename=filename)
        records = tuple(build_records(loaded["rows"], self.store, self.today))
        with self._lock:
            self._records = records
            self.source_name = filename or (None if isinstance(source, (bytes, bytearray)) else Path(source).name)
            self.warnings = list(loaded["warnings"])
        return records

    def find(self, identity: str) -> ImportRecord | None:
        for record in self._records:
            if record.identity == identity:
                return record
        return None

    def _apply(self, identity: str, transition: Callable[[ImportRecord], ImportRecord]) -> ImportRecord | None:
        with self._lock:
            current = self._records
            for index, record in enumerate(current):
                if record.identity != identity:
                    continue
                updated = transition(record)
                if updated is not record:
                    self._records = current[:index] + (updated,) + current[index + 1:]
                return updated
        logger.info("No record with identity %s in the working collection", identity)
        return None

    def mark_shipped(self, identity: str, now: datetime | None = None) -> ImportRecord | None:
        return self._apply(identity, lambda record: mark_shipped(record, self.store, now))

    def unmark_shipped(self, identity: str) -> ImportRecord | None:
        return self._apply(identity, lambda record: unmark_shipped(record, self.store))

    def exclude(self, identity: str, now: datetime | None = None) -> ImportRecord | None:
        return self._apply(identity, lambda record: exclude(record, self.store, now))

    def restore(self, identity: str) -> ImportRecord | None:
        return self._apply(identity, lambda record: restore(record, self.store))

    def active(self) -> list[ImportRecord]:
        return partition(self._records)[0]

    def excluded(self) -> list[ImportRecord]:
        return partition(self._records)[1]

    def stats(self) -> DashboardStats:
        return summarize(self._records)

    def sidebar_counts(self) -> dict[str, int]:
        return sidebar_counts(self._records)

    def records_for_view(self, view: str) -> list[ImportRecord]:
        if view == VIEW_HOME:
            return []
        if view == VIEW_EXCLUDED:
            return self.excluded()
        active = self.active()
        if view == VIEW_ALL:
            return active
        return [record for record in active if record.status.value == view]
