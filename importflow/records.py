"""Domain types for imported procurement records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum


PLACEHOLDER = "-"


class ImportStatus(str, Enum):
    ATRASADO = "ATRASADO"
    CRITICO = "CRITICO"
    ALERTA = "ALERTA"
    PRODUCAO = "PRODUCAO"
    EMBARCADO = "EMBARCADO"
    NACIONAL = "NACIONAL"


class Origin(str, Enum):
    IMPORTED = "IMPORTED"
    NATIONAL = "NATIONAL"


@dataclass(frozen=True)
class ImportRecord:
    identity: str
    ordinal: int
    origin: Origin
    po_number: str
    pc_number: str
    sc_number: str | None
    request_need_date: date | None
    contract_need_date: date
    supplier: str
    product: str
    volume: str | int | float
    days_until_need: int
    status: ImportStatus
    shipped_at: datetime | None = None
    excluded: bool = False

    @property
    def is_national(self) -> bool:
        return self.origin is Origin.NATIONAL

    @property
    def is_shipped(self) -> bool:
        return self.status is ImportStatus.EMBARCADO
