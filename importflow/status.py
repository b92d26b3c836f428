"""Urgency classification and the manual status transitions."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime

from importflow.records import ImportRecord, ImportStatus
from importflow.store import OverrideStore

logger = logging.getLogger(__name__)

CRITICAL_WINDOW_DAYS = 30
ALERT_WINDOW_DAYS = 60


def classify(days_until_need: int) -> ImportStatus:
    """Map a signed day-delta to ATRASADO, CRITICO, ALERTA or PRODUCAO."""
    if days_until_need < 0:
        return ImportStatus.ATRASADO
    if days_until_need < CRITICAL_WINDOW_DAYS:
        return ImportStatus.CRITICO
    if days_until_need <= ALERT_WINDOW_DAYS:
        return ImportStatus.ALERTA
    return ImportStatus.PRODUCAO


def mark_shipped(record: ImportRecord, store: OverrideStore, now: datetime | None = None) -> ImportRecord:
    if record.is_national:
        logger.debug("Ignoring ship request for national record %s", record.identity)
        return record
    if record.is_shipped:
        return record
    shipped_at = store.shipped.set(record.identity, now)
    return replace(record, status=ImportStatus.EMBARCADO, shipped_at=shipped_at)


def unmark_shipped(record: ImportRecord, store: OverrideStore) -> ImportRecord:
    # The day-delta stays frozen at import time.
    if not record.is_shipped:
        logger.debug("Ignoring unship request for %s in status %s", record.identity, record.status.value)
        return record
    store.shipped.clear(record.identity)
    return replace(record, status=classify(record.days_until_need), shipped_at=None)


def exclude(record: ImportRecord, store: OverrideStore, now: datetime | None = None) -> ImportRecord:
    if record.excluded and store.excluded.contains(record.identity):
        return record
    store.excluded.set(record.identity, now)
    return replace(record, excluded=True)


def restore(record: ImportRecord, store: OverrideStore) -> ImportRecord:
    store.excluded.clear(record.identity)
    if not record.excluded:
        return record
    return replace(record, excluded=False)
