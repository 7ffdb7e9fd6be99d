from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ..constants import SERVICE_BILLED_MONTHS, SERVICE_REMAINING_OCCURRENCES
from ..schemas.schemas import ServiceRecord, compute_remaining

logger = logging.getLogger(__name__)


@dataclass
class OccurrenceCount:
    total: int
    billed: int
    remaining: int


def decrement_occurrences(table: Any, service_id: str) -> OccurrenceCount:
    """Record one more billed cycle on a service.

    The record is read again first so counters edited by hand since the run
    started are respected. Remaining is derived from total and billed, never
    decremented, and both fields go out in one update.
    """
    current = ServiceRecord.from_airtable(table.get(service_id))
    billed = current.billed_months + 1
    remaining = compute_remaining(current.total_occurrences, billed)
    table.update(
        service_id,
        {
            SERVICE_BILLED_MONTHS: billed,
            SERVICE_REMAINING_OCCURRENCES: remaining,
        },
    )
    logger.info(
        "Service %s: %s/%s occurrences remaining",
        service_id,
        remaining,
        current.total_occurrences,
    )
    return OccurrenceCount(total=current.total_occurrences, billed=billed, remaining=remaining)
