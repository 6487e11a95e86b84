from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Iterable, Optional

from colis_dashboard.errors import ValidationError
from colis_dashboard.models import (
    BulkResult,
    ParcelRecord,
    STATUS_PENDING,
    STATUS_READY_FOR_PICKUP,
)

Mutate = Callable[[ParcelRecord], Any]


def _record_id(rec: ParcelRecord) -> str:
    return rec.tracking_code or rec.reference or ""


def apply_bulk(
    records: Iterable[ParcelRecord],
    mutate: Mutate,
    *,
    cancel_event: Optional[threading.Event] = None,
    logger: Optional[logging.Logger] = None,
) -> BulkResult:
    """
    Apply `mutate` to each record, one at a time.

    A failing item is counted and logged; the batch carries on. Setting
    `cancel_event` stops before the next item and the rest count as skipped.
    """
    log = logger or logging.getLogger("colis_dashboard.pipelines.bulk")
    items = list(records)
    result = BulkResult()

    for i, rec in enumerate(items):
        if cancel_event is not None and cancel_event.is_set():
            result.skipped = len(items) - i
            log.info("Bulk run cancelled; %d item(s) skipped", result.skipped)
            break
        try:
            mutate(rec)
        except Exception as ex:
            result.failed += 1
            result.failed_ids.append(_record_id(rec))
            log.error("Bulk item %s failed: %s", _record_id(rec) or f"#{i + 1}", ex)
        else:
            result.succeeded += 1

    log.info("Bulk run done: %d succeeded, %d failed, %d skipped",
             result.succeeded, result.failed, result.skipped)
    return result


def advance_pending(
    records: Iterable[ParcelRecord],
    soap_client: Any,
    *,
    from_status: str = STATUS_PENDING,
    to_status: str = STATUS_READY_FOR_PICKUP,
    cancel_event: Optional[threading.Event] = None,
    logger: Optional[logging.Logger] = None,
) -> BulkResult:
    """Move every record in `from_status` to `to_status` via change_status."""
    log = logger or logging.getLogger("colis_dashboard.pipelines.bulk")
    selected = [r for r in records if r.status == from_status]
    log.info("%d record(s) in %r to move to %r", len(selected), from_status, to_status)

    def _mutate(rec: ParcelRecord) -> Any:
        if not rec.tracking_code:
            raise ValidationError(f"Parcel {rec.reference or '?'} has no tracking code")
        return soap_client.change_status(rec.tracking_code, to_status)

    return apply_bulk(selected, _mutate, cancel_event=cancel_event, logger=log)


__all__ = ["Mutate", "apply_bulk", "advance_pending"]
