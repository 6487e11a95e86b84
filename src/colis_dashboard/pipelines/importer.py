from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from colis_dashboard.api.rest import BULK_CREATE_MAX
from colis_dashboard.errors import ColisError, ValidationError
from colis_dashboard.models import BulkCreateResult, ParcelRecord


def _chunks(items: Sequence[ParcelRecord], size: int):
    for start in range(0, len(items), size):
        yield start, items[start:start + size]


def import_parcels(
    records: Sequence[ParcelRecord],
    rest_client: Any,
    *,
    chunk_size: int = BULK_CREATE_MAX,
    logger: Optional[logging.Logger] = None,
) -> BulkCreateResult:
    """
    Create `records` through the bulk-create endpoint in chunks.

    Every record is validated before the first call; any invalid row rejects
    the whole import. A chunk the provider refuses is recorded in `errors`
    and the following chunks are still sent.
    """
    log = logger or logging.getLogger("colis_dashboard.pipelines.importer")

    if not records:
        raise ValidationError("La liste des colis est vide ou invalide")
    if chunk_size < 1 or chunk_size > BULK_CREATE_MAX:
        raise ValidationError(f"chunk_size must be between 1 and {BULK_CREATE_MAX}")

    bad: list[str] = []
    for i, rec in enumerate(records, start=1):
        try:
            rec.validate_for_create()
        except ValidationError as ex:
            bad.append(f"row {i}: {ex}")
    if bad:
        raise ValidationError("Invalid parcels: " + "; ".join(bad))

    merged = BulkCreateResult()
    for start, chunk in _chunks(list(records), chunk_size):
        first_row, last_row = start + 1, start + len(chunk)
        try:
            part = rest_client.bulk_create(list(chunk))
        except ColisError as ex:
            log.error("Rows %d-%d rejected: %s", first_row, last_row, ex)
            part = BulkCreateResult(
                kind="error",
                total=len(chunk),
                errors=[{"rows": f"{first_row}-{last_row}", "error": str(ex)}],
            )
        else:
            log.info("Rows %d-%d: %d/%d created", first_row, last_row,
                     part.created_count, part.total)
        merged = merged.merge(part)

    log.info("Import finished: %d/%d created, %d error(s)",
             merged.created_count, merged.total, len(merged.errors))
    return merged


__all__ = ["import_parcels"]
