from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from colis_dashboard.models import EnrichmentFields, ParcelRecord

Lookup = Callable[[list[str]], Mapping[str, Union[EnrichmentFields, Mapping[str, Any]]]]


def _codes(records: Iterable[ParcelRecord]) -> list[str]:
    """Non-empty tracking codes, first occurrence order, no repeats."""
    seen: set[str] = set()
    out: list[str] = []
    for rec in records:
        code = (rec.tracking_code or "").strip()
        if code and code not in seen:
            seen.add(code)
            out.append(code)
    return out


def enrich(
    primary: list[ParcelRecord],
    lookup: Lookup,
    *,
    logger: Optional[logging.Logger] = None,
) -> list[ParcelRecord]:
    """
    Overlay secondary-source fields (courier, anomaly, fees) onto `primary`.

    One batched `lookup(codes)` call serves the whole list. Records without a
    code, or whose code the lookup does not return, come back unchanged, and
    a `None` from the lookup never overwrites a primary value.

    Best-effort: if the lookup raises, `primary` is returned as-is.
    """
    log = logger or logging.getLogger("colis_dashboard.pipelines.enricher")

    codes = _codes(primary)
    if not codes:
        log.debug("No tracking codes to enrich")
        return list(primary)

    try:
        found = lookup(codes) or {}
    except Exception as ex:
        log.warning("Enrichment lookup failed for %d code(s); keeping primary data: %s",
                    len(codes), ex)
        return list(primary)
    if not isinstance(found, Mapping):
        log.warning("Enrichment lookup returned %s, not a mapping; keeping primary data",
                    type(found).__name__)
        return list(primary)

    out: list[ParcelRecord] = []
    hits = 0
    for rec in primary:
        fields = found.get((rec.tracking_code or "").strip()) if rec.tracking_code else None
        if isinstance(fields, Mapping):
            fields = EnrichmentFields.from_provider(dict(fields))
        if not isinstance(fields, EnrichmentFields):
            if fields is not None:
                log.debug("Ignoring unusable enrichment value for %s: %r",
                          rec.tracking_code, fields)
            out.append(rec)
            continue
        values = fields.overlay_values()
        if values:
            hits += 1
            out.append(replace(rec, **values))
        else:
            out.append(rec)

    log.info("Enriched %d of %d record(s) (%d code(s) looked up)",
             hits, len(primary), len(codes))
    return out


__all__ = ["Lookup", "enrich"]
