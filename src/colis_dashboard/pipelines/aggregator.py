from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional

from colis_dashboard.api.normalize import (
    as_int,
    classify,
    content_metadata,
    locate_envelope,
    parse_envelope,
    raise_for_error,
)
from colis_dashboard.errors import ValidationError
from colis_dashboard.models import AggregateResult, ParcelRecord

FetchPage = Callable[[int], Any]

DEFAULT_MAX_WORKERS = 8


def _page_records(raw: Any, page: int, logger: logging.Logger) -> list[ParcelRecord]:
    """Classify one raw page, raise on `erreur`, return its records."""
    raise_for_error(classify(locate_envelope(raw)), page=page)

    out: list[ParcelRecord] = []
    for entry in parse_envelope(raw):
        if not isinstance(entry, dict):
            logger.debug("Page %d: skipping non-object entry %r", page, entry)
            continue
        out.append(ParcelRecord.from_provider(entry))
    return out


def _warn_duplicates(records: list[ParcelRecord], logger: logging.Logger) -> None:
    seen: set[str] = set()
    dups: list[str] = []
    for rec in records:
        code = rec.tracking_code
        if not code:
            continue
        if code in seen:
            dups.append(code)
        seen.add(code)
    if dups:
        logger.warning(
            "Aggregated listing contains %d duplicate tracking code(s): %s",
            len(dups), ", ".join(sorted(set(dups))[:20]))


def fetch_all_pages(
    fetch_page: FetchPage,
    *,
    max_pages: Optional[int] = None,
    limit: Optional[int] = None,
    concurrent: Optional[bool] = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
    logger: Optional[logging.Logger] = None,
) -> AggregateResult:
    """
    Load every listing page and concatenate the records in provider order.

    Page 1 is always fetched first; its `nbPages` bounds the loop. Remaining
    pages are then either:
      - fetched concurrently and merged in page order (default when no bound
        is given), or
      - fetched one by one, stopping once `limit` records are held or
        `max_pages` pages are read. An empty page does not end the walk.

    Any page error aborts the aggregation; no partial result is returned.
    Records are never de-duplicated.
    """
    log = logger or logging.getLogger("colis_dashboard.pipelines.aggregator")

    if max_pages is not None and max_pages < 1:
        raise ValidationError("max_pages must be >= 1")
    if limit is not None and limit < 1:
        raise ValidationError("limit must be >= 1")
    if concurrent is None:
        concurrent = max_pages is None and limit is None

    first = fetch_page(1)
    records = _page_records(first, 1, log)
    meta = content_metadata(first)
    total_pages = max(1, as_int(meta.get("nbPages"), 1))
    total_count = as_int(meta.get("nbColis"), 0)
    log.info("Page 1/%d: %d record(s); provider reports %d parcel(s)",
             total_pages, len(records), total_count)

    last_page = total_pages if max_pages is None else min(total_pages, max_pages)
    pages_fetched = 1

    if last_page > 1 and concurrent:
        page_numbers = list(range(2, last_page + 1))
        workers = max(1, min(max_workers, len(page_numbers)))
        log.debug("Fetching pages 2..%d with %d worker(s)", last_page, workers)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(fetch_page, n) for n in page_numbers]
            try:
                for n, fut in zip(page_numbers, futures):
                    records.extend(_page_records(fut.result(), n, log))
                    pages_fetched += 1
            except Exception:
                for fut in futures:
                    fut.cancel()
                raise
    elif last_page > 1:
        for n in range(2, last_page + 1):
            if limit is not None and len(records) >= limit:
                log.debug("Limit %d reached after %d page(s)", limit, pages_fetched)
                break
            page_records = _page_records(fetch_page(n), n, log)
            pages_fetched += 1
            if not page_records:
                log.debug("Page %d/%d is empty", n, last_page)
            records.extend(page_records)

    if pages_fetched < total_pages and max_pages is None and limit is None:
        log.warning("Provider reported %d page(s) but only %d were read",
                    total_pages, pages_fetched)

    _warn_duplicates(records, log)
    log.info("Aggregated %d record(s) from %d page(s)", len(records), pages_fetched)
    return AggregateResult(
        records=records,
        pages_fetched=pages_fetched,
        reported_total_pages=total_pages,
        reported_total_count=total_count,
    )


__all__ = ["FetchPage", "fetch_all_pages"]
