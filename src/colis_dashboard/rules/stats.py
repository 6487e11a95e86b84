from __future__ import annotations

from typing import Iterable

import pandas as pd

from colis_dashboard.models import ParcelRecord

UNKNOWN_STATUS = "Unknown"


def status_counts(records: Iterable[ParcelRecord]) -> dict[str, int]:
    """Parcels per status, most frequent first; a missing status counts as "Unknown"."""
    statuses = pd.Series(
        [r.status or UNKNOWN_STATUS for r in records], dtype="object")
    if statuses.empty:
        return {}
    counts = statuses.value_counts(sort=True)
    return {str(k): int(v) for k, v in counts.items()}


def status_frame(records: Iterable[ParcelRecord]) -> pd.DataFrame:
    """Same counts as a two-column table (Status, Count) for export/printing."""
    counts = status_counts(records)
    return pd.DataFrame(
        {"Status": list(counts.keys()), "Count": list(counts.values())})


__all__ = ["UNKNOWN_STATUS", "status_counts", "status_frame"]
