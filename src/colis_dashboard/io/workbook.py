from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable

import numpy as np
import pandas as pd
from openpyxl import load_workbook

from colis_dashboard.errors import ValidationError
from colis_dashboard.io.schema import (
    EXPORT_COLUMNS,
    EXPORT_SHEET_NAME,
    IMPORT_COLUMN_ALIASES,
    IMPORT_TEMPLATE_COLUMNS,
    IMPORT_TEMPLATE_ROWS,
    REQUIRED_IMPORT_FIELDS,
    TEXT_EXPORT_COLUMNS,
)
from colis_dashboard.models import ParcelRecord, ParcelType

logger = logging.getLogger("colis_dashboard.io.workbook")


def _is_blank(val: Any) -> bool:
    """True if value is None/NaN/NaT/empty/"nan"/"none" (case-insensitive)."""
    if val is None or val is pd.NaT:
        return True
    if isinstance(val, float) and np.isnan(val):
        return True
    s = str(val).strip()
    return s == "" or s.lower() in {"nan", "none", "nat"}


def _row_to_provider(row: pd.Series) -> dict[str, Any]:
    """Resolve header aliases for one sheet row into provider keys."""
    out: dict[str, Any] = {}
    for key, aliases in IMPORT_COLUMN_ALIASES.items():
        for col in aliases:
            if col in row.index and not _is_blank(row[col]):
                out[key] = row[col]
                break
    out["type"] = ParcelType.coerce(out.get("type")).value
    return out


def read_import_workbook(path: Path | str) -> list[ParcelRecord]:
    """
    Read parcels to create from the first sheet of an import workbook.

    Headers follow the downloadable template (French labels, a few ASCII
    aliases accepted). Rows missing a required field are reported together,
    by 1-based data row number, in one ValidationError.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(path)

    try:
        df = pd.read_excel(path, sheet_name=0, engine="openpyxl")
    except (ValueError, OSError) as ex:
        raise ValidationError(f"Cannot read workbook {path.name}: {ex}") from ex
    logger.debug("Opened import workbook: %s (rows=%d, cols=%d)",
                 path.name, len(df), len(df.columns))

    df = df.dropna(how="all")
    if df.empty:
        raise ValidationError(f"Workbook {path.name} contains no parcels")

    records: list[ParcelRecord] = []
    problems: list[str] = []
    for n, (_, row) in enumerate(df.iterrows(), start=1):
        data = _row_to_provider(row)
        missing = [label for key, label in REQUIRED_IMPORT_FIELDS if key not in data]
        if missing:
            problems.append(f"row {n}: {', '.join(missing)}")
            continue
        records.append(ParcelRecord.from_provider(data))

    if problems:
        raise ValidationError(
            f"{len(problems)} row(s) with missing required fields "
            f"(Client, Adresse, Gouvernorat, Ville, Téléphone 1): " + "; ".join(problems))

    logger.info("Read %d parcel(s) from %s", len(records), path.name)
    return records


def write_import_template(path: Path | str) -> Path:
    """Write the two-row example workbook users fill in for imports."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df = pd.DataFrame(IMPORT_TEMPLATE_ROWS, columns=IMPORT_TEMPLATE_COLUMNS)
    with pd.ExcelWriter(path, engine="openpyxl", mode="w") as xw:
        df.to_excel(xw, sheet_name=EXPORT_SHEET_NAME, index=False)
    return path


def records_frame(records: Iterable[ParcelRecord]) -> pd.DataFrame:
    rows = []
    for rec in records:
        d = rec.to_dict()
        rows.append({header: d.get(attr) for attr, header in EXPORT_COLUMNS.items()})
    return pd.DataFrame(rows, columns=list(EXPORT_COLUMNS.values()))


def _force_text_columns(path: Path) -> None:
    wb = load_workbook(path)
    ws = wb[EXPORT_SHEET_NAME]
    if ws.max_row < 2:
        return
    header = [c.value for c in ws[1]]
    for name in TEXT_EXPORT_COLUMNS:
        if name not in header:
            continue
        col = header.index(name) + 1
        for r in range(2, ws.max_row + 1):
            cell = ws.cell(row=r, column=col)
            if cell.value is not None:
                cell.value = str(cell.value)
            cell.number_format = "@"
    wb.save(path)


def export_records(records: Iterable[ParcelRecord], path: Path | str) -> Path:
    """Write a listing to `.xlsx` (one sheet) or `.json` (array of objects)."""
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix not in (".xlsx", ".json"):
        raise ValidationError(f"Unsupported export format {path.suffix!r} (use .xlsx or .json)")

    records = list(records)
    path.parent.mkdir(parents=True, exist_ok=True)

    if suffix == ".json":
        with path.open("w", encoding="utf-8") as fh:
            json.dump([r.to_dict() for r in records], fh, ensure_ascii=False, indent=2)
    else:
        df = records_frame(records)
        with pd.ExcelWriter(path, engine="openpyxl", mode="w") as xw:
            df.to_excel(xw, sheet_name=EXPORT_SHEET_NAME, index=False, na_rep="")
        _force_text_columns(path)

    logger.info("Exported %d record(s) to %s", len(records), path)
    return path


__all__ = [
    "read_import_workbook",
    "write_import_template",
    "records_frame",
    "export_records",
]
