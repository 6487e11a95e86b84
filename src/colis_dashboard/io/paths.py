from __future__ import annotations

from pathlib import Path
from typing import Tuple

from colis_dashboard.config.logging_config import default_log_path

IMPORT_REPORT_SUFFIX = "_import_report.json"


def derive_output_paths(input_file: Path) -> Tuple[Path, Path]:
    """Report JSON and run log for an import workbook, both beside it."""
    workbook = Path(input_file)
    if not workbook.is_file():
        raise FileNotFoundError(workbook)
    return workbook.with_name(workbook.stem + IMPORT_REPORT_SUFFIX), default_log_path(workbook)
