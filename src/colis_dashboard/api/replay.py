# src/colis_dashboard/api/replay.py
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass
class ReplayProvider:
    """Serve recorded listing pages from a single JSON file.

    The file holds either one response body or an array of entries. An entry
    is `{"page": <n>, "body": <raw response>}` as written by EnvelopeWriter;
    a bare body is assigned the next page number in file order.
    """

    path: Path
    _pages: dict[int, Any] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        self.path = Path(self.path)
        if not self.path.exists():
            raise ValueError(f"Replay file does not exist: {self.path}")
        if not self.path.is_file():
            raise ValueError("ReplayProvider requires a single JSON file of recorded pages")

        raw = json.loads(self.path.read_text(encoding="utf-8"))
        entries = raw if isinstance(raw, list) else [raw]

        pages: dict[int, Any] = {}
        next_page = 1
        for entry in entries:
            if isinstance(entry, dict) and "page" in entry and "body" in entry:
                page = int(entry["page"])
                pages[page] = entry["body"]
            else:
                page = next_page
                pages[page] = entry
            next_page = max(next_page, page + 1)
        self._pages = pages

    @property
    def page_numbers(self) -> list[int]:
        return sorted(self._pages)

    def fetch_page(self, page: int) -> Any:
        # unknown page -> empty body, which parses to no records
        return self._pages.get(int(page), {})

    __call__ = fetch_page
