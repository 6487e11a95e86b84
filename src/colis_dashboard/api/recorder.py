from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional


@dataclass
class EnvelopeWriter:
    """Persist raw listing responses as one JSON array of `{"page", "body"}`.

    Safe to share between the aggregator's page workers. The file is what
    ReplayProvider reads back.
    """

    path: Path
    logger: Optional[logging.Logger] = None

    def __post_init__(self) -> None:
        self.path = Path(self.path)
        self.logger = self.logger or logging.getLogger(
            "colis_dashboard.api.recorder")
        self._lock = threading.Lock()

    def add_response(self, page: int, body: Any) -> None:
        """Append (or replace) the body recorded for `page`."""
        with self._lock:
            items = self._load()
            items = [e for e in items if not (isinstance(e, dict) and e.get("page") == page)]
            items.append({"page": int(page), "body": body})
            items.sort(key=lambda e: e.get("page", 0) if isinstance(e, dict) else 0)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("w", encoding="utf-8") as fh:
                json.dump(items, fh, ensure_ascii=False, indent=2)

    def _load(self) -> list:
        if not self.path.exists():
            return []
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except ValueError as ex:
            self.logger.warning("Ignoring unreadable recording %s: %s", self.path, ex)
            return []
        return data if isinstance(data, list) else []

    def reset(self) -> None:
        """Start a fresh recording."""
        with self._lock:
            if self.path.exists():
                self.path.unlink()

    def read_all(self) -> list:
        with self._lock:
            return self._load()

    def wrap(self, fetch_page: Callable[[int], Any]) -> Callable[[int], Any]:
        """Return a fetch_page that records every body it returns."""
        def _recording(page: int) -> Any:
            body = fetch_page(page)
            self.add_response(page, body)
            return body
        return _recording
