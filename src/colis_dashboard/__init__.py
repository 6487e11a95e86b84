# src/colis_dashboard/__init__.py
from .api.normalize import classify, parse_envelope
from .pipelines.aggregator import fetch_all_pages
from .pipelines.bulk import apply_bulk
from .pipelines.enricher import enrich
from .rules.search import search

__all__ = [
    "parse_envelope",
    "classify",
    "fetch_all_pages",
    "search",
    "enrich",
    "apply_bulk",
]
