from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Optional

from colis_dashboard.models.parcel import ParcelRecord

ResultKind = Literal["success", "partial", "error"]


@dataclass(frozen=True)
class Classification:
    """Outcome of classifying one provider envelope."""
    kind: ResultKind
    code: Optional[str] = None
    message: Optional[str] = None
    content: Any = None

    @property
    def ok(self) -> bool:
        return self.kind != "error"


@dataclass
class AggregateResult:
    records: list[ParcelRecord] = field(default_factory=list)
    pages_fetched: int = 0
    reported_total_pages: int = 0
    reported_total_count: int = 0


@dataclass
class BulkResult:
    succeeded: int = 0
    failed: int = 0
    failed_ids: list[str] = field(default_factory=list)
    skipped: int = 0

    @property
    def cancelled(self) -> bool:
        return self.skipped > 0


@dataclass
class BulkCreateResult:
    """Merged answer of one or more bulk-create calls."""
    kind: ResultKind = "success"
    created_count: int = 0
    total: int = 0
    created: list[Any] = field(default_factory=list)
    errors: list[Any] = field(default_factory=list)

    def merge(self, other: "BulkCreateResult") -> "BulkCreateResult":
        kinds = {self.kind, other.kind}
        if self.total == 0 and self.created_count == 0 and not self.errors:
            kind = other.kind
        elif len(kinds) == 1 and kinds != {"partial"}:
            kind = self.kind
        else:
            kind = "partial"
        return BulkCreateResult(
            kind=kind,
            created_count=self.created_count + other.created_count,
            total=self.total + other.total,
            created=[*self.created, *other.created],
            errors=[*self.errors, *other.errors],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "nbCrees": self.created_count,
            "nbTotal": self.total,
            "lsCrees": list(self.created),
            "lsErreurs": list(self.errors),
        }


@dataclass(frozen=True)
class PickupResult:
    """Answer of a pickup request; the manifest is a document reference (URL)."""
    manifest_url: Optional[str]
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)
