from .env_cfg import EnvCfg, DEFAULT_REST_URL
from .parcel import (
    EnrichmentFields,
    KNOWN_STATUSES,
    ParcelRecord,
    ParcelType,
    STATUS_PENDING,
    STATUS_READY_FOR_PICKUP,
)
from .results import (
    AggregateResult,
    BulkCreateResult,
    BulkResult,
    Classification,
    PickupResult,
)

__all__ = [
    "EnvCfg",
    "DEFAULT_REST_URL",
    "EnrichmentFields",
    "KNOWN_STATUSES",
    "ParcelRecord",
    "ParcelType",
    "STATUS_PENDING",
    "STATUS_READY_FOR_PICKUP",
    "AggregateResult",
    "BulkCreateResult",
    "BulkResult",
    "Classification",
    "PickupResult",
]
