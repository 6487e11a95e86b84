from __future__ import annotations

import math
from dataclasses import dataclass, asdict, field
from enum import Enum
from typing import Any, Optional

from colis_dashboard.errors import ValidationError


class ParcelType(str, Enum):
    SALE = "VO"
    EXCHANGE = "EC"
    DOCUMENT = "DO"

    @classmethod
    def coerce(cls, value: Any) -> "ParcelType":
        """Map a provider/workbook code to a ParcelType; unknown codes are sales."""
        if isinstance(value, ParcelType):
            return value
        code = str(value or "").strip().upper()
        for member in cls:
            if member.value == code:
                return member
        return cls.SALE


# Observed lifecycle values. Status is an open set: anything the provider
# sends is passed through untouched.
STATUS_PENDING = "En Attente"
STATUS_READY_FOR_PICKUP = "A Enlever"
KNOWN_STATUSES = (
    STATUS_PENDING,
    STATUS_READY_FOR_PICKUP,
    "En transit",
    "En Cours de Livraison",
    "Livré",
    "Livré Payé",
    "Annulé",
    "Anomalie de Livraison",
    "Retour Dépôt",
    "Retour Expéditeur",
    "Echange Reçu",
)


def _text(val: Any) -> Optional[str]:
    """Provider values as trimmed text; None/blank/NaN become None."""
    if val is None:
        return None
    if isinstance(val, float):
        if math.isnan(val):
            return None
        if val.is_integer():
            # phone numbers and codes sometimes arrive as JSON numbers
            val = int(val)
    s = str(val).strip()
    return s or None


def _number(val: Any) -> Optional[float]:
    if val is None or isinstance(val, bool):
        return None
    try:
        out = float(str(val).strip().replace(",", "."))
    except (TypeError, ValueError):
        return None
    return None if math.isnan(out) else out


def _int(val: Any, default: Optional[int] = None) -> Optional[int]:
    num = _number(val)
    return default if num is None else int(num)


def _first(d: dict[str, Any], *keys: str) -> Any:
    for k in keys:
        v = d.get(k)
        if _text(v) is not None:
            return v
    return None


@dataclass(frozen=True)
class ParcelRecord:
    # identity
    tracking_code: Optional[str] = None
    reference: Optional[str] = None
    parcel_number: Optional[str] = None

    # destination
    client_name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    phone1: Optional[str] = None
    phone2: Optional[str] = None

    # content
    designation: Optional[str] = None
    piece_count: int = 1
    weight: Optional[float] = None
    price: float = 0.0
    cod_amount: Optional[float] = None
    type: ParcelType = ParcelType.SALE
    is_exchange: int = 0

    # lifecycle
    status: Optional[str] = None
    creation_date: Optional[str] = None
    pickup_date: Optional[str] = None
    delivery_date: Optional[str] = None

    # provider/tracking metadata (enrichment)
    courier_name: Optional[str] = None
    courier_phone: Optional[str] = None
    last_anomaly_reason: Optional[str] = None
    delivery_fee: Optional[float] = None
    return_fee: Optional[float] = None
    current_agency: Optional[str] = None
    manifest_number: Optional[str] = None
    payment_reference: Optional[str] = None

    comment: Optional[str] = None

    # provider record exactly as received
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_provider(cls, data: dict[str, Any]) -> "ParcelRecord":
        """Build a record from a provider (French-keyed) parcel dict."""
        if not isinstance(data, dict):
            raise ValidationError(
                f"Parcel record must be an object, got {type(data).__name__}")
        return cls(
            tracking_code=_text(_first(data, "code", "code_barre")),
            reference=_text(data.get("reference")),
            parcel_number=_text(data.get("numero_colis")),
            client_name=_text(data.get("client")),
            address=_text(data.get("adresse")),
            city=_text(data.get("ville")),
            province=_text(data.get("gouvernorat")),
            phone1=_text(data.get("tel1")),
            phone2=_text(data.get("tel2")),
            designation=_text(data.get("designation")),
            piece_count=_int(data.get("nb_pieces"), 1),
            weight=_number(data.get("poids")),
            price=_number(data.get("prix")) or 0.0,
            cod_amount=_number(data.get("cod")),
            type=ParcelType.coerce(data.get("type")),
            is_exchange=1 if _int(data.get("echange"), 0) == 1 else 0,
            status=_text(_first(data, "etat", "statut")),
            creation_date=_text(data.get("date_creation")),
            pickup_date=_text(data.get("date_enlevement")),
            delivery_date=_text(data.get("date_livraison")),
            courier_name=_text(data.get("livreur")),
            courier_phone=_text(data.get("tel_livreur")),
            last_anomaly_reason=_text(
                _first(data, "dern_anomalie", "cause_anomalie", "anomalie")),
            delivery_fee=_number(data.get("frais_livraison")),
            return_fee=_number(data.get("frais_retour")),
            current_agency=_text(data.get("agence_actuelle")),
            manifest_number=_text(data.get("num_manifeste")),
            payment_reference=_text(data.get("num_paiement")),
            comment=_text(data.get("commentaire")),
            raw=dict(data),
        )

    @property
    def is_enriched(self) -> bool:
        return any(
            getattr(self, name) is not None
            for name in (
                "courier_name",
                "courier_phone",
                "last_anomaly_reason",
                "delivery_fee",
                "return_fee",
                "current_agency",
                "manifest_number",
                "payment_reference",
            )
        )

    def validate_for_create(self) -> None:
        missing = [
            label
            for label, value in (
                ("client", self.client_name),
                ("adresse", self.address),
                ("tel1", self.phone1),
            )
            if not value
        ]
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}")

    def validate_for_update(self) -> None:
        if not self.tracking_code:
            raise ValidationError(
                "Tracking code (code barre) is required and cannot be empty")
        self.validate_for_create()

    def to_provider_payload(self, *, for_update: bool = False) -> dict[str, Any]:
        """Create/update payload with the provider's defaults applied."""
        if for_update:
            self.validate_for_update()
        else:
            self.validate_for_create()

        payload: dict[str, Any] = {}
        if for_update:
            payload["code"] = self.tracking_code
            payload["code_barre"] = self.tracking_code
        payload.update({
            "reference": self.reference or "",
            "client": self.client_name,
            "adresse": self.address,
            "ville": self.city or "",
            "gouvernorat": self.province or "",
            "tel1": self.phone1,
            "tel2": self.phone2 or "",
            "designation": self.designation or "",
            "prix": self.price,
            "nb_pieces": self.piece_count,
            "type": ParcelType.coerce(self.type).value,
            "commentaire": self.comment or "",
            "echange": self.is_exchange,
            "cod": self.cod_amount or 0,
            "poids": self.weight or 0,
        })
        return payload

    def to_dict(self) -> dict[str, Any]:
        """Flat dict without the raw payload (exports/logging)."""
        out = asdict(self)
        out.pop("raw", None)
        out["type"] = ParcelType.coerce(self.type).value
        return out


@dataclass(frozen=True)
class EnrichmentFields:
    """Fields the secondary REST listing knows and the SOAP listing lacks."""
    courier_name: Optional[str] = None
    courier_phone: Optional[str] = None
    last_anomaly_reason: Optional[str] = None
    pickup_date: Optional[str] = None
    delivery_date: Optional[str] = None
    delivery_fee: Optional[float] = None
    return_fee: Optional[float] = None

    @classmethod
    def from_provider(cls, data: dict[str, Any]) -> "EnrichmentFields":
        return cls(
            courier_name=_text(data.get("livreur")),
            courier_phone=_text(data.get("tel_livreur")),
            last_anomaly_reason=_text(data.get("dern_anomalie")),
            pickup_date=_text(data.get("date_enlevement")),
            delivery_date=_text(data.get("date_livraison")),
            delivery_fee=_number(data.get("frais_livraison")),
            return_fee=_number(data.get("frais_retour")),
        )

    def overlay_values(self) -> dict[str, Any]:
        """Only the populated fields; None never overwrites primary data."""
        return {k: v for k, v in asdict(self).items() if v is not None}
