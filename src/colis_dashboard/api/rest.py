from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from colis_dashboard.api.normalize import as_int, classify, raise_for_error, unwrap_json
from colis_dashboard.api.transport import RequestsTransport, _truncate
from colis_dashboard.config.env import EnvError
from colis_dashboard.errors import ProviderError, ValidationError
from colis_dashboard.models import (
    BulkCreateResult,
    DEFAULT_REST_URL,
    EnrichmentFields,
    EnvCfg,
    ParcelRecord,
    PickupResult,
)

BULK_CREATE_MAX = 50

BULK_CREATE_PATH = "api.v1/StColis/AjoutVMultiple"
PICKUP_PATH = "api.v1/StColis/demanderEnlevement"
LIST_BY_CODES_PATH = "api.v2/StColis/ListColis"


@dataclass
class RestAuth:
    username: str
    password: str


@dataclass
class RestConfig:
    base_url: str = DEFAULT_REST_URL


def _masked(body: Dict[str, Any]) -> str:
    shown = {k: ("***" if k == "Pass" else v) for k, v in body.items()}
    try:
        return _truncate(json.dumps(shown, ensure_ascii=False, default=str)) or ""
    except (TypeError, ValueError):
        return str(shown)


class ColissimoRestClient:
    """Client for the secondary JSON-over-HTTPS provider boundary.

    Credentials travel in every request body; there is no session or token.

    - bulk_create(records): up to 50 parcels per call.
    - request_pickup(): validates every pending parcel at once and returns
      the manifest reference.
    - list_by_codes(codes): courier/anomaly/fee details keyed by tracking code.
    """

    def __init__(
        self,
        auth: RestAuth,
        cfg: Optional[RestConfig] = None,
        transport: Optional[RequestsTransport] = None,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.auth = auth
        self.cfg = cfg or RestConfig()
        self.transport = transport or RequestsTransport()
        self.logger: logging.Logger = logger or logging.getLogger(
            "colis_dashboard.api.rest"
        )

    @classmethod
    def from_env(cls, env_cfg: EnvCfg, transport: Optional[RequestsTransport] = None) -> "ColissimoRestClient":
        return cls(
            RestAuth(env_cfg.COLISSIMO_USERNAME, env_cfg.COLISSIMO_PASSWORD),
            RestConfig(env_cfg.COLISSIMO_REST_URL or DEFAULT_REST_URL),
            transport=transport or RequestsTransport(timeout=env_cfg.COLISSIMO_TIMEOUT),
        )

    def _endpoint(self, path: str) -> str:
        return self.cfg.base_url.rstrip("/") + "/" + path

    def _credentials(self) -> Dict[str, str]:
        if not self.auth.username or not self.auth.password:
            raise EnvError("Authentication credentials not configured")
        return {"Uilisateur": self.auth.username, "Pass": self.auth.password}

    def _post(self, path: str, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        body = {**self._credentials(), **(extra or {})}
        endpoint = self._endpoint(path)
        self.logger.debug("REST POST endpoint=%s request_body=%s",
                          endpoint, _masked(body))
        data = unwrap_json(self.transport.post_json(endpoint, body))
        self.logger.debug(
            "REST POST endpoint=%s response_body=%s",
            endpoint,
            _truncate(json.dumps(data, ensure_ascii=False, default=str)),
        )
        if not isinstance(data, dict):
            raise ProviderError("PARSE", f"Unexpected response from {path}")
        return data

    def bulk_create(self, records: List[ParcelRecord]) -> BulkCreateResult:
        if not records:
            raise ValidationError("La liste des colis est vide ou invalide")
        if len(records) > BULK_CREATE_MAX:
            raise ValidationError(
                f"Le nombre maximum de colis par import est de {BULK_CREATE_MAX}")

        list_colis = []
        for rec in records:
            rec.validate_for_create()
            payload = rec.to_provider_payload()
            # bulk create takes no cod/poids
            payload.pop("cod", None)
            payload.pop("poids", None)
            list_colis.append(payload)

        data = self._post(BULK_CREATE_PATH, {"listColis": list_colis})
        cls = raise_for_error(classify(data))

        content = cls.content if isinstance(cls.content, dict) else {}
        result = BulkCreateResult(
            kind=cls.kind,
            created_count=as_int(content.get("nbCrees"), 0),
            total=as_int(content.get("nbTotal"), len(records)),
            created=list(content.get("lsCrees") or []),
            errors=list(content.get("lsErreurs") or []),
        )
        self.logger.info("Bulk create: %d/%d created (%s)",
                         result.created_count, result.total, result.kind)
        return result

    def request_pickup(self) -> PickupResult:
        data = self._post(PICKUP_PATH)
        cls = raise_for_error(classify(data))
        manifest = cls.content if isinstance(cls.content, str) and cls.content else None
        self.logger.info("Pickup requested; manifest=%s", manifest)
        return PickupResult(manifest_url=manifest, raw=data)

    def list_by_codes(self, codes: Iterable[str]) -> Dict[str, EnrichmentFields]:
        valid = [str(c).strip() for c in codes if c is not None and str(c).strip()]
        if not valid:
            return {}

        data = self._post(LIST_BY_CODES_PATH, {"codeBar": ";".join(valid)})
        cls = raise_for_error(classify(data))

        content = cls.content
        entries = content.get("colis") if isinstance(content, dict) else content
        out: Dict[str, EnrichmentFields] = {}
        for entry in entries or []:
            if not isinstance(entry, dict):
                continue
            code = str(entry.get("code") or entry.get("code_barre") or "").strip()
            if code:
                out[code] = EnrichmentFields.from_provider(entry)
        self.logger.debug("list_by_codes: %d requested, %d returned",
                          len(valid), len(out))
        return out

