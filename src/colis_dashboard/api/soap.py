from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
import zeep
from zeep import xsd
from zeep.exceptions import Error as ZeepError
from zeep.exceptions import Fault
from zeep.exceptions import TransportError as ZeepTransportError
from zeep.exceptions import ValidationError as ZeepValidationError
from zeep.exceptions import XMLSyntaxError
from zeep.helpers import serialize_object
from zeep.transports import Transport

from colis_dashboard.api.normalize import (
    classify,
    locate_envelope,
    parse_detail,
    raise_for_error,
    unwrap_json,
)
from colis_dashboard.api.transport import RETRY_STATUSES, RequestsTransport, _truncate
from colis_dashboard.config.env import EnvError, get_app_env
from colis_dashboard.errors import ProviderError, TransportError, ValidationError
from colis_dashboard.models import Classification, EnvCfg, ParcelRecord

TNS = "http://tempuri.org/"

# SOAP 1.1 faults travel as HTTP 500 and must reach the caller unretried
SOAP_RETRY_STATUSES: tuple[int, ...] = tuple(s for s in RETRY_STATUSES if s != 500)

# "Uilisateur" is the provider's spelling
AUTH_HEADER = xsd.Element(
    f"{{{TNS}}}AuthHeader",
    xsd.ComplexType([
        xsd.Element(f"{{{TNS}}}Uilisateur", xsd.String()),
        xsd.Element(f"{{{TNS}}}Pass", xsd.String()),
    ]),
)


@dataclass
class SoapAuth:
    username: str
    password: str


@dataclass
class SoapConfig:
    wsdl_url: str

    @property
    def wsdl(self) -> str:
        """WSDL location; a bare `.asmx` endpoint gets `?wsdl` appended."""
        url = (self.wsdl_url or "").strip()
        if url and "wsdl" not in url.lower():
            return f"{url}?wsdl"
        return url


def _result_value(result: Any) -> Any:
    """Strings/bytes stay as sent; zeep objects become plain dicts."""
    if result is None or isinstance(result, (str, bytes)):
        return result
    return serialize_object(result, dict)


class ColissimoSoapClient:
    """Client for the primary (SOAP) provider boundary.

    Responsibilities:
    - call(operation, **params): one remote procedure call through the
      WSDL-described service, returning the raw `{"<Op>Result": ...}` mapping
      the envelope parser consumes.
    - typed helpers for the list/detail/CRUD/province/label operations; those
      classify the envelope and raise ProviderError on `erreur`.

    The zeep client is built on first use from the WSDL and rides on the
    RequestsTransport session, so retries and pooling are shared.
    """

    def __init__(
        self,
        auth: SoapAuth,
        cfg: SoapConfig,
        transport: Optional[RequestsTransport] = None,
        *,
        wsdl_client: Optional[zeep.Client] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.auth = auth
        self.cfg = cfg
        self.transport = transport or RequestsTransport(retry_statuses=SOAP_RETRY_STATUSES)
        self._wsdl_client = wsdl_client
        self.logger: logging.Logger = logger or logging.getLogger(
            "colis_dashboard.api.soap"
        )

    @classmethod
    def from_env(cls, env_cfg: EnvCfg, transport: Optional[RequestsTransport] = None) -> "ColissimoSoapClient":
        return cls(
            SoapAuth(env_cfg.COLISSIMO_USERNAME, env_cfg.COLISSIMO_PASSWORD),
            SoapConfig(env_cfg.COLISSIMO_SOAP_URL),
            transport=transport or RequestsTransport(
                timeout=env_cfg.COLISSIMO_TIMEOUT, retry_statuses=SOAP_RETRY_STATUSES),
        )

    def _check_config(self) -> None:
        if not self.cfg.wsdl:
            raise EnvError("COLISSIMO_SOAP_URL is not set")
        if not self.auth.username or not self.auth.password:
            raise EnvError("Provider credentials are not configured")

    def wsdl_client(self) -> zeep.Client:
        """The zeep client, loading the WSDL on first use."""
        if self._wsdl_client is None:
            self._check_config()
            zeep_transport = Transport(
                session=self.transport.session,
                timeout=self.transport.timeout,
                operation_timeout=self.transport.timeout,
            )
            try:
                self._wsdl_client = zeep.Client(self.cfg.wsdl, transport=zeep_transport)
            except (requests.RequestException, ZeepError, OSError) as ex:
                self.logger.error("Loading WSDL %s failed: %s", self.cfg.wsdl, ex)
                raise TransportError(f"Failed to load WSDL {self.cfg.wsdl}: {ex}") from ex
            self.logger.debug("WSDL loaded from %s", self.cfg.wsdl)
        return self._wsdl_client

    def _auth_header(self) -> Any:
        return AUTH_HEADER(Uilisateur=self.auth.username, Pass=self.auth.password)

    def call(self, operation: str, **params: Any) -> Dict[str, Any]:
        self._check_config()
        client = self.wsdl_client()
        try:
            method = client.service[operation]
        except AttributeError as ex:
            raise ProviderError(
                "UNKNOWN_OPERATION", f"{operation} is not offered by the service") from ex

        self.logger.debug(
            "SOAP %s params=%s",
            operation,
            _truncate(json.dumps(params, ensure_ascii=False, default=str)),
        )
        try:
            result = method(_soapheaders=[self._auth_header()], **params)
        except Fault as ex:
            self.logger.warning("SOAP %s fault: %s %s", operation, ex.code, ex.message)
            raise ProviderError(ex.code or "soap:Fault", ex.message or "SOAP fault") from ex
        except ZeepTransportError as ex:
            self.logger.warning("SOAP %s transport error status=%s", operation, ex.status_code)
            raise TransportError(
                f"SOAP {operation} failed: {ex.message}",
                status_code=ex.status_code or None,
            ) from ex
        except XMLSyntaxError as ex:
            raise TransportError(f"Unparsable SOAP response for {operation}: {ex}") from ex
        except ZeepValidationError as ex:
            raise ValidationError(f"Invalid parameters for {operation}: {ex}") from ex
        except requests.RequestException as ex:
            self.logger.warning("SOAP %s failed: %s", operation, ex)
            raise TransportError(f"SOAP {operation} failed: {ex}") from ex

        value = _result_value(result)
        self.logger.debug("SOAP %s response_body=%s", operation,
                          _truncate(value if isinstance(value, str) else repr(value)))
        return {f"{operation}Result": value}

    def _checked(self, operation: str, raw: Dict[str, Any]) -> Classification:
        cls = classify(locate_envelope(raw))
        if cls.kind == "error":
            self.logger.error("%s returned error: %s", operation, cls.message)
            raise_for_error(cls)
        return cls

    # --- list / detail -------------------------------------------------------

    def list_parcels(self, page: int = 1) -> Dict[str, Any]:
        """One raw listing page (the aggregator parses and classifies it)."""
        return self.call("ListeColis", page=int(page))

    def get_parcel_raw(self, code: str) -> Dict[str, Any]:
        code = _require_code(code)
        raw = self.call("getColis", code_barre=code)
        self._checked("getColis", raw)
        detail = parse_detail(raw)
        if detail is None:
            raise ProviderError("NOT_FOUND", f"Colis {code} not found")
        return detail

    def get_parcel(self, code: str) -> ParcelRecord:
        return ParcelRecord.from_provider(self.get_parcel_raw(code))

    # --- mutations -----------------------------------------------------------

    def create_parcel(self, record: ParcelRecord) -> Classification:
        payload = record.to_provider_payload()
        raw = self.call("AjouterColis", pic=json.dumps(payload, ensure_ascii=False))
        cls = self._checked("AjouterColis", raw)
        self.logger.info("Created colis reference=%s", record.reference or "")
        return cls

    def update_parcel(self, record: ParcelRecord) -> Classification:
        payload = record.to_provider_payload(for_update=True)
        raw = self.call("ModifierColis", pic=json.dumps(payload, ensure_ascii=False))
        cls = self._checked("ModifierColis", raw)
        self.logger.info("Updated colis %s", record.tracking_code)
        return cls

    def change_status(self, code: str, new_status: str) -> Classification:
        """Read-modify-write: fetch the current record, replace `etat`, save."""
        code = _require_code(code)
        if not new_status or not str(new_status).strip():
            raise ValidationError("Code barre and new status are required")
        current = self.get_parcel_raw(code)
        updated = {**current, "etat": new_status, "code_barre": code}
        raw = self.call("ModifierColis", pic=json.dumps(updated, ensure_ascii=False))
        cls = self._checked("ModifierColis", raw)
        self.logger.info("Status of %s changed to %s", code, new_status)
        return cls

    def delete_parcel(self, code: str) -> Classification:
        code = _require_code(code)
        raw = self.call("SupprimerColis", code_barre=code)
        cls = self._checked("SupprimerColis", raw)
        self.logger.info("Deleted colis %s", code)
        return cls

    # --- reference data / documents -----------------------------------------

    def list_provinces(self) -> list[dict[str, Any]]:
        """Provinces (gouvernorats) with their cities; content is double-encoded."""
        raw = self.call("listGouvernorats")
        cls = self._checked("listGouvernorats", raw)
        content = unwrap_json(cls.content)
        if isinstance(content, dict):
            for key in ("gouvernorats", "data", "list"):
                if isinstance(content.get(key), list):
                    content = content[key]
                    break
        if not isinstance(content, list):
            raise ProviderError("PARSE", "Failed to parse gouvernorats data")
        return content

    def get_label_pdf(self, code: str) -> bytes:
        """Label PDF bytes. The provider answers base64, or a JSON error body."""
        code = _require_code(code)
        raw = self.call("getColisPdf", code_barre=code)
        data = raw.get("getColisPdfResult")
        if not data:
            raise ProviderError("EMPTY", f"No label returned for {code}")
        if isinstance(data, bytes):
            # base64Binary results arrive already decoded
            pdf = data
        else:
            parsed = unwrap_json(data)
            if isinstance(parsed, dict):
                self._checked("getColisPdf", parsed)
                raise ProviderError("PARSE", f"Unexpected label response for {code}")
            try:
                pdf = base64.b64decode(data, validate=False)
            except (binascii.Error, ValueError) as ex:
                raise ProviderError("PARSE", f"Label for {code} is not base64") from ex
        if not pdf.startswith(b"%PDF"):
            self.logger.warning("Label for %s does not look like a PDF", code)
        return pdf


def _require_code(code: Any) -> str:
    text = str(code or "").strip()
    if not text:
        raise ValidationError("Colis code (code barre) is required")
    return text


# --- process-wide client -----------------------------------------------------

_cached_client: Optional[ColissimoSoapClient] = None


def get_soap_client(env_cfg: Optional[EnvCfg] = None) -> ColissimoSoapClient:
    """
    Memoized client shared by the process, cached once its WSDL has loaded.

    Not guarded by a lock: concurrent cold starts may build duplicate clients,
    which are interchangeable.
    """
    global _cached_client
    if _cached_client is not None:
        return _cached_client

    if env_cfg is None:
        env_cfg = get_app_env(strict=True)
    client = ColissimoSoapClient.from_env(env_cfg)
    client.wsdl_client()
    _cached_client = client
    return client


def clear_client_cache() -> None:
    global _cached_client
    _cached_client = None
