# src/colis_dashboard/api/normalize.py
from __future__ import annotations

import json
import logging
from typing import Any, Optional

from colis_dashboard.errors import ProviderError
from colis_dashboard.models import Classification

logger = logging.getLogger("colis_dashboard.api.normalize")

# Field names under which the provider has been seen to put its result,
# tried in this order.
RESULT_FIELDS: tuple[str, ...] = (
    "ListResult",
    "ListeColisResult",
    "RechercherColisResult",
    "colis",
    "return",
    "result",
    "data",
    "items",
    "list",
)

# Keys inside a success content object that hold the record list.
CONTENT_LIST_FIELDS: tuple[str, ...] = ("colis", "data", "items", "list")

# Presence of any of these marks a bare parcel record.
RECORD_HINT_FIELDS: tuple[str, ...] = ("reference", "client", "id")

SUCCESS_TYPES = frozenset({"success", "succes"})
PARTIAL_TYPES = frozenset({"partial_success"})
ERROR_TYPES = frozenset({"erreur"})

MAX_UNWRAP_DEPTH = 2


def unwrap_json(value: Any, max_depth: int = MAX_UNWRAP_DEPTH) -> Any:
    """
    Parse a string-encoded JSON value up to `max_depth` times.

    Stops as soon as a non-string is reached or a parse fails; a string that
    does not parse is returned as-is (terminal value, not an error).
    """
    out = value
    for _ in range(max(0, max_depth)):
        if not isinstance(out, str):
            break
        text = out.strip()
        if not text:
            break
        try:
            out = json.loads(text)
        except ValueError:
            break
    return out


def _pick(d: dict[str, Any], *keys: str) -> Any:
    """First present key; the provider mixes camelCase and snake_case."""
    for k in keys:
        if k in d:
            return d[k]
    return None


def _result_type(d: dict[str, Any]) -> Optional[str]:
    rt = _pick(d, "resultType", "result_type")
    if rt is None:
        return None
    return str(rt).strip().lower()


def _has_discriminator(value: Any) -> bool:
    return isinstance(value, dict) and _result_type(value) is not None


def _content(d: dict[str, Any]) -> Any:
    return _pick(d, "resultContent", "result_content")


# --- Discriminator -----------------------------------------------------------

def classify(envelope: Any) -> Classification:
    """
    Classify a parsed envelope as success, partial or error.

    Absence of the discriminator is success-with-unknown-shape: the envelope
    itself is passed through as content.
    """
    envelope = unwrap_json(envelope)
    if not isinstance(envelope, dict):
        return Classification(kind="success", content=envelope)

    rt = _result_type(envelope)
    if rt is None:
        return Classification(kind="success", content=envelope)

    code_raw = _pick(envelope, "resultCode", "result_code")
    code = None if code_raw is None else str(code_raw)
    content = _content(envelope)

    if rt in ERROR_TYPES:
        detail = content if content not in (None, "") else envelope.get("message")
        code_txt = code or "Unknown error"
        msg_txt = "Unknown error" if detail in (None, "") else str(detail)
        return Classification(
            kind="error",
            code=code_txt,
            message=f"{code_txt} - {msg_txt}",
            content=content,
        )

    if rt in PARTIAL_TYPES:
        kind = "partial"
    else:
        if rt not in SUCCESS_TYPES:
            logger.debug(
                "Unrecognized resultType %r treated as success", rt)
        kind = "success"
    return Classification(kind=kind, code=code, content=unwrap_json(content))


def raise_for_error(cls: Classification, *, page: Optional[int] = None) -> Classification:
    """Raise ProviderError for an error classification; pass anything else through."""
    if cls.kind != "error":
        return cls
    code = cls.code or ""
    msg = cls.message or ""
    prefix = f"{code} - "
    if code and msg.startswith(prefix):
        msg = msg[len(prefix):]
    raise ProviderError(code, msg, page=page)


def locate_envelope(raw: Any) -> Any:
    """
    Find the discriminated envelope inside a raw provider response.

    Handles `{"<Op>Result": "<json>"}` wrappers as returned by the SOAP
    boundary. Returns the unwrapped raw value when no discriminator is found.
    """
    raw = unwrap_json(raw)
    if not isinstance(raw, dict) or _has_discriminator(raw):
        return raw

    candidates = [k for k in RESULT_FIELDS if k in raw]
    candidates += [k for k in raw if k.endswith("Result") and k not in candidates]
    for key in candidates:
        inner = unwrap_json(raw[key])
        if _has_discriminator(inner):
            return inner
    return raw


def as_int(value: Any, default: int) -> int:
    """Counters (nbPages, nbColis, nbCrees) arrive as "3", "3.0" or 3."""
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(float(str(value).strip()))
    except (TypeError, ValueError, OverflowError):
        return default


def content_metadata(raw: Any) -> dict[str, Any]:
    """Return the success content when it is an object (nbPages/nbColis live there)."""
    env = locate_envelope(raw)
    if not _has_discriminator(env):
        return env if isinstance(env, dict) else {}
    cls = classify(env)
    return cls.content if isinstance(cls.content, dict) else {}


# --- Envelope parser ---------------------------------------------------------

def _records_from_content(content: Any) -> Optional[list]:
    content = unwrap_json(content)
    if isinstance(content, list):
        return content
    if isinstance(content, dict):
        for key in CONTENT_LIST_FIELDS:
            value = unwrap_json(content.get(key))
            if isinstance(value, list):
                return value
    return None


def _from_discriminated(value: dict[str, Any]) -> Optional[list]:
    cls = classify(value)
    if cls.kind == "error":
        logger.warning("Provider returned an error envelope: %s", cls.message)
        return []
    records = _records_from_content(cls.content)
    if records is not None:
        return records
    # occasionally the list sits beside the discriminator
    for key in CONTENT_LIST_FIELDS:
        if isinstance(value.get(key), list):
            return value[key]
    return None


def _from_result_field(payload: dict[str, Any]) -> Optional[list]:
    """Strategy 2: a known result field holding a list, an envelope, or JSON text."""
    for key in RESULT_FIELDS:
        if key not in payload:
            continue
        value = unwrap_json(payload[key])
        if isinstance(value, list):
            return value
        if _has_discriminator(value):
            records = _from_discriminated(value)
            if records is not None:
                return records
    return None


def _from_single_record(payload: dict[str, Any]) -> Optional[list]:
    """Strategy 3: the payload itself is one parcel."""
    if any(payload.get(k) for k in RECORD_HINT_FIELDS):
        return [payload]
    return None


def _from_any_list(payload: dict[str, Any]) -> Optional[list]:
    """Strategy 4: first top-level property whose value is a list."""
    for value in payload.values():
        if isinstance(value, list):
            return value
    return None


def parse_envelope(raw: Any) -> list:
    """
    Extract the list of provider parcel records from one raw response.

    Strategies are tried in a fixed order and the first match wins:
      1. bare list
      2. known result field (list | success envelope | JSON-encoded string)
      3. single bare record
      4. first top-level list property
    Unrecognized input is not an error: it yields an empty list.
    """
    payload = unwrap_json(raw)

    if payload is None:
        return []

    # 1) bare list
    if isinstance(payload, list):
        return payload

    if not isinstance(payload, dict):
        logger.debug("Unrecognized envelope of type %s", type(payload).__name__)
        return []

    # the top level may itself be the discriminated envelope
    if _has_discriminator(payload):
        records = _from_discriminated(payload)
        if records is not None:
            return records

    # 2) known result field
    records = _from_result_field(payload)
    if records is not None:
        return records

    # 3) single bare record
    records = _from_single_record(payload)
    if records is not None:
        return records

    # 4) any list-valued property
    records = _from_any_list(payload)
    if records is not None:
        return records

    logger.debug("No parcel list found in envelope keys=%s", list(payload)[:10])
    return []


def parse_detail(raw: Any) -> Optional[dict[str, Any]]:
    """Extract a single parcel record from a get-parcel response, or None."""
    payload = unwrap_json(raw)
    if not isinstance(payload, dict):
        return None

    env = locate_envelope(payload)
    if _has_discriminator(env):
        cls = classify(env)
        if cls.kind == "error":
            return None
        content = cls.content
        if isinstance(content, list):
            content = content[0] if content else None
        if isinstance(content, dict):
            inner = unwrap_json(content.get("colis"))
            if isinstance(inner, dict):
                return inner
            if isinstance(inner, list) and inner and isinstance(inner[0], dict):
                return inner[0]
            return content
        return None

    if any(payload.get(k) for k in RECORD_HINT_FIELDS):
        return payload

    for key in ("colis", "DetailColisResult", "getColisResult", "return", "result", "data"):
        value = unwrap_json(payload.get(key))
        if isinstance(value, dict):
            return value
    return None


__all__ = [
    "RESULT_FIELDS",
    "unwrap_json",
    "classify",
    "raise_for_error",
    "locate_envelope",
    "content_metadata",
    "as_int",
    "parse_envelope",
    "parse_detail",
]
