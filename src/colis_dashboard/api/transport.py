from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from colis_dashboard.errors import TransportError

_BODY_LOG_LIMIT = 4000

RETRY_STATUSES: tuple[int, ...] = (429, 500, 502, 503, 504)


def _truncate(text: Optional[str], limit: int = _BODY_LOG_LIMIT) -> Optional[str]:
    if text and len(text) > limit:
        return text[:limit] + "..."
    return text


class RequestsTransport:
    """Requests session wrapper with retry/backoff.

    Retries on typical transient errors and on specified status codes.
    Failures surface as TransportError; callers never see raw requests
    exceptions.
    """

    def __init__(
        self,
        timeout: int = 30,
        max_retries: int = 3,
        backoff_factor: float = 0.3,
        *,
        retry_statuses: Sequence[int] = RETRY_STATUSES,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.session = requests.Session()
        self.timeout = timeout
        self.logger = logger or logging.getLogger(
            "colis_dashboard.api.transport")

        retry = Retry(
            total=max_retries,
            read=max_retries,
            connect=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=tuple(retry_statuses),
            allowed_methods=("GET", "POST"),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

    def post(
        self,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        data: Any = None,
        json: Any = None,
    ) -> requests.Response:
        """POST and return the response; non-2xx and network errors raise TransportError."""
        try:
            resp = self.session.post(
                url, headers=headers, data=data, json=json, timeout=self.timeout)
        except requests.RequestException as ex:
            self.logger.warning("POST %s failed: %s", url, ex)
            raise TransportError(f"POST {url} failed: {ex}") from ex

        try:
            resp.raise_for_status()
        except requests.HTTPError as ex:
            self.logger.warning(
                "POST %s returned error status=%s response_body=%s",
                url,
                resp.status_code,
                _truncate(resp.text),
            )
            raise TransportError(
                f"POST {url} returned HTTP {resp.status_code}",
                status_code=resp.status_code,
            ) from ex
        return resp

    def post_json(self, url: str, payload: Any) -> Any:
        """POST a JSON body and decode the JSON answer."""
        resp = self.post(url, headers={"Content-Type": "application/json"}, json=payload)
        try:
            return resp.json()
        except ValueError as ex:
            self.logger.warning(
                "POST %s returned a non-JSON body: %s", url, _truncate(resp.text))
            raise TransportError(f"POST {url} returned a non-JSON body") from ex
