from __future__ import annotations
from dataclasses import dataclass

DEFAULT_REST_URL = "https://delivery.colissimo.com.tn/api"


@dataclass(frozen=True)
class EnvCfg:
    """Provider endpoints and credentials resolved by get_app_env()."""
    COLISSIMO_SOAP_URL: str = ""
    COLISSIMO_USERNAME: str = ""
    COLISSIMO_PASSWORD: str = ""
    COLISSIMO_REST_URL: str = DEFAULT_REST_URL
    COLISSIMO_TIMEOUT: int = 30
    COLISSIMO_PAGE_WORKERS: int = 8

    @property
    def has_credentials(self) -> bool:
        return bool(self.COLISSIMO_USERNAME and self.COLISSIMO_PASSWORD)
