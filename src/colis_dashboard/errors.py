# src/colis_dashboard/errors.py
from __future__ import annotations

from typing import Optional


class ColisError(RuntimeError):
    """Base class for errors raised by the dashboard core."""


class ProviderError(ColisError):
    """The provider answered with an explicit error discriminator (``erreur``).

    Carries the provider's machine code and human message verbatim; never
    retried automatically.
    """

    def __init__(self, code: str, message: str, *, page: Optional[int] = None) -> None:
        self.code = str(code or "")
        self.message = str(message or "")
        self.page = page
        super().__init__(f"{self.code} - {self.message}")


class TransportError(ColisError):
    """Network/HTTP failure reaching either provider boundary."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class ValidationError(ColisError, ValueError):
    """Caller input rejected before any remote call is attempted."""


__all__ = [
    "ColisError",
    "ProviderError",
    "TransportError",
    "ValidationError",
]
