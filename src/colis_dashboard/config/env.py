# src/colis_dashboard/config/env.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

from colis_dashboard.models import EnvCfg, DEFAULT_REST_URL

try:
    from dotenv import dotenv_values, find_dotenv, load_dotenv  # type: ignore
except Exception as e:  # pragma: no cover
    raise RuntimeError(
        "colis-dashboard reads its settings with python-dotenv:\n"
        "  pip install python-dotenv"
    ) from e


class EnvError(RuntimeError):
    """Provider configuration is missing or unusable."""


# Without these no provider call can be made
REQUIRED_KEYS: Tuple[str, ...] = (
    "COLISSIMO_SOAP_URL",
    "COLISSIMO_USERNAME",
    "COLISSIMO_PASSWORD",
)


def find_env_file(start: Optional[Path] = None) -> Optional[Path]:
    """Nearest `.env` at or above `start` (default: CWD), or None."""
    if start is None:
        found = find_dotenv(filename=".env", usecwd=True)
        return Path(found).resolve() if found else None

    base = Path(start).resolve()
    for folder in (base, *base.parents):
        candidate = folder / ".env"
        if candidate.is_file():
            return candidate
    return None


def env(name: str, *, default=None, required: bool = False, cast: Optional[Callable] = None):
    """
    Read one process variable; blank counts as unset.

    `required=True` turns a missing value into KeyError(name); `cast` errors
    propagate to the caller.
    """
    value = os.environ.get(name, "")
    if not value.strip():
        if required:
            raise KeyError(name)
        return default
    return cast(value) if cast is not None else value


def load_env(
    dotenv_path: Optional[Path] = None,
    *,
    override: bool = False,
    required_keys: Tuple[str, ...] = (),
    strict: bool = False,
) -> Dict[str, str]:
    """
    Push a dotenv file into `os.environ` and return what the file declared.

    An explicit `dotenv_path` that does not exist loads nothing (no search);
    with no path the nearest `.env` is used. Process values survive unless
    `override=True`. With `strict=True` every `required_keys` entry must be
    non-blank afterwards, else EnvError names all that are missing.
    """
    if dotenv_path is not None:
        path: Optional[Path] = Path(dotenv_path)
        if not path.is_file():
            path = None
    else:
        path = find_env_file()

    declared: Dict[str, str] = {}
    if path is not None:
        load_dotenv(dotenv_path=path, override=override)
        declared = {k: v for k, v in dotenv_values(path).items() if v is not None}

    if strict:
        missing = [k for k in required_keys if env(k) is None]
        if missing:
            raise EnvError(
                f"Missing required environment variable(s): {', '.join(missing)}")
    return declared


def _positive_int(name: str, default: int) -> int:
    try:
        value = env(name, default=default, cast=int)
    except ValueError as e:
        raise EnvError(f"{name} must be an integer") from e
    if value < 1:
        raise EnvError(f"{name} must be >= 1")
    return value


def get_app_env(dotenv_path: Path | str | None = ".env", *, strict: bool = True) -> EnvCfg:
    """
    Resolve provider settings into an EnvCfg.

    Host/CI variables win over the file. `strict=False` tolerates missing
    credentials; the clients then refuse to call out (EnvError at call time).
    """
    load_env(
        Path(dotenv_path) if dotenv_path else None,
        required_keys=REQUIRED_KEYS,
        strict=strict,
    )

    return EnvCfg(
        COLISSIMO_SOAP_URL=env("COLISSIMO_SOAP_URL", default=""),
        COLISSIMO_USERNAME=env("COLISSIMO_USERNAME", default=""),
        COLISSIMO_PASSWORD=env("COLISSIMO_PASSWORD", default=""),
        COLISSIMO_REST_URL=env("COLISSIMO_REST_URL", default=DEFAULT_REST_URL),
        COLISSIMO_TIMEOUT=_positive_int("COLISSIMO_TIMEOUT", 30),
        COLISSIMO_PAGE_WORKERS=_positive_int("COLISSIMO_PAGE_WORKERS", 8),
    )


__all__ = [
    "EnvError",
    "REQUIRED_KEYS",
    "find_env_file",
    "load_env",
    "env",
    "get_app_env",
]
