from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional
import os
import sys

from retailpos.domain.errors import ValidationError


@dataclass(frozen=True)
class AppPaths:
    base_dir: Path
    db_path: Path
    logs_dir: Path


@dataclass(frozen=True)
class Settings:
    api_url: Optional[str]
    api_token: Optional[str]
    api_timeout: float
    user_id: int
    db_path: Optional[Path]


def _windows_appdata() -> Path:
    return Path(os.environ.get("APPDATA", str(Path.home() / "AppData" / "Roaming")))


def _mac_app_support() -> Path:
    return Path.home() / "Library" / "Application Support"


def get_app_paths(app_name: str = "RetailPOS") -> AppPaths:
    if sys.platform.startswith("win"):
        base = _windows_appdata() / app_name
    elif sys.platform == "darwin":
        base = _mac_app_support() / app_name
    else:
        base = Path.home() / f".{app_name.lower()}"

    logs = base / "logs"
    db = base / "pos.db"

    base.mkdir(parents=True, exist_ok=True)
    logs.mkdir(parents=True, exist_ok=True)

    return AppPaths(base_dir=base, db_path=db, logs_dir=logs)


def _number(env: Mapping[str, str], key: str, default, cast):
    raw = (env.get(key) or "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError as e:
        raise ValidationError(f"{key} must be a number. Received: {raw!r}") from e
    if value <= 0:
        raise ValidationError(f"{key} must be > 0.")
    return value


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if environ is None else environ
    db_path = (env.get("RETAILPOS_DB_PATH") or "").strip()
    return Settings(
        api_url=(env.get("RETAILPOS_API_URL") or "").strip() or None,
        api_token=(env.get("RETAILPOS_API_TOKEN") or "").strip() or None,
        api_timeout=_number(env, "RETAILPOS_API_TIMEOUT", 10.0, float),
        user_id=_number(env, "RETAILPOS_USER_ID", 1, int),
        db_path=Path(db_path) if db_path else None,
    )
