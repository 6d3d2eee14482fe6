from __future__ import annotations

import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field

from bridge.locales import FALLBACK_LOCALE, normalize_locale

DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
DEFAULT_ROUTINE_CDN_BASE_URL = "https://cdn.yourdomain.com/routines"
DEFAULT_CLEANUP_INTERVAL_SECONDS = 10 * 60
DEFAULT_MAX_IMAGE_BYTES = 12 * 1024 * 1024


class ConfigError(RuntimeError):
    """Raised when the process cannot start with the given environment."""


class Settings(BaseModel):
    gemini_api_key: str
    bridge_api_token: str
    face_model: str = DEFAULT_GEMINI_MODEL
    food_model: str = DEFAULT_GEMINI_MODEL
    gemini_base_url: str = DEFAULT_GEMINI_BASE_URL
    model_timeout_seconds: float = Field(60.0, gt=0)
    min_response_delay_ms: int = Field(1500, ge=0)
    tmp_scan_dir: str = "/tmp/scans"
    cleanup_interval_seconds: float = Field(DEFAULT_CLEANUP_INTERVAL_SECONDS, gt=0)
    temp_retention_seconds: float = Field(DEFAULT_CLEANUP_INTERVAL_SECONDS, gt=0)
    max_image_bytes: int = Field(DEFAULT_MAX_IMAGE_BYTES, gt=0)
    routine_cdn_base_url: str = DEFAULT_ROUTINE_CDN_BASE_URL
    default_locale: str = FALLBACK_LOCALE
    cleanup_enabled: bool = True
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8080

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        gemini_api_key = env.get("GEMINI_API_KEY", "").strip()
        bridge_api_token = env.get("BRIDGE_API_TOKEN", "").strip()
        if not gemini_api_key:
            raise ConfigError("Missing GEMINI_API_KEY")
        if not bridge_api_token:
            raise ConfigError("Missing BRIDGE_API_TOKEN")

        cleanup_interval = _env_float(
            env, "CLEANUP_INTERVAL_SECONDS", DEFAULT_CLEANUP_INTERVAL_SECONDS
        )
        model_timeout = _env_float(env, "MODEL_TIMEOUT_SECONDS", 60.0)
        retention = _env_float(env, "TEMP_RETENTION_SECONDS", cleanup_interval)
        # A scan file must outlive the slowest request that is still using it.
        if retention <= model_timeout:
            raise ConfigError(
                f"TEMP_RETENTION_SECONDS ({retention:g}) must exceed MODEL_TIMEOUT_SECONDS ({model_timeout:g})"
            )
        return cls(
            gemini_api_key=gemini_api_key,
            bridge_api_token=bridge_api_token,
            face_model=env.get("GEMINI_FACE_MODEL", DEFAULT_GEMINI_MODEL),
            food_model=env.get("GEMINI_FOOD_MODEL", DEFAULT_GEMINI_MODEL),
            gemini_base_url=env.get("GEMINI_BASE_URL", DEFAULT_GEMINI_BASE_URL),
            model_timeout_seconds=model_timeout,
            min_response_delay_ms=_env_int(env, "MIN_RESPONSE_DELAY_MS", 1500),
            tmp_scan_dir=env.get("TMP_SCAN_DIR", "/tmp/scans"),
            cleanup_interval_seconds=cleanup_interval,
            temp_retention_seconds=retention,
            max_image_bytes=_env_int(env, "MAX_IMAGE_BYTES", DEFAULT_MAX_IMAGE_BYTES),
            routine_cdn_base_url=env.get("ROUTINE_CDN_BASE_URL", DEFAULT_ROUTINE_CDN_BASE_URL),
            default_locale=normalize_locale(env.get("DEFAULT_LOCALE")) or FALLBACK_LOCALE,
            cleanup_enabled=env.get("TEMP_CLEANUP_ENABLED", "true").lower() == "true",
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
            host=env.get("HOST", "0.0.0.0"),
            port=_env_int(env, "PORT", 8080),
        )


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc
