from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import ValidationError

from ..errors import ConfigurationError
from .schema import AppConfig, LoadedConfig


# (section, key) -> environment variable
ENV_OVERRIDES: dict[tuple[str, str], str] = {
    ("venue", "api_key"): "ASTERDEX_API_KEY",
    ("venue", "api_secret"): "ASTERDEX_API_SECRET",
    ("venue", "futures_api_url"): "FUTURES_API_URL",
    ("venue", "spot_api_url"): "SPOT_API_URL",
    ("engine", "max_price_diff_percent"): "MAX_PRICE_DIFF_PERCENT",
    ("engine", "retry_delay_ms"): "RETRY_DELAY_MS",
}


def load_yaml(path: Path | str) -> dict[str, Any]:
    cfg_path = Path(path)
    try:
        with cfg_path.open("r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle) or {}
    except OSError as exc:
        raise ConfigurationError(f"Cannot read configuration file {cfg_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Malformed YAML in {cfg_path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigurationError(f"Configuration root must be a mapping, got {type(payload)!r}")
    return payload


def apply_env_overrides(
    payload: Mapping[str, Any], environ: Mapping[str, str] | None = None
) -> dict[str, Any]:
    env = os.environ if environ is None else environ
    merged: dict[str, Any] = {key: value for key, value in payload.items()}
    for (section, key), env_name in ENV_OVERRIDES.items():
        raw = env.get(env_name)
        if raw is None or not raw.strip():
            continue
        current = merged.get(section)
        section_payload = dict(current) if isinstance(current, Mapping) else {}
        section_payload[key] = raw.strip()
        merged[section] = section_payload
    return merged


def _format_errors(exc: ValidationError) -> list[str]:
    errors: list[str] = []
    for entry in exc.errors():
        location = ".".join(str(part) for part in entry.get("loc", ()))
        message = str(entry.get("msg") or "invalid")
        if location:
            errors.append(f"{location}: {message}")
        else:
            errors.append(message)
    return errors


def validate_payload(payload: Any) -> AppConfig:
    try:
        return AppConfig.model_validate(payload)
    except ValidationError as exc:
        details = "; ".join(_format_errors(exc))
        raise ConfigurationError(f"Invalid configuration: {details}") from exc


def load_app_config(
    path: str | Path | None = None, *, environ: Mapping[str, str] | None = None
) -> LoadedConfig:
    cfg_path = Path(path) if path is not None else None
    raw = load_yaml(cfg_path) if cfg_path is not None else {}
    app_config = validate_payload(apply_env_overrides(raw, environ))
    return LoadedConfig(path=cfg_path, data=app_config)


__all__ = ["ENV_OVERRIDES", "apply_env_overrides", "load_app_config", "load_yaml", "validate_payload"]
