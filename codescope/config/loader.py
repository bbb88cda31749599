# codescope/config/loader.py
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError
from loguru import logger

from .schema import AppConfig
from .paths import get_user_config_file

FieldPath = Tuple[str, ...]

# Environment variable -> field inside AppConfig. Process-local, never saved.
ENV_OVERRIDES: Dict[str, FieldPath] = {
    "CODESCOPE_INGEST_CONCURRENCY": ("ingest_concurrency",),
    "CODESCOPE_LISTING_PAGE_SIZE": ("listing_page_size",),
    "CODESCOPE_MAX_CONTEXT_TOKENS": ("max_context_tokens",),
    "CODESCOPE_ANALYSIS_ENDPOINT": ("analysis", "endpoint"),
    "CODESCOPE_ANALYSIS_MODEL": ("analysis", "model"),
}

_cached_config: Optional[AppConfig] = None
_file_config: Optional[AppConfig] = None
_applied_overrides: Tuple[FieldPath, ...] = ()

def _set_field(data: Dict[str, Any], field_path: FieldPath, value: Any) -> None:
    for key in field_path[:-1]:
        data = data.setdefault(key, {})
    data[field_path[-1]] = value

def _get_field(data: Dict[str, Any], field_path: FieldPath) -> Any:
    for key in field_path:
        data = data[key]
    return data

def _read_config_file(config_path: Path) -> Dict[str, Any]:
    """Returns the stored settings. A file that cannot be parsed is moved aside to *.json.corrupted."""
    if not config_path.exists():
        logger.info("No user config found. Using default settings.")
        return {}

    logger.info(f"Loading user configuration from: {config_path}")
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        return data
    except (ValueError, OSError) as e:
        logger.error(f"Failed to load user config file {config_path}: {e}")

    backup_path = config_path.with_suffix(".json.corrupted")
    try:
        backup_path.unlink(missing_ok=True)
        config_path.rename(backup_path)
        logger.info(f"Backed up corrupted config to: {backup_path}")
    except OSError as backup_err:
        logger.error(f"Failed to backup corrupted config: {backup_err}")
    return {}

def _apply_env_overrides(config: AppConfig) -> Tuple[AppConfig, Tuple[FieldPath, ...]]:
    """Layers CODESCOPE_* variables over `config`, one at a time so a bad value only loses itself."""
    applied = []
    for var, field_path in ENV_OVERRIDES.items():
        raw = os.environ.get(var)
        if not raw:
            continue
        data = config.model_dump()
        _set_field(data, field_path, raw)
        try:
            config = AppConfig.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Ignoring {var}={raw!r}: {e.errors()[0]['msg']}")
            continue
        logger.debug(f"{var} overrides '{'.'.join(field_path)}'.")
        applied.append(field_path)
    return config, tuple(applied)

def load_config() -> AppConfig:
    """Loads the user file, validates it and applies environment overrides."""
    global _cached_config, _file_config, _applied_overrides
    if _cached_config is not None:
        return _cached_config

    loaded_data = _read_config_file(get_user_config_file())
    try:
        file_config = AppConfig(**loaded_data)
    except ValidationError as e:
        logger.error(f"Configuration validation failed: {e}")
        logger.warning("Falling back to default configuration.")
        file_config = AppConfig()

    _file_config = file_config
    _cached_config, _applied_overrides = _apply_env_overrides(file_config)
    logger.info("Configuration loaded successfully.")
    return _cached_config

def _without_env_overrides(config: AppConfig) -> AppConfig:
    """Restores the file's value for every field an environment variable replaced."""
    if not _applied_overrides or _file_config is None:
        return config
    data = config.model_dump()
    stored = _file_config.model_dump()
    for field_path in _applied_overrides:
        _set_field(data, field_path, _get_field(stored, field_path))
    return AppConfig.model_validate(data)

def save_config(config: AppConfig) -> None:
    """Saves the configuration with an atomic replace. Environment overrides are not persisted."""
    config_path = get_user_config_file()
    payload = _without_env_overrides(config).model_dump_json(indent=4)
    logger.info(f"Saving configuration to: {config_path}")
    temp_file_path: Optional[Path] = None
    try:
        # Temp file must live in the target directory for os.replace to be atomic
        with tempfile.NamedTemporaryFile(
            mode='w',
            encoding='utf-8',
            dir=config_path.parent,
            prefix=f".{config_path.name}_tmp",
            suffix=".json",
            delete=False
        ) as temp_f:
            temp_file_path = Path(temp_f.name)
            temp_f.write(payload)
            temp_f.flush()
            os.fsync(temp_f.fileno())
        os.replace(temp_file_path, config_path)
    except OSError as e:
        logger.error(f"Failed to save configuration to {config_path}: {e}")
        if temp_file_path is not None:
            temp_file_path.unlink(missing_ok=True)
        raise
    logger.info("Configuration saved successfully.")

def get_config() -> AppConfig:
    """Returns the cached configuration object, loading if necessary."""
    return load_config()

def reset_config_cache() -> None:
    """Drops the cached configuration so the next get_config() reloads from disk and environment."""
    global _cached_config, _file_config, _applied_overrides
    _cached_config = None
    _file_config = None
    _applied_overrides = ()
