from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from .column_aliases import DEFAULT_COLUMN_ALIASES, merge_aliases

"""Config loader.

Responsibilities:
- Load the YAML config (``config/xrf.yml`` by default)
- Validate it against ``config_schema.json`` shipped beside this module
- Apply defaults for every omitted section
- Merge extra header spellings into the built-in column alias table

Secrets (API keys, database passwords) are expected in the environment or a
``.env`` file; the YAML ``database`` section is only a fallback.
"""

__all__ = [
    "AIConfig",
    "AppConfig",
    "CacheConfig",
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "DatabaseConfig",
    "ProcessingConfig",
    "SCHEMA_PATH",
    "default_config",
    "load_config",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/xrf.yml")


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class ProcessingConfig:
    chunk_size: int = 100  # rows (parser) / entries (cache writes) per chunk
    chunk_delay_seconds: float = 0.0  # pause between chunks
    header_scan_rows: int = 25
    cache_batch_size: int = 50  # names per cache lookup


@dataclass(frozen=True)
class AIConfig:
    enabled: bool = True
    provider: str = "openai"  # openai | azure
    model: str = "gpt-4o-mini"  # model name or Azure deployment
    temperature: float = 0.3
    max_tokens: int = 2000
    timeout_seconds: float = 60.0
    openai_base_url: str = "https://api.openai.com/v1"
    azure_endpoint: str | None = None
    azure_api_version: str = "2024-02-15-preview"
    use_ai_column_fallback: bool = True
    always_use_ai_columns: bool = False


@dataclass(frozen=True)
class CacheConfig:
    backend: str = "postgres"  # postgres | memory
    component_table: str = "xrf_component_cache"
    substrate_table: str = "xrf_substrate_cache"


@dataclass(frozen=True)
class DatabaseConfig:
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class AppConfig:
    processing: ProcessingConfig = field(default_factory=ProcessingConfig)
    ai: AIConfig = field(default_factory=AIConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    column_aliases: dict[str, tuple[str, ...]] = field(
        default_factory=lambda: dict(DEFAULT_COLUMN_ALIASES)
    )
    hazard_reference: Path | None = None
    output_directory: Path = Path("./output")


def default_config() -> AppConfig:
    return AppConfig()


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: If the schema file is missing or not valid JSON, or the
            config data violates the schema (unknown keys, wrong types ...)
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)

    hazard_ref = data.get("hazard_reference")
    return AppConfig(
        processing=ProcessingConfig(**data.get("processing", {})),
        ai=AIConfig(**data.get("ai", {})),
        cache=CacheConfig(**data.get("cache", {})),
        database=DatabaseConfig(**data.get("database", {})),
        column_aliases=merge_aliases(data.get("column_aliases")),
        hazard_reference=Path(hazard_ref) if hazard_ref else None,
        output_directory=Path(data.get("output_directory", "./output")),
    )
