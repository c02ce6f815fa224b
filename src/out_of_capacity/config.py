"""Configuration loading for the out-of-capacity runner."""

import json
import math
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from out_of_capacity.constants import (
    DEFAULT_ARCHIVE_THRESHOLD,
    DEFAULT_DELAY_SECONDS,
    DEFAULT_DOMAIN_VAR,
    DEFAULT_DOMAINS,
    DEFAULT_LOG_FILE,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_COUNT_FILE,
    DEFAULT_TERRAFORM_BIN,
)


@dataclass
class Config:
    """Runner configuration. Paths are relative to workdir unless absolute."""

    delay_seconds: float = DEFAULT_DELAY_SECONDS
    max_retries: int = DEFAULT_MAX_RETRIES
    archive_threshold: int = DEFAULT_ARCHIVE_THRESHOLD
    log_file: str = DEFAULT_LOG_FILE
    retry_count_file: str = DEFAULT_RETRY_COUNT_FILE
    domains: tuple[int, ...] = DEFAULT_DOMAINS
    domain_var: str = DEFAULT_DOMAIN_VAR
    terraform_bin: str = DEFAULT_TERRAFORM_BIN
    workdir: Path = field(default_factory=Path.cwd)
    extra_args: tuple[str, ...] = ()

    @property
    def log_path(self) -> Path:
        return Path(self.workdir) / self.log_file

    @property
    def retry_count_path(self) -> Path:
        return Path(self.workdir) / self.retry_count_file


class ConfigError(Exception):
    """Raised when configuration is invalid."""
    pass


# env var -> Config field
ENV_VARS = {
    "OOC_DELAY_SECONDS": "delay_seconds",
    "OOC_MAX_RETRIES": "max_retries",
    "OOC_ARCHIVE_THRESHOLD": "archive_threshold",
    "OOC_LOG_FILE": "log_file",
    "OOC_RETRY_COUNT_FILE": "retry_count_file",
    "OOC_DOMAINS": "domains",
    "OOC_DOMAIN_VAR": "domain_var",
    "OOC_TERRAFORM_BIN": "terraform_bin",
    "OOC_WORKDIR": "workdir",
}


def _parse_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    try:
        return int(str(value).strip())
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}")


def _parse_float(name: str, value: Any) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be a number, got {value!r}")
    try:
        return float(str(value).strip())
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {value!r}")


def _parse_domains(value: Any) -> tuple[int, ...]:
    if isinstance(value, str):
        parts = [p.strip() for p in value.split(",") if p.strip()]
    elif isinstance(value, (list, tuple)):
        parts = list(value)
    else:
        parts = [value]
    return tuple(_parse_int("domains", p) for p in parts)


def _coerce(name: str, value: Any) -> Any:
    """Convert a raw env/file value to the type of the Config field."""
    if name in ("max_retries", "archive_threshold"):
        return _parse_int(name, value)
    if name == "delay_seconds":
        return _parse_float(name, value)
    if name == "domains":
        return _parse_domains(value)
    if name == "workdir":
        return Path(str(value)).expanduser()
    if name == "extra_args":
        if not isinstance(value, (list, tuple)):
            raise ConfigError("extra_args must be a list of strings")
        return tuple(str(a) for a in value)
    return str(value)


def load_config_file(config_file: Path) -> dict:
    """
    Load overrides from a YAML or JSON file.

    Any Config field may be set, e.g.:

        delay_seconds: 30
        domains: [1, 2, 3]
        extra_args: ["-var-file=prod.tfvars"]
    """
    if not config_file.exists():
        raise ConfigError(f"Config file not found: {config_file}")

    content = config_file.read_text()

    if config_file.suffix in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_file}: {e}")
    elif config_file.suffix == ".json":
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {config_file}: {e}")
    else:
        raise ConfigError(f"Unsupported file type: {config_file.suffix}. Use .yaml, .yml, or .json")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a mapping: {config_file}")

    known = {f.name for f in fields(Config)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown config keys in {config_file}: {', '.join(unknown)}")

    return data


def validate_config(config: Config) -> Config:
    if not math.isfinite(config.delay_seconds):
        raise ConfigError("delay_seconds must be a finite number")
    if config.delay_seconds < 0:
        raise ConfigError("delay_seconds must be >= 0")
    if config.max_retries < 1:
        raise ConfigError("max_retries must be >= 1")
    if config.archive_threshold < 1:
        raise ConfigError("archive_threshold must be >= 1")
    if not config.domains:
        raise ConfigError("at least one domain is required")
    return config


def load_config(
    config_file: Optional[Path] = None,
    overrides: Optional[dict] = None,
) -> Config:
    """
    Build the effective configuration.

    Precedence (highest first): overrides (CLI options), config file,
    environment variables, defaults.

    Raises:
        ConfigError: If any value is malformed or out of range.
    """
    load_dotenv()

    values: dict[str, Any] = {}

    for env_name, field_name in ENV_VARS.items():
        raw = os.environ.get(env_name)
        if raw:
            values[field_name] = _coerce(field_name, raw)

    if config_file is not None:
        for key, raw in load_config_file(Path(config_file)).items():
            values[key] = _coerce(key, raw)

    for key, raw in (overrides or {}).items():
        if raw is not None:
            values[key] = _coerce(key, raw)

    return validate_config(Config(**values))
