from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict
from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from dependency_age.core.paths import DEFAULT_CACHE_FILENAME
from dependency_age.core.rating import Thresholds
from dependency_age.core.whitelist import WhitelistError, load_whitelist

CONFIG_EXTRA_KEY = "dependency-age"
DEFAULT_CACHE_TTL = 24 * 60 * 60
THRESHOLD_KEYS = ("current", "medium", "old")

DEFAULT_IGNORE_PACKAGES = (
    "psr/log",
    "psr/container",
    "psr/http-message",
    "psr/http-factory",
    "psr/cache",
    "psr/simple-cache",
    "psr/event-dispatcher",
    "psr/http-client",
    "psr/http-server-handler",
    "psr/http-server-middleware",
    "psr/link",
)


class ConfigurationError(Exception):
    pass


class OutputFormat(StrEnum):
    CLI = "cli"
    JSON = "json"
    GITHUB = "github"


class DependencyAgeConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    ignore: list[str] = Field(default_factory=lambda: list(DEFAULT_IGNORE_PACKAGES))
    thresholds: Thresholds = Field(default_factory=Thresholds)
    cache_file: str = DEFAULT_CACHE_FILENAME
    include_dev: bool = True
    output_format: OutputFormat = OutputFormat.CLI
    show_colors: bool = True
    api_timeout: int = Field(default=30, gt=0)
    max_concurrent_requests: int = Field(default=5, ge=1, le=20)
    cache_ttl: int = Field(default=DEFAULT_CACHE_TTL, gt=0)
    fail_on_critical: bool = False
    whitelist_file: str | None = None
    event_integration: bool = True
    event_operations: list[str] = Field(default_factory=lambda: ["install", "update"])
    event_analysis_limit: int = Field(default=10, ge=0)

    @field_validator("thresholds")
    @classmethod
    def _check_thresholds(cls, value: Thresholds) -> Thresholds:
        if errors := value.errors():
            raise ValueError("; ".join(errors))
        return value

    @field_validator("ignore")
    @classmethod
    def _normalize_ignore(cls, value: list[str]) -> list[str]:
        return _unique_names(value)

    def is_ignored(self, package_name: str) -> bool:
        return package_name.lower() in self.ignore


def _unique_names(names: list[str]) -> list[str]:
    return list(dict.fromkeys(name.strip().lower() for name in names if name.strip()))


def parse_thresholds(
    text: str, base: Mapping[str, Any] | None = None
) -> dict[str, Any]:
    """Parse ``current=0.5,medium=1.0,old=2.0`` on top of ``base``."""
    values: dict[str, Any] = {**asdict(Thresholds()), **(base or {})}
    for part in text.split(","):
        if not (part := part.strip()):
            continue
        key, sep, raw_value = part.partition("=")
        key = key.strip()
        if not sep or key not in THRESHOLD_KEYS:
            raise ConfigurationError(f"Invalid threshold definition: {part!r}")
        try:
            values[key] = float(raw_value.strip())
        except ValueError as exc:
            raise ConfigurationError(
                f"Threshold {key} must be a number, got: {raw_value.strip()!r}"
            ) from exc
    return values


def _format_validation_error(error: ValidationError) -> str:
    return ", ".join(
        f"{'.'.join(str(part) for part in item['loc']) or 'config'}: {item['msg']}"
        for item in error.errors()
    )


def _extra_section(manifest: Mapping[str, Any]) -> dict[str, Any]:
    extra = manifest.get("extra")
    if not isinstance(extra, Mapping):
        return {}
    section = extra.get(CONFIG_EXTRA_KEY)
    if section is None:
        return {}
    if not isinstance(section, Mapping):
        raise ConfigurationError(f"extra.{CONFIG_EXTRA_KEY} must be an object")
    return dict(section)


def load_config(
    manifest: Mapping[str, Any],
    overrides: Mapping[str, Any] | None = None,
    *,
    base_dir: Path | None = None,
) -> DependencyAgeConfig:
    """Build the effective configuration.

    Precedence: command line overrides, then ``extra.dependency-age`` in
    composer.json, then defaults. Ignore lists are additive.
    """
    raw = _extra_section(manifest)
    overrides = dict(overrides or {})

    ignore = list(DEFAULT_IGNORE_PACKAGES)
    if isinstance(configured_ignore := raw.get("ignore"), list):
        ignore.extend(configured_ignore)
    elif configured_ignore is not None:
        raise ConfigurationError("ignore must be a list of package names")
    ignore.extend(overrides.pop("ignore", []))
    raw["ignore"] = ignore

    configured_thresholds = raw.get("thresholds") or {}
    if not isinstance(configured_thresholds, Mapping):
        raise ConfigurationError("thresholds must be an object")
    if unknown := set(configured_thresholds) - set(THRESHOLD_KEYS):
        raise ConfigurationError(f"Invalid threshold key: {', '.join(sorted(unknown))}")
    if isinstance(threshold_override := overrides.get("thresholds"), str):
        overrides["thresholds"] = parse_thresholds(
            threshold_override, configured_thresholds
        )

    raw.update({key: value for key, value in overrides.items() if value is not None})

    try:
        config = DependencyAgeConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(
            f"Configuration validation failed: {_format_validation_error(exc)}"
        ) from exc

    if config.whitelist_file is None:
        return config

    whitelist_path = Path(config.whitelist_file)
    if not whitelist_path.is_absolute() and base_dir is not None:
        whitelist_path = base_dir / whitelist_path
    try:
        whitelisted = load_whitelist(whitelist_path)
    except WhitelistError as exc:
        raise ConfigurationError(
            f"Failed to load whitelist file '{config.whitelist_file}': {exc}"
        ) from exc

    return config.model_copy(
        update={
            "ignore": _unique_names([*config.ignore, *whitelisted])
        }
    )
