"""Configuration loading and validation for the translation collector."""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from i18n_collector.client import DEFAULT_ENDPOINTS

_QUOTED = r"""['"]([^'"]+)['"]"""

DEFAULT_REGEX_PATTERNS: dict[str, list[str]] = {
    "php": [
        rf"\b__\(\s*{_QUOTED}",
        rf"\btrans\(\s*{_QUOTED}",
        rf"\btrans_choice\(\s*{_QUOTED}",
    ],
    "blade.php": [
        rf"\{{\{{\s*__\(\s*{_QUOTED}",
        rf"@lang\(\s*{_QUOTED}",
    ],
    "py": [
        rf"(?<![\w.])_\(\s*{_QUOTED}",
        rf"\bgettext\(\s*{_QUOTED}",
        rf"\bngettext\(\s*{_QUOTED}",
    ],
    "js": [
        rf"\$t\(\s*{_QUOTED}",
        rf"\bi18n\.t\(\s*{_QUOTED}",
    ],
    "vue": [
        rf"\bv-t=\"\s*{_QUOTED}",
    ],
}

DEFAULT_PATTERN_EXTENDS: dict[str, str] = {
    "blade.php": "php",
    "vue": "js",
}


@dataclass
class ApiConfig:
    """Remote translation service configuration."""

    base_url: str = ""
    token: str = ""
    project_id: str = ""
    timeout: float = 30
    retry_times: int = 3
    retry_sleep: float = 0.1
    batch_delay: float = 0.1
    batch_size: int = 100
    endpoints: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ENDPOINTS))


@dataclass
class ModulesConfig:
    """Modular project layout: one directory per module under ``path``."""

    enabled: bool = False
    path: str = "Modules"
    scan_subpaths: list[str] = field(default_factory=lambda: ["."])
    manifest: dict[str, list[str]] = field(default_factory=dict)


@dataclass
class CacheConfig:
    enabled: bool = False
    path: str = ".i18n-collector/scan-cache.json"


@dataclass
class CollectorConfig:
    """Source scanning and translation store configuration."""

    base_path: str = "."
    scan_paths: list[str] = field(default_factory=lambda: ["."])
    exclude_paths: list[str] = field(
        default_factory=lambda: [".git", "node_modules", "vendor", "__pycache__"]
    )
    scan_file_extensions: list[str] = field(default_factory=list)
    regex_patterns: dict[str, list[str]] = field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_REGEX_PATTERNS.items()}
    )
    pattern_extends: dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_PATTERN_EXTENDS)
    )
    lang_path: str = "lang"
    default_language: str = "en"
    supported_languages: dict[str, str] = field(default_factory=lambda: {"en": "English"})
    default_format: str = "flat"
    default_namespace: str = "messages"
    collect_unresolved: bool = False


@dataclass
class AppConfig:
    """Top-level application configuration."""

    api: ApiConfig = field(default_factory=ApiConfig)
    collector: CollectorConfig = field(default_factory=CollectorConfig)
    modules: ModulesConfig = field(default_factory=ModulesConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)

    def resolve_path(self, path: str) -> Path:
        """Resolve a configured path against ``collector.base_path``."""
        candidate = Path(path)
        if candidate.is_absolute():
            return candidate
        return Path(self.collector.base_path) / candidate

    @property
    def lang_path(self) -> Path:
        return self.resolve_path(self.collector.lang_path)

    @property
    def modules_path(self) -> Path:
        return self.resolve_path(self.modules.path)


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    section = raw.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"Configuration section '{name}' must be a mapping.")
    return section


def _build(cls: type, values: dict[str, Any]) -> Any:
    known = cls.__dataclass_fields__
    unknown = sorted(set(values) - set(known))
    if unknown:
        raise ValueError(f"Unknown {cls.__name__} option(s): {', '.join(unknown)}")
    return cls(**values)


def parse_config(raw: dict[str, Any]) -> AppConfig:
    """Build a validated AppConfig from already-parsed YAML data.

    Environment variable TRANSLATION_API_TOKEN overrides ``api.token``.

    Raises:
        ValueError: If the data contains unknown or invalid values.
    """
    api_raw = _section(raw, "api")
    if "endpoints" in api_raw:
        api_raw = {**api_raw, "endpoints": {**DEFAULT_ENDPOINTS, **(api_raw["endpoints"] or {})}}
    api = _build(ApiConfig, api_raw)

    env_token = os.environ.get("TRANSLATION_API_TOKEN")
    if env_token:
        api.token = env_token

    config = AppConfig(
        api=api,
        collector=_build(CollectorConfig, _section(raw, "collector")),
        modules=_build(ModulesConfig, _section(raw, "modules")),
        cache=_build(CacheConfig, _section(raw, "cache")),
    )
    _validate_config(config)
    return config


def load_config(config_path: str = "config.yaml") -> AppConfig:
    """Load configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        Validated AppConfig instance.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ValueError: If configuration values are invalid.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ValueError("Configuration file must contain a mapping.")
    return parse_config(raw)


def _validate_config(config: AppConfig) -> None:
    """Validate settings needed by every command.

    Raises:
        ValueError: If validation fails.
    """
    collector = config.collector

    if not collector.default_language:
        raise ValueError("default_language must not be empty.")

    if not collector.supported_languages:
        raise ValueError("supported_languages must list at least one language.")

    if collector.default_format not in ("flat", "nested"):
        raise ValueError("default_format must be 'flat' or 'nested'.")

    if not collector.default_namespace or "." in collector.default_namespace:
        raise ValueError("default_namespace must be a non-empty name without dots.")

    for file_type, regexes in collector.regex_patterns.items():
        for pattern in regexes:
            try:
                groups = re.compile(pattern).groups
            except re.error as e:
                raise ValueError(f"Invalid pattern {pattern!r} for '{file_type}': {e}") from e
            if groups < 1:
                raise ValueError(f"Pattern {pattern!r} for '{file_type}' has no capture group.")

    for file_type, base in collector.pattern_extends.items():
        if base not in collector.regex_patterns:
            raise ValueError(f"File type '{file_type}' extends unknown type '{base}'.")

    if config.api.retry_times < 1:
        raise ValueError("retry_times must be at least 1.")

    if config.api.batch_size < 1:
        raise ValueError("batch_size must be at least 1.")


def validate_api_config(config: AppConfig) -> None:
    """Validate settings needed to talk to the remote service.

    Raises:
        ValueError: If validation fails.
    """
    if not config.api.base_url:
        raise ValueError("api.base_url must not be empty.")

    if not config.api.token:
        raise ValueError(
            "API token is not configured. "
            "Set api.token in the config file or the TRANSLATION_API_TOKEN environment variable."
        )

    if not config.api.project_id:
        raise ValueError("api.project_id must not be empty.")
