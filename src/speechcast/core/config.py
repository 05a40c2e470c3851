"""Configuration system with YAML loading and user overrides."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from speechcast.core.constants import (
    CONFIG_DIR,
    DEFAULT_RATE,
    DEFAULT_VOLUME,
    ENGINE_INIT_TIMEOUT,
    TERMINATE_TIMEOUT,
)
from speechcast.core.exceptions import ConfigError


def deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _pick(cls, data: Optional[dict]) -> dict:
    """Keep only the keys a config dataclass knows about."""
    return {
        k: v for k, v in (data or {}).items()
        if k in cls.__dataclass_fields__
    }


@dataclass
class SynthesisConfig:
    rate: int = DEFAULT_RATE
    volume: float = DEFAULT_VOLUME
    voice: Optional[str] = None
    init_timeout: float = ENGINE_INIT_TIMEOUT


@dataclass
class ExternalConfig:
    program: str = ""
    # Validate programs with a real trial launch (legacy behavior)
    probe_launch: bool = True
    terminate_timeout: float = TERMINATE_TIMEOUT


@dataclass
class NormalizationConfig:
    unicode_form: Optional[str] = "NFKC"
    collapse_whitespace: bool = True
    strip_control: bool = True


@dataclass
class AppConfig:
    synthesis: SynthesisConfig = field(default_factory=SynthesisConfig)
    external: ExternalConfig = field(default_factory=ExternalConfig)
    normalization: NormalizationConfig = field(default_factory=NormalizationConfig)
    logging: dict = field(default_factory=dict)

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "AppConfig":
        """Load the default YAML config, then apply the user override."""
        default_path = CONFIG_DIR / "default.yaml"
        if not default_path.exists():
            raise ConfigError(f"Default config not found: {default_path}")

        config_data = _read_yaml(default_path)

        if config_path:
            user_path = Path(config_path)
            if not user_path.exists():
                raise ConfigError(f"User config not found: {user_path}")
            config_data = deep_merge(config_data, _read_yaml(user_path))

        return cls._from_dict(config_data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "AppConfig":
        try:
            return cls(
                synthesis=SynthesisConfig(**_pick(SynthesisConfig, data.get("synthesis"))),
                external=ExternalConfig(**_pick(ExternalConfig, data.get("external"))),
                normalization=NormalizationConfig(
                    **_pick(NormalizationConfig, data.get("normalization"))
                ),
                logging=data.get("logging") or {},
            )
        except (AttributeError, TypeError) as e:
            raise ConfigError(f"Malformed config section: {e}") from e


def _read_yaml(path: Path) -> dict:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config root must be a mapping: {path}")
    return data
