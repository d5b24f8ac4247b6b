"""
Configuration management for ConfigGuard
Handles the operator settings file, environment overrides and the default ScanPolicy
"""
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator

from configguard.core.exceptions import ConfigurationError
from configguard.core.models import ObjectMeta, ScanPolicy
from configguard.core.policy import DEFAULT_POLICY_NAME, default_scan_policy
from configguard.core.scanner import DEFAULT_SCANNER
from configguard.store.manifests import parse_scan_policy_spec

ENV_PREFIX = "CONFIGGUARD_"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class RawConfig(BaseModel):
    """Shape of the configuration file, validated before use."""

    log_level: str = Field("INFO", description="Log level for the configguard logger")
    default_scanner: str = Field(DEFAULT_SCANNER, description="Scanner used when a policy names none")
    fail_fast: bool = Field(False, description="Abort a pass on the first failing key")
    reconcile_timeout: Optional[float] = Field(None, description="Deadline in seconds for one pass")
    default_scan_policy: Optional[Union[str, Dict[str, Any]]] = Field(
        None,
        description="ScanPolicy (manifest, spec mapping, or YAML/JSON string) for namespaces without one",
    )

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}")
        return level

    @field_validator("reconcile_timeout")
    @classmethod
    def _check_timeout(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value <= 0:
            raise ValueError("reconcile_timeout must be positive")
        return value


@dataclass
class OperatorConfig:
    """ConfigGuard configuration"""
    log_level: str = "INFO"
    default_scanner: str = DEFAULT_SCANNER
    fail_fast: bool = False
    reconcile_timeout: Optional[float] = None
    default_scan_policy: Optional[Union[str, Dict[str, Any]]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'OperatorConfig':
        """Create from dictionary, validating every field"""
        try:
            raw = RawConfig(**data)
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e
        return cls(**raw.model_dump())

    def scan_policy(self) -> ScanPolicy:
        """The ScanPolicy applied to namespaces that define none."""
        return load_default_scan_policy(self.default_scan_policy)


def load_default_scan_policy(raw: Optional[Union[str, Dict[str, Any]]]) -> ScanPolicy:
    """
    Decode the configured default ScanPolicy.

    Accepts a full ScanPolicy manifest, a bare spec mapping, or either of
    those as a YAML/JSON string. Empty input yields the built-in default.
    """
    if not raw:
        return default_scan_policy()

    if isinstance(raw, str):
        try:
            raw = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to decode default scan policy: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigurationError("Default scan policy must decode to a mapping")

    metadata = raw.get("metadata")
    if not isinstance(metadata, dict):
        metadata = {}
    spec = (raw["spec"] or {}) if "spec" in raw else raw
    if not isinstance(spec, dict):
        raise ConfigurationError("Default scan policy spec must be a mapping")
    return ScanPolicy(
        metadata=ObjectMeta(name=metadata.get("name") or DEFAULT_POLICY_NAME),
        spec=parse_scan_policy_spec(spec),
    )


class ConfigManager:
    """Manages ConfigGuard configuration"""

    def __init__(self, config_path: Optional[Path] = None, use_dotenv: bool = True):
        """
        Initialize config manager

        Args:
            config_path: Path to config file (defaults to ~/.config/configguard/config.yaml)
            use_dotenv: Load a .env file into the environment before reading overrides
        """
        if config_path is None:
            config_path = Path.home() / ".config" / "configguard" / "config.yaml"

        self.config_path = Path(config_path)
        self.use_dotenv = use_dotenv
        self._config: Optional[OperatorConfig] = None

    def load(self) -> OperatorConfig:
        """Load configuration from file, then apply environment overrides"""
        if self._config is not None:
            return self._config

        data: Dict[str, Any] = {}
        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Failed to parse config file {self.config_path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigurationError(f"Config file {self.config_path} must contain a mapping")

        if self.use_dotenv:
            load_dotenv()
        data.update(self._env_overrides())

        self._config = OperatorConfig.from_dict(data)
        return self._config

    @staticmethod
    def _env_overrides() -> Dict[str, Any]:
        overrides: Dict[str, Any] = {}
        for field_name in RawConfig.model_fields:
            value = os.getenv(ENV_PREFIX + field_name.upper())
            if value is not None and value != "":
                overrides[field_name] = value
        return overrides

    def save(self, config: Optional[OperatorConfig] = None) -> None:
        """
        Save configuration to file

        Args:
            config: Configuration to save (uses current if None)
        """
        if config is not None:
            self._config = config

        if self._config is None:
            raise ValueError("No configuration to save")

        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, 'w') as f:
            yaml.safe_dump(self._config.to_dict(), f, sort_keys=False)

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value"""
        config = self.load()
        return getattr(config, key, default)
