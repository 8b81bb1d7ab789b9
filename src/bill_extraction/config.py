"""
Configuration management (SSOT).

This module defines ALL configuration for bill extraction.
All config keys are defined here; no other module should invent config keys.

Key invariants:
- The heuristic extractor is always registered; the AI extractor only when
  enabled AND an API key is available
- Secrets (API keys) come from the environment or the config file and are
  never logged
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


@dataclass
class AnthropicConfig:
    """Anthropic Messages API configuration.

    SSOT for AI extraction settings:
    - enabled: Master switch (default ON, but inert without an API key)
    - base_url: API root, overridable for proxies and tests
    """

    enabled: bool = True
    api_key: str | None = None
    base_url: str = "https://api.anthropic.com"
    api_version: str = "2023-06-01"
    model: str = "claude-sonnet-4-5-20250929"
    max_tokens: int = 1024
    # Read timeout for the completion request (seconds)
    timeout_seconds: float = 60.0

    @property
    def is_usable(self) -> bool:
        """Enabled and has credentials."""
        return self.enabled and bool(self.api_key)


@dataclass
class HeuristicConfig:
    """Text heuristics settings."""

    # Provider names recognised in addition to the built-in allow-list
    extra_known_providers: list[str] = field(default_factory=list)


@dataclass
class EnsembleConfig:
    """Ensemble execution settings."""

    # Upper bound on waiting for all extractors (None = wait indefinitely)
    strategy_timeout_seconds: float | None = None
    # Worker threads (None = one per extractor)
    max_workers: int | None = None


@dataclass
class Config:
    """Application configuration (SSOT)."""

    anthropic: AnthropicConfig = field(default_factory=AnthropicConfig)
    heuristic: HeuristicConfig = field(default_factory=HeuristicConfig)
    ensemble: EnsembleConfig = field(default_factory=EnsembleConfig)

    def validate(self) -> list[str]:
        """Validate configuration completeness and consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        if self.anthropic.enabled:
            if not self.anthropic.base_url:
                errors.append("anthropic.base_url is required when AI extraction is enabled")
            if not self.anthropic.model:
                errors.append("anthropic.model is required when AI extraction is enabled")
            if self.anthropic.max_tokens <= 0:
                errors.append("anthropic.max_tokens must be positive")
            if self.anthropic.timeout_seconds <= 0:
                errors.append("anthropic.timeout_seconds must be positive")

        timeout = self.ensemble.strategy_timeout_seconds
        if timeout is not None and timeout <= 0:
            errors.append("ensemble.strategy_timeout_seconds must be positive when set")

        if self.ensemble.max_workers is not None and self.ensemble.max_workers <= 0:
            errors.append("ensemble.max_workers must be positive when set")

        return errors


def _optional_float(value) -> float | None:
    if value is None or value == "":
        return None
    return float(value)


def load_config(config_path: Path) -> Config:
    """
    Load configuration from YAML file.

    Environment variables can override config values:
    - ANTHROPIC_API_KEY
    - ANTHROPIC_MODEL
    - ANTHROPIC_BASE_URL
    - BILL_EXTRACT_AI_ENABLED (true/false)
    - BILL_EXTRACT_AI_TIMEOUT (request timeout in seconds)
    - BILL_EXTRACT_STRATEGY_TIMEOUT (ensemble wait bound in seconds)

    Raises:
        ConfigValidationError: If the resulting configuration is invalid
    """
    if config_path.exists():
        with open(config_path) as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigValidationError(f"Invalid YAML in {config_path}: {e}") from e
    else:
        data = {}

    if not isinstance(data, dict):
        raise ConfigValidationError(f"Top level of {config_path} must be a mapping")

    # Anthropic config
    ai_data = data.get("anthropic") or {}
    ai_enabled_env = os.environ.get("BILL_EXTRACT_AI_ENABLED", "").lower()
    ai_enabled = ai_data.get("enabled", True)
    if ai_enabled_env == "true":
        ai_enabled = True
    elif ai_enabled_env == "false":
        ai_enabled = False

    try:
        anthropic = AnthropicConfig(
            enabled=bool(ai_enabled),
            api_key=os.environ.get("ANTHROPIC_API_KEY", ai_data.get("api_key")),
            base_url=os.environ.get(
                "ANTHROPIC_BASE_URL", ai_data.get("base_url", "https://api.anthropic.com")
            ),
            api_version=ai_data.get("api_version", "2023-06-01"),
            model=os.environ.get(
                "ANTHROPIC_MODEL", ai_data.get("model", "claude-sonnet-4-5-20250929")
            ),
            max_tokens=int(ai_data.get("max_tokens", 1024)),
            timeout_seconds=float(
                os.environ.get("BILL_EXTRACT_AI_TIMEOUT", ai_data.get("timeout_seconds", 60.0))
            ),
        )

        # Heuristic config
        heuristic_data = data.get("heuristic") or {}
        heuristic = HeuristicConfig(
            extra_known_providers=list(heuristic_data.get("extra_known_providers") or []),
        )

        # Ensemble config
        ensemble_data = data.get("ensemble") or {}
        max_workers = ensemble_data.get("max_workers")
        ensemble = EnsembleConfig(
            strategy_timeout_seconds=_optional_float(
                os.environ.get(
                    "BILL_EXTRACT_STRATEGY_TIMEOUT",
                    ensemble_data.get("strategy_timeout_seconds"),
                )
            ),
            max_workers=int(max_workers) if max_workers is not None else None,
        )
    except (TypeError, ValueError) as e:
        raise ConfigValidationError(f"Invalid value in {config_path}: {e}") from e

    config = Config(anthropic=anthropic, heuristic=heuristic, ensemble=ensemble)

    errors = config.validate()
    if errors:
        raise ConfigValidationError("; ".join(errors))

    return config


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# Bill extraction configuration
#
# Secrets should come from the environment (ANTHROPIC_API_KEY) rather than
# this file.

# AI extraction (Anthropic Messages API)
# Only used when enabled AND an API key is available
anthropic:
  enabled: true
  api_key: null                            # Prefer the ANTHROPIC_API_KEY env var
  base_url: "https://api.anthropic.com"
  api_version: "2023-06-01"
  model: "claude-sonnet-4-5-20250929"
  max_tokens: 1024
  timeout_seconds: 60

# Text heuristics
heuristic:
  extra_known_providers: []                # e.g. ["Duke Energy", "City Water"]

# Ensemble execution
ensemble:
  strategy_timeout_seconds: null           # null = wait for every extractor
  max_workers: null                        # null = one thread per extractor
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)
