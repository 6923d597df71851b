#!/usr/bin/env python

import copy
import os
import yaml
from typing import Dict, Any, List, Optional
from pathlib import Path

from .constants import (
    API_KEY_ENV_VARS, CONFIG_FILE_PATH, DEFAULT_CONFIG, MAX_CONFIG_FILE_SIZE,
    GEMINI_KEY_MIN_LENGTH, OPENAI_KEY_MIN_LENGTH, OPENAI_KEY_PREFIX,
)
from .engine import QueryConfig
from .errors import ConfigError
from .logger import logger
from .models import ModelSettings, Provider, Verbosity


def validate_api_key(provider: Provider, key: str) -> None:
    """Basic key format validation; raises ConfigError"""
    key = key.strip()
    if provider is Provider.OPENAI:
        if not key.startswith(OPENAI_KEY_PREFIX):
            raise ConfigError(f"OpenAI API key must start with '{OPENAI_KEY_PREFIX}'")
        if len(key) < OPENAI_KEY_MIN_LENGTH:
            raise ConfigError("OpenAI API key is too short")
    elif len(key) < GEMINI_KEY_MIN_LENGTH:
        raise ConfigError("Gemini API key is too short")


def load_config(config_path: Path = CONFIG_FILE_PATH) -> Dict[str, Any]:
    """Load and validate configuration from YAML file, creating it on first run"""
    config_path = Path(config_path)

    if not config_path.exists():
        logger.info(f"No config at {config_path}, writing defaults")
        config = copy.deepcopy(DEFAULT_CONFIG)
        save_config(config, config_path)
        return config

    # Check if file is readable
    if not config_path.is_file() or not os.access(config_path, os.R_OK):
        raise ConfigError(f"Config file '{config_path}' is not readable")

    # Check file size (prevent loading massive files)
    try:
        if config_path.stat().st_size > MAX_CONFIG_FILE_SIZE:
            raise ConfigError(f"Config file '{config_path}' is too large (>1MB)")
    except OSError as e:
        raise ConfigError(f"Error accessing config file '{config_path}': {e}") from e

    try:
        with open(config_path, 'r', encoding='utf-8') as file:
            config = yaml.safe_load(file)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {e}") from e
    except OSError as e:
        raise ConfigError(f"Error loading config: {e}") from e

    return _validate_and_normalize_config(config)


def save_config(config: Dict[str, Any], config_path: Path = CONFIG_FILE_PATH) -> None:
    """Write configuration, readable by the owner only since it holds API keys"""
    config_path = Path(config_path)
    try:
        config_path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
        os.chmod(config_path, 0o600)
    except OSError as e:
        raise ConfigError(f"Failed to save config to {config_path}: {e}") from e
    logger.debug(f"Saved config to {config_path}")


def _merge_defaults(config: Dict[str, Any], defaults: Dict[str, Any]) -> Dict[str, Any]:
    """Fill in every key missing from config with its default, section by section"""
    merged = copy.deepcopy(defaults)
    for key, value in config.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge_defaults(value, merged[key])
        else:
            merged[key] = value
    return merged


def _validate_and_normalize_config(config: Any) -> Dict[str, Any]:
    """Validate and normalize configuration, filling defaults"""
    if config is None:
        config = {}
    if not isinstance(config, dict):
        raise ConfigError("Config file must contain a mapping at the top level")

    for section in DEFAULT_CONFIG:
        if section in config and config[section] is not None and not isinstance(config[section], dict):
            raise ConfigError(f"Config section '{section}' must be a mapping")
        if config.get(section) is None:
            config.pop(section, None)

    config = _merge_defaults(config, DEFAULT_CONFIG)

    settings = config["settings"]
    settings["default_provider"] = Provider.parse(settings["default_provider"]).value
    settings["verbosity"] = Verbosity.parse(settings["verbosity"]).value
    settings["temperature"] = _coerce(settings, "temperature", float, "settings.temperature")
    if settings.get("max_tokens") is not None:
        settings["max_tokens"] = _coerce(settings, "max_tokens", int, "settings.max_tokens")

    query = config["query"]
    for field, kind in (("max_retries", int), ("max_cache_size", int),
                        ("retry_delay", float), ("max_retry_delay", float), ("cache_ttl", float)):
        query[field] = _coerce(query, field, kind, f"query.{field}")
        if query[field] < 0:
            raise ConfigError(f"Config field query.{field} must not be negative")
    if not isinstance(query["stream"], bool):
        raise ConfigError("Please set true or false for query.stream")

    return config


def _coerce(section: Dict[str, Any], key: str, kind: type, field_path: str):
    try:
        return kind(section[key])
    except (TypeError, ValueError):
        raise ConfigError(f"Please set a valid {kind.__name__} for {field_path}") from None


class ConfigManager:
    """Reads and updates the persisted configuration"""

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = Path(config_path) if config_path else CONFIG_FILE_PATH
        self.config = load_config(self.config_path)

    def save(self) -> None:
        save_config(self.config, self.config_path)

    @property
    def default_provider(self) -> Provider:
        return Provider.parse(self.config["settings"]["default_provider"])

    def set_default_provider(self, provider: Provider) -> None:
        self.config["settings"]["default_provider"] = provider.value
        self.save()

    def get_api_key(self, provider: Provider) -> Optional[str]:
        """Environment variable first, then the stored key"""
        env_key = os.environ.get(API_KEY_ENV_VARS[provider.value], "").strip()
        if env_key:
            return env_key
        stored = self.config["api_keys"].get(provider.value)
        return stored.strip() if stored else None

    def set_api_key(self, provider: Provider, key: str) -> None:
        validate_api_key(provider, key)
        self.config["api_keys"][provider.value] = key.strip()
        self.save()

    def get_model(self, provider: Provider) -> str:
        return self.config["models"].get(provider.value) or provider.default_model

    def set_model(self, provider: Provider, model: str) -> None:
        if not model.strip():
            raise ConfigError("Model name must not be empty")
        self.config["models"][provider.value] = model.strip()
        self.save()

    def get_base_url(self, provider: Provider) -> Optional[str]:
        return self.config["api"].get(provider.value) or None

    def model_settings(self, verbosity: Optional[str] = None) -> ModelSettings:
        settings = self.config["settings"]
        return ModelSettings(
            temperature=settings["temperature"],
            max_tokens=settings.get("max_tokens"),
            verbosity=Verbosity.parse(verbosity or settings["verbosity"]),
        )

    def query_config(self, **overrides: Any) -> QueryConfig:
        """Build the engine config from the 'query' section; ``None`` overrides are ignored"""
        query = self.config["query"]
        values = {
            "max_retries": query["max_retries"],
            "retry_delay": query["retry_delay"],
            "max_retry_delay": query["max_retry_delay"],
            "cache_ttl": query["cache_ttl"],
            "max_cache_size": query["max_cache_size"],
            "stream": query["stream"],
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return QueryConfig(**values)

    def configured_providers(self) -> List[Provider]:
        return [provider for provider in Provider if self.get_api_key(provider)]
