#!/usr/bin/env python

"""Constants and configuration values for q"""

import os
from pathlib import Path

# Application Information
APP_VERSION = "0.1.0"

# File and Directory Constants
DEFAULT_CONFIG_FILE = "config.yaml"
HOME_DIR = Path.home()
CONFIG_DIR = Path(os.environ.get("XDG_CONFIG_HOME", HOME_DIR / ".config")) / "q-cli"
APP_DATA_DIR = HOME_DIR / ".q-cli"
LOGS_DIR = APP_DATA_DIR / "logs"
PROMPT_HISTORY_FILE = APP_DATA_DIR / "prompt_history"

# Full paths to config files
CONFIG_FILE_PATH = CONFIG_DIR / DEFAULT_CONFIG_FILE

# Providers
PROVIDER_OPENAI = "openai"
PROVIDER_GEMINI = "gemini"
DEFAULT_PROVIDER = PROVIDER_GEMINI

# Vendor endpoints
OPENAI_API_URL = "https://api.openai.com/v1"
GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta"
OPENAI_DEFAULT_MODEL = "gpt-3.5-turbo"
GEMINI_DEFAULT_MODEL = "gemini-2.0-flash"

# Environment variables that override stored API keys
API_KEY_ENV_VARS = {
    PROVIDER_OPENAI: "OPENAI_API_KEY",
    PROVIDER_GEMINI: "GEMINI_API_KEY",
}

# Model defaults
DEFAULT_TEMPERATURE = 0.7
DEFAULT_VERBOSITY = "concise"

# Query engine defaults
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY = 1.0  # seconds
DEFAULT_MAX_RETRY_DELAY = 30.0  # seconds
DEFAULT_CACHE_TTL = 3600.0  # seconds
DEFAULT_MAX_CACHE_SIZE = 1000
BACKOFF_MULTIPLIER = 2.0
CACHE_LOCK_TIMEOUT = 5.0  # seconds

# Timeouts (in seconds)
API_TIMEOUT = 30

# File Size Limits
MAX_CONFIG_FILE_SIZE = 1024 * 1024  # 1MB
MAX_CONTEXT_SIZE = 1024 * 1024  # 1MB

# Context gathering
DEFAULT_DIRECTORY_DEPTH = 3
MAX_HISTORY_ENTRIES = 100
HISTORY_FILE_CANDIDATES = [".zsh_history", ".bash_history"]

# API key format checks
OPENAI_KEY_PREFIX = "sk-"
OPENAI_KEY_MIN_LENGTH = 40
GEMINI_KEY_MIN_LENGTH = 20

# Streaming wire format
SSE_DONE_SENTINEL = "[DONE]"

# System prompts keyed by verbosity
VERBOSITY_PROMPTS = {
    "concise": "Be concise and to the point. Provide only essential information without unnecessary details or explanations.",
    "normal": "Provide balanced responses with moderate detail.",
    "detailed": "Provide detailed and comprehensive responses with thorough explanations and examples where appropriate.",
}

# Logging Configuration
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Default configuration written on first run
DEFAULT_CONFIG = {
    "api_keys": {
        PROVIDER_OPENAI: None,
        PROVIDER_GEMINI: None,
    },
    "settings": {
        "default_provider": DEFAULT_PROVIDER,
        "temperature": DEFAULT_TEMPERATURE,
        "max_tokens": None,
        "verbosity": DEFAULT_VERBOSITY,
    },
    "models": {
        PROVIDER_OPENAI: OPENAI_DEFAULT_MODEL,
        PROVIDER_GEMINI: GEMINI_DEFAULT_MODEL,
    },
    "api": {
        PROVIDER_OPENAI: OPENAI_API_URL,
        PROVIDER_GEMINI: GEMINI_API_URL,
    },
    "query": {
        "max_retries": DEFAULT_MAX_RETRIES,
        "retry_delay": DEFAULT_RETRY_DELAY,
        "max_retry_delay": DEFAULT_MAX_RETRY_DELAY,
        "cache_ttl": DEFAULT_CACHE_TTL,
        "max_cache_size": DEFAULT_MAX_CACHE_SIZE,
        "stream": True,
    },
}
