#!/usr/bin/env python

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .constants import (
    DEFAULT_TEMPERATURE, GEMINI_DEFAULT_MODEL, OPENAI_DEFAULT_MODEL,
    PROVIDER_GEMINI, PROVIDER_OPENAI, VERBOSITY_PROMPTS,
)
from .errors import ConfigError


class Provider(str, Enum):
    OPENAI = PROVIDER_OPENAI
    GEMINI = PROVIDER_GEMINI

    @classmethod
    def parse(cls, value: str) -> "Provider":
        """Parse a provider name case-insensitively"""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = ", ".join(p.value for p in cls)
            raise ConfigError(f"Unknown provider: {value}. Valid providers are: {valid}") from None

    @property
    def default_model(self) -> str:
        return OPENAI_DEFAULT_MODEL if self is Provider.OPENAI else GEMINI_DEFAULT_MODEL

    def __str__(self) -> str:
        return self.value


class Verbosity(str, Enum):
    CONCISE = "concise"
    NORMAL = "normal"
    DETAILED = "detailed"

    @classmethod
    def parse(cls, value: str) -> "Verbosity":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = ", ".join(v.value for v in cls)
            raise ConfigError(f"Unknown verbosity: {value}. Valid values are: {valid}") from None

    @property
    def system_prompt(self) -> str:
        return VERBOSITY_PROMPTS[self.value]


@dataclass
class ModelSettings:
    """Generation parameters shared by every backend"""
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: Optional[int] = None
    verbosity: Verbosity = field(default=Verbosity.CONCISE)
