"""Model settings shared by agents and adapters."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from .errors import ConfigurationError


@dataclass(frozen=True)
class ModelSettings:
    """Model configuration, validated at construction.

    Attributes:
        model: Model identifier (e.g. ``"gpt-4o"``). None lets the adapter
            fall back to its own default model.
        temperature: Sampling temperature in ``[0, 2]``, or None for the
            provider default.
        max_tokens: Completion token cap (> 0), or None.
        extra: Provider-specific request keys, merged last.
    """
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.temperature is not None and not 0 <= self.temperature <= 2:
            raise ConfigurationError(
                f"Temperature must be between 0 and 2 (got {self.temperature})"
            )
        if self.max_tokens is not None and self.max_tokens <= 0:
            raise ConfigurationError(
                f"Max tokens must be greater than 0 (got {self.max_tokens})"
            )
        if self.extra is None:
            object.__setattr__(self, "extra", {})

    def to_dict(self) -> dict:
        """Return the set values as request options (unset keys omitted)."""
        settings: dict[str, Any] = {}
        if self.model is not None:
            settings["model"] = self.model
        if self.temperature is not None:
            settings["temperature"] = self.temperature
        if self.max_tokens is not None:
            settings["max_tokens"] = self.max_tokens
        settings.update(self.extra)
        return settings
