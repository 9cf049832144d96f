import json
import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

# User config: loaded from ~/.agentrun/config.json (primary)
# or project-root config.json (fallback).
CONFIG_PATH = Path.home() / ".agentrun" / "config.json"
_LOCAL_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.json"
_user_config: dict = {}


def _load_config() -> dict:
    # Project-local config.json as base, user home config overlaid on top
    merged: dict = {}
    for path in (_LOCAL_CONFIG_PATH, CONFIG_PATH):
        if path is not None and path.exists():
            try:
                with open(path, "r", encoding="utf-8") as f:
                    merged.update(json.load(f))
            except (json.JSONDecodeError, OSError):
                pass
    return merged


def get(key: str, default=None):
    """Get a config value by dot-separated key. E.g. get('runner.max_turns', 10)"""
    keys = key.split(".")
    val = _user_config
    for k in keys:
        if isinstance(val, dict):
            val = val.get(k)
        else:
            return default
    return val if val is not None else default


_user_config = _load_config()


# ---- Data directory -----------------------------------------------------------
# Base directory for logs and token usage files.
# Priority: AGENTRUN_DIR env var > "data_dir" config key > ~/.agentrun

_data_dir: Optional[Path] = None


def get_data_dir() -> Path:
    """Return the resolved base data directory.

    Resolution order:
    1. ``AGENTRUN_DIR`` environment variable (highest: useful for CI/Docker)
    2. ``"data_dir"`` key in config.json
    3. ``~/.agentrun`` (default)
    """
    global _data_dir
    if _data_dir is not None:
        return _data_dir
    env_val = os.environ.get("AGENTRUN_DIR")
    if env_val:
        _data_dir = Path(env_val).expanduser().resolve()
    else:
        configured = get("data_dir")
        if configured:
            _data_dir = Path(configured).expanduser().resolve()
        else:
            _data_dir = Path.home() / ".agentrun"
    return _data_dir


def _reset_data_dir() -> None:
    """Reset the cached data directory (for testing only)."""
    global _data_dir
    _data_dir = None


# ---- LLM provider config ------------------------------------------------------
LLM_PROVIDER = get("llm_provider", "openai")  # "openai", "anthropic"
LLM_API_KEY = get("llm_api_key")              # provider API key (overrides per-provider env vars)
LLM_BASE_URL = get("llm_base_url")            # for OpenAI-compatible endpoints

_PROVIDER_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}


def get_api_key(provider: str | None = None) -> str | None:
    """Return the API key for the given (or configured) LLM provider.

    Resolution order: LLM_API_KEY config > provider-specific env var.
    The environment is read on every call so keys exported after import
    are still picked up.
    """
    if LLM_API_KEY:
        return LLM_API_KEY
    prov = (provider or LLM_PROVIDER).lower()
    env_name = _PROVIDER_KEY_ENV.get(prov)
    if env_name is None:
        return None
    return os.getenv(env_name) or None


DEFAULT_MODEL = get("model", "gpt-4o")
DEFAULT_ANTHROPIC_MODEL = get("anthropic_model", "claude-sonnet-4-5-20250929")
DEFAULT_MAX_TURNS = get("max_turns", 10)
REQUEST_TIMEOUT_MS = get("request_timeout_ms", 300_000)
CONSOLE_FORMAT = get("console_format", "simple")  # "simple", "full", "clean"
LOG_TO_FILE = get("log_to_file", False)
