"""Runtime configuration for Mind Goal.

Values come from the process environment first and from Streamlit secrets
(``.streamlit/secrets.toml``) second, so the same code runs inside the
Streamlit app, in scripts and under pytest.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"


# Keys that may also live in a [section] block of secrets.toml.
NESTED_SECRETS = {
    "SUPABASE_URL": ("supabase", "url"),
    "SUPABASE_ANON_KEY": ("supabase", "anon_key"),
    "SUPABASE_SERVICE_ROLE_KEY": ("supabase", "service_role_key"),
    "OPENAI_API_KEY": ("openai", "api_key"),
    "GEMINI_API_KEY": ("gemini", "api_key"),
}


def _load_secrets() -> Mapping[str, Any]:
    try:
        import streamlit as st  # type: ignore
    except ImportError:
        return {}
    return st.secrets


def get_config(name: str, default: Optional[str] = None) -> Optional[str]:
    """Environment first, then a flat secret, then its nested ``[section]`` key."""
    env_value = os.getenv(name)
    if env_value:
        return env_value
    secrets = _load_secrets()
    try:
        value = secrets.get(name)
        if not value and name in NESTED_SECRETS:
            section, key = NESTED_SECRETS[name]
            value = (secrets.get(section) or {}).get(key)
    except Exception:
        # No secrets.toml outside of a Streamlit deployment.
        return default
    return value or default


@dataclass(frozen=True)
class Settings:
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    openai_model: str = DEFAULT_OPENAI_MODEL
    log_level: str = "INFO"

    @property
    def demo_mode(self) -> bool:
        """True when the Supabase URL/key pair is incomplete."""
        return not (self.supabase_url and self.supabase_anon_key)


def load_settings() -> Settings:
    return Settings(
        supabase_url=get_config("SUPABASE_URL"),
        supabase_anon_key=get_config("SUPABASE_ANON_KEY"),
        supabase_service_role_key=get_config("SUPABASE_SERVICE_ROLE_KEY"),
        openai_api_key=get_config("OPENAI_API_KEY"),
        gemini_api_key=get_config("GEMINI_API_KEY"),
        openai_model=get_config("OPENAI_MODEL", DEFAULT_OPENAI_MODEL) or DEFAULT_OPENAI_MODEL,
        log_level=(get_config("LOG_LEVEL", "INFO") or "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the root logger."""
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(level)
        return
    logging.basicConfig(level=level, format=LOG_FORMAT)
