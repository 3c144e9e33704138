"""
screener/config.py
Config layer. Persists to screener_config.json in the project root;
environment variables override the file (API keys belong in the env).

The classifier is built from an explicit ClassifierConfig — there is no
process-wide client object.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from screener.errors import ConfigError
from screener.llm.base import ClassifierAdapter
from screener.llm.gemini_adapter import DEFAULT_BASE_URL, GeminiAdapter
from screener.llm.ollama_adapter import OllamaAdapter

logger = logging.getLogger(__name__)

BACKENDS = ('gemini', 'ollama')

DEFAULT_MODELS = {
    "gemini": "gemini-2.5-flash",
    "ollama": "llama3.1:8b",
}

DEFAULT_CONFIG: Dict[str, Any] = {
    "backend": "gemini",
    "model": None,                  # None → DEFAULT_MODELS[backend]
    "api_key": "",
    "gemini_base_url": DEFAULT_BASE_URL,
    "ollama_host": "http://localhost:11434",
    "timeout_sec": 60,
    "temperature": 0.1,
    "max_retries": 0,
    "retry_backoff_sec": 1.0,
    "workers": 1,
}

# env var → config key
ENV_OVERRIDES = {
    "GEMINI_API_KEY": "api_key",
    "SCREENER_BACKEND": "backend",
    "SCREENER_MODEL": "model",
    "OLLAMA_HOST": "ollama_host",
}


def _config_path(project_root: Optional[Path] = None) -> Path:
    root = project_root or Path.cwd()
    return root / "screener_config.json"


def load_config(project_root: Optional[Path] = None) -> Dict[str, Any]:
    """Load config from screener_config.json, then apply env overrides."""
    config = dict(DEFAULT_CONFIG)
    path = _config_path(project_root)
    if path.exists():
        try:
            config.update(json.loads(path.read_text(encoding="utf-8")))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Config load failed: {e}")

    for env_name, key in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            config[key] = value
    return config


def save_config(config: Dict[str, Any], project_root: Optional[Path] = None) -> Path:
    """Persist config to screener_config.json. The API key is never written."""
    path = _config_path(project_root)
    data = {k: v for k, v in config.items() if k != "api_key"}
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path


@dataclass(frozen=True)
class ClassifierConfig:
    backend:           str = "gemini"
    model:             str = DEFAULT_MODELS["gemini"]
    api_key:           str = ""
    gemini_base_url:   str = DEFAULT_BASE_URL
    ollama_host:       str = "http://localhost:11434"
    timeout_sec:       int = 60
    temperature:       float = 0.1
    max_retries:       int = 0
    retry_backoff_sec: float = 1.0

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "ClassifierConfig":
        merged = {**DEFAULT_CONFIG, **config}
        backend = str(merged["backend"]).lower().strip()
        if backend not in BACKENDS:
            raise ConfigError(f"Unknown backend {backend!r}. Choose one of: {', '.join(BACKENDS)}")
        try:
            return cls(
                backend=backend,
                model=merged["model"] or DEFAULT_MODELS[backend],
                api_key=merged["api_key"] or "",
                gemini_base_url=merged["gemini_base_url"],
                ollama_host=merged["ollama_host"],
                timeout_sec=int(merged["timeout_sec"]),
                temperature=float(merged["temperature"]),
                max_retries=int(merged["max_retries"]),
                retry_backoff_sec=float(merged["retry_backoff_sec"]),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid config value: {e}") from e


def build_classifier(config: ClassifierConfig) -> ClassifierAdapter:
    """Construct the adapter for config.backend."""
    if config.backend == "gemini":
        return GeminiAdapter(
            api_key=config.api_key,
            model=config.model,
            base_url=config.gemini_base_url,
            timeout_sec=config.timeout_sec,
            temperature=config.temperature,
            max_retries=config.max_retries,
            retry_backoff_sec=config.retry_backoff_sec,
        )
    if config.backend == "ollama":
        return OllamaAdapter(
            model=config.model,
            host=config.ollama_host,
            timeout_sec=config.timeout_sec,
            temperature=config.temperature,
            max_retries=config.max_retries,
            retry_backoff_sec=config.retry_backoff_sec,
        )
    raise ConfigError(f"Unknown backend {config.backend!r}")
