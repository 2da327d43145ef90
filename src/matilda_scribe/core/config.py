#!/usr/bin/env python3
"""Configuration loader that reads from config files."""
import os
from pathlib import Path
from typing import Any

import tomllib

DEFAULT_CONFIG: dict[str, Any] = {
    "service": {
        "url": "wss://localhost:8443/speech-to-text/api/v1/recognize",
        "model": None,
        "customization_id": None,
        "learning_opt_out": None,
        "access_token": "",
        "open_timeout": 10.0,
        "verify_ssl": True,
    },
    "session": {
        "max_reconnect_attempts": 1,
        "transient_close_codes": [101],
        "max_pending_chunks": 256,
    },
    "audio": {
        "sample_rate": 16000,
        "channels": 1,
        "chunk_ms": 100,
        "content_type": "audio/l16;rate=16000",
        "compress": False,
    },
}


class ConfigLoader:
    """Load configuration from config files."""

    def __init__(self, config_path: str | Path | None = None) -> None:
        if config_path is None:
            config_path = self._default_config_path()

        self.config_file = str(config_path)
        config_path = Path(config_path)
        if config_path.exists():
            with open(config_path, "rb") as f:
                full_config = tomllib.load(f)
            scribe_config = full_config.get("scribe", {})
        else:
            scribe_config = {}

        self._config = self._merge_dicts(DEFAULT_CONFIG, scribe_config)

    def _default_config_path(self) -> Path:
        env_path = os.environ.get("MATILDA_CONFIG")
        if env_path:
            return Path(env_path)
        return Path.home() / ".matilda" / "config.toml"

    def _merge_dicts(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        merged = base.copy()
        for key, value in override.items():
            if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
                merged[key] = self._merge_dicts(merged[key], value)
            else:
                merged[key] = value
        return merged

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get a value using dot notation (e.g., 'service.url')"""
        keys = key_path.split(".")
        value = self._config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    # Service endpoint configuration
    @property
    def service_url(self) -> str:
        env_url = os.environ.get("SCRIBE_URL")
        if env_url:
            return env_url
        return str(self.get("service.url"))

    @property
    def model(self) -> str | None:
        env_model = os.environ.get("SCRIBE_MODEL")
        if env_model:
            return env_model
        value = self.get("service.model")
        return str(value) if value else None

    @property
    def customization_id(self) -> str | None:
        value = self.get("service.customization_id")
        return str(value) if value else None

    @property
    def learning_opt_out(self) -> bool | None:
        value = self.get("service.learning_opt_out")
        return None if value is None else bool(value)

    @property
    def access_token(self) -> str:
        """Get the access token sent on the opening handshake.

        SCRIBE_ACCESS_TOKEN takes priority over the config file.
        """
        env_token = os.environ.get("SCRIBE_ACCESS_TOKEN")
        if env_token:
            return env_token
        return str(self.get("service.access_token", "") or "")

    @property
    def open_timeout(self) -> float:
        return float(self.get("service.open_timeout", 10.0))

    @property
    def verify_ssl(self) -> bool:
        return bool(self.get("service.verify_ssl", True))

    # Session resilience
    @property
    def max_reconnect_attempts(self) -> int:
        return int(self.get("session.max_reconnect_attempts", 1))

    @property
    def transient_close_codes(self) -> tuple[int, ...]:
        return tuple(int(code) for code in self.get("session.transient_close_codes", [101]))

    @property
    def max_pending_chunks(self) -> int:
        return int(self.get("session.max_pending_chunks", 256))

    # Audio configuration
    @property
    def audio_sample_rate(self) -> int:
        """Get audio sample rate"""
        return int(self.get("audio.sample_rate", 16000))

    @property
    def audio_channels(self) -> int:
        """Get number of audio channels"""
        return int(self.get("audio.channels", 1))

    @property
    def audio_chunk_ms(self) -> int:
        return int(self.get("audio.chunk_ms", 100))

    @property
    def audio_content_type(self) -> str:
        return str(self.get("audio.content_type", "audio/l16;rate=16000"))

    @property
    def audio_compress(self) -> bool:
        """Opus-compress microphone audio into an Ogg stream"""
        return bool(self.get("audio.compress", False))

    @property
    def audio_chunk_bytes(self) -> int:
        """Bytes of 16-bit PCM covering one chunk_ms slice"""
        return self.audio_sample_rate * self.audio_channels * 2 * self.audio_chunk_ms // 1000


# Global singleton instance
_config_loader: ConfigLoader | None = None


def get_config() -> ConfigLoader:
    """Get the global config loader instance"""
    global _config_loader
    if _config_loader is None:
        _config_loader = ConfigLoader()
    return _config_loader


# Re-export logging functions
from .logging import get_logger, setup_logging  # noqa: E402, F401
