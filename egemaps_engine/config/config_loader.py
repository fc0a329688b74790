"""Configuration loader for the eGeMAPS engine"""

import yaml
from pathlib import Path
from typing import Any, Dict
import os


DEFAULT_CONFIG_DIR = Path(__file__).parent


class Config:
    """Configuration manager for the eGeMAPS engine

    Resolution order for the settings file:
        1. Explicit ``config_path`` argument
        2. ``EGEMAPS_CONFIG`` environment variable
        3. ``config.<EGEMAPS_ENV>.yaml`` next to this module, if present
        4. The packaged ``config.yaml``
    """

    def __init__(self, config_path: str = None):
        if config_path is None:
            config_path = os.getenv('EGEMAPS_CONFIG')
        if config_path is None:
            env = os.getenv('EGEMAPS_ENV', 'production')
            # Try environment-specific config first, fall back to default
            env_config = DEFAULT_CONFIG_DIR / f"config.{env}.yaml"
            if env_config.exists():
                config_path = str(env_config)
            else:
                config_path = str(DEFAULT_CONFIG_DIR / "config.yaml")

        self.config_path = Path(config_path)
        self._config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file"""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Config file not found: {self.config_path}")

        with open(self.config_path, 'r') as f:
            return yaml.safe_load(f) or {}

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation

        Args:
            key: Configuration key in dot notation (e.g., 'audio.min_duration_ms')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split('.')
        value = self._config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default

        return value if value is not None else default

    def __getitem__(self, key: str) -> Any:
        """Allow dictionary-style access"""
        return self.get(key)

    def validate(self) -> None:
        """Validate configuration values"""
        min_rate = self.get('audio.min_sample_rate')
        max_rate = self.get('audio.max_sample_rate')
        if min_rate is not None and max_rate is not None and not 0 < min_rate <= max_rate:
            raise ValueError(
                f"Invalid sample rate range: [{min_rate}, {max_rate}]"
            )

        min_duration = self.get('audio.min_duration_ms')
        if min_duration is not None and min_duration <= 0:
            raise ValueError(f"Invalid min_duration_ms: {min_duration}, must be positive")

        max_channels = self.get('audio.max_channels')
        if max_channels is not None and max_channels < 1:
            raise ValueError(f"Invalid max_channels: {max_channels}, must be >= 1")

        workers = self.get('engine.max_workers')
        if workers is not None and workers < 1:
            raise ValueError(f"Invalid max_workers: {workers}, must be >= 1")


# Global config instance
config = Config()
