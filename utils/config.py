"""
Configuration Management

Centralized config loading: config/settings.yaml, overridden by
environment variables (a local .env file is honoured).
"""

import os
import yaml
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv


@dataclass
class MemoryConfig:
    """
    Tunables for the memory subsystem.

    Attributes:
        db_path: SQLite file (":memory:" for an ephemeral store)
        decay_rate: Salience multiplier applied per sweep, in (0, 1]
        min_salience: Memories strictly below this are deleted by a sweep
        initial_salience: Salience of a freshly inserted memory
        salience_boost: Added to salience each time a memory is surfaced
        max_salience: Upper bound for salience
        decay_grace_seconds: Memories younger than this are not decayed
        sweep_interval_seconds: Delay between background sweeps
        max_context_memories: Hard cap on memories injected per turn
        relevance_limit: Results taken from the search index
        recency_limit: Results taken from the recency query
        min_message_length: Utterances of this length or shorter are skipped
        command_prefix: Utterances starting with this are skipped
        backup_on_startup: Copy the database to <db_path>.bak on startup
    """
    db_path: str = "data/memory.db"
    decay_rate: float = 0.98
    min_salience: float = 0.1
    initial_salience: float = 1.0
    salience_boost: float = 0.1
    max_salience: float = 5.0
    decay_grace_seconds: float = 24 * 60 * 60
    sweep_interval_seconds: float = 24 * 60 * 60
    max_context_memories: int = 8
    relevance_limit: int = 3
    recency_limit: int = 5
    min_message_length: int = 20
    command_prefix: str = "/"
    backup_on_startup: bool = True

    def validate(self) -> "MemoryConfig":
        """Raise ValueError on out-of-range settings"""
        if not 0.0 < self.decay_rate <= 1.0:
            raise ValueError(f"decay_rate must be in (0, 1], got {self.decay_rate}")
        if self.min_salience < 0.0:
            raise ValueError(f"min_salience must be >= 0, got {self.min_salience}")
        if not 0.0 < self.initial_salience <= self.max_salience:
            raise ValueError(
                f"initial_salience must be in (0, {self.max_salience}], "
                f"got {self.initial_salience}"
            )
        if self.salience_boost < 0.0:
            raise ValueError(f"salience_boost must be >= 0, got {self.salience_boost}")
        if self.decay_grace_seconds < 0:
            raise ValueError("decay_grace_seconds must be >= 0")
        if self.sweep_interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be > 0")
        for name in ('max_context_memories', 'relevance_limit', 'recency_limit'):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0, got {getattr(self, name)}")
        return self


# Environment variable -> (field, type)
ENV_OVERRIDES = {
    'MEMORY_DB_PATH': ('db_path', str),
    'MEMORY_DECAY_RATE': ('decay_rate', float),
    'MEMORY_MIN_SALIENCE': ('min_salience', float),
    'MAX_MEMORY_RESULTS': ('max_context_memories', int),
    'MEMORY_RELEVANCE_LIMIT': ('relevance_limit', int),
    'MEMORY_RECENCY_LIMIT': ('recency_limit', int),
    'MEMORY_SWEEP_INTERVAL': ('sweep_interval_seconds', float),
}


class ConfigManager:
    """Manages all configuration files"""

    def __init__(self, config_root: str = "config"):
        self.config_root = Path(config_root)
        self.global_config: Dict[str, Any] = {}

    def load_global_config(self) -> dict:
        """Load global settings"""
        settings_path = self.config_root / "settings.yaml"

        if settings_path.exists():
            with open(settings_path, 'r', encoding='utf-8') as f:
                self.global_config = yaml.safe_load(f) or {}
        else:
            self.global_config = self._default_global_config()

        return self.global_config

    def get(self, path: str, default: Any = None) -> Any:
        """
        Get config value using dot notation.

        Examples:
            config.get('memory.decay_rate')
            config.get('logging.level')
        """
        keys = path.split('.')
        value = self.global_config

        try:
            for key in keys:
                value = value[key]
            return value
        except (KeyError, TypeError):
            return default

    def load_memory_config(self, env: Optional[Dict[str, str]] = None) -> MemoryConfig:
        """
        Build the memory configuration.

        Priority: environment variables > settings.yaml > defaults.

        Args:
            env: Environment mapping (defaults to os.environ after loading .env)

        Returns:
            Validated MemoryConfig
        """
        if env is None:
            load_dotenv(override=False)
            env = dict(os.environ)

        if not self.global_config:
            self.load_global_config()

        section = self.get('memory', {}) or {}
        known = {f.name for f in fields(MemoryConfig)}
        unknown = set(section) - known
        if unknown:
            raise ValueError(f"Unknown memory settings: {', '.join(sorted(unknown))}")

        config = MemoryConfig(**section)

        for var, (name, cast) in ENV_OVERRIDES.items():
            raw = env.get(var)
            if raw is None or raw == "":
                continue
            try:
                setattr(config, name, cast(raw))
            except ValueError:
                raise ValueError(f"Invalid value for {var}: {raw!r}")

        return config.validate()

    def _default_global_config(self) -> dict:
        """Default global configuration"""
        return {
            'app': {
                'name': 'Recall Memory',
                'version': '1.0.0'
            },
            'logging': {
                'level': 'INFO',
                'dir': 'logs'
            },
            'memory': {}
        }

# Global instance
_config_manager = None

def get_config_manager() -> ConfigManager:
    """Get global config manager"""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager

def load_memory_config() -> MemoryConfig:
    """Convenience function to load the memory config"""
    return get_config_manager().load_memory_config()
