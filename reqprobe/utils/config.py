"""
Configuration management for the HTTP probing engine.
"""

import yaml
import logging
from enum import Enum
from pathlib import Path
from typing import Dict, Any, Optional, Tuple, FrozenSet
from dataclasses import dataclass, field


class OutputFormat(Enum):
    """Supported result encodings."""
    PLAIN = "plain"
    JSONL = "jsonl"
    CSV = "csv"


@dataclass(frozen=True)
class NetworkConfig:
    """Configuration for request dispatch and pacing."""
    timeout: int = 10
    retry: int = 0
    delay: int = 0
    concurrency: int = 0
    rate_limit: Optional[int] = None
    random_delay: Optional[str] = None
    proxy: Optional[str] = None
    verify_ssl: bool = False


@dataclass(frozen=True)
class HttpConfig:
    """Configuration for the shared HTTP client."""
    follow_redirect: bool = True
    http2: bool = False
    headers: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'headers', tuple(self.headers or ()))


@dataclass(frozen=True)
class OutputConfig:
    """Configuration for result rendering."""
    output: Optional[str] = None
    format: OutputFormat = OutputFormat.PLAIN
    strf: Optional[str] = None
    include_req: bool = False
    include_res: bool = False
    include_title: bool = False
    no_color: bool = False

    def __post_init__(self):
        object.__setattr__(self, 'format', OutputFormat(self.format))


@dataclass(frozen=True)
class FilterConfig:
    """Configuration for response filtering."""
    filter_status: FrozenSet[int] = frozenset()
    filter_string: Optional[str] = None
    filter_regex: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(
            self, 'filter_status', frozenset(int(code) for code in self.filter_status or ())
        )


@dataclass(frozen=True)
class LoggingConfig:
    """Configuration for logging."""
    level: str = "WARNING"
    file: Optional[str] = None
    format: str = "[%(levelname)s] %(message)s"
    json: bool = False


@dataclass(frozen=True)
class MonitoringConfig:
    """Configuration for monitoring."""
    metrics_enabled: bool = False
    prometheus_port: int = 8000


@dataclass(frozen=True)
class Config:
    """Main configuration class."""
    network: NetworkConfig = field(default_factory=NetworkConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    filter: FilterConfig = field(default_factory=FilterConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)


SECTIONS = {
    'network': NetworkConfig,
    'http': HttpConfig,
    'output': OutputConfig,
    'filter': FilterConfig,
    'logging': LoggingConfig,
    'monitoring': MonitoringConfig,
}


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = Path(config_path) if config_path else None
        self._config: Optional[Config] = None

    def load_config(self, overrides: Optional[Dict[str, Dict[str, Any]]] = None) -> Config:
        """
        Load configuration from the YAML file (if any) and apply overrides.

        Args:
            overrides: Per-section values, typically from the command line.
                They take precedence over the file.

        Returns:
            The validated configuration
        """
        config_data: Dict[str, Any] = {}
        if self.config_path is not None:
            if not self.config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

            with open(self.config_path, 'r') as file:
                config_data = yaml.safe_load(file) or {}

        unknown = set(config_data) - set(SECTIONS)
        if unknown:
            raise ValueError(f"Unknown configuration sections: {', '.join(sorted(unknown))}")

        sections = {}
        for name, section_cls in SECTIONS.items():
            values = dict(config_data.get(name) or {})
            values.update((overrides or {}).get(name) or {})
            sections[name] = section_cls(**values)

        self._config = Config(**sections)
        self._validate_config()
        return self._config

    def _validate_config(self):
        """Validate configuration values."""
        if not self._config:
            raise ValueError("Configuration not loaded")

        network = self._config.network
        if network.timeout <= 0:
            raise ValueError("timeout must be positive")

        if network.retry < 0:
            raise ValueError("retry must be non-negative")

        if network.delay < 0:
            raise ValueError("delay must be non-negative")

        if network.concurrency < 0:
            raise ValueError("concurrency must be non-negative (0 for unlimited)")

        if network.rate_limit is not None and network.rate_limit <= 0:
            raise ValueError("rate_limit must be at least 1 request per second")

        if not 0 < self._config.monitoring.prometheus_port < 65536:
            raise ValueError("prometheus_port must be a valid TCP port")

        logging.getLogger(__name__).debug("Configuration validation passed")

    @property
    def config(self) -> Config:
        """Get the loaded configuration."""
        if not self._config:
            raise ValueError("Configuration not loaded. Call load_config() first.")
        return self._config


def load_config(config_path: Optional[str] = None,
                overrides: Optional[Dict[str, Dict[str, Any]]] = None) -> Config:
    """Load configuration from an optional file plus overrides."""
    return ConfigManager(config_path).load_config(overrides)
