"""
Configuration loading for the filter runner.

Defaults can be kept in a YAML file:

    skip: 0
    limit: 100
    quiet: false
    log_level: INFO
    stream_buffer: 1
    source_buffer: 100
    error_buffer: 10

Explicit command-line values override the file.
"""

import logging
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

_LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


class ConfigError(ValueError):
    """Raised for unreadable or invalid configuration."""


@dataclass(frozen=True)
class EngineConfig:
    """Runner settings.

    Attributes:
        skip: Matches to discard before output starts
        limit: Maximum matches to output (0 = unbounded)
        quiet: Suppress error messages on stderr
        log_level: Logging level name
        stream_buffer: Capacity of the filter results channel
        source_buffer: Capacity of the source records channel
        error_buffer: Capacity of the error channels
    """
    skip: int = 0
    limit: int = 0
    quiet: bool = False
    log_level: str = 'WARNING'
    stream_buffer: int = 1
    source_buffer: int = 100
    error_buffer: int = 10

    def __post_init__(self) -> None:
        for name in ('skip', 'limit'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ConfigError(f"{name} must be a non-negative integer, got {value!r}")
        for name in ('stream_buffer', 'source_buffer', 'error_buffer'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigError(f"{name} must be a positive integer, got {value!r}")
        if not isinstance(self.quiet, bool):
            raise ConfigError(f"quiet must be true or false, got {self.quiet!r}")
        if str(self.log_level).upper() not in _LOG_LEVELS:
            raise ConfigError(f"log_level must be one of {', '.join(_LOG_LEVELS)}, got {self.log_level!r}")

    def merged(self, **overrides: Any) -> 'EngineConfig':
        """Return a copy with every non-None override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return asdict(self)


def load_config(config_path: Optional[str | Path] = None) -> EngineConfig:
    """Load configuration from a YAML file.

    Args:
        config_path: Path to the YAML file, or None for defaults

    Returns:
        The loaded EngineConfig

    Raises:
        ConfigError: If the file is missing, malformed, or has bad values
    """
    if config_path is None:
        return EngineConfig()

    path = Path(config_path)
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Failed to read config {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config {path} must contain a mapping")

    known = {f.name for f in fields(EngineConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown config keys in {path}: {', '.join(map(str, unknown))}")

    config = EngineConfig(**data)
    logger.info(f"Loaded configuration from {path}")
    return config


def setup_logging(level: str = 'WARNING') -> None:
    """Configure root logging for command-line use."""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.WARNING),
        format=LOG_FORMAT,
    )
