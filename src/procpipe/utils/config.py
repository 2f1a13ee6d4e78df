"""
Configuration management for procpipe

Handles loading and validation of configuration from JSON files and environment variables.
"""

import codecs
import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_EXIT_TIMEOUT = 5.0

_SIZE_PATTERN = re.compile(r'^\s*(\d+)\s*(B|KB|MB|GB)?\s*$', re.IGNORECASE)
_SIZE_UNITS = {'B': 1, 'KB': 1024, 'MB': 1024 ** 2, 'GB': 1024 ** 3}


def parse_size(value: str) -> int:
    """Convert a size such as "10MB" into a number of bytes"""
    match = _SIZE_PATTERN.match(str(value))
    if not match:
        raise ValueError(f"Invalid size: {value!r}")
    unit = (match.group(2) or 'B').upper()
    return int(match.group(1)) * _SIZE_UNITS[unit]


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class SupervisorConfig:
    """Process supervisor configuration"""
    encoding: str = "utf-8"
    exit_timeout: float = DEFAULT_EXIT_TIMEOUT
    strict: bool = False


@dataclass
class LoggingConfig:
    """Logging configuration"""
    level: str = "INFO"
    file: Optional[str] = None
    max_size: str = "10MB"
    backup_count: int = 5


@dataclass
class Config:
    """Main configuration class"""
    supervisor: SupervisorConfig = field(default_factory=SupervisorConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def default(cls) -> 'Config':
        """Configuration with defaults, overridden by environment variables"""
        return cls.from_dict({})

    @classmethod
    def from_dict(cls, data: dict) -> 'Config':
        """Build configuration from a dictionary with environment variable override"""
        supervisor_data = data.get('supervisor', {})
        logging_data = data.get('logging', {})

        supervisor_config = SupervisorConfig(
            encoding=os.getenv('PROCPIPE_ENCODING', supervisor_data.get('encoding', "utf-8")),
            exit_timeout=float(os.getenv('PROCPIPE_EXIT_TIMEOUT',
                                         supervisor_data.get('exit_timeout', DEFAULT_EXIT_TIMEOUT))),
            strict=_parse_bool(os.getenv('PROCPIPE_STRICT', supervisor_data.get('strict', False)))
        )

        logging_config = LoggingConfig(
            level=os.getenv('LOG_LEVEL', logging_data.get('level', "INFO")),
            file=os.getenv('LOG_FILE', logging_data.get('file')),
            max_size=os.getenv('LOG_MAX_SIZE', logging_data.get('max_size', "10MB")),
            backup_count=int(os.getenv('LOG_BACKUP_COUNT', logging_data.get('backup_count', 5)))
        )

        return cls(supervisor=supervisor_config, logging=logging_config)

    @classmethod
    def load_from_file(cls, config_path: Path) -> 'Config':
        """Load configuration from JSON file with environment variable override"""
        config_path = Path(config_path)

        # Load environment variables from .env file if it exists
        env_file = config_path.parent / ".env"
        if env_file.exists():
            load_dotenv(env_file)

        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)

        return cls.from_dict(data)

    def validate(self) -> bool:
        """Validate configuration values"""
        errors = []

        try:
            codecs.lookup(self.supervisor.encoding)
        except LookupError:
            errors.append(f"Unknown encoding: {self.supervisor.encoding}")

        if self.supervisor.exit_timeout <= 0:
            errors.append("Supervisor exit timeout must be positive")

        if not isinstance(logging.getLevelName(self.logging.level.upper()), int):
            errors.append(f"Unknown log level: {self.logging.level}")

        try:
            parse_size(self.logging.max_size)
        except ValueError:
            errors.append(f"Invalid log max size: {self.logging.max_size}")

        if self.logging.backup_count < 0:
            errors.append("Log backup count must not be negative")

        if errors:
            raise ValueError(f"Configuration validation failed: {'; '.join(errors)}")

        return True
