"""
Configuration file and logging setup for eventsocket programs.

Example config.yaml:

    inbound:
      host: 127.0.0.1
      port: 8021
      password: ClueCon
      events: CHANNEL_CREATE CHANNEL_ANSWER CHANNEL_HANGUP
    outbound:
      listen_host: 0.0.0.0
      listen_port: 8084
    logging:
      file: eventsocket.log
      level: INFO
"""

import logging
from dataclasses import dataclass, field, fields
from logging.handlers import RotatingFileHandler
from typing import Any, Optional

import yaml

from .api.types import Const, EventFormat
from .exceptions import EslConfigurationError


class LogConst:
    LOG_MAX_BYTES = 5 * 1024 * 1024  # 5MB
    LOG_BACKUP_COUNT = 5
    FILE_FORMAT = "%(asctime)s\t%(levelname)s\t%(message)s"
    FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"
    CONSOLE_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s: %(message)s"
    CONSOLE_DATEFMT = "%H:%M:%S"


@dataclass
class InboundConfig:
    host: str = Const.DEFAULT_HOST
    port: int = Const.DEFAULT_INBOUND_PORT
    password: str = Const.DEFAULT_PASSWORD
    timeout: float = Const.DEFAULT_TIMEOUT
    events: str = Const.ALL_EVENTS
    format: str = EventFormat.PLAIN.value


@dataclass
class OutboundConfig:
    listen_host: str = Const.DEFAULT_HOST
    listen_port: int = Const.DEFAULT_OUTBOUND_PORT
    max_workers: int = Const.DEFAULT_MAX_WORKERS


@dataclass
class LoggingConfig:
    file: Optional[str] = None
    debug_file: Optional[str] = None
    level: str = "INFO"
    max_bytes: int = LogConst.LOG_MAX_BYTES
    backup_count: int = LogConst.LOG_BACKUP_COUNT


@dataclass
class EslConfig:
    inbound: InboundConfig = field(default_factory=InboundConfig)
    outbound: OutboundConfig = field(default_factory=OutboundConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, path: Optional[str] = None) -> "EslConfig":
        """Read a YAML file; None gives the defaults"""
        if path is None:
            return cls()
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise EslConfigurationError(f"Cannot read config file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise EslConfigurationError(f"Invalid YAML in {path}: {e}") from e
        return cls.from_dict(data or {})

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EslConfig":
        if not isinstance(data, dict):
            raise EslConfigurationError("Config root must be a mapping")
        unknown = set(data) - {f.name for f in fields(cls)}
        if unknown:
            raise EslConfigurationError(f"Unknown config sections: {', '.join(sorted(unknown))}")
        config = cls(
            inbound=_section(InboundConfig, "inbound", data.get("inbound")),
            outbound=_section(OutboundConfig, "outbound", data.get("outbound")),
            logging=_section(LoggingConfig, "logging", data.get("logging")),
        )
        config.validate()
        return config

    def validate(self) -> None:
        for key, port in (("inbound.port", self.inbound.port), ("outbound.listen_port", self.outbound.listen_port)):
            if not 0 <= port <= 65535:
                raise EslConfigurationError(f"{key} out of range: {port}")
        if self.inbound.timeout <= 0:
            raise EslConfigurationError("inbound.timeout must be positive")
        if self.outbound.max_workers < 1:
            raise EslConfigurationError("outbound.max_workers must be at least 1")
        try:
            EventFormat(self.inbound.format)
        except ValueError:
            raise EslConfigurationError(f"inbound.format must be plain, xml or json, not {self.inbound.format!r}") from None
        if not isinstance(logging.getLevelName(self.logging.level.upper()), int):
            raise EslConfigurationError(f"logging.level is not a level name: {self.logging.level!r}")


def _section(kind, name: str, data: Optional[dict[str, Any]]):
    if data is None:
        return kind()
    if not isinstance(data, dict):
        raise EslConfigurationError(f"Config section {name} must be a mapping")
    values = {}
    for f in fields(kind):
        if f.name not in data:
            continue
        value = data[f.name]
        if f.type in (int, "int"):
            if isinstance(value, bool) or not isinstance(value, int):
                raise EslConfigurationError(f"{name}.{f.name} must be an integer, not {value!r}")
        elif f.type in (float, "float"):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise EslConfigurationError(f"{name}.{f.name} must be a number, not {value!r}")
            value = float(value)
        elif value is not None:
            value = " ".join(str(v) for v in value) if isinstance(value, list) else str(value)
        values[f.name] = value
    unknown = set(data) - {f.name for f in fields(kind)}
    if unknown:
        raise EslConfigurationError(f"Unknown keys in {name}: {', '.join(sorted(unknown))}")
    return kind(**values)


def setup_logging(config: LoggingConfig, name: str = "eventsocket") -> logging.Logger:
    """Configure logging with both file and console handlers."""
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)

    if config.file:
        # File handler
        file_handler = RotatingFileHandler(
            config.file,
            maxBytes=config.max_bytes,
            backupCount=config.backup_count
        )
        # Exclude debug messages
        file_handler.addFilter(lambda record: record.levelno != logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(fmt=LogConst.FILE_FORMAT, datefmt=LogConst.FILE_DATEFMT))
        logger.addHandler(file_handler)

    if config.debug_file:
        # Debug only handler
        debug_handler = logging.FileHandler(config.debug_file)
        debug_handler.setLevel(logging.DEBUG)
        debug_handler.setFormatter(logging.Formatter(fmt=LogConst.FILE_FORMAT, datefmt=LogConst.FILE_DATEFMT))
        logger.addHandler(debug_handler)

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(config.level.upper())
    console_handler.setFormatter(logging.Formatter(LogConst.CONSOLE_FORMAT, datefmt=LogConst.CONSOLE_DATEFMT))
    logger.addHandler(console_handler)
    return logger
