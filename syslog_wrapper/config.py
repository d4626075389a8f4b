# -*- coding: utf-8 -*-

# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2025 Ziggiz Inc.
#
# This file is part of the ziggiz-courier-core-data-processing and is licensed under the
# Business Source License 1.1. You may not use this file except in
# compliance with the License. You may obtain a copy of the License at:
# https://github.com/ziggiz-courier/ziggiz-courier-core-data-processing/blob/main/LICENSE
# Configuration module for loading and parsing configuration files

# Standard library imports
import logging
import os
import socket
import sys

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

# Third-party imports
import yaml

from pydantic import BaseModel, Field, field_validator

# Local/package imports
from syslog_wrapper.channel import DEFAULT_QUEUE_SIZE
from syslog_wrapper.delivery.retry import RetryPolicy
from syslog_wrapper.protocol.formatter import (
    MAX_APPNAME_LENGTH,
    MAX_HOSTNAME_LENGTH,
    sanitize_header_field,
)

DEFAULT_PORT = 6514


class LoggerConfig(BaseModel):
    """
    Configuration for individual loggers.

    Attributes:
        name (str): Logger name.
        level (str): Logging level (default: "INFO").
        propagate (bool): Whether to propagate logs to parent (default: True).
    """

    name: str
    level: str = "INFO"
    propagate: bool = True


class Config(BaseModel):
    """
    Main configuration class for the syslog wrapper.

    Covers the remote receiver, the identity reported in each record, the
    retry policy, TLS trust settings and logging.
    """

    # Receiver configuration
    server: Optional[str] = None  # "host[:port]", port defaults to 6514
    hostname: Optional[str] = None  # Defaults to the local system hostname
    appname: Optional[str] = None  # Defaults to the wrapped command's base name
    connect_timeout: float = 10.0

    # Retry configuration
    max_retries: int = 3
    retry_base_delay: float = 0.01
    retry_factor: float = 10.0
    retry_max_delay: float = 5.0

    # TLS configuration
    trusted_certificate: Optional[str] = (
        None  # Extra PEM certificate authority added to the system roots
    )
    tls_min_version: str = "TLSv1_2"
    tls_ciphers: Optional[str] = None

    # Hand-off queue capacity
    queue_size: int = DEFAULT_QUEUE_SIZE

    # Tracing
    enable_tracing: bool = False

    # Logging configuration
    log_level: str = "WARNING"
    log_format: str = "%(asctime)s %(levelname)s %(name)s %(message)s"
    log_date_format: str = "%Y-%m-%d %H:%M:%S"
    loggers: List[LoggerConfig] = Field(default_factory=list)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that the log level is a valid Python logging level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v = v.upper()
        if v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v

    @field_validator("server")
    @classmethod
    def validate_server(cls, v: Optional[str]) -> Optional[str]:
        """Validate that the server address can be split into host and port."""
        if v is not None:
            parse_server_address(v)
        return v

    @field_validator("max_retries")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"Invalid max_retries: {v}. Must not be negative")
        return v

    @field_validator("retry_base_delay", "retry_max_delay", "connect_timeout")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"Invalid duration: {v}. Must not be negative")
        return v

    @field_validator("retry_factor")
    @classmethod
    def validate_retry_factor(cls, v: float) -> float:
        if v < 1:
            raise ValueError(f"Invalid retry_factor: {v}. Must be at least 1")
        return v

    @field_validator("queue_size")
    @classmethod
    def validate_queue_size(cls, v: int) -> int:
        if not 3 <= v <= 1000:
            raise ValueError(f"Invalid queue_size: {v}. Must be between 3 and 1000")
        return v

    @field_validator("tls_min_version")
    @classmethod
    def validate_tls_min_version(cls, v: str) -> str:
        """Validate that the TLS version is valid."""
        valid_versions = ["TLSv1_2", "TLSv1_3"]
        for ver in valid_versions:
            if v.upper() == ver.upper():
                return ver
        raise ValueError(f"Invalid TLS version: {v}. Must be one of {valid_versions}")

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.max_retries,
            base_delay=self.retry_base_delay,
            factor=self.retry_factor,
            max_delay=self.retry_max_delay,
        )


@dataclass(frozen=True)
class ConnectionTarget:
    """
    Where records are delivered and the identity they are stamped with.

    Attributes:
        host: Receiver host name or address, also used for certificate verification
        port: Receiver port
        hostname: HOSTNAME header field
        appname: APP-NAME header field
    """

    host: str
    port: int
    hostname: str
    appname: str

    @classmethod
    def from_config(cls, config: Config, command: Sequence[str]) -> "ConnectionTarget":
        """
        Resolve the target from configuration, defaulting the identity fields.

        Raises:
            ValueError: If no server is configured
        """
        if not config.server:
            raise ValueError("No syslog server configured")
        host, port = parse_server_address(config.server)
        hostname = config.hostname or socket.gethostname()
        appname = config.appname or (
            os.path.basename(command[0]) if command else None
        )
        return cls(
            host=host,
            port=port,
            hostname=sanitize_header_field(hostname, MAX_HOSTNAME_LENGTH),
            appname=sanitize_header_field(appname, MAX_APPNAME_LENGTH),
        )


def parse_server_address(server: str) -> Tuple[str, int]:
    """
    Split ``host[:port]`` into its parts.

    IPv6 literals must be bracketed when a port is given (``[::1]:6514``).

    Raises:
        ValueError: If the host is empty or the port is not a valid port number
    """
    server = server.strip()
    if server.startswith("["):
        host, sep, rest = server[1:].partition("]")
        if not sep:
            raise ValueError(f"Invalid server address: {server}")
        port_str = rest[1:] if rest.startswith(":") else rest
        if rest and not rest.startswith(":"):
            raise ValueError(f"Invalid server address: {server}")
    elif server.count(":") == 1:
        host, _, port_str = server.partition(":")
    else:
        # Plain host name or unbracketed IPv6 literal without a port
        host, port_str = server, ""

    if not host:
        raise ValueError(f"Invalid server address, missing host: {server}")
    if not port_str:
        return host, DEFAULT_PORT
    try:
        port = int(port_str)
    except ValueError:
        raise ValueError(f"Invalid port in server address: {server}")
    if not 0 < port < 65536:
        raise ValueError(f"Port out of range in server address: {server}")
    return host, port


def load_config(config_path: Optional[Union[str, Path]] = None) -> Config:
    """
    Load configuration from a YAML file.

    Args:
        config_path: Path to the configuration file. If None, will look for
                   syslog-wrapper.yaml in the current directory and /etc.

    Returns:
        A Config object containing the loaded configuration.

    Raises:
        FileNotFoundError: If the configuration file cannot be found.
        yaml.YAMLError: If the configuration file contains invalid YAML.
    """
    # Default search paths
    search_paths = [
        Path.cwd() / "syslog-wrapper.yaml",
        Path.cwd() / "syslog-wrapper.yml",
        Path("/etc/syslog-wrapper/config.yaml"),
    ]

    # If config path is provided, try that first
    if config_path:
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_file}")
    else:
        for path in search_paths:
            if path.exists():
                config_file = path
                break
        else:
            return Config()

    with open(config_file, "r") as f:
        try:
            config_data = yaml.safe_load(f) or {}
            return Config(**config_data)
        except yaml.YAMLError as e:
            logging.error("Error parsing configuration file", extra={"error": e})
            raise


class SafeExtraFormatter(logging.Formatter):
    """
    Custom formatter that substitutes missing extra fields with a blank string.
    """

    def format(self, record: logging.LogRecord) -> str:
        for field in ("host", "port"):
            if not hasattr(record, field):
                setattr(record, field, "")
        return super().format(record)


def configure_logging(config: "Config") -> None:
    """
    Configure logging based on the provided configuration.

    All output goes to stderr; stdout is never written to by the wrapper.

    Args:
        config: The loaded configuration object.
    """
    # Reset logging configuration
    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)

    level = getattr(logging, config.log_level, logging.WARNING)
    formatter = SafeExtraFormatter(config.log_format, datefmt=config.log_date_format)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    logging.root.setLevel(level)
    logging.root.addHandler(console_handler)

    # Configure additional loggers from config
    for logger_config in config.loggers:
        logger = logging.getLogger(logger_config.name)
        logger.setLevel(getattr(logging, logger_config.level, logging.INFO))
        logger.propagate = logger_config.propagate
