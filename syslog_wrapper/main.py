# -*- coding: utf-8 -*-

# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2025 Ziggiz Inc.
#
# This file is part of the ziggiz-courier-core-data-processing and is licensed under the
# Business Source License 1.1. You may not use this file except in
# compliance with the License. You may obtain a copy of the License at:
# https://github.com/ziggiz-courier/ziggiz-courier-core-data-processing/blob/main/LICENSE
# Main entry point for the syslog wrapper

# Standard library imports
import argparse
import logging
import os
import sys

from typing import Any, Dict, List, Optional, Sequence, Tuple

# Third-party imports
import yaml

from pydantic import ValidationError

# Local/package imports
from syslog_wrapper import __version__
from syslog_wrapper.config import (
    Config,
    ConnectionTarget,
    configure_logging,
    load_config,
)
from syslog_wrapper.errors import EXIT_CONFIG_FAILURE, ConfigurationError, WrapperError
from syslog_wrapper.protocol.tls import TLS_VERSIONS, TLSContextBuilder
from syslog_wrapper.supervisor import ProcessSupervisor
from syslog_wrapper.telemetry import configure_tracing, shutdown_tracing

# Environment variables consulted when the matching option is not given
ENVIRONMENT_DEFAULTS = {
    "server": "SYSLOG_SERVER",
    "hostname": "SYSLOG_HOSTNAME",
    "appname": "SYSLOG_APPNAME",
    "trusted_certificate": "SYSLOG_TRUSTED_CERTIFICATE",
}

VERBOSITY_LEVELS = {1: "INFO", 2: "DEBUG"}


def setup_logging(log_level: str = "WARNING", config: Optional[Config] = None) -> None:
    """
    Configure logging with appropriate formatters and handlers.

    Args:
        log_level: The logging level to set (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        config: Optional configuration object to use for logging setup
    """
    if config is None:
        config = Config(log_level=log_level)
    configure_logging(config)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="syslog-wrapper",
        description=(
            "Run a command and forward every line of its standard output and "
            "standard error to a remote syslog receiver over TLS."
        ),
        usage="%(prog)s [options] [SERVER] -- COMMAND [ARGS ...]",
    )
    parser.add_argument(
        "server",
        nargs="?",
        help="Host (and optional :port, default 6514) of the remote syslog receiver "
        "(env: SYSLOG_SERVER)",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration file",
    )
    parser.add_argument(
        "--hostname",
        type=str,
        help="Hostname to report in each record (default: system hostname, "
        "env: SYSLOG_HOSTNAME)",
    )
    parser.add_argument(
        "--appname",
        type=str,
        help="App-name to report in each record (default: the command's name, "
        "env: SYSLOG_APPNAME)",
    )
    parser.add_argument(
        "-m",
        "--max-retries",
        type=int,
        help="Maximum number of consecutive failures to retry before giving up",
    )
    parser.add_argument(
        "--trusted-certificate",
        type=str,
        help="PEM certificate to trust in addition to the system roots "
        "(env: SYSLOG_TRUSTED_CERTIFICATE)",
    )
    parser.add_argument(
        "--tls-min-version",
        type=str,
        choices=sorted(TLS_VERSIONS),
        help="Minimum TLS version to negotiate (overrides config file)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (overrides config file)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase logging verbosity (-v for INFO, -vv for DEBUG)",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser


def split_command(argv: Sequence[str]) -> Tuple[List[str], List[str]]:
    """Split the arguments at the first ``--`` into wrapper options and the command."""
    argv = list(argv)
    if "--" not in argv:
        return argv, []
    index = argv.index("--")
    return argv[:index], argv[index + 1 :]


def resolve_config(args: argparse.Namespace) -> Config:
    """
    Merge the configuration file, environment variables and command-line options.

    Command-line options win over environment variables, which win over the
    configuration file.

    Raises:
        FileNotFoundError: If an explicit configuration file does not exist
        yaml.YAMLError: If the configuration file is not valid YAML
        pydantic.ValidationError: If the merged configuration is invalid
    """
    config = load_config(args.config if args.config else None)
    overrides: Dict[str, Any] = {}

    for field, variable in ENVIRONMENT_DEFAULTS.items():
        value = os.environ.get(variable)
        if value:
            overrides[field] = value

    for field in ("server", "hostname", "appname", "trusted_certificate"):
        value = getattr(args, field)
        if value:
            overrides[field] = value
    if args.max_retries is not None:
        overrides["max_retries"] = args.max_retries
    if args.tls_min_version:
        overrides["tls_min_version"] = args.tls_min_version
    if args.verbose:
        overrides["log_level"] = VERBOSITY_LEVELS.get(args.verbose, "DEBUG")
    if args.log_level:
        overrides["log_level"] = args.log_level

    return Config.model_validate({**config.model_dump(), **overrides})


def run_wrapper(config: Config, command: Sequence[str]) -> int:
    """
    Run the command under the syslog wrapper.

    Args:
        config: The resolved configuration
        command: The command and its arguments

    Returns:
        The exit code the wrapper should terminate with

    Raises:
        WrapperError: On configuration, spawn, capture or delivery failure
    """
    try:
        target = ConnectionTarget.from_config(config, command)
    except ValueError as e:
        raise ConfigurationError(str(e))

    # Trust anchors are loaded before anything is spawned or connected
    ssl_context = TLSContextBuilder.create_client_context(
        trusted_certificate=config.trusted_certificate,
        min_version=TLS_VERSIONS[config.tls_min_version],
        ciphers=config.tls_ciphers,
    )

    supervisor = ProcessSupervisor(
        target,
        ssl_context,
        retry_policy=config.retry_policy(),
        queue_size=config.queue_size,
        connect_timeout=config.connect_timeout,
    )
    return supervisor.run(command)


def main(argv: Optional[Sequence[str]] = None) -> None:
    """
    Main entry point for the syslog wrapper.
    Parses command-line arguments, sets up logging, runs the command and exits
    with its exit code.
    """
    parser = build_parser()
    options, command = split_command(sys.argv[1:] if argv is None else argv)
    args = parser.parse_args(options)
    if not command:
        parser.error("a command to run is required after '--'")

    try:
        config = resolve_config(args)
    except (FileNotFoundError, yaml.YAMLError, ValidationError) as e:
        setup_logging("ERROR")
        logger = logging.getLogger("syslog_wrapper.main")
        logger.error(f"Invalid configuration: {e}")
        sys.exit(EXIT_CONFIG_FAILURE)

    setup_logging(config=config)
    configure_tracing(config.enable_tracing)
    logger = logging.getLogger("syslog_wrapper.main")
    if args.config:
        logger.info(f"Loaded configuration from {args.config}")

    try:
        exit_code = run_wrapper(config, command)
    except WrapperError as e:
        logger.error(str(e))
        exit_code = e.exit_code
    except KeyboardInterrupt:
        logger.info("Interrupted")
        exit_code = 130
    finally:
        shutdown_tracing()

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
