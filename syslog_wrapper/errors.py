# -*- coding: utf-8 -*-

# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2025 Ziggiz Inc.
#
# This file is part of the ziggiz-courier-core-data-processing and is licensed under the
# Business Source License 1.1. You may not use this file except in
# compliance with the License. You may obtain a copy of the License at:
# https://github.com/ziggiz-courier/ziggiz-courier-core-data-processing/blob/main/LICENSE
# Error types and exit codes for the syslog wrapper

# Exit codes reported by the wrapper itself. Any other exit code is the
# wrapped command's own.
EXIT_GENERIC_FAILURE = 1
EXIT_USAGE = 2
EXIT_DELIVERY_FAILURE = 20
EXIT_CONFIG_FAILURE = 30
EXIT_SPAWN_FAILURE = 40
EXIT_NO_EXIT_CODE = 41
EXIT_CAPTURE_FAILURE = 50
EXIT_CHANNEL_FAILURE = 60


class WrapperError(Exception):
    """
    Base class for all fatal wrapper errors.

    Each subclass carries the exit code the wrapper terminates with when the
    error reaches the entry point.
    """

    exit_code = EXIT_GENERIC_FAILURE


class ConfigurationError(WrapperError):
    """Invalid configuration or an unusable trusted certificate file."""

    exit_code = EXIT_CONFIG_FAILURE


class SpawnError(WrapperError):
    """The wrapped command could not be started."""

    exit_code = EXIT_SPAWN_FAILURE

    def __init__(self, command: str, cause: BaseException):
        super().__init__(f"An error occurred launching {command!r}: {cause}")
        self.command = command
        self.cause = cause


class CaptureError(WrapperError):
    """Reading one of the child's output streams failed for a reason other than EOF."""

    exit_code = EXIT_CAPTURE_FAILURE


class DeliveryError(WrapperError):
    """
    Base class for failures talking to the remote syslog receiver.

    Attributes:
        host: Receiver host name or address
        port: Receiver port
    """

    exit_code = EXIT_DELIVERY_FAILURE

    def __init__(self, message: str, host: str = "", port: int = 0):
        super().__init__(message)
        self.host = host
        self.port = port


class ConnectError(DeliveryError):
    """The transport connection could not be established."""


class SecurityError(DeliveryError):
    """The TLS handshake or certificate validation failed."""


class WriteError(DeliveryError):
    """Writing a record to an established connection failed."""


class ChannelClosedError(WrapperError):
    """A line was handed off after the delivery worker had already terminated."""

    exit_code = EXIT_CHANNEL_FAILURE
