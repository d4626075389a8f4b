# -*- coding: utf-8 -*-

# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2025 Ziggiz Inc.
#
# This file is part of the ziggiz-courier-core-data-processing and is licensed under the
# Business Source License 1.1. You may not use this file except in
# compliance with the License. You may obtain a copy of the License at:
# https://github.com/ziggiz-courier/ziggiz-courier-core-data-processing/blob/main/LICENSE
# TLS client support for delivering syslog records

# Standard library imports
import logging
import socket
import ssl

from typing import Optional

# Local/package imports
from syslog_wrapper.errors import (
    ConfigurationError,
    ConnectError,
    SecurityError,
    WriteError,
)

TLS_VERSIONS = {
    "TLSv1_2": ssl.TLSVersion.TLSv1_2,
    "TLSv1_3": ssl.TLSVersion.TLSv1_3,
}


class TLSContextBuilder:
    """
    Helper class to build SSL contexts for TLS connections.

    The client context holds the trust anchor set: the default system roots,
    optionally extended with one operator-supplied PEM certificate. It is built
    once before the delivery worker starts and only read afterwards.
    """

    @staticmethod
    def create_client_context(
        trusted_certificate: Optional[str] = None,
        min_version: ssl.TLSVersion = ssl.TLSVersion.TLSv1_2,
        ciphers: Optional[str] = None,
    ) -> ssl.SSLContext:
        """
        Create an SSL context for connecting to a syslog receiver.

        Args:
            trusted_certificate: Optional path to a PEM file with an additional
                certificate authority to trust
            min_version: Minimum TLS version to negotiate (default: TLS 1.2)
            ciphers: Optional cipher string to restrict allowed ciphers

        Returns:
            The configured SSL context

        Raises:
            ConfigurationError: If the certificate file cannot be read or parsed,
                or the cipher string is rejected
        """
        # Verifies the peer certificate and host name by default
        context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)
        context.minimum_version = min_version

        if ciphers:
            try:
                context.set_ciphers(ciphers)
            except ssl.SSLError as e:
                raise ConfigurationError(f"Invalid TLS cipher string {ciphers!r}: {e}")

        if trusted_certificate:
            try:
                context.load_verify_locations(cafile=trusted_certificate)
            except ssl.SSLError as e:
                raise ConfigurationError(
                    f"Could not parse trusted certificate file {trusted_certificate}: {e}"
                )
            except OSError as e:
                raise ConfigurationError(
                    f"Could not open trusted certificate file {trusted_certificate}: {e}"
                )

        return context


class TLSSyslogConnection:
    """
    A single outbound TLS connection to a syslog receiver.

    Records are written as raw bytes, one newline-terminated record at a time,
    with no additional framing.
    """

    def __init__(
        self,
        host: str,
        port: int,
        context: ssl.SSLContext,
        connect_timeout: Optional[float] = 10.0,
    ):
        """
        Initialize the connection.

        Args:
            host: Receiver host name or address, also used for peer verification
            port: Receiver port
            context: Client SSL context holding the trust anchors
            connect_timeout: Timeout in seconds for connecting and the handshake
        """
        self.logger = logging.getLogger("syslog_wrapper.protocol.tls")
        self.host = host
        self.port = port
        self.context = context
        self.connect_timeout = connect_timeout
        self._sock: Optional[ssl.SSLSocket] = None

    @property
    def is_open(self) -> bool:
        return self._sock is not None

    def open(self) -> None:
        """
        Connect to the receiver and perform the TLS handshake.

        Raises:
            ConnectError: If the transport connection fails
            SecurityError: If the handshake or certificate validation fails
        """
        try:
            raw_sock = socket.create_connection(
                (self.host, self.port), timeout=self.connect_timeout
            )
        except OSError as e:
            raise ConnectError(
                f"Unable to connect to {self.host}:{self.port}: {e}",
                host=self.host,
                port=self.port,
            )

        try:
            tls_sock = self.context.wrap_socket(raw_sock, server_hostname=self.host)
        except (ssl.SSLError, ssl.CertificateError) as e:
            raw_sock.close()
            raise SecurityError(
                f"TLS handshake with {self.host}:{self.port} failed: {e}",
                host=self.host,
                port=self.port,
            )
        except OSError as e:
            raw_sock.close()
            raise ConnectError(
                f"Connection to {self.host}:{self.port} lost during TLS handshake: {e}",
                host=self.host,
                port=self.port,
            )

        # Writes block for as long as the receiver needs
        tls_sock.settimeout(None)
        self._sock = tls_sock

        cipher = tls_sock.cipher()
        self.logger.info(
            "TLS connection established",
            extra={
                "host": self.host,
                "port": self.port,
                "version": tls_sock.version(),
                "cipher": cipher[0] if cipher else None,
            },
        )

    def send(self, record: bytes) -> None:
        """
        Write one record to the encrypted stream.

        Raises:
            WriteError: If the connection is not open or the write fails
        """
        if self._sock is None:
            raise WriteError(
                f"No open connection to {self.host}:{self.port}",
                host=self.host,
                port=self.port,
            )
        try:
            self._sock.sendall(record)
        except OSError as e:
            raise WriteError(
                f"Error writing to {self.host}:{self.port}: {e}",
                host=self.host,
                port=self.port,
            )

    def close(self, graceful: bool = True) -> None:
        """
        Close the connection. Safe to call more than once.

        Args:
            graceful: Send a TLS close_notify before closing the socket. Skipped
                after a failed write, when the session is already unusable.
        """
        sock, self._sock = self._sock, None
        if sock is None:
            return
        if not graceful:
            sock.close()
            return
        try:
            # Send close_notify without waiting for the receiver's reply
            sock.settimeout(0)
            sock = sock.unwrap()
        except ssl.SSLWantReadError:
            pass
        except (OSError, ValueError) as e:
            # The receiver may already be gone; the socket is closed below either way
            self.logger.debug(
                "TLS shutdown incomplete",
                extra={"host": self.host, "port": self.port, "error": str(e)},
            )
        finally:
            sock.close()
