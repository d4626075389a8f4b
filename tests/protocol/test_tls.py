# -*- coding: utf-8 -*-

# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2025 Ziggiz Inc.
#
# This file is part of the ziggiz-courier-core-data-processing and is licensed under the
# Business Source License 1.1. You may not use this file except in
# compliance with the License. You may obtain a copy of the License at:
# https://github.com/ziggiz-courier/ziggiz-courier-core-data-processing/blob/main/LICENSE
# Tests for the TLS client context and connection

# Standard library imports
import ssl

from unittest.mock import MagicMock, patch

# Third-party imports
import pytest

# Local/package imports
from syslog_wrapper.errors import (
    ConfigurationError,
    ConnectError,
    SecurityError,
    WriteError,
)
from syslog_wrapper.protocol.tls import TLSContextBuilder, TLSSyslogConnection


class TestTLSContextBuilder:
    """Tests for the TLSContextBuilder class."""

    @pytest.mark.unit
    def test_create_client_context_defaults(self):
        """Test creating a client context with the default trust anchors."""
        mock_context = MagicMock()

        with patch(
            "ssl.create_default_context", return_value=mock_context
        ) as mock_create_context:
            context = TLSContextBuilder.create_client_context()

            mock_create_context.assert_called_once_with(ssl.Purpose.SERVER_AUTH)
            mock_context.load_verify_locations.assert_not_called()
            mock_context.set_ciphers.assert_not_called()
            assert context.minimum_version == ssl.TLSVersion.TLSv1_2

    @pytest.mark.unit
    def test_create_client_context_with_trusted_certificate(self):
        """Test that the extra certificate is added to the trust anchors."""
        mock_context = MagicMock()

        with patch("ssl.create_default_context", return_value=mock_context):
            TLSContextBuilder.create_client_context(
                trusted_certificate="ca.pem",
                min_version=ssl.TLSVersion.TLSv1_3,
                ciphers="HIGH:!aNULL",
            )

            mock_context.load_verify_locations.assert_called_once_with(cafile="ca.pem")
            mock_context.set_ciphers.assert_called_once_with("HIGH:!aNULL")
            assert mock_context.minimum_version == ssl.TLSVersion.TLSv1_3

    @pytest.mark.unit
    def test_real_context_verifies_peer(self):
        """Test that the real context requires certificate and host name checks."""
        context = TLSContextBuilder.create_client_context()
        assert context.verify_mode == ssl.CERT_REQUIRED
        assert context.check_hostname is True

    @pytest.mark.unit
    def test_missing_trusted_certificate(self, tmp_path):
        """Test that an unreadable certificate file is a configuration error."""
        missing = tmp_path / "missing.pem"
        with pytest.raises(ConfigurationError) as excinfo:
            TLSContextBuilder.create_client_context(trusted_certificate=str(missing))
        assert "Could not open" in str(excinfo.value)
        assert "missing.pem" in str(excinfo.value)

    @pytest.mark.unit
    def test_unparseable_trusted_certificate(self, tmp_path):
        """Test that a file without a PEM certificate is a configuration error."""
        garbage = tmp_path / "garbage.pem"
        garbage.write_text("this is not a certificate\n")
        with pytest.raises(ConfigurationError) as excinfo:
            TLSContextBuilder.create_client_context(trusted_certificate=str(garbage))
        assert "Could not parse" in str(excinfo.value)

    @pytest.mark.unit
    def test_invalid_cipher_string(self):
        """Test that a rejected cipher string is a configuration error."""
        with pytest.raises(ConfigurationError):
            TLSContextBuilder.create_client_context(ciphers="NOT-A-CIPHER")


class TestTLSSyslogConnection:
    """Tests for the TLSSyslogConnection class."""

    @pytest.mark.unit
    def test_init(self):
        """Test initialization of the connection."""
        context = MagicMock()
        connection = TLSSyslogConnection("example.com", 6514, context)
        assert connection.logger.name == "syslog_wrapper.protocol.tls"
        assert connection.host == "example.com"
        assert connection.port == 6514
        assert connection.is_open is False

    @pytest.mark.unit
    def test_connection_refused(self, unused_port):
        """Test that nothing listening is reported as a connect error."""
        context = TLSContextBuilder.create_client_context()
        connection = TLSSyslogConnection("127.0.0.1", unused_port, context)

        with pytest.raises(ConnectError) as excinfo:
            connection.open()

        assert excinfo.value.host == "127.0.0.1"
        assert excinfo.value.port == unused_port
        assert f"127.0.0.1:{unused_port}" in str(excinfo.value)
        assert connection.is_open is False

    @pytest.mark.unit
    def test_handshake_failure_closes_socket(self):
        """Test that a handshake failure is a security error and closes the socket."""
        raw_sock = MagicMock()
        context = MagicMock()
        context.wrap_socket.side_effect = ssl.SSLCertVerificationError(
            "certificate verify failed"
        )
        connection = TLSSyslogConnection("example.com", 6514, context)

        with patch("socket.create_connection", return_value=raw_sock):
            with pytest.raises(SecurityError):
                connection.open()

        context.wrap_socket.assert_called_once_with(
            raw_sock, server_hostname="example.com"
        )
        raw_sock.close.assert_called_once()

    @pytest.mark.unit
    def test_reset_during_handshake_is_connect_error(self):
        """Test that a transport error during the handshake is a connect error."""
        raw_sock = MagicMock()
        context = MagicMock()
        context.wrap_socket.side_effect = ConnectionResetError("reset by peer")
        connection = TLSSyslogConnection("example.com", 6514, context)

        with patch("socket.create_connection", return_value=raw_sock):
            with pytest.raises(ConnectError):
                connection.open()
        raw_sock.close.assert_called_once()

    @pytest.mark.unit
    def test_send_without_connection(self):
        """Test that writing before connecting fails with a write error."""
        connection = TLSSyslogConnection("example.com", 6514, MagicMock())
        with pytest.raises(WriteError):
            connection.send(b"record\n")

    @pytest.mark.unit
    def test_send_failure(self):
        """Test that a failed write is reported as a write error."""
        tls_sock = MagicMock()
        tls_sock.sendall.side_effect = BrokenPipeError("broken pipe")
        context = MagicMock()
        context.wrap_socket.return_value = tls_sock
        connection = TLSSyslogConnection("example.com", 6514, context)

        with patch("socket.create_connection", return_value=MagicMock()):
            connection.open()
        with pytest.raises(WriteError):
            connection.send(b"record\n")

    @pytest.mark.unit
    def test_close_is_idempotent(self):
        """Test closing an open connection twice."""
        tls_sock = MagicMock()
        plain_sock = MagicMock()
        tls_sock.unwrap.return_value = plain_sock
        context = MagicMock()
        context.wrap_socket.return_value = tls_sock
        connection = TLSSyslogConnection("example.com", 6514, context)

        with patch("socket.create_connection", return_value=MagicMock()):
            connection.open()
        connection.close()
        connection.close()

        tls_sock.unwrap.assert_called_once()
        plain_sock.close.assert_called_once()
        assert connection.is_open is False

    @pytest.mark.unit
    def test_close_without_graceful_shutdown(self):
        """Test that a non-graceful close skips the TLS shutdown."""
        tls_sock = MagicMock()
        context = MagicMock()
        context.wrap_socket.return_value = tls_sock
        connection = TLSSyslogConnection("example.com", 6514, context)

        with patch("socket.create_connection", return_value=MagicMock()):
            connection.open()
        connection.close(graceful=False)

        tls_sock.unwrap.assert_not_called()
        tls_sock.close.assert_called_once()

    @pytest.mark.unit
    def test_close_does_not_wait_for_close_notify_reply(self):
        """Test that close sends close_notify without blocking on the reply."""
        tls_sock = MagicMock()
        tls_sock.unwrap.side_effect = ssl.SSLWantReadError("want read")
        context = MagicMock()
        context.wrap_socket.return_value = tls_sock
        connection = TLSSyslogConnection("example.com", 6514, context)

        with patch("socket.create_connection", return_value=MagicMock()):
            connection.open()
        tls_sock.settimeout.reset_mock()
        connection.close()

        tls_sock.settimeout.assert_called_once_with(0)
        tls_sock.unwrap.assert_called_once()
        tls_sock.close.assert_called_once()
        assert connection.is_open is False

    @pytest.mark.integration
    def test_untrusted_server_certificate(self, tls_receiver):
        """Test that the test receiver is rejected without its CA."""
        context = TLSContextBuilder.create_client_context()
        connection = TLSSyslogConnection("127.0.0.1", tls_receiver.port, context)

        with pytest.raises(SecurityError):
            connection.open()

    @pytest.mark.integration
    def test_send_to_trusted_receiver(self, tls_receiver, tls_certificates):
        """Test a full connect, write and close against the test receiver."""
        context = TLSContextBuilder.create_client_context(
            trusted_certificate=tls_certificates["ca"]
        )
        connection = TLSSyslogConnection("127.0.0.1", tls_receiver.port, context)

        connection.open()
        connection.send(b"first\n")
        connection.send(b"second\n")
        connection.close()

        assert tls_receiver.wait_for_records(2) == [b"first\n", b"second\n"]
