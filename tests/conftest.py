# -*- coding: utf-8 -*-

# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2025 Ziggiz Inc.
#
# This file is part of the ziggiz-courier-core-data-processing and is licensed under the
# Business Source License 1.1. You may not use this file except in
# compliance with the License. You may obtain a copy of the License at:
# https://github.com/ziggiz-courier/ziggiz-courier-core-data-processing/blob/main/LICENSE
# Pytest configuration file

# Standard library imports
import logging
import shutil
import socket
import ssl
import subprocess
import threading
import time

from pathlib import Path
from typing import Dict, List

# Third-party imports
import pytest

CA_CONFIG = """\
[req]
distinguished_name = dn
prompt = no

[dn]
CN = syslog-wrapper test CA

[v3_ca]
basicConstraints = critical,CA:TRUE
keyUsage = critical,keyCertSign,cRLSign
subjectKeyIdentifier = hash
authorityKeyIdentifier = keyid:always
"""

SERVER_EXTENSIONS = """\
basicConstraints = CA:FALSE
keyUsage = critical,digitalSignature,keyEncipherment
extendedKeyUsage = serverAuth
subjectAltName = DNS:localhost,IP:127.0.0.1
subjectKeyIdentifier = hash
authorityKeyIdentifier = keyid,issuer
"""


# Define test categories
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: mark a test as a unit test")
    config.addinivalue_line(
        "markers", "integration: mark a test as an integration test"
    )


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration after each test."""
    yield
    # Reset root logger after each test
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.setLevel(logging.WARNING)  # Default level


@pytest.fixture(autouse=True)
def clear_syslog_environment(monkeypatch):
    """Keep SYSLOG_* variables from the developer's shell out of the tests."""
    for variable in (
        "SYSLOG_SERVER",
        "SYSLOG_HOSTNAME",
        "SYSLOG_APPNAME",
        "SYSLOG_TRUSTED_CERTIFICATE",
    ):
        monkeypatch.delenv(variable, raising=False)


def _openssl(*args: str, cwd: Path) -> None:
    subprocess.run(
        ["openssl", *args],
        cwd=cwd,
        check=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
    )


@pytest.fixture(scope="session")
def tls_certificates(tmp_path_factory) -> Dict[str, str]:
    """
    Generate a private CA and a server certificate for localhost/127.0.0.1.

    Returns a dict with the paths of "ca", "cert" and "key".
    """
    if shutil.which("openssl") is None:
        pytest.skip("openssl is required to generate test certificates")

    workdir = tmp_path_factory.mktemp("certs")
    (workdir / "ca.cnf").write_text(CA_CONFIG)
    (workdir / "server.ext").write_text(SERVER_EXTENSIONS)

    _openssl(
        "req", "-x509", "-new", "-newkey", "rsa:2048", "-nodes",
        "-keyout", "ca.key", "-out", "ca.pem", "-days", "2",
        "-config", "ca.cnf", "-extensions", "v3_ca",
        cwd=workdir,
    )  # fmt: skip
    _openssl(
        "req", "-new", "-newkey", "rsa:2048", "-nodes",
        "-keyout", "server.key", "-out", "server.csr",
        "-subj", "/CN=localhost",
        "-config", "ca.cnf",
        cwd=workdir,
    )  # fmt: skip
    _openssl(
        "x509", "-req", "-in", "server.csr",
        "-CA", "ca.pem", "-CAkey", "ca.key", "-CAcreateserial",
        "-out", "server.pem", "-days", "2", "-extfile", "server.ext",
        cwd=workdir,
    )  # fmt: skip

    return {
        "ca": str(workdir / "ca.pem"),
        "cert": str(workdir / "server.pem"),
        "key": str(workdir / "server.key"),
    }


class TLSTestReceiver:
    """
    Minimal threaded TLS syslog receiver collecting everything it is sent.
    """

    def __init__(self, certfile: str, keyfile: str, hold_open: bool = False):
        self.context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        self.context.load_cert_chain(certfile, keyfile)
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.listen(5)
        self.sock.settimeout(0.2)
        self.port = self.sock.getsockname()[1]
        self.running = True
        # Keep connections open after the client finishes, never answering close_notify
        self.hold_open = hold_open
        self._stopped = threading.Event()
        self.connections = 0
        self.handshake_failures = 0
        self._data = bytearray()
        self._lock = threading.Lock()
        self._thread = threading.Thread(target=self._accept_loop, daemon=True)
        self._thread.start()

    def _accept_loop(self) -> None:
        while self.running:
            try:
                conn, _ = self.sock.accept()
            except socket.timeout:
                continue
            except OSError:
                break
            conn.settimeout(None)
            threading.Thread(target=self._handle, args=(conn,), daemon=True).start()

    def _handle(self, conn: socket.socket) -> None:
        try:
            tls_conn = self.context.wrap_socket(conn, server_side=True)
        except (ssl.SSLError, OSError):
            with self._lock:
                self.handshake_failures += 1
            conn.close()
            return

        with self._lock:
            self.connections += 1
        try:
            while True:
                try:
                    chunk = tls_conn.recv(4096)
                except (ssl.SSLError, OSError):
                    break
                if not chunk:
                    break
                with self._lock:
                    self._data.extend(chunk)
            if self.hold_open:
                self._stopped.wait()
        finally:
            tls_conn.close()

    @property
    def records(self) -> List[bytes]:
        with self._lock:
            return bytes(self._data).splitlines(keepends=True)

    def wait_for_records(self, count: int, timeout: float = 5.0) -> List[bytes]:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            records = self.records
            if len(records) >= count:
                return records
            time.sleep(0.02)
        return self.records

    def wait_for_handshake_failures(self, count: int, timeout: float = 5.0) -> int:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline and self.handshake_failures < count:
            time.sleep(0.02)
        return self.handshake_failures

    def close(self) -> None:
        self.running = False
        self._stopped.set()
        self.sock.close()
        self._thread.join(timeout=2)


@pytest.fixture
def tls_receiver(tls_certificates):
    """A running TLS receiver presenting the test server certificate."""
    receiver = TLSTestReceiver(tls_certificates["cert"], tls_certificates["key"])
    yield receiver
    receiver.close()


@pytest.fixture
def unused_port() -> int:
    """A local TCP port with nothing listening on it."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


@pytest.fixture
def silent_tls_receiver(tls_certificates):
    """A TLS receiver that holds connections open without answering close_notify."""
    receiver = TLSTestReceiver(
        tls_certificates["cert"], tls_certificates["key"], hold_open=True
    )
    yield receiver
    receiver.close()
