# -*- coding: utf-8 -*-

# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2025 Ziggiz Inc.
#
# This file is part of the ziggiz-courier-core-data-processing and is licensed under the
# Business Source License 1.1. You may not use this file except in
# compliance with the License. You may obtain a copy of the License at:
# https://github.com/ziggiz-courier/ziggiz-courier-core-data-processing/blob/main/LICENSE
# Process supervisor: spawns the child and coordinates capture, delivery and shutdown

# Standard library imports
import logging
import ssl
import subprocess
import threading

from typing import List, Optional, Sequence

# Local/package imports
from syslog_wrapper.channel import DEFAULT_QUEUE_SIZE, EndOfStream, MessageQueue
from syslog_wrapper.config import ConnectionTarget
from syslog_wrapper.delivery.retry import RetryPolicy
from syslog_wrapper.delivery.worker import DeliveryWorker
from syslog_wrapper.errors import (
    EXIT_NO_EXIT_CODE,
    ChannelClosedError,
    SpawnError,
    WrapperError,
)
from syslog_wrapper.reader import LineReader


def exit_code_for(returncode: int) -> int:
    """
    Map a child's return code to the wrapper's exit code.

    A negative return code means the child was terminated by a signal and has
    no exit code of its own.
    """
    if returncode < 0:
        return EXIT_NO_EXIT_CODE
    return returncode


class ProcessSupervisor:
    """
    Runs a command and forwards everything it writes to a syslog receiver.

    Shutdown is data driven: both readers reach end of stream, then a single
    EndOfStream is queued, then the delivery worker drains and closes the
    connection, and finally the child's exit status is collected.
    """

    def __init__(
        self,
        target: ConnectionTarget,
        ssl_context: ssl.SSLContext,
        retry_policy: Optional[RetryPolicy] = None,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        connect_timeout: Optional[float] = 10.0,
    ):
        """
        Initialize the supervisor.

        Args:
            target: Receiver address and record identity
            ssl_context: Client SSL context holding the trust anchors
            retry_policy: Retry policy for the delivery worker
            queue_size: Capacity of the hand-off queue
            connect_timeout: Timeout in seconds for connecting and the handshake
        """
        self.logger = logging.getLogger("syslog_wrapper.supervisor")
        self.target = target
        self.ssl_context = ssl_context
        self.retry_policy = retry_policy or RetryPolicy()
        self.queue_size = queue_size
        self.connect_timeout = connect_timeout
        self.child: Optional[subprocess.Popen] = None
        self.readers: List[LineReader] = []
        self.worker: Optional[DeliveryWorker] = None
        self._abort_lock = threading.Lock()

    def spawn(self, command: Sequence[str]) -> subprocess.Popen:
        """
        Start the child with stdout and stderr redirected into pipes.

        Raises:
            SpawnError: If the command is empty or cannot be executed
        """
        if not command:
            raise SpawnError("", ValueError("no command given"))
        try:
            return subprocess.Popen(
                list(command), stdout=subprocess.PIPE, stderr=subprocess.PIPE
            )
        except (OSError, ValueError) as e:
            raise SpawnError(command[0], e)

    def run(self, command: Sequence[str]) -> int:
        """
        Run the command to completion while delivering its output.

        Args:
            command: The command and its arguments

        Returns:
            The exit code the wrapper should terminate with

        Raises:
            SpawnError: If the command cannot be started
            DeliveryError: If delivery failed after exhausting the retry policy
            CaptureError: If reading one of the child's streams failed
        """
        self.child = self.spawn(command)
        self.logger.info(
            f"Started {command[0]!r} with pid {self.child.pid}",
            extra={"host": self.target.host, "port": self.target.port},
        )

        message_queue = MessageQueue(self.queue_size)
        self.readers = [
            LineReader("stdout", self.child.stdout, message_queue, self._abort_child),
            LineReader("stderr", self.child.stderr, message_queue, self._abort_child),
        ]
        self.worker = DeliveryWorker(
            message_queue,
            self.target,
            self.ssl_context,
            retry_policy=self.retry_policy,
            connect_timeout=self.connect_timeout,
            on_fatal=self._abort_child,
        )

        for reader in self.readers:
            reader.start()
        self.worker.start()

        for reader in self.readers:
            reader.join()
        self.logger.debug("Both output streams closed")

        try:
            message_queue.put(EndOfStream())
        except ChannelClosedError:
            # Delivery already failed; the worker's error is raised below
            pass
        self.worker.join()

        returncode = self.child.wait()
        self.logger.info(
            f"Child exited with return code {returncode}",
            extra={"returncode": returncode},
        )

        error = self._first_error()
        if error is not None:
            raise error

        if returncode < 0:
            self.logger.error("The subcommand did not return an exit code.")
        return exit_code_for(returncode)

    def _first_error(self) -> Optional[WrapperError]:
        # A delivery failure explains any channel errors the readers saw
        if self.worker is not None and self.worker.error is not None:
            return self.worker.error
        for reader in self.readers:
            if reader.error is not None:
                return reader.error
        return None

    def _abort_child(self, error: WrapperError) -> None:
        """Kill the child so the readers see end of stream and shutdown proceeds."""
        with self._abort_lock:
            if self.child is None or self.child.poll() is not None:
                return
            self.logger.error(
                f"Terminating child {self.child.pid}: {error}",
                extra={"host": self.target.host, "port": self.target.port},
            )
            self.child.kill()
