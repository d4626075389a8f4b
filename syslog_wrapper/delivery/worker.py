# -*- coding: utf-8 -*-

# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2025 Ziggiz Inc.
#
# This file is part of the ziggiz-courier-core-data-processing and is licensed under the
# Business Source License 1.1. You may not use this file except in
# compliance with the License. You may obtain a copy of the License at:
# https://github.com/ziggiz-courier/ziggiz-courier-core-data-processing/blob/main/LICENSE
# Delivery worker: owns the TLS connection and drives the retry state machine

# Standard library imports
import logging
import ssl
import threading
import time

from enum import Enum
from typing import Callable, Optional

# Local/package imports
from syslog_wrapper.channel import EndOfStream, Line, MessageQueue
from syslog_wrapper.config import ConnectionTarget
from syslog_wrapper.delivery.retry import RetryPolicy, RetryState
from syslog_wrapper.errors import DeliveryError, WrapperError
from syslog_wrapper.protocol.formatter import format_record
from syslog_wrapper.protocol.tls import TLSSyslogConnection
from syslog_wrapper.telemetry import get_tracer


class WorkerState(Enum):
    """
    States of the delivery worker.

    Values:
        CONNECTING: Opening the transport connection and performing the handshake.
        STREAMING: Taking items off the queue and writing them.
        RECOVERING: Waiting out the backoff delay after a failure.
        TERMINATED: End of stream reached, everything delivered.
        FAILED: Retries exhausted or an unexpected error; delivery stopped.
    """

    CONNECTING = "connecting"
    STREAMING = "streaming"
    RECOVERING = "recovering"
    TERMINATED = "terminated"
    FAILED = "failed"


class DeliveryWorker:
    """
    Consumes the message queue and delivers each line as a syslog record.

    This is the only component that performs network I/O. A line whose write
    fails is held and written again after reconnecting, re-formatted so that it
    carries the time it was actually sent. When the retry policy is exhausted the
    worker closes the queue, reports the failure through ``on_fatal`` and stops.
    """

    def __init__(
        self,
        message_queue: MessageQueue,
        target: ConnectionTarget,
        ssl_context: ssl.SSLContext,
        retry_policy: Optional[RetryPolicy] = None,
        connect_timeout: Optional[float] = 10.0,
        on_fatal: Optional[Callable[[WrapperError], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the delivery worker.

        Args:
            message_queue: Queue to consume delivery items from
            target: Receiver address and record identity
            ssl_context: Client SSL context holding the trust anchors
            retry_policy: Retry policy (default: RetryPolicy())
            connect_timeout: Timeout in seconds for connecting and the handshake
            on_fatal: Called from the worker thread when delivery fails for good
            sleep: Function used to wait out backoff delays
        """
        self.logger = logging.getLogger("syslog_wrapper.delivery.worker")
        self.message_queue = message_queue
        self.target = target
        self.retry_policy = retry_policy or RetryPolicy()
        self.on_fatal = on_fatal
        self._sleep = sleep
        self.connection = TLSSyslogConnection(
            target.host, target.port, ssl_context, connect_timeout=connect_timeout
        )
        self.state = WorkerState.CONNECTING
        self.delivered = 0
        self.error: Optional[WrapperError] = None
        self._thread = threading.Thread(target=self._run, name="delivery", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        self._thread.join(timeout)

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def _run(self) -> None:
        try:
            self.run()
        except WrapperError as e:
            self._fail(e)
        except Exception as e:
            self.logger.exception(f"Unexpected error in delivery worker: {e}")
            self._fail(
                DeliveryError(
                    f"Unexpected delivery failure: {e}",
                    host=self.target.host,
                    port=self.target.port,
                )
            )
        finally:
            self.connection.close()

    def _fail(self, error: WrapperError) -> None:
        self.error = error
        self.state = WorkerState.FAILED
        self.message_queue.close()
        if self.on_fatal is not None:
            self.on_fatal(error)

    def run(self) -> None:
        """
        Run the state machine until end of stream or retry exhaustion.

        Raises:
            DeliveryError: The last failure, once the retry policy is exhausted
        """
        retry = self.retry_policy.initial_state()
        pending: Optional[Line] = None
        last_error: Optional[DeliveryError] = None

        while True:
            if self.state is WorkerState.CONNECTING:
                try:
                    self._connect(retry)
                    self.state = WorkerState.STREAMING
                except DeliveryError as e:
                    last_error = e
                    retry = retry.record_failure()
                    self.state = WorkerState.RECOVERING

            elif self.state is WorkerState.STREAMING:
                item = pending if pending is not None else self.message_queue.get()
                pending = None
                if isinstance(item, EndOfStream):
                    self.connection.close()
                    self.state = WorkerState.TERMINATED
                elif isinstance(item, Line):
                    try:
                        self._deliver(item, retry)
                        retry = retry.reset()
                    except DeliveryError as e:
                        pending = item
                        last_error = e
                        retry = retry.record_failure()
                        self.connection.close(graceful=False)
                        self.state = WorkerState.RECOVERING
                else:
                    raise TypeError(f"Unexpected delivery item: {item!r}")

            elif self.state is WorkerState.RECOVERING:
                if retry.exhausted:
                    self.logger.error(
                        f"Giving up on {self.target.host}:{self.target.port} after "
                        f"{retry.failures} consecutive failures: {last_error}",
                        extra={"host": self.target.host, "port": self.target.port},
                    )
                    raise last_error
                delay = retry.next_delay
                self.logger.warning(
                    f"Delivery to {self.target.host}:{self.target.port} failed: "
                    f"{last_error}; retrying in {delay:.3f}s "
                    f"({retry.failures}/{self.retry_policy.max_retries})",
                    extra={"host": self.target.host, "port": self.target.port},
                )
                self._sleep(delay)
                self.state = WorkerState.CONNECTING

            else:
                break

        self.logger.info(
            f"Delivered {self.delivered} messages, connection closed",
            extra={"host": self.target.host, "port": self.target.port},
        )

    def _connect(self, retry: RetryState) -> None:
        tracer = get_tracer()
        with tracer.start_as_current_span("syslog.connect") as span:
            span.set_attribute("net.peer.name", self.target.host)
            span.set_attribute("net.peer.port", self.target.port)
            span.set_attribute("retry.attempt", retry.attempt)
            self.logger.info(
                f"Connecting to {self.target.host}:{self.target.port}",
                extra={"host": self.target.host, "port": self.target.port},
            )
            try:
                self.connection.open()
            except DeliveryError as e:
                span.set_attribute("connect.outcome", type(e).__name__)
                raise
            span.set_attribute("connect.outcome", "connected")

    def _deliver(self, line: Line, retry: RetryState) -> None:
        # Timestamped at send time, so a resent line carries its new send time
        record = format_record(line.data, self.target.hostname, self.target.appname)
        tracer = get_tracer()
        with tracer.start_as_current_span("syslog.deliver") as span:
            span.set_attribute("message.length", len(record))
            span.set_attribute("message.stream", line.stream)
            span.set_attribute("retry.attempt", retry.attempt)
            self.connection.send(record)
        self.delivered += 1
