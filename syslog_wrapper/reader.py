# -*- coding: utf-8 -*-

# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2025 Ziggiz Inc.
#
# This file is part of the ziggiz-courier-core-data-processing and is licensed under the
# Business Source License 1.1. You may not use this file except in
# compliance with the License. You may obtain a copy of the License at:
# https://github.com/ziggiz-courier/ziggiz-courier-core-data-processing/blob/main/LICENSE
# Line reader threads for the child's output streams

# Standard library imports
import logging
import threading

from typing import BinaryIO, Callable, Optional

# Local/package imports
from syslog_wrapper.channel import Line, MessageQueue
from syslog_wrapper.errors import CaptureError, WrapperError


class LineReader:
    """
    Reads one of the child's output streams line by line on its own thread.

    Every complete line, terminator included, is pushed to the message queue in
    read order. The reader stops at end of stream without pushing an end marker;
    the supervisor does that once both readers are done. The reader owns and
    closes its stream.
    """

    def __init__(
        self,
        name: str,
        stream: BinaryIO,
        message_queue: MessageQueue,
        on_error: Optional[Callable[[WrapperError], None]] = None,
    ):
        """
        Initialize the reader.

        Args:
            name: Name of the captured stream ("stdout" or "stderr")
            stream: Binary stream to read from
            message_queue: Queue receiving the captured lines
            on_error: Called from the reader thread when reading stops on an error
        """
        self.logger = logging.getLogger("syslog_wrapper.reader")
        self.name = name
        self.stream = stream
        self.message_queue = message_queue
        self.on_error = on_error
        self.lines_read = 0
        self.error: Optional[WrapperError] = None
        self._thread = threading.Thread(
            target=self._run, name=f"reader-{name}", daemon=True
        )

    def start(self) -> None:
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        self._thread.join(timeout)

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def _run(self) -> None:
        try:
            self.read_all()
        except WrapperError as e:
            self.error = e
            self.logger.error(
                f"Stopped reading child {self.name}: {e}", extra={"stream": self.name}
            )
            if self.on_error is not None:
                self.on_error(e)
        finally:
            self.stream.close()

    def read_all(self) -> None:
        """
        Read until end of stream.

        Raises:
            CaptureError: If reading fails for a reason other than end of stream
            ChannelClosedError: If the delivery worker has already terminated
        """
        while True:
            try:
                data = self.stream.readline()
            except (OSError, ValueError) as e:
                raise CaptureError(
                    f"Error reading next line from child {self.name}: {e}"
                )
            if not data:
                break
            self.message_queue.put(Line(data=data, stream=self.name))
            self.lines_read += 1

        self.logger.debug(
            f"Reached end of child {self.name} after {self.lines_read} lines",
            extra={"stream": self.name},
        )
