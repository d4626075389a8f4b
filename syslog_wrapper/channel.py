# -*- coding: utf-8 -*-

# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2025 Ziggiz Inc.
#
# This file is part of the ziggiz-courier-core-data-processing and is licensed under the
# Business Source License 1.1. You may not use this file except in
# compliance with the License. You may obtain a copy of the License at:
# https://github.com/ziggiz-courier/ziggiz-courier-core-data-processing/blob/main/LICENSE
# Delivery items and the bounded hand-off queue between readers and the delivery worker

# Standard library imports
import logging
import queue
import threading

from dataclasses import dataclass
from typing import Union

# Local/package imports
from syslog_wrapper.errors import ChannelClosedError

# Fixed capacity of the hand-off queue. Small enough that a stalled receiver
# throttles the child quickly once its own pipe buffer fills.
DEFAULT_QUEUE_SIZE = 200


@dataclass(frozen=True)
class Line:
    """
    A single line captured from one of the child's output streams.

    Attributes:
        data: The raw line bytes, including the trailing newline when present.
        stream: Name of the stream the line was read from ("stdout" or "stderr").
    """

    data: bytes
    stream: str = "stdout"


@dataclass(frozen=True)
class EndOfStream:
    """Terminal marker pushed once by the supervisor after both readers finished."""


DeliveryItem = Union[Line, EndOfStream]


class MessageQueue:
    """
    Bounded multi-producer, single-consumer FIFO of delivery items.

    ``put`` blocks while the queue is full and ``get`` blocks while it is empty.
    Once the consumer has terminated, ``close`` wakes any blocked producers and
    every later ``put`` raises ChannelClosedError.
    """

    def __init__(self, maxsize: int = DEFAULT_QUEUE_SIZE):
        if maxsize < 3:
            # Close must be able to absorb one in-flight put per producer
            # (two readers plus the supervisor) without blocking.
            raise ValueError(f"Queue size must be at least 3, got {maxsize}")
        self.logger = logging.getLogger("syslog_wrapper.channel")
        self.maxsize = maxsize
        self._queue: "queue.Queue[DeliveryItem]" = queue.Queue(maxsize=maxsize)
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def put(self, item: DeliveryItem) -> None:
        """
        Hand an item to the consumer, blocking while the queue is full.

        Raises:
            ChannelClosedError: If the consumer has already terminated.
        """
        if self._closed.is_set():
            raise ChannelClosedError(
                "Delivery worker has terminated; cannot hand off further messages"
            )
        self._queue.put(item)

    def get(self) -> DeliveryItem:
        return self._queue.get()

    def qsize(self) -> int:
        return self._queue.qsize()

    def close(self) -> int:
        """
        Mark the consumer as gone and discard everything still queued.

        Returns:
            The number of undelivered items that were discarded.
        """
        self._closed.set()
        discarded = 0
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break
            discarded += 1
        if discarded:
            self.logger.warning(
                "Discarded undelivered messages after delivery stopped",
                extra={"discarded": discarded},
            )
        return discarded
