# -*- coding: utf-8 -*-

# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2025 Ziggiz Inc.
#
# This file is part of the ziggiz-courier-core-data-processing and is licensed under the
# Business Source License 1.1. You may not use this file except in
# compliance with the License. You may obtain a copy of the License at:
# https://github.com/ziggiz-courier/ziggiz-courier-core-data-processing/blob/main/LICENSE
# RFC 5424 record formatting for captured lines

# Standard library imports
import datetime

from typing import Optional

# Constants
SYSLOG_PRIORITY = 22  # facility mail (2), severity informational (6); RFC 5424 6.2.1
SYSLOG_VERSION = 1  # RFC 5424 6.2.2
NILVALUE = "-"

# RFC 5424 6.2.4 / 6.2.5 field length limits
MAX_HOSTNAME_LENGTH = 255
MAX_APPNAME_LENGTH = 48


def format_timestamp(timestamp: datetime.datetime) -> str:
    """
    Format a timestamp as ``YYYY-MM-DDTHH:MM:SS.ffffff+HH:MM``.

    Naive datetimes are taken to be UTC.
    """
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=datetime.timezone.utc)
    return timestamp.isoformat(timespec="microseconds")


def sanitize_header_field(value: Optional[str], max_length: int) -> str:
    """
    Make a value safe for use as a space-delimited RFC 5424 header field.

    Header fields are restricted to printable US-ASCII without spaces. Any other
    character is replaced with an underscore, and an empty value becomes the nil
    value.
    """
    if not value:
        return NILVALUE
    cleaned = "".join(ch if 33 <= ord(ch) <= 126 else "_" for ch in value)
    return cleaned[:max_length]


def format_record(
    line: bytes,
    hostname: str,
    appname: str,
    timestamp: Optional[datetime.datetime] = None,
    priority: int = SYSLOG_PRIORITY,
    version: int = SYSLOG_VERSION,
) -> bytes:
    """
    Build the wire record for one captured line.

    The layout is ``<PRI>VERSION TIMESTAMP HOSTNAME APP-NAME PROCID MSGID SD MSG``
    with PROCID, MSGID and STRUCTURED-DATA always nil. The line is copied verbatim
    as MSG; a newline is only appended when the line does not already end with
    one, so every record is newline-terminated on the wire.

    Args:
        line: Raw captured line bytes
        hostname: Value of the HOSTNAME header field
        appname: Value of the APP-NAME header field
        timestamp: Time to stamp the record with (default: now, in UTC)
        priority: PRI value
        version: Protocol version

    Returns:
        The encoded record
    """
    if timestamp is None:
        timestamp = datetime.datetime.now(datetime.timezone.utc)

    header = (
        f"<{priority}>{version} {format_timestamp(timestamp)} "
        f"{hostname} {appname} {NILVALUE} {NILVALUE} {NILVALUE} "
    )
    record = header.encode("ascii", errors="replace") + line
    if not record.endswith(b"\n"):
        record += b"\n"
    return record
