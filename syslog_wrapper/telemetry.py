# -*- coding: utf-8 -*-
# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2025 Ziggiz Inc.
#
# This file is part of the ziggiz-courier-core-data-processing and is licensed under the
# Business Source License 1.1. You may not use this file except in
# compliance with the License. You may obtain a copy of the License at:
# https://github.com/ziggiz-courier/ziggiz-courier-core-data-processing/blob/main/LICENSE
# OpenTelemetry setup for the syslog wrapper
#
# Spans are only exported when tracing is enabled, and then to stderr, because
# the wrapper must not write anything of its own to stdout.

# Standard library imports
import sys

from typing import Optional

# Third-party imports
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Tracer

SERVICE_NAME = "syslog-wrapper"

_tracer_provider: Optional[TracerProvider] = None


def configure_tracing(enabled: bool) -> Optional[TracerProvider]:
    """
    Install the tracer provider for the process.

    Args:
        enabled: Export spans to stderr when True; otherwise spans are no-ops.

    Returns:
        The installed provider, or None when tracing is disabled
    """
    global _tracer_provider
    if not enabled or _tracer_provider is not None:
        return _tracer_provider

    resource = Resource.create({"service.name": SERVICE_NAME})
    _tracer_provider = TracerProvider(resource=resource)
    _tracer_provider.add_span_processor(
        BatchSpanProcessor(ConsoleSpanExporter(out=sys.stderr))
    )
    trace.set_tracer_provider(_tracer_provider)
    return _tracer_provider


def shutdown_tracing() -> None:
    """Flush pending spans before the process exits."""
    if _tracer_provider is not None:
        _tracer_provider.shutdown()


def get_tracer() -> Tracer:
    return trace.get_tracer(SERVICE_NAME)
