# -*- coding: utf-8 -*-

# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2025 Ziggiz Inc.
#
# This file is part of the ziggiz-courier-core-data-processing and is licensed under the
# Business Source License 1.1. You may not use this file except in
# compliance with the License. You may obtain a copy of the License at:
# https://github.com/ziggiz-courier/ziggiz-courier-core-data-processing/blob/main/LICENSE
# syslog_wrapper package
#
# Runs a command and forwards each line of its standard output and standard
# error as an RFC 5424 record to a remote syslog receiver over TLS, exiting
# with the command's own exit code.

__version__ = "0.1.0"
