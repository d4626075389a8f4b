# -*- coding: utf-8 -*-

# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2025 Ziggiz Inc.
#
# This file is part of the ziggiz-courier-core-data-processing and is licensed under the
# Business Source License 1.1. You may not use this file except in
# compliance with the License. You may obtain a copy of the License at:
# https://github.com/ziggiz-courier/ziggiz-courier-core-data-processing/blob/main/LICENSE
# Retry policy and per-worker retry state

# Standard library imports
from dataclasses import dataclass

# Third-party imports
from tenacity import RetryCallState, stop_after_attempt, wait_exponential
from tenacity.stop import stop_base
from tenacity.wait import wait_base


@dataclass(frozen=True)
class RetryPolicy:
    """
    How many consecutive connect-or-write failures are tolerated and how long to
    wait after each of them.

    The delay after the n-th consecutive failure is
    ``base_delay * factor ** (n - 1)``, capped at ``max_delay``.

    Attributes:
        max_retries: Number of consecutive failures tolerated before giving up.
        base_delay: Delay in seconds after the first failure.
        factor: Growth factor applied to the delay per consecutive failure.
        max_delay: Upper bound for a single delay in seconds.
    """

    max_retries: int = 3
    base_delay: float = 0.01
    factor: float = 10.0
    max_delay: float = 5.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must not be negative")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("Retry delays must not be negative")
        if self.factor < 1:
            raise ValueError("Retry factor must be at least 1")

    @property
    def wait(self) -> wait_base:
        return wait_exponential(
            multiplier=self.base_delay, exp_base=self.factor, max=self.max_delay
        )

    @property
    def stop(self) -> stop_base:
        # The first attempt is not a retry
        return stop_after_attempt(self.max_retries + 1)

    def delay_for(self, failures: int) -> float:
        """Return the delay to apply after ``failures`` consecutive failures."""
        if failures < 1:
            return 0.0
        return self.wait(_call_state(failures))

    def initial_state(self) -> "RetryState":
        return RetryState(policy=self)


def _call_state(failures: int) -> RetryCallState:
    """Build the tenacity call state seen after ``failures`` failed attempts."""
    state = RetryCallState(retry_object=None, fn=None, args=(), kwargs={})
    state.attempt_number = failures
    return state


@dataclass(frozen=True)
class RetryState:
    """
    Immutable retry bookkeeping threaded through the delivery worker.

    A new value is produced for every transition so the worker never shares
    mutable retry state with anything else. The policy's tenacity stop and wait
    strategies are evaluated against the current failure count.
    """

    policy: RetryPolicy
    failures: int = 0

    @property
    def exhausted(self) -> bool:
        if self.failures < 1:
            return False
        return self.policy.stop(_call_state(self.failures))

    @property
    def next_delay(self) -> float:
        return self.policy.delay_for(self.failures)

    @property
    def attempt(self) -> int:
        """1-based number of the attempt about to be made."""
        return self.failures + 1

    def record_failure(self) -> "RetryState":
        return RetryState(policy=self.policy, failures=self.failures + 1)

    def reset(self) -> "RetryState":
        if self.failures == 0:
            return self
        return RetryState(policy=self.policy)
