# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Retry policy and error classification.
"""

from .classifier import (
    REMAINING_HEADER,
    RETRY_AFTER_HEADERS,
    classify_error,
    parse_retry_after,
    retry_after_from_headers,
    server_limit_from_error,
    server_limit_from_headers,
)
from .policy import RetryCallback, RetryEvent, RetryPolicy

__all__ = [
    "REMAINING_HEADER",
    "RETRY_AFTER_HEADERS",
    "RetryCallback",
    "RetryEvent",
    "RetryPolicy",
    "classify_error",
    "parse_retry_after",
    "retry_after_from_headers",
    "server_limit_from_error",
    "server_limit_from_headers",
]
