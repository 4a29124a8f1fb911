# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Command-level error types shared by the executors.

Errors raised by the REST adapter, the VCS layer and the workflow
pipelines live next to the code that raises them; the classes here cover
input validation that happens before any of those layers is touched.
"""

from __future__ import annotations


class ValidationError(ValueError):
    """Raised when command input is rejected before any side effect."""


class NoChangeIdError(ValidationError):
    """Raised when no change identifier could be resolved."""


class RegexValidationError(ValidationError):
    """Raised when a user supplied pattern is rejected by the ReDoS guard."""


__all__ = [
    "NoChangeIdError",
    "RegexValidationError",
    "ValidationError",
]
