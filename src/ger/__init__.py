# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""LLM-centric command line client for the Gerrit code review server."""

__version__ = "0.4.0"

__all__ = ["__version__"]
