# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Gerrit integration package for ger.

Modules:
    client: REST client with authentication, XSSI stripping and typed errors
    urls: Endpoint path and web URL construction
    models: Pydantic models for Gerrit data structures
    service: High-level service layer for Gerrit operations

Usage:
    from ger.gerrit import create_gerrit_service

    service = create_gerrit_service(credentials)
    changes = service.list_changes("status:open")
"""

from ger.gerrit.client import (
    GerritAuthError,
    GerritNetworkError,
    GerritNotFoundError,
    GerritParseError,
    GerritRestClient,
    GerritRestError,
    build_client,
)
from ger.gerrit.models import (
    AccountInfo,
    ChangeInfo,
    ChangeStatus,
    CommentInfo,
    CommentInput,
    MessageInfo,
    NotifyLevel,
    ReviewerState,
    ReviewInput,
    RevisionInfo,
)
from ger.gerrit.service import (
    DEFAULT_CHANGE_OPTIONS,
    DEFAULT_LIST_OPTIONS,
    DiffOptions,
    GerritService,
    GerritServiceError,
    GroupQuery,
    create_gerrit_service,
)
from ger.gerrit.urls import GerritUrlBuilder, create_url_builder

__all__ = [
    # Client
    "GerritAuthError",
    "GerritNetworkError",
    "GerritNotFoundError",
    "GerritParseError",
    "GerritRestClient",
    "GerritRestError",
    "build_client",
    # Models
    "AccountInfo",
    "ChangeInfo",
    "ChangeStatus",
    "CommentInfo",
    "CommentInput",
    "MessageInfo",
    "NotifyLevel",
    "ReviewInput",
    "ReviewerState",
    "RevisionInfo",
    # Service
    "DEFAULT_CHANGE_OPTIONS",
    "DEFAULT_LIST_OPTIONS",
    "DiffOptions",
    "GerritService",
    "GerritServiceError",
    "GroupQuery",
    "create_gerrit_service",
    # URLs
    "GerritUrlBuilder",
    "create_url_builder",
]
