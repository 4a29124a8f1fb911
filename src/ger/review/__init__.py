# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
AI-assisted code review of Gerrit changes.

This package provides:
- Discovery and invocation of AI command-line tools
- Ephemeral worktrees holding the change under review
- Prompt assembly from change metadata and review activity
- Validation of inline comments and confirm-then-post publishing
"""

from ger.review.orchestrator import (
    InlineComment,
    PostingError,
    ReviewOptions,
    ReviewOrchestrator,
    parse_inline_response,
    repair_path,
    validate_inline_comments,
)
from ger.review.prompt import COMMENT_MARKER, ReviewContext, build_prompt
from ger.review.strategy import (
    AI_TOOLS_ENV,
    DEFAULT_AI_TOOLS,
    ReviewStrategy,
    ReviewStrategyError,
    configured_tools,
    extract_response,
    select_strategy,
)
from ger.review.worktree import (
    PatchsetFetchError,
    WorktreeCreationError,
    WorktreeInfo,
    WorktreeManager,
)

__all__ = [
    # Orchestration
    "InlineComment",
    "PostingError",
    "ReviewOptions",
    "ReviewOrchestrator",
    "parse_inline_response",
    "repair_path",
    "validate_inline_comments",
    # Prompts
    "COMMENT_MARKER",
    "ReviewContext",
    "build_prompt",
    # Strategies
    "AI_TOOLS_ENV",
    "DEFAULT_AI_TOOLS",
    "ReviewStrategy",
    "ReviewStrategyError",
    "configured_tools",
    "extract_response",
    "select_strategy",
    # Worktrees
    "PatchsetFetchError",
    "WorktreeCreationError",
    "WorktreeInfo",
    "WorktreeManager",
]
