from typing import List, Optional

from reviewgate.config.settings import (
    REVIEW_MAX_DIFF_CHARS_PER_FILE,
    REVIEW_MAX_DIFF_CHARS_TOTAL,
    REVIEW_MAX_FILES,
)
from reviewgate.models.merge_request import MergeRequest, MergeRequestDiff


class Prompts:
    """
    A class to hold predefined prompt templates for LLM interactions.
    Uses reusable components to avoid duplication.
    """

    # Reusable prompt components
    _EXPERT_REVIEWER_INTRO = """You are an **expert code reviewer** reviewing a GitLab merge request for **correctness, security, performance, and maintainability**."""

    _REVIEW_CRITERIA = """## Review Criteria
     - **NAMING_CONVENTION** -> Unclear or inconsistent names.
     - **PERFORMANCE** -> Inefficiencies, unnecessary work, poor algorithms.
     - **SECURITY** -> Injection, authentication flaws, unsafe operations, leaked secrets.
     - **DESIGN_PATTERN** -> Misplaced responsibilities, tight coupling, duplication.
     - **ERROR_HANDLING** -> Swallowed errors, missing edge cases, unsafe assumptions.
     - **CODE_STYLE** -> Formatting and readability problems.
     - **OTHER** -> Anything that does not fit the above."""

    _SEVERITY_GUIDELINES = """## Severity
     - **CRITICAL** -> Must be fixed before merging (bugs, security holes, data loss).
     - **WARNING** -> Should be fixed; likely to cause problems later.
     - **INFO** -> Optional improvement."""

    _JSON_FORMAT = """## Feedback Format (JSON)
    Your response **must** be a single JSON object and nothing else:
    ```json
    {
        "score": <integer 0-10, overall quality of the change>,
        "summary": "<one paragraph overview of the change and its main risks>",
        "suggestions": [
            {
                "category": "<NAMING_CONVENTION|PERFORMANCE|SECURITY|DESIGN_PATTERN|ERROR_HANDLING|CODE_STYLE|OTHER>",
                "severity": "<CRITICAL|WARNING|INFO>",
                "message": "<what is wrong and why it matters>",
                "file_name": "<path/to/file>",
                "line_number": <line in the new version of the file, or null>,
                "suggestion_fix": "<corrected code snippet, or null>"
            }
        ]
    }
    ```
    Only report actionable findings. Never include praise in `suggestions`."""

    REVIEW_SYSTEM_PROMPT = f"""{_EXPERT_REVIEWER_INTRO}

    {_REVIEW_CRITERIA}

    {_SEVERITY_GUIDELINES}

    {_JSON_FORMAT}
    """

    REVIEW_PROMPT = """## Merge Request
{mr_metadata}

## Project Context
{context}

## Changes
{diff}
"""


def format_mr_metadata(merge_request: Optional[MergeRequest]) -> str:
    if merge_request is None:
        return "No merge request metadata available."

    parts = []
    if merge_request.title:
        parts.append(f"**Title:** {merge_request.title}")
    parts.append(f"**MR !:** {merge_request.mr_id}")
    if merge_request.description:
        parts.append(f"**Description:** {merge_request.description}")
    if merge_request.source_branch or merge_request.target_branch:
        source = merge_request.source_branch or "unknown"
        target = merge_request.target_branch or "unknown"
        parts.append(f"**Branches:** {source} → {target}")
    return "\n".join(parts)


def _clip(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "\n... (diff truncated)"


def format_diffs(
    diffs: List[MergeRequestDiff],
    max_files: int = REVIEW_MAX_FILES,
    max_chars_per_file: int = REVIEW_MAX_DIFF_CHARS_PER_FILE,
    max_chars_total: int = REVIEW_MAX_DIFF_CHARS_TOTAL,
) -> str:
    """Renders the reviewable diffs, skipping deleted files and honouring the caps."""
    sections = []
    used = 0
    reviewable = [d for d in diffs if not d.deleted_file]
    for diff in reviewable[:max_files]:
        remaining = max_chars_total - used
        if remaining <= 0:
            break
        body = _clip(diff.diff or "", min(max_chars_per_file, remaining))
        used += len(body)
        header = f"### File: `{diff.path}`"
        if diff.new_file:
            header += " (new file)"
        elif diff.renamed_file and diff.old_path:
            header += f" (renamed from `{diff.old_path}`)"
        sections.append(f"{header}\n```diff\n{body}\n```")

    skipped = len(reviewable) - len(sections)
    if skipped > 0:
        sections.append(f"_{skipped} more file(s) omitted from this review._")
    return "\n\n".join(sections)


def build_review_prompt(
    merge_request: Optional[MergeRequest],
    diffs: List[MergeRequestDiff],
    context: str = "",
) -> str:
    return Prompts.REVIEW_PROMPT.format(
        mr_metadata=format_mr_metadata(merge_request),
        context=context or "No additional context.",
        diff=format_diffs(diffs),
    )
