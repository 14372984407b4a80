# reviewgate/utils/inline_comment_planner.py
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from reviewgate.config.settings import (
    REVIEW_MAX_INLINE_COMMENT_CHARS,
    REVIEW_MAX_INLINE_COMMENTS,
    REVIEW_MAX_INLINE_COMMENTS_PER_FILE,
)
from reviewgate.models.code_review import (
    CodeReview,
    CodeSuggestion,
    SuggestionSeverity,
)
from reviewgate.models.merge_request import MergeRequestDiff
from reviewgate.utils.logger import logger

HUNK_HEADER = re.compile(r"^@@ -\d+(?:,\d+)? \+(\d+)(?:,\d+)? @@")
SEVERITY_WEIGHT = {
    SuggestionSeverity.CRITICAL: 3,
    SuggestionSeverity.WARNING: 2,
    SuggestionSeverity.INFO: 1,
}
SEVERITY_ICON = {
    SuggestionSeverity.CRITICAL: "🔴",
    SuggestionSeverity.WARNING: "🟠",
    SuggestionSeverity.INFO: "ℹ️",
}
LINE_TOLERANCE = 2
MAX_FIX_CHARS = 400


@dataclass(frozen=True)
class InlineComment:
    old_path: str
    new_path: str
    new_line: int
    body: str


def commentable_new_lines(diff_text: Optional[str]) -> Set[int]:
    """Line numbers of the new file that appear in the diff (context or added)."""
    lines: Set[int] = set()
    current = 0
    for line in (diff_text or "").split("\n"):
        match = HUNK_HEADER.match(line)
        if match:
            current = int(match.group(1))
            continue
        if current <= 0 or line.startswith(("+++ ", "--- ")):
            continue
        if line.startswith((" ", "+")):
            lines.add(current)
            current += 1
    return lines


def normalize_path(path: Optional[str]) -> str:
    path = (path or "").strip()
    if path.startswith("File:"):
        path = path[len("File:"):].strip()
    path = path.replace("`", "").strip()
    if path.startswith(("a/", "b/", "./")):
        path = path[2:]
    return path.lstrip("/")


class InlineCommentPlanner:
    """Picks which suggestions become line comments on the merge request.

    Only CRITICAL and WARNING suggestions that point at a line present in the
    diff qualify (a line up to two away is accepted and snapped). The most
    severe are taken first. A first pass honours ``max_per_file``; if
    ``max_total`` is not reached a second pass lets busy files overflow.
    Duplicates by (file, line, category) are dropped.
    """

    def __init__(
        self,
        max_total: int = REVIEW_MAX_INLINE_COMMENTS,
        max_per_file: int = REVIEW_MAX_INLINE_COMMENTS_PER_FILE,
        max_chars: int = REVIEW_MAX_INLINE_COMMENT_CHARS,
    ):
        self.max_total = max_total
        self.max_per_file = max_per_file
        self.max_chars = max_chars

    def plan(
        self, review: CodeReview, diffs: List[MergeRequestDiff]
    ) -> List[InlineComment]:
        if not review.suggestions or not diffs or self.max_total <= 0:
            return []

        diffs_by_path: Dict[str, MergeRequestDiff] = {}
        for diff in diffs:
            if diff.deleted_file:
                continue
            for path in (diff.new_path, diff.old_path):
                if path:
                    diffs_by_path[path] = diff

        candidates = sorted(
            (s for s in review.suggestions if self._is_candidate(s)),
            key=lambda s: SEVERITY_WEIGHT[s.severity],
            reverse=True,
        )

        selected: List[InlineComment] = []
        seen: Set[tuple] = set()
        per_file: Dict[str, int] = {}
        valid_lines: Dict[str, Set[int]] = {}

        for enforce_per_file in (True, False):
            for suggestion in candidates:
                if len(selected) >= self.max_total:
                    break
                diff = self._resolve_diff(suggestion.file_name, diffs_by_path)
                if diff is None:
                    continue
                new_path = diff.path
                if enforce_per_file and per_file.get(new_path, 0) >= self.max_per_file:
                    continue
                if new_path not in valid_lines:
                    valid_lines[new_path] = commentable_new_lines(diff.diff)
                line = self._snap_line(suggestion.line_number, valid_lines[new_path])
                if line is None:
                    continue
                key = (new_path, line, suggestion.category)
                if key in seen:
                    continue
                seen.add(key)
                per_file[new_path] = per_file.get(new_path, 0) + 1
                selected.append(
                    InlineComment(
                        old_path=diff.old_path or new_path,
                        new_path=new_path,
                        new_line=line,
                        body=self.format_body(suggestion),
                    )
                )

        logger.info(
            f"Planned {len(selected)} inline comment(s) from "
            f"{len(review.suggestions)} suggestion(s)."
        )
        return selected

    def format_body(self, suggestion: CodeSuggestion) -> str:
        body = (
            f"{SEVERITY_ICON[suggestion.severity]} **{suggestion.severity.value}**"
            f" • {suggestion.category.value}\n\n{suggestion.message.strip()}"
        )
        fix = (suggestion.suggestion_fix or "").strip()
        if fix:
            if len(fix) > MAX_FIX_CHARS:
                fix = fix[:MAX_FIX_CHARS] + "…"
            body += f"\n\n**Suggested fix:**\n{fix}"
        if len(body) > self.max_chars:
            body = body[: max(0, self.max_chars - 1)] + "…"
        return body

    @staticmethod
    def _is_candidate(suggestion: CodeSuggestion) -> bool:
        return (
            suggestion.severity in (SuggestionSeverity.CRITICAL, SuggestionSeverity.WARNING)
            and bool(normalize_path(suggestion.file_name))
            and bool(suggestion.line_number and suggestion.line_number > 0)
            and bool(suggestion.message and suggestion.message.strip())
        )

    @staticmethod
    def _resolve_diff(
        file_name: Optional[str], diffs_by_path: Dict[str, MergeRequestDiff]
    ) -> Optional[MergeRequestDiff]:
        path = normalize_path(file_name)
        if path in diffs_by_path:
            return diffs_by_path[path]
        # Models sometimes report just the file name.
        base_name = path.rsplit("/", 1)[-1]
        for known_path, diff in diffs_by_path.items():
            if known_path.endswith("/" + base_name):
                return diff
        return None

    @staticmethod
    def _snap_line(line_number: int, valid: Set[int]) -> Optional[int]:
        if line_number in valid:
            return line_number
        for delta in range(1, LINE_TOLERANCE + 1):
            if line_number - delta in valid:
                return line_number - delta
            if line_number + delta in valid:
                return line_number + delta
        return None
