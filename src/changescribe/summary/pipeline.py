"""
Three-pass pull request summarization.

The pipeline turns an ordered commit range into a PR description:

1. **Snapshot**: one call over the commit titles only.
2. **Condensation**: one call per chunk of commits, run sequentially so
   provider rate limits hold and the outputs concatenate in a stable
   order.
3. **Synthesis**: one call combining both passes and the most recent
   titles into a document with a fixed, mode-dependent heading list.

If the synthesis comes back empty (or, in release mode, with every
section saying "Unknown"), it is retried once with more titles and
explicit placeholders. The retry is best effort: its text is used only
when non-empty, and a second unknown result is accepted as is. The
final text is then checked for the mode's headings; missing ones are
reported on the result but never trigger another call.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence

from changescribe.llm.completion_client import CompletionClient
from changescribe.llm.prompts import (
    NOT_PROVIDED,
    PASS2_UNAVAILABLE,
    build_condensation_messages,
    build_snapshot_messages,
    build_synthesis_messages,
)
from changescribe.summary.commit_model import (
    MODE_RELEASE,
    NEWLINE_SPLIT_RE,
    RELEASE_HEADINGS,
    Commit,
    PrSummary,
    PrSummaryResult,
)


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


CHUNK_SIZE_CHARS = 8000
TITLE_CAP = 40
RETRY_TITLE_CAP = 80
PASS_MAX_TOKENS = 2048


def serialize_commit(commit: Commit) -> str:
    """Text form of ``commit`` used to measure chunk sizes."""
    parts = [commit.sha, commit.title, commit.body]
    if commit.stat:
        parts.append(commit.stat)
    if commit.diff:
        parts.append(commit.diff)
    return "\n".join(parts) + "\n---\n"


def chunk_commits(commits: Sequence[Commit], max_chars: int = CHUNK_SIZE_CHARS) -> List[List[Commit]]:
    """Group consecutive commits so each group's serialized size fits ``max_chars``.

    A new group starts only when the next commit would overflow a
    non-empty group, so an oversized commit ends up alone in its own
    group rather than being split. Order is preserved.
    """
    chunks: List[List[Commit]] = []
    current: List[Commit] = []
    current_size = 0
    for commit in commits:
        size = len(serialize_commit(commit))
        if current and current_size + size > max_chars:
            chunks.append(current)
            current = []
            current_size = 0
        current.append(commit)
        current_size += size
    if current:
        chunks.append(current)
    return chunks


def format_commit_titles(commits: Sequence[Commit], limit: int) -> str:
    """Bullet list of the ``limit`` most recent commit titles."""
    recent = list(commits)[-limit:] if limit > 0 else []
    return "\n".join(f"- {(commit.title or '').strip() or '(no title)'}" for commit in recent)


def is_unknown_summary(summary: str, mode: str) -> bool:
    """Return True if ``summary`` carries no usable information.

    An empty summary is always unknown. In release mode a summary is
    also unknown when a required heading is missing, or when the first
    non-blank line under every heading is literally ``unknown`` (any
    case). Feature summaries are only checked for emptiness.
    """
    trimmed = summary.strip()
    if not trimmed:
        return True
    if mode != MODE_RELEASE:
        return False

    lines = NEWLINE_SPLIT_RE.split(trimmed)
    unknown_count = 0
    for heading in RELEASE_HEADINGS:
        target = heading.lower()
        index = next((i for i, line in enumerate(lines) if line.strip().lower() == target), None)
        if index is None:
            return True
        next_line = next((line.strip() for line in lines[index + 1:] if line.strip()), "")
        if next_line.lower() == "unknown":
            unknown_count += 1
    return unknown_count == len(RELEASE_HEADINGS)


class PrSummaryPipeline:
    """Run the snapshot, condensation and synthesis passes over a commit range.

    Parameters
    ----------
    client : CompletionClient
        Gateway used for every pass.
    chunk_size : int, optional
        Character budget of one condensation chunk.
    title_cap, retry_title_cap : int, optional
        Number of most recent titles given to the synthesis pass and to
        its retry.
    max_tokens : int, optional
        Completion budget of each pass.
    on_progress : callable, optional
        Called with a short message as each pass completes.
    """

    def __init__(
        self,
        client: CompletionClient,
        chunk_size: int = CHUNK_SIZE_CHARS,
        title_cap: int = TITLE_CAP,
        retry_title_cap: int = RETRY_TITLE_CAP,
        max_tokens: int = PASS_MAX_TOKENS,
        on_progress: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.client = client
        self.chunk_size = chunk_size
        self.title_cap = title_cap
        self.retry_title_cap = retry_title_cap
        self.max_tokens = max_tokens
        self.on_progress = on_progress

    def _progress(self, message: str) -> None:
        logger.info(message)
        if self.on_progress is not None:
            self.on_progress(message)

    def _ask(self, messages) -> str:
        return self.client.complete(messages, max_tokens=self.max_tokens).text

    def snapshot(self, commits: Sequence[Commit], branch: str, base: str) -> str:
        return self._ask(build_snapshot_messages(commits, branch, base))

    def condense(self, commits: Sequence[Commit]) -> List[str]:
        outputs: List[str] = []
        for chunk in chunk_commits(commits, self.chunk_size):
            text = self._ask(build_condensation_messages(chunk))
            if text:
                outputs.append(text)
        return outputs

    def run(
        self,
        commits: Sequence[Commit],
        branch: str,
        base: str,
        mode: str,
        issue: str = "",
    ) -> PrSummaryResult:
        """Summarize ``commits`` and return the outputs of all passes.

        Raises
        ------
        LLMError
            If any completion request fails.
        """
        snapshot = self.snapshot(commits, branch, base)
        self._progress("Pass 1 complete (5Cs snapshot)")

        condensed = self.condense(commits)
        self._progress("Pass 2 complete (per-commit condensation)")

        final = self._ask(
            build_synthesis_messages(
                mode,
                condensed,
                branch,
                base,
                issue,
                snapshot,
                format_commit_titles(commits, self.title_cap),
            )
        )
        retried = False
        if is_unknown_summary(final, mode):
            logger.warning("Pass 3 summary returned Unknown; retrying with fallback context")
            retried = True
            retry = self._ask(
                build_synthesis_messages(
                    mode,
                    condensed or [PASS2_UNAVAILABLE],
                    branch,
                    base,
                    issue,
                    snapshot or NOT_PROVIDED,
                    format_commit_titles(commits, self.retry_title_cap),
                )
            )
            final = retry or final
        self._progress("Pass 3 complete (PR synthesis)")

        missing = PrSummary.parse(final, mode).missing_headings()
        if missing:
            logger.warning("Final summary is missing headings: %s", ", ".join(missing))

        return PrSummaryResult(
            final_summary=final,
            snapshot=snapshot,
            condensed=condensed,
            retried=retried,
            missing_headings=missing,
        )
