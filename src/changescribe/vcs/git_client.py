"""
Git client implementation for changescribe.

This module wraps the Git operations needed by the commit and PR
commands: collecting the staged change set, committing and pushing,
and reading the commit range between a base ref and ``HEAD``. All
subprocess calls go through :meth:`GitClient._run` so that unit tests
can mock them easily.

Output is captured up to :data:`MAX_CAPTURE_BYTES`. Larger output
raises :class:`GitOutputTooLarge` so callers can fall back to a
summary instead of failing.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List, Optional

from changescribe.summary.commit_model import Commit
from changescribe.tempfiles import scoped_temp_file
from changescribe.vcs.change_set import (
    MAX_FILE_CHANGE_CHARS,
    UNKNOWN_FILE_TYPE,
    ChangeSet,
    FileAnalysis,
    describe_file_type,
)


logger = logging.getLogger(__name__)
# Attach a null handler so library use stays quiet; records still
# propagate to the root logger once the CLI configures it.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


MAX_CAPTURE_BYTES = 10 * 1024 * 1024
MAX_FILE_DIFF_BYTES = 1024 * 1024
MAX_DETAILED_DIFF_CHARS = 5 * 1024 * 1024
MAX_ANALYZED_FILES = 10
MAX_COMMIT_BODY_CHARS = 4000
MAX_COMMIT_DIFF_CHARS = 3000

DIFF_TOO_LARGE_NOTICE = "Diff too large to include. See file changes summary above."
TRUNCATED_NOTICE = "\n...[truncated due to size]..."

FIELD_SEPARATOR = "\x1f"
RECORD_SEPARATOR = "\x1e"


class GitError(Exception):
    """Raised when a Git command fails."""

    pass


class GitOutputTooLarge(GitError):
    """Raised when a Git command produces more output than the capture limit."""

    pass


class GitClient:
    """Client for interacting with a Git repository."""

    def __init__(self, repo_root: Path) -> None:
        self.repo_root = repo_root

    # ------------------------------------------------------------------
    # Static helpers
    # ------------------------------------------------------------------
    @staticmethod
    def find_repo_root(start: Path) -> Optional[Path]:
        """Find the root of the Git repository starting from ``start``.

        Walk upwards until a ``.git`` entry is found or the filesystem
        root is reached.
        """
        current = start.resolve()
        while True:
            if (current / ".git").exists():
                return current
            if current.parent == current:
                return None
            current = current.parent

    # ------------------------------------------------------------------
    # Basic Git commands
    # ------------------------------------------------------------------
    def _run(
        self,
        args: List[str],
        check: bool = True,
        max_bytes: int = MAX_CAPTURE_BYTES,
    ) -> subprocess.CompletedProcess:
        """Run a Git command in the repository root.

        Raises
        ------
        GitError
            If the command exits with a non-zero status when ``check`` is
            True, or ``git`` cannot be started.
        GitOutputTooLarge
            If stdout exceeds ``max_bytes``.
        """
        full_cmd = ["git"] + args
        logger.debug("Executing Git command: %s", " ".join(full_cmd))
        try:
            result = subprocess.run(
                full_cmd,
                cwd=self.repo_root,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding='utf-8',
                errors='replace',
            )
        except FileNotFoundError as e:
            raise GitError("git executable not found") from e

        if len((result.stdout or "").encode("utf-8")) > max_bytes:
            logger.warning("Output of '%s' exceeds %d bytes", " ".join(full_cmd), max_bytes)
            raise GitOutputTooLarge(f"Output of '{' '.join(full_cmd)}' exceeds {max_bytes} bytes")

        if check and result.returncode != 0:
            logger.error(
                "Git command failed: %s\nSTDOUT: %s\nSTDERR: %s",
                " ".join(full_cmd),
                result.stdout,
                result.stderr,
            )
            raise GitError(result.stderr.strip() or result.stdout.strip())
        return result

    # ------------------------------------------------------------------
    # Status and change collection
    # ------------------------------------------------------------------
    def get_current_branch(self) -> str:
        """Return the name of the checked-out branch."""
        return self._run(["branch", "--show-current"]).stdout.strip()

    def has_uncommitted_changes(self) -> bool:
        """Return True if ``git status`` reports anything. Errors count as clean."""
        try:
            return bool(self._run(["status", "--porcelain"]).stdout.strip())
        except GitError:
            return False

    def collect_change_set(self) -> ChangeSet:
        """Collect the staged changes, staging everything if nothing is staged.

        Returns
        -------
        ChangeSet
            ``ChangeSet.empty()`` when the working tree is clean.

        Raises
        ------
        GitError
            If a required Git command fails.
        """
        if not self._run(["status", "--porcelain"]).stdout.strip():
            return ChangeSet.empty()

        file_changes = self._run(["diff", "--staged", "--name-status"]).stdout
        if not file_changes.strip():
            logger.info("Nothing staged; staging all changes for analysis")
            self._run(["add", "."])
            file_changes = self._run(["diff", "--staged", "--name-status"]).stdout

        modified_files = tuple(
            line for line in self._run(["diff", "--staged", "--name-only"]).stdout.splitlines() if line.strip()
        )

        return ChangeSet(
            has_changes=True,
            file_changes=file_changes,
            detailed_diff=self._detailed_diff(),
            modified_files=modified_files,
            diff_stats=self._run(["diff", "--staged", "--stat"]).stdout,
            last_commit=self._run(["log", "-1", "--oneline"], check=False).stdout.strip(),
            current_branch=self.get_current_branch(),
            file_analysis=tuple(self._analyze_files(modified_files)),
        )

    def _detailed_diff(self) -> str:
        try:
            diff = self._run(["diff", "--staged", "-U3", "--diff-filter=ACMRT"]).stdout
        except GitOutputTooLarge:
            logger.warning("Staged diff too large, using summary only")
            return DIFF_TOO_LARGE_NOTICE
        if len(diff) > MAX_DETAILED_DIFF_CHARS:
            return diff[:MAX_DETAILED_DIFF_CHARS] + TRUNCATED_NOTICE
        return diff

    def _analyze_files(self, files) -> List[FileAnalysis]:
        analysis: List[FileAnalysis] = []
        for file in files[:MAX_ANALYZED_FILES]:
            file_type = describe_file_type(file)
            if file_type == UNKNOWN_FILE_TYPE:
                continue
            try:
                diff = self._run(
                    ["diff", "--staged", "-U3", "--", file],
                    max_bytes=MAX_FILE_DIFF_BYTES,
                ).stdout
            except GitOutputTooLarge:
                continue
            except GitError as exc:
                logger.warning("Failed to analyze file %s: %s", file, exc)
                continue
            analysis.append(FileAnalysis(file=file, changes=diff[:MAX_FILE_CHANGE_CHARS], type=file_type))
        return analysis

    # ------------------------------------------------------------------
    # Committing and pushing
    # ------------------------------------------------------------------
    def commit_from_file(self, message: str) -> None:
        """Commit staged changes with ``message``.

        The message is passed through a temporary file (``git commit -F``)
        so multi-line text needs no quoting.
        """
        with scoped_temp_file(message, "commit-msg", ".txt") as path:
            self._run(["commit", "-F", str(path)])

    def push(self, branch: str) -> None:
        """Push ``branch`` to ``origin``."""
        self._run(["push", "origin", branch])

    def push_branch(self, branch: str) -> bool:
        """Push ``branch`` with upstream tracking.

        Returns
        -------
        bool
            True if the push succeeded, False if it failed but
            ``origin/<branch>`` already exists.

        Raises
        ------
        GitError
            If the push failed and the branch is not on the remote.
        """
        try:
            self._run(["push", "-u", "origin", branch])
            return True
        except GitError:
            remote_branches = self._run(["branch", "-r"], check=False).stdout
            if f"origin/{branch}" in remote_branches.split():
                logger.warning("Branch %s already exists on remote, skipping push", branch)
                return False
            raise

    # ------------------------------------------------------------------
    # Commit ranges
    # ------------------------------------------------------------------
    def fetch_base(self, base_branch: str) -> bool:
        """Fetch ``origin/<base_branch>``; return False instead of raising."""
        try:
            return self._run(["fetch", "origin", base_branch], check=False).returncode == 0
        except GitError:
            return False

    def _ref_exists(self, ref: str) -> bool:
        return self._run(["show-ref", "--verify", "--quiet", ref], check=False).returncode == 0

    def resolve_base_ref(self, base_branch: str) -> str:
        """Return ``origin/<base>`` if that remote ref exists, else ``base_branch``."""
        if self._ref_exists(f"refs/remotes/origin/{base_branch}"):
            return f"origin/{base_branch}"
        return base_branch

    def collect_commits(self, base_ref: str, limit: Optional[int] = None) -> List[Commit]:
        """Return the commits in ``base_ref..HEAD``, oldest first.

        Parameters
        ----------
        base_ref : str
            Ref the current branch is compared against.
        limit : int, optional
            Keep only the most recent ``limit`` commits when positive.

        Raises
        ------
        GitError
            If the log cannot be read; an unknown ``base_ref`` gets a
            hint to use ``--base``.
        """
        fmt = f"--pretty=format:%H{FIELD_SEPARATOR}%s{FIELD_SEPARATOR}%b{RECORD_SEPARATOR}"
        try:
            raw_log = self._run(["log", f"{base_ref}..HEAD", "--reverse", fmt]).stdout
        except GitError as exc:
            if "unknown revision" in str(exc) or "bad revision" in str(exc):
                raise GitError(f'Base ref "{base_ref}" not found. Use --base to set a valid branch.') from exc
            raise

        commits: List[Commit] = []
        for entry in raw_log.split(RECORD_SEPARATOR):
            if not entry.strip():
                continue
            parts = entry.split(FIELD_SEPARATOR)
            parts += [""] * (3 - len(parts))
            sha, title, body = parts[0], parts[1], parts[2]
            commits.append(
                Commit(sha=sha.strip(), title=title.strip(), body=body.strip()[:MAX_COMMIT_BODY_CHARS])
            )

        if limit is not None and limit > 0 and len(commits) > limit:
            return commits[-limit:]
        return commits

    def enrich_commits(self, commits: List[Commit]) -> None:
        """Fill ``stat`` and a capped ``diff`` on each commit, in place."""
        for commit in commits:
            try:
                commit.stat = self._run(["show", "--stat", "--format=", commit.sha]).stdout.strip()
                diff = self._run(
                    ["show", "--format=", "-U1", commit.sha],
                    max_bytes=MAX_FILE_DIFF_BYTES,
                ).stdout.strip()
            except GitOutputTooLarge:
                commit.diff = DIFF_TOO_LARGE_NOTICE
                continue
            if len(diff) > MAX_COMMIT_DIFF_CHARS:
                diff = diff[:MAX_COMMIT_DIFF_CHARS] + TRUNCATED_NOTICE
            commit.diff = diff
