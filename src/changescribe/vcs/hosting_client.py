"""
GitHub CLI client for changescribe.

Pull requests are created and updated through ``gh`` rather than the
REST API so the user's existing ``gh auth`` session is reused. Bodies
are passed with ``--body-file`` to avoid shell escaping issues.
"""

from __future__ import annotations

import json
import logging
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional

from changescribe.tempfiles import scoped_temp_file


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


class GhError(Exception):
    """Raised when a ``gh`` command fails."""

    pass


class GhClient:
    """Thin wrapper around the ``gh`` executable."""

    def __init__(self, repo_root: Optional[Path] = None) -> None:
        self.repo_root = repo_root

    def _run(self, args: List[str]) -> subprocess.CompletedProcess:
        full_cmd = ["gh"] + args
        logger.debug("Executing gh command: %s", " ".join(full_cmd))
        try:
            return subprocess.run(
                full_cmd,
                cwd=self.repo_root,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as exc:
            raise GhError(f"Failed to run gh: {exc}") from exc

    def _run_checked(self, args: List[str]) -> str:
        result = self._run(args)
        if result.returncode != 0:
            detail = result.stderr.strip() or result.stdout.strip() or "Unknown error"
            raise GhError(f"gh {' '.join(args[:2])} failed: {detail}")
        return result.stdout

    def is_available(self) -> bool:
        """Return True if ``gh --version`` runs successfully."""
        try:
            return self._run(["--version"]).returncode == 0
        except GhError:
            return False

    def find_open_pr(self, base: str, head: str) -> Optional[Dict[str, Any]]:
        """Return the first open PR from ``head`` into ``base``, if any.

        Lookup failures (auth problems, bad JSON) are treated as "no PR";
        a real problem will surface when the PR is created.
        """
        try:
            result = self._run(
                [
                    "pr", "list",
                    "--base", base,
                    "--head", head,
                    "--state", "open",
                    "--json", "number,title,url",
                ]
            )
        except GhError:
            return None
        if result.returncode != 0:
            return None
        try:
            prs = json.loads(result.stdout or "[]")
        except json.JSONDecodeError:
            return None
        return prs[0] if prs else None

    def create_pr(
        self,
        base: str,
        head: str,
        title: str,
        body: str,
        draft: bool = False,
    ) -> str:
        """Create a pull request and return its URL.

        Raises
        ------
        GhError
            If ``gh pr create`` fails.
        """
        with scoped_temp_file(body, "pr-body", ".md") as body_file:
            args = [
                "pr", "create",
                "--base", base,
                "--head", head,
                "--title", title,
                "--body-file", str(body_file),
            ]
            if draft:
                args.append("--draft")
            return self._run_checked(args).strip()

    def edit_pr(self, number: int, title: Optional[str], body: str) -> None:
        """Replace the body (and title, when given) of PR ``number``."""
        with scoped_temp_file(body, "pr-body", ".md") as body_file:
            args = ["pr", "edit", str(number), "--body-file", str(body_file)]
            if title:
                args.extend(["--title", title])
            self._run_checked(args)
