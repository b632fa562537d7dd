"""
Files written by the ``pr`` command.

Each successful run writes three files:

* the full summary, with the pass 1 and pass 2 outputs appended;
* a slim ``<name>.final.md`` holding only the PR-ready block, small
  enough for a PR body;
* a timestamped backup of the full summary in the temp directory.
"""

from __future__ import annotations

import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from changescribe.summary.commit_model import MODE_RELEASE, PrSummaryResult
from changescribe.tempfiles import timestamped_name


MAX_TITLE_CHARS = 100
MIN_TITLE_CHARS = 10


@dataclass
class SummaryArtifacts:
    """Paths of the files written for one summary."""

    full_path: Path
    final_path: Path
    backup_path: Path


def render_pr_block(result: PrSummaryResult, branch: str, base_ref: str) -> str:
    return "\n".join(
        [
            f"PR Summary for {branch} (base: {base_ref})",
            "",
            "--- PR Summary (paste into GitHub PR) ---",
            result.final_summary,
        ]
    )


def render_full_summary(result: PrSummaryResult, branch: str, base_ref: str) -> str:
    appendix = "\n".join(
        [
            "",
            "--- Pass 1 (5Cs snapshot) ---",
            result.snapshot,
            "",
            "--- Pass 2 (per-commit condensed) ---",
            "\n\n".join(result.condensed),
        ]
    )
    return f"{render_pr_block(result, branch, base_ref)}\n{appendix}"


def write_summary_artifacts(
    result: PrSummaryResult,
    branch: str,
    base_ref: str,
    out_path: Union[str, Path],
    cwd: Optional[Path] = None,
) -> SummaryArtifacts:
    """Write the full, slim and backup summary files.

    A relative ``out_path`` is resolved against ``cwd`` (the current
    directory by default); missing parent directories are created.
    """
    resolved = Path(out_path)
    if not resolved.is_absolute():
        resolved = (cwd or Path.cwd()) / resolved
    resolved.parent.mkdir(parents=True, exist_ok=True)

    full_text = render_full_summary(result, branch, base_ref)
    resolved.write_text(full_text, encoding="utf-8")

    final_path = resolved.with_name(f"{resolved.stem}.final.md")
    final_path.write_text(render_pr_block(result, branch, base_ref), encoding="utf-8")

    backup_path = Path(tempfile.gettempdir()) / timestamped_name("pr-summary", f"-{resolved.name}")
    backup_path.write_text(full_text, encoding="utf-8")

    return SummaryArtifacts(full_path=resolved, final_path=final_path, backup_path=backup_path)


def _strip_markdown(text: str) -> str:
    text = re.sub(r"`([^`]+)`", r"\1", text)
    text = re.sub(r"\*\*([^*]+)\*\*", r"\1", text)
    return re.sub(r"\*([^*]+)\*", r"\1", text)


def extract_pr_title(summary: str, mode: str) -> Optional[str]:
    """Use the first bullet of the "what changed" section as the PR title.

    Feature summaries look under "What change does this PR add?", release
    summaries under "Release summary". Returns ``None`` when no bullet
    longer than ten characters is found before the next question heading.
    """
    target = "release summary" if mode == MODE_RELEASE else "what change"
    in_section = False
    for line in summary.splitlines():
        trimmed = line.strip()
        if target in trimmed.lower():
            in_section = True
            continue
        if not in_section:
            continue
        if trimmed.endswith("?"):
            break
        if trimmed.startswith("-"):
            clean = _strip_markdown(trimmed[1:].strip())[:MAX_TITLE_CHARS]
            if len(clean) > MIN_TITLE_CHARS:
                return clean
    return None
