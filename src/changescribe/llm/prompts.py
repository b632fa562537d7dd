"""
Chat prompt construction.

Every model call in changescribe is built here: the commit message
request and its repair follow-up, and the three pull request passes
(snapshot, condensation, synthesis). Builders return a list of chat
messages ready for :meth:`CompletionClient.complete`.
"""

from __future__ import annotations

from textwrap import dedent
from typing import Dict, List, Sequence

from changescribe.grammar.conventional_commit import format_violations, sanitize
from changescribe.grammar.message_model import ConventionalCommitMessage
from changescribe.summary.commit_model import MODE_RELEASE, Commit, headings_for
from changescribe.vcs.change_set import ChangeSet


Message = Dict[str, str]

NOT_PROVIDED = "(not provided)"
PASS2_UNAVAILABLE = "(pass2 unavailable)"

# ~4 characters per token; leaves room for the system prompt.
MAX_USER_CONTENT_CHARS = 24_000
DIFF_SLACK_CHARS = 500

COMMIT_RULES = dedent(
    """
    Commit message format: <type>: <description>
    Types (lowercase, required): chore, deprecate, feat, fix, release
    Breaking changes: append ! after the type (e.g., fix!: ...)
    Description: required, under 256 characters, imperative mood, no trailing period
    Body: optional. If present, use exactly three bullets in this order:
    - change: ...
    - why: ...
    - risk: ...
    Body lines must be under 256 characters each.
    Footer: optional lines after a blank line following the body. Each line must be under 256 characters.
    Do not include a scope.
    Output only the final commit text, no markdown or code fences.
    """
).strip()


def build_commit_messages(change_set: ChangeSet) -> List[Message]:
    """Build the commit message request for ``change_set``.

    The full diff fills whatever remains of the user content budget
    after the summary, file list, stats and per-file details.
    """
    files_block = "\n\n".join(
        f"### {item.file} ({item.type})\n{item.changes}" for item in change_set.file_analysis
    )
    summary_section = (
        "Summary:\n"
        f"- Modified {len(change_set.modified_files)} files\n"
        f"- Branch: {change_set.current_branch}\n"
        f"- Previous commit: {change_set.last_commit}\n\n"
    )
    files_section = f"Files:\n{change_set.file_changes}\n\n"
    stats_section = f"Stats:\n{change_set.diff_stats}\n\n"
    details_section = f"Details:\n{files_block}\n\n"

    used = len(summary_section) + len(files_section) + len(stats_section) + len(details_section)
    diff_budget = max(0, MAX_USER_CONTENT_CHARS - used - DIFF_SLACK_CHARS)
    diff_section = (
        f"Full diff (truncated):\n{change_set.detailed_diff[:diff_budget]}\n" if diff_budget > 0 else ""
    )

    user_content = (
        "Analyze these changes and produce a single conventional commit:\n\n"
        + summary_section
        + files_section
        + stats_section
        + details_section
        + diff_section
    )
    system_content = (
        "You are an AI assistant tasked with generating a git commit message based on the "
        "staged code changes provided below. Follow these rules.\n\n" + COMMIT_RULES
    )
    return [
        {"role": "system", "content": system_content},
        {"role": "user", "content": user_content},
    ]


def build_repair_messages(
    content: str,
    reasoning: str,
    message: ConventionalCommitMessage,
    violations: Sequence[str],
) -> List[Message]:
    """Ask the model to fix ``message`` so it no longer breaks ``violations``."""
    raw = sanitize("\n".join(part for part in (content, reasoning) if part))
    user_content = "\n".join(
        [
            "Violations:",
            format_violations(list(violations)),
            "",
            "Current commit:",
            message.render(),
            "",
            "Original model output (for context):",
            raw or NOT_PROVIDED,
        ]
    )
    return [
        {"role": "system", "content": "You fix commit messages to match these rules exactly.\n\n" + COMMIT_RULES},
        {"role": "user", "content": user_content},
    ]


def build_snapshot_messages(commits: Sequence[Commit], branch: str, base: str) -> List[Message]:
    """Pass 1: a five-Cs snapshot from commit titles only."""
    titles = "\n".join(f"- {commit.title or '(no title)'}" for commit in commits)
    return [
        {
            "role": "system",
            "content": (
                "You summarize commit headlines using a concise five-Cs style (Category, Context, "
                "Correctness, Contributions, Clarity). Keep it short and actionable."
            ),
        },
        {
            "role": "user",
            "content": "\n".join(
                [
                    f"Branch: {branch}",
                    f"Base: {base}",
                    "Commit titles (oldest to newest):",
                    titles or "(no commits)",
                    "",
                    "Return:",
                    "- A 5Cs snapshot of the branch.",
                    "- 1-2 bullet headlines per commit.",
                ]
            ),
        },
    ]


def _describe_commit(commit: Commit) -> str:
    lines = [
        f"SHA: {commit.sha}",
        f"Title: {commit.title or '(no title)'}",
        f"Body:\n{commit.body or '(no body)'}",
    ]
    if commit.stat:
        lines.append(f"Stat:\n{commit.stat}")
    if commit.diff:
        lines.append(f"Diff:\n{commit.diff}")
    lines.append("---")
    return "\n".join(lines)


def build_condensation_messages(chunk: Sequence[Commit]) -> List[Message]:
    """Pass 2: condensed bullets for each commit of one chunk."""
    return [
        {
            "role": "system",
            "content": (
                "You are producing compact, high-signal summaries per commit: 2-3 bullets each "
                "(change, rationale, risk/test note). Flag any breaking changes or migrations."
            ),
        },
        {
            "role": "user",
            "content": "\n".join(
                [
                    "Commits (oldest to newest):",
                    "\n".join(_describe_commit(commit) for commit in chunk),
                    "",
                    "Return for each commit:",
                    "- Title-aligned bullet: what changed + why.",
                    "- Risk or test note if visible.",
                    "Keep outputs brief; do not restate bodies.",
                ]
            ),
        },
    ]


def build_synthesis_messages(
    mode: str,
    condensed: Sequence[str],
    branch: str,
    base: str,
    issue: str,
    snapshot: str,
    commit_titles: str,
) -> List[Message]:
    """Pass 3: the final summary with the fixed headings for ``mode``."""
    if mode == MODE_RELEASE:
        system_content = (
            "You write release PR summaries for QA to production. Be concise, concrete, and "
            "action-oriented. Do not include markdown fences."
        )
        request = "Write a release PR summary in this exact order (use these exact headings):"
        rules = ['- If unknown, write: "Unknown".']
    else:
        system_content = (
            "You write PR summaries that are easy to review. Be concise, specific, and "
            "action-oriented. Do not include markdown fences."
        )
        request = "Write a PR summary in this exact order (use these exact headings):"
        rules = [
            '- If the issue is unknown, write: "Related: (not provided)".',
            '- If testing is unknown, write: "Testing: (not provided)".',
        ]

    lines = [
        f"Branch: {branch}",
        f"Base: {base}",
        "",
        "Inputs (condensed commit summaries):",
        "\n\n".join(condensed) or NOT_PROVIDED,
        "",
        "Additional context (5Cs snapshot):",
        snapshot or NOT_PROVIDED,
        "",
        "Commit titles:",
        commit_titles or NOT_PROVIDED,
        "",
        request,
        *headings_for(mode),
        "",
        "Rules:",
        *rules,
        "- Prefer bullets. Be thorough but not rambly.",
        "",
        f"Issue hint: {issue or NOT_PROVIDED}",
    ]
    return [
        {"role": "system", "content": system_content},
        {"role": "user", "content": "\n".join(lines)},
    ]
