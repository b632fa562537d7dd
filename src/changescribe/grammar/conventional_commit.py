"""
Parsing and validation of Conventional Commit messages.

Language models rarely return a clean commit message. They wrap it in
code fences, prefix it with commentary, put part of it in a separate
reasoning field, or invent their own body layout. The functions in this
module turn that free-form text into a :class:`ConventionalCommitMessage`
and report every rule the result still breaks:

* :func:`sanitize` removes code fences and backticks.
* :func:`build_conventional_commit` finds the first title line matching
  the grammar ``<type>[!]: <subject>`` and normalizes the body.
* :func:`extract_structured_body` rewrites labeled lines into the fixed
  ``- change:`` / ``- why:`` / ``- risk:`` body plus footer lines.
* :func:`find_violations` lists the broken rules, in check order.

The repair round-trip that feeds violations back to the model lives in
:mod:`changescribe.llm.commit_message_generator`.
"""

from __future__ import annotations

import re
from typing import List, Optional, Tuple

from changescribe.grammar.message_model import ConventionalCommitMessage


COMMIT_TYPES = ("chore", "deprecate", "feat", "fix", "release")
MAX_LINE_LENGTH = 256
NOT_PROVIDED = "(not provided)"

BODY_PREFIXES = ("- change:", "- why:", "- risk:")
FOOTER_PREFIXES = ("Footer:", "Refs:", "Ref:", "Fixes:", "BREAKING CHANGE:")

_TYPES_PATTERN = "|".join(COMMIT_TYPES)

OPENING_FENCE_RE = re.compile(r"\A```.*?\n", re.DOTALL)
CLOSING_FENCE_RE = re.compile(r"\n```\Z")
NEWLINE_SPLIT_RE = re.compile(r"\r?\n")
BULLET_LINE_RE = re.compile(r"^[-*]\s+")

# Scanning grammar. A scope is tolerated here so that it can be reported
# as a violation instead of making the whole line unparsable.
TITLE_RE = re.compile(
    rf"^(?P<type>{_TYPES_PATTERN})(?P<scope>\([^)\n]*\))?(?P<breaking>!)?:\s*(?P<subject>.+)$",
    re.IGNORECASE | re.MULTILINE,
)
# Finalized grammar, checked against the rendered title.
TITLE_VALIDATION_RE = re.compile(rf"^({_TYPES_PATTERN})!?:\s+")


def sanitize(text: Optional[str]) -> str:
    """Strip code fences and backticks from model output.

    Backticks are removed everywhere because the message ends up on a
    command line and in logs, where they would trigger shell command
    substitution.

    >>> sanitize("```text\\nfeat: add `x`\\n```")
    'feat: add x'
    """
    if not text:
        return ""
    result = text.strip()
    result = OPENING_FENCE_RE.sub("", result, count=1)
    result = CLOSING_FENCE_RE.sub("", result, count=1)
    result = result.replace("`", "")
    return result.strip()


def strip_wrapping_quotes(value: str) -> str:
    """Remove one pair of matching single or double quotes around ``value``."""
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
        return value[1:-1]
    return value


def build_conventional_commit(
    content: Optional[str],
    reasoning: Optional[str] = "",
) -> Optional[ConventionalCommitMessage]:
    """Build a commit message from the model's content and reasoning text.

    Parameters
    ----------
    content : str, optional
        The primary completion text.
    reasoning : str, optional
        Secondary text some providers return next to the content. It is
        searched after the content.

    Returns
    -------
    Optional[ConventionalCommitMessage]
        The message built from the first title line with a non-empty
        subject, or ``None`` if no line matches the title grammar.
    """
    text = sanitize("\n".join(part for part in (content, reasoning) if part))
    if not text:
        return None

    match = None
    for candidate in TITLE_RE.finditer(text):
        if candidate.group("subject").strip():
            match = candidate
            break
    if match is None:
        return None

    breaking = "!" if match.group("breaking") else ""
    subject = strip_wrapping_quotes(match.group("subject").strip())
    scope = (match.group("scope") or "")[1:-1]
    title = f"{match.group('type')}{breaking}: {subject}"

    body, footer = extract_structured_body(text)
    return ConventionalCommitMessage(title=title, body=body, footer=footer, scope=scope)


def extract_structured_body(text: str) -> Tuple[str, str]:
    """Collect labeled lines into the fixed three-line body and a footer.

    Lines are matched after trimming and removing a leading ``-`` or
    ``*`` bullet. ``change:``, ``why:`` and ``risk:`` are matched without
    regard to case; ``testing:`` fills the risk line only when no risk
    line was given. Footer prefixes are case-sensitive and their lines
    are kept verbatim, in the order found.

    Returns
    -------
    Tuple[str, str]
        ``(body, footer)``. Both are empty when nothing labeled was found.
    """
    fields = {"change": "", "why": "", "risk": ""}
    footer_lines: List[str] = []

    for line in NEWLINE_SPLIT_RE.split(text):
        trimmed = line.strip()
        if not trimmed:
            continue
        unbulleted = BULLET_LINE_RE.sub("", trimmed, count=1)
        lower = unbulleted.lower()
        if lower.startswith("change:"):
            fields["change"] = unbulleted[len("change:"):].strip()
        elif lower.startswith("why:"):
            fields["why"] = unbulleted[len("why:"):].strip()
        elif lower.startswith("risk:"):
            fields["risk"] = unbulleted[len("risk:"):].strip()
        elif lower.startswith("testing:") and not fields["risk"]:
            fields["risk"] = f"testing: {unbulleted[len('testing:'):].strip()}"
        elif unbulleted.startswith(FOOTER_PREFIXES):
            footer_lines.append(unbulleted)

    if not any(fields.values()) and not footer_lines:
        return "", ""

    body = "\n".join(
        f"- {name}: {fields[name] or NOT_PROVIDED}" for name in ("change", "why", "risk")
    )
    return body, "\n".join(footer_lines)


def find_violations(message: ConventionalCommitMessage) -> List[str]:
    """Return the rules ``message`` breaks, in check order.

    Title checks are independent of each other and all reported. Body
    line checks stop at the first offending line.
    """
    violations: List[str] = []
    title = message.title or ""

    if not title:
        violations.append("title is missing")
    if len(title) > MAX_LINE_LENGTH:
        violations.append(f"title exceeds {MAX_LINE_LENGTH} characters")
    if not TITLE_VALIDATION_RE.match(title):
        violations.append("title does not match required type format")
    if "(" in title or message.scope:
        violations.append("title includes a scope")
    subject = title.split(":", 1)[1].strip() if ":" in title else ""
    if not subject:
        violations.append("description is empty")
    if subject.endswith("."):
        violations.append("description ends with a period")

    if message.body:
        lines = [line for line in NEWLINE_SPLIT_RE.split(message.body) if line]
        if len(lines) != len(BODY_PREFIXES):
            violations.append("body must have exactly three bullets")
        for index, line in enumerate(lines):
            if len(line) > MAX_LINE_LENGTH:
                violations.append(f"body line exceeds {MAX_LINE_LENGTH} characters")
                break
            if index >= len(BODY_PREFIXES) or not line.startswith(BODY_PREFIXES[index]):
                violations.append("body bullets must be change/why/risk in order")
                break

    if message.footer:
        for line in NEWLINE_SPLIT_RE.split(message.footer):
            if len(line) > MAX_LINE_LENGTH:
                violations.append(f"footer line exceeds {MAX_LINE_LENGTH} characters")
                break

    return violations


def format_violations(violations: List[str]) -> str:
    """Render violations as a bullet list."""
    return "\n".join(f"- {violation}" for violation in violations)
