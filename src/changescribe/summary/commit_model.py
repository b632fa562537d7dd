"""
Data models for pull request summaries.

:class:`Commit` is one history entry of the range being summarized.
:class:`PrSummary` is the heading-to-body view of a final summary, and
:class:`PrSummaryResult` bundles the outputs of all three passes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Tuple


MODE_FEATURE = "feature"
MODE_RELEASE = "release"
MODES = (MODE_FEATURE, MODE_RELEASE)

FEATURE_HEADINGS: Tuple[str, ...] = (
    "What issue is this PR related to?",
    "What change does this PR add?",
    "How did you test your change?",
    "Anything you want reviewers to scrutinize?",
    "Other notes reviewers should know (risks + follow-ups)",
)

RELEASE_HEADINGS: Tuple[str, ...] = (
    "Release summary",
    "Notable user-facing changes",
    "Risk / breaking changes",
    "QA / verification",
    "Operational notes / rollout",
    "Follow-ups / TODOs",
)

NEWLINE_SPLIT_RE = re.compile(r"\r?\n")


def headings_for(mode: str) -> Tuple[str, ...]:
    """Return the exact heading sequence for ``mode``."""
    return RELEASE_HEADINGS if mode == MODE_RELEASE else FEATURE_HEADINGS


@dataclass
class Commit:
    """A commit in the range being summarized.

    Attributes
    ----------
    sha : str
        Full 40-character hash.
    title : str
        Subject line.
    body : str
        Message body, capped at 4000 characters.
    stat : str
        ``--stat`` output, filled by enrichment.
    diff : str
        Patch text capped at 3000 characters, filled by enrichment.
    """

    sha: str
    title: str
    body: str = ""
    stat: str = ""
    diff: str = ""


@dataclass
class PrSummary:
    """Final summary split into its sections.

    ``sections`` maps each heading found in the text, in document order,
    to the text below it up to the next heading.
    """

    mode: str
    sections: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def parse(cls, text: str, mode: str) -> "PrSummary":
        headings = {heading.lower(): heading for heading in headings_for(mode)}
        sections: Dict[str, List[str]] = {}
        current = None
        for line in NEWLINE_SPLIT_RE.split(text):
            key = line.strip().lower()
            if key in headings:
                current = headings[key]
                sections[current] = []
            elif current is not None:
                sections[current].append(line)
        return cls(
            mode=mode,
            sections={heading: "\n".join(lines).strip() for heading, lines in sections.items()},
        )

    def missing_headings(self) -> List[str]:
        return [heading for heading in headings_for(self.mode) if heading not in self.sections]


@dataclass
class PrSummaryResult:
    """Outputs of one pipeline run.

    Attributes
    ----------
    final_summary : str
        Pass 3 text (or the retry's text when it replaced it).
    snapshot : str
        Pass 1 text.
    condensed : List[str]
        Non-empty pass 2 outputs in chunk order.
    retried : bool
        Whether the "unknown summary" retry was issued.
    missing_headings : List[str]
        Required headings for the mode that the final summary lacks.
    """

    final_summary: str
    snapshot: str = ""
    condensed: List[str] = field(default_factory=list)
    retried: bool = False
    missing_headings: List[str] = field(default_factory=list)
