"""
Data model for generated commit messages.

The :class:`ConventionalCommitMessage` is the unit that the grammar
engine builds from model output, validates, and repairs. It is rendered
to the final commit text with :meth:`ConventionalCommitMessage.render`.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ConventionalCommitMessage:
    """Representation of a Conventional Commit message.

    Attributes
    ----------
    title : str
        The header line, ``<type>[!]: <subject>``.
    body : str
        Either empty or exactly three lines: ``- change:``, ``- why:``
        and ``- risk:``.
    footer : str
        Newline-joined reference lines (``Refs:``, ``Fixes:``, ...), or
        empty.
    scope : str
        Parenthesized scope that was present on the matched title line
        and removed from ``title``. Empty when the model wrote none.
    """

    title: str
    body: str = ""
    footer: str = ""
    scope: str = ""

    def render(self) -> str:
        """Return the full commit text with blank lines between sections."""
        sections = [self.title]
        if self.body:
            sections.append(self.body)
        if self.footer:
            sections.append(self.footer)
        return "\n\n".join(sections)
