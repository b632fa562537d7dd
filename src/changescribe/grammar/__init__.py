"""
Conventional Commit grammar for changescribe.

See :mod:`changescribe.grammar.conventional_commit` for parsing and
validation and :mod:`changescribe.grammar.message_model` for the message
data model.
"""

from .conventional_commit import (  # noqa: F401
    build_conventional_commit,
    extract_structured_body,
    find_violations,
    format_violations,
    sanitize,
)
from .message_model import ConventionalCommitMessage  # noqa: F401
