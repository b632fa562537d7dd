"""
Commit message generation using an LLM.

This module provides the :class:`CommitMessageGenerator` class, which
asks the completion provider for a Conventional Commit describing a
:class:`~changescribe.vcs.change_set.ChangeSet`, validates the result
with :mod:`changescribe.grammar.conventional_commit`, and issues one
repair request when rules are broken.

A run ends in one of three ways:

* the first message is valid and returned as is;
* the repaired message is valid and returned;
* a :class:`CommitGenerationError` (no parsable message at all) or a
  :class:`CommitValidationError` (violations left after the repair) is
  raised.

There is no silent fallback message. Transport failures surface as
:class:`~changescribe.llm.completion_client.LLMError` and are not
retried.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from changescribe.grammar.conventional_commit import build_conventional_commit, find_violations
from changescribe.grammar.message_model import ConventionalCommitMessage
from changescribe.llm.completion_client import Completion, CompletionClient
from changescribe.llm.prompts import build_commit_messages, build_repair_messages
from changescribe.vcs.change_set import ChangeSet


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


class CommitGenerationError(Exception):
    """Raised when no commit message can be parsed from a completion.

    The offending :class:`Completion` is kept for diagnostics.
    """

    def __init__(self, message: str, completion: Optional[Completion] = None) -> None:
        super().__init__(message)
        self.completion = completion


class CommitValidationError(Exception):
    """Raised when the repaired message still breaks the commit rules."""

    def __init__(self, violations: List[str], message: ConventionalCommitMessage) -> None:
        super().__init__("Commit message failed validation: " + "; ".join(violations))
        self.violations = violations
        self.message = message


class CommitMessageGenerator:
    """Generate a validated Conventional Commit message for staged changes."""

    def __init__(self, client: CompletionClient) -> None:
        self.client = client
        self.repaired = False

    @staticmethod
    def _parse(completion: Completion) -> Optional[ConventionalCommitMessage]:
        return build_conventional_commit(completion.text, completion.reasoning or "")

    def generate(self, change_set: ChangeSet) -> ConventionalCommitMessage:
        """Return a commit message with no rule violations.

        Raises
        ------
        CommitGenerationError
            If the first or the repaired completion has no title line.
        CommitValidationError
            If violations remain after the single repair attempt.
        LLMError
            If a completion request fails.
        """
        self.repaired = False
        completion = self.client.complete(build_commit_messages(change_set))
        message = self._parse(completion)
        if message is None:
            raise CommitGenerationError("Failed to generate commit message", completion)

        violations = find_violations(message)
        if not violations:
            return message

        logger.info("Commit message has %d violation(s); requesting repair", len(violations))
        return self.repair(violations, message, completion)

    def repair(
        self,
        violations: List[str],
        prior: ConventionalCommitMessage,
        original: Completion,
    ) -> ConventionalCommitMessage:
        """Issue the single repair request for ``prior``.

        The prompt lists ``violations``, the rendered prior message and
        the original model text.
        """
        self.repaired = True
        messages = build_repair_messages(original.text, original.reasoning or "", prior, violations)
        completion = self.client.complete(messages)
        message = self._parse(completion)
        if message is None:
            raise CommitGenerationError("Failed to generate commit message after repair", completion)

        remaining = find_violations(message)
        if remaining:
            logger.error("Repaired commit message still invalid: %s", remaining)
            raise CommitValidationError(remaining, message)
        return message
