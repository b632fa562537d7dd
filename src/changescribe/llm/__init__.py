"""
Language model integration for changescribe.

This package contains the :class:`CompletionClient` for OpenAI-compatible
providers, the prompt builders, and the :class:`CommitMessageGenerator`
which drives commit message validation and repair.
"""

from .completion_client import Completion, CompletionClient, LLMError  # noqa: F401
from .commit_message_generator import (  # noqa: F401
    CommitGenerationError,
    CommitMessageGenerator,
    CommitValidationError,
)
