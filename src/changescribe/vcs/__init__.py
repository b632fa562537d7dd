"""
Version control and code hosting integrations.

This package contains the :class:`GitClient` used to collect staged
changes and commit ranges, and the :class:`GhClient` used to create or
update pull requests through the GitHub CLI.
"""

from .git_client import GitClient, GitError  # noqa: F401
from .hosting_client import GhClient, GhError  # noqa: F401
