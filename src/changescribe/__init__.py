"""
Top-level package for changescribe.

This package exposes the ``changescribe`` command via the
``changescribe.cli`` module. The command writes Conventional Commit
messages for staged changes and summarizes commit ranges into pull
request descriptions using an OpenAI-compatible completion API.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
