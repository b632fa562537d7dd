"""
Configuration loading for changescribe.

Settings are read from the environment (and ``.env.local``). See
:mod:`changescribe.config.loader` for implementation details.
"""

from .loader import ConfigError, Settings, load_settings  # noqa: F401
