"""
Configuration loader for changescribe.

Configuration comes from environment variables. A ``.env.local`` file in
the working directory is loaded first with :mod:`dotenv`; variables that
are already set in the environment take precedence over the file.

The provider is chosen by which credential is present, in this order:

* ``CEREBRAS_API_KEY`` selects Cerebras.
* ``GROQ_API_KEY`` selects Groq.

Both expose an OpenAI-compatible chat completion API, so only the base
URL, default model and a few request extras differ. If no credential is
found, or a numeric variable cannot be parsed, a :class:`ConfigError`
is raised.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from dotenv import load_dotenv


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


DEFAULT_ENV_FILE = ".env.local"
DEFAULT_PR_BASE = "main"
DEFAULT_PR_OUT = ".pr-summaries/PR_SUMMARY.md"
DEFAULT_PR_LIMIT = 400
DEFAULT_REQUEST_TIMEOUT = 120.0


class ConfigError(Exception):
    """Raised when the environment does not provide a usable configuration."""

    pass


@dataclass(frozen=True)
class ProviderSpec:
    """Static description of an OpenAI-compatible provider."""

    name: str
    env_key: str
    base_url: str
    default_model: str
    extra_params: Dict[str, Any] = field(default_factory=dict)


PROVIDERS: Tuple[ProviderSpec, ...] = (
    ProviderSpec(
        name="cerebras",
        env_key="CEREBRAS_API_KEY",
        base_url="https://api.cerebras.ai/v1",
        default_model="gpt-oss-120b",
    ),
    ProviderSpec(
        name="groq",
        env_key="GROQ_API_KEY",
        base_url="https://api.groq.com/openai/v1",
        default_model="openai/gpt-oss-120b",
        # Groq-only parameter; other providers reject it.
        extra_params={"reasoning_effort": "high"},
    ),
)


@dataclass(frozen=True)
class Settings:
    """Process-wide settings, built once at startup.

    Attributes
    ----------
    provider : ProviderSpec
        The provider selected by the available credentials.
    api_key : str
        Credential for ``provider``.
    commit_model : str
        Model used for commit messages.
    pr_model : str
        Model used for the pull request summary passes.
    request_timeout : float
        HTTP timeout in seconds for a single completion request.
    pr_base, pr_out, pr_limit, pr_issue
        Defaults for the ``pr`` command options.
    """

    provider: ProviderSpec
    api_key: str
    commit_model: str
    pr_model: str
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    pr_base: str = DEFAULT_PR_BASE
    pr_out: str = DEFAULT_PR_OUT
    pr_limit: int = DEFAULT_PR_LIMIT
    pr_issue: str = ""


def select_provider(environ: Mapping[str, str]) -> Optional[Tuple[ProviderSpec, str]]:
    """Return the first provider whose credential is set, with its key."""
    for spec in PROVIDERS:
        key = environ.get(spec.env_key, "").strip()
        if key:
            return spec, key
    return None


def _first_set(environ: Mapping[str, str], *names: str) -> str:
    for name in names:
        value = environ.get(name, "").strip()
        if value:
            return value
    return ""


def _parse_number(environ: Mapping[str, str], name: str, default, kind):
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return kind(raw)
    except ValueError as exc:
        raise ConfigError(f"'{name}' must be a number, got {raw!r}") from exc


def load_settings(
    environ: Optional[Mapping[str, str]] = None,
    env_file: Optional[Union[str, Path]] = DEFAULT_ENV_FILE,
) -> Settings:
    """Load settings from the environment.

    Args:
        environ: Mapping to read instead of ``os.environ``. When given,
                 ``env_file`` is not loaded.
        env_file: Dotenv file merged into ``os.environ`` before reading.
                  ``None`` disables it.

    Returns:
        The validated :class:`Settings`.

    Raises:
        ConfigError: If no provider credential is set or a numeric
                     variable is malformed.
    """
    if environ is None:
        if env_file is not None and Path(env_file).is_file():
            load_dotenv(env_file, override=False)
            logger.debug("Loaded environment file %s", env_file)
        environ = os.environ

    selected = select_provider(environ)
    if selected is None:
        names = " or ".join(spec.env_key for spec in PROVIDERS)
        logger.error("No provider credential found in the environment")
        raise ConfigError(f"No API key found. Set {names} in {DEFAULT_ENV_FILE}")
    provider, api_key = selected

    commit_model = _first_set(environ, "CHANGESCRIBE_MODEL", "GROQ_MODEL") or provider.default_model
    pr_model = (
        _first_set(environ, "GROQ_PR_MODEL", "CHANGESCRIBE_MODEL", "GROQ_MODEL")
        or provider.default_model
    )

    limit = _parse_number(environ, "PR_SUMMARY_LIMIT", DEFAULT_PR_LIMIT, int)
    timeout = _parse_number(environ, "CHANGESCRIBE_TIMEOUT", DEFAULT_REQUEST_TIMEOUT, float)
    if timeout <= 0:
        raise ConfigError("'CHANGESCRIBE_TIMEOUT' must be positive")

    settings = Settings(
        provider=provider,
        api_key=api_key,
        commit_model=commit_model,
        pr_model=pr_model,
        request_timeout=timeout,
        pr_base=_first_set(environ, "PR_SUMMARY_BASE") or DEFAULT_PR_BASE,
        pr_out=_first_set(environ, "PR_SUMMARY_OUT") or DEFAULT_PR_OUT,
        pr_limit=limit,
        pr_issue=_first_set(environ, "PR_SUMMARY_ISSUE"),
    )
    logger.debug(
        "Using provider %s (commit model %s, PR model %s)",
        provider.name,
        commit_model,
        pr_model,
    )
    return settings
