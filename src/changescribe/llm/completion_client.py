"""
Client for OpenAI-compatible chat completion endpoints.

This client wraps HTTP requests to the ``/chat/completions`` endpoint
exposed by Cerebras, Groq and other OpenAI-compatible providers. On
error conditions (HTTP errors, timeouts, malformed payloads), an
:class:`LLMError` is raised that keeps the response status and body so
the caller can print full diagnostics. There is no automatic retry.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


DEFAULT_TEMPERATURE = 0.3
DEFAULT_MAX_TOKENS = 16_384

Message = Dict[str, str]


class LLMError(Exception):
    """Raised when communication with the completion provider fails.

    Attributes
    ----------
    status_code : int, optional
        HTTP status returned by the provider, if a response arrived.
    response_body : str, optional
        Raw response text, if a response arrived.
    provider : str, optional
        Name of the provider that was called.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        provider: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body
        self.provider = provider


def strip_thinking_tags(text: str) -> str:
    """Remove ``<think>``-style blocks that reasoning models emit inline.

    >>> strip_thinking_tags("<think>reasoning...</think>feat: add x")
    'feat: add x'
    """
    thinking_patterns = [
        r'<think>.*?</think>',
        r'<thinking>.*?</thinking>',
        r'<thought>.*?</thought>',
        r'<reasoning>.*?</reasoning>',
    ]
    result = text
    for pattern in thinking_patterns:
        result = re.sub(pattern, '', result, flags=re.DOTALL | re.IGNORECASE)
    return result.strip()


@dataclass
class Completion:
    """Result of a single chat completion.

    ``content`` is the assistant message text; ``reasoning`` is the
    non-standard reasoning text some providers return next to it. Either
    may be ``None``. ``raw`` keeps the decoded response for diagnostics.
    """

    content: Optional[str] = None
    reasoning: Optional[str] = None
    finish_reason: Optional[str] = None
    usage: Optional[Dict[str, Any]] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def text(self) -> str:
        """The trimmed content, or an empty string."""
        return (self.content or "").strip()


@dataclass
class CompletionClient:
    """Client for an OpenAI-compatible chat completion API.

    Parameters
    ----------
    base_url : str
        API root, e.g. ``"https://api.groq.com/openai/v1"``.
    api_key : str
        Bearer token for the provider.
    model : str
        Model name sent with every request.
    provider : str
        Provider name, used in log and error messages.
    temperature : float, optional
        Sampling temperature. Defaults to 0.3.
    max_tokens : int, optional
        Default completion budget; a call may override it.
    request_timeout : float, optional
        Timeout in seconds for HTTP requests.
    extra_params : dict, optional
        Provider-specific request fields merged into every payload.
    """

    base_url: str
    api_key: str
    model: str
    provider: str = "openai"
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS
    request_timeout: float = 120.0
    extra_params: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings, model: Optional[str] = None) -> "CompletionClient":
        """Build a client for the provider selected in ``settings``."""
        return cls(
            base_url=settings.provider.base_url,
            api_key=settings.api_key,
            model=model or settings.commit_model,
            provider=settings.provider.name,
            request_timeout=settings.request_timeout,
            extra_params=dict(settings.provider.extra_params),
        )

    def _endpoint(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"

    def complete(self, messages: List[Message], max_tokens: Optional[int] = None) -> Completion:
        """Request a chat completion.

        Parameters
        ----------
        messages : List[Dict[str, str]]
            Chat messages with ``role`` and ``content`` keys.
        max_tokens : int, optional
            Completion budget for this call.

        Returns
        -------
        Completion
            The first choice of the response.

        Raises
        ------
        LLMError
            If the request fails or the provider returns an error.
        """
        payload: Dict[str, Any] = {
            "messages": messages,
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": max_tokens if max_tokens is not None else self.max_tokens,
        }
        payload.update(self.extra_params)
        url = self._endpoint()
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        logger.debug("Sending %d message(s) to %s (%s)", len(messages), url, self.model)
        try:
            response = requests.post(
                url,
                json=payload,
                headers=headers,
                timeout=self.request_timeout,
            )
        except requests.RequestException as exc:
            logger.error("Failed to reach %s: %s", self.provider, exc)
            raise LLMError(str(exc), provider=self.provider) from exc
        if response.status_code != 200:
            logger.error(
                "%s returned non-200 status %s: %s",
                self.provider,
                response.status_code,
                response.text,
            )
            raise LLMError(
                f"{self.provider} returned status {response.status_code}",
                status_code=response.status_code,
                response_body=response.text,
                provider=self.provider,
            )
        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError) as exc:
            logger.error("Failed to parse completion response: %s", exc)
            raise LLMError(
                "Failed to parse completion response",
                status_code=response.status_code,
                response_body=response.text,
                provider=self.provider,
            ) from exc
        return self._parse(data, response)

    def _parse(self, data: Any, response) -> Completion:
        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices or not isinstance(choices[0], dict):
            raise LLMError(
                "Unexpected response structure from provider",
                status_code=response.status_code,
                response_body=response.text,
                provider=self.provider,
            )
        choice = choices[0]
        message = choice.get("message") or {}
        content = message.get("content")
        if isinstance(content, list):
            # Content-part arrays: keep the text parts in order.
            content = "".join(
                part.get("text") or ""
                for part in content
                if isinstance(part, dict) and part.get("type") == "text"
            )
        elif content is not None and not isinstance(content, str):
            raise LLMError(
                "Unexpected response structure from provider: message content is not text",
                status_code=response.status_code,
                response_body=response.text,
                provider=self.provider,
            )
        if isinstance(content, str):
            content = strip_thinking_tags(content)
        reasoning = message.get("reasoning")
        if reasoning is not None and not isinstance(reasoning, str):
            reasoning = str(reasoning)
        return Completion(
            content=content,
            reasoning=reasoning.strip() if reasoning else reasoning,
            finish_reason=choice.get("finish_reason"),
            usage=data.get("usage"),
            raw=data,
        )
