import pytest


PROVIDER_ENV_VARS = (
    "CEREBRAS_API_KEY",
    "GROQ_API_KEY",
    "CHANGESCRIBE_MODEL",
    "CHANGESCRIBE_TIMEOUT",
    "GROQ_MODEL",
    "GROQ_PR_MODEL",
    "PR_SUMMARY_BASE",
    "PR_SUMMARY_OUT",
    "PR_SUMMARY_LIMIT",
    "PR_SUMMARY_ISSUE",
)


@pytest.fixture(autouse=True)
def isolate_provider_env(monkeypatch):
    """Remove provider credentials and overrides from the environment.

    Tests that need a credential set it explicitly, so a developer's real
    keys never reach a test (or a mocked HTTP call).
    """
    for name in PROVIDER_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield
