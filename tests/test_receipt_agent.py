"""Tests for the Groq-backed receipt scanning agent and the suggestion service."""

from types import SimpleNamespace

import pytest
from groq import GroqError

from app.agents import AgentRegistry, ReceiptScanAgent
from app.api.dependencies import get_scan_agent
from app.core.db import DashboardStore
from app.core.errors import ExtractionFailure
from app.core.settings import Settings
from app.services.suggestion_service import ReceiptSuggester
from tests.conftest import PNG_BYTES, FakeScanAgent


class _Completions:
    def __init__(self, response: object = None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.kwargs: dict = {}

    def create(self, **kwargs: object) -> object:
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        return self.response


def _client(response: object = None, error: Exception | None = None) -> SimpleNamespace:
    return SimpleNamespace(chat=SimpleNamespace(completions=_Completions(response, error)))


def _completion(*contents: str | None) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=c)) for c in contents])


def _settings() -> Settings:
    return Settings(groq_api_key="test-key", scan_model="vision-model", scan_max_completion_tokens=100)


def test_scan_sends_image_and_company_list() -> None:
    """The request carries the prompt with company names and the image as a data URL."""
    client = _client(_completion(' {"amount": 10, "company": "Acme LLC"} '))
    answer = ReceiptScanAgent(client, _settings()).scan(PNG_BYTES, "image/png", ["Acme LLC", "Beta Corp"])
    if answer != '{"amount": 10, "company": "Acme LLC"}':
        msg = f"Unexpected answer: {answer!r}"
        raise AssertionError(msg)
    kwargs = client.chat.completions.kwargs
    text_part, image_part = kwargs["messages"][0]["content"]
    if "Acme LLC, Beta Corp" not in text_part["text"] or kwargs["model"] != "vision-model":
        msg = f"Unexpected request: {kwargs}"
        raise AssertionError(msg)
    if not image_part["image_url"]["url"].startswith("data:image/png;base64,"):
        msg = "Image should be sent as a base64 data URL"
        raise AssertionError(msg)
    if kwargs["max_completion_tokens"] != 100:  # noqa: PLR2004
        msg = "Completion token limit should come from settings"
        raise AssertionError(msg)


@pytest.mark.parametrize(
    ("completion", "expected"),
    [
        (SimpleNamespace(choices=[]), None),
        (SimpleNamespace(choices=None), None),
        (_completion(None), None),
        (_completion("   "), None),
        (_completion("first", "second"), "first"),
    ],
)
def test_answer_shapes(completion: object, expected: str | None) -> None:
    """No choices, empty content and multiple choices are all handled."""
    answer = ReceiptScanAgent(_client(completion), _settings()).scan(PNG_BYTES, "image/png", [])
    if answer != expected:
        msg = f"Expected {expected!r}, got {answer!r}"
        raise AssertionError(msg)


def test_api_error_becomes_extraction_failure() -> None:
    """Provider errors are wrapped so callers can degrade gracefully."""
    agent = ReceiptScanAgent(_client(error=GroqError("400 Bad Request")), _settings())
    with pytest.raises(ExtractionFailure):
        agent.scan(PNG_BYTES, "image/png", ["Acme LLC"])


def test_groq_agent_is_registered() -> None:
    """The default scan agent name resolves to the Groq agent; unknown names resolve to nothing."""
    if AgentRegistry.lookup(" Groq ") is not ReceiptScanAgent or AgentRegistry.lookup("openai") is not None:
        msg = "Groq agent should be registered"
        raise AssertionError(msg)


def test_suggester_resolves_company(store: DashboardStore, companies: list) -> None:
    """A prose answer is parsed and matched to the registry."""
    suggestion = ReceiptSuggester(store, FakeScanAgent("Amount: $2,000.00 Company: \"Beta\"")).suggest(
        PNG_BYTES, "image/png"
    )
    if (suggestion.amount, suggestion.company_id, suggestion.company_guess) != (2000.0, "c2", "Beta"):
        msg = f"Unexpected suggestion: {suggestion}"
        raise AssertionError(msg)


def test_suggester_unmatched_company(store: DashboardStore, companies: list) -> None:
    """An unknown company keeps the guess but no id."""
    suggestion = ReceiptSuggester(store, FakeScanAgent('{"amount": 5, "company": "Gamma"}')).suggest(
        PNG_BYTES, "image/png"
    )
    if (suggestion.amount, suggestion.company_id, suggestion.company_guess) != (5.0, None, "Gamma"):
        msg = f"Unexpected suggestion: {suggestion}"
        raise AssertionError(msg)


@pytest.mark.parametrize("error", [ExtractionFailure("Groq API call failed"), ValueError("bad"), KeyError("x")])
def test_suggester_swallows_errors(store: DashboardStore, companies: list, error: Exception) -> None:
    """Whatever the agent raises, the form gets an empty suggestion."""
    suggestion = ReceiptSuggester(store, FakeScanAgent(error=error)).suggest(PNG_BYTES, "image/png")
    if suggestion.amount is not None or suggestion.company_id is not None:
        msg = f"Expected an empty suggestion, got {suggestion}"
        raise AssertionError(msg)


def test_suggester_without_agent_or_image(store: DashboardStore, companies: list) -> None:
    """No agent or no image means no call and no suggestion."""
    agent = FakeScanAgent("Amount: 1")
    ReceiptSuggester(store, agent).suggest(b"", "image/png")
    ReceiptSuggester(store, None).suggest(PNG_BYTES, "image/png")
    if agent.calls:
        msg = "Agent should not be called for an empty image"
        raise AssertionError(msg)


@pytest.mark.parametrize(
    ("overrides", "expected"),
    [({"groq_api_key": ""}, None), ({"scan_agent": "nope"}, None), ({}, ReceiptScanAgent)],
)
def test_scan_agent_dependency(overrides: dict, expected: type | None) -> None:
    """Scanning is disabled without a key or with an unknown agent name."""
    values = {"groq_api_key": "test-key", "scan_agent": "groq"}
    values.update(overrides)
    agent = get_scan_agent(Settings(**values))
    if (type(agent) if agent is not None else None) is not expected:
        msg = f"Expected {expected}, got {agent!r}"
        raise AssertionError(msg)
