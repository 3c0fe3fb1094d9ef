"""Mistral client parsing, similarity checks and generator selection."""

import json
from unittest.mock import patch

import httpx
import pytest

from config import Settings
from services.gift_suggestion_service import GiftGenerationError, GiftSuggestionService
from services.mistral_service import (
    MistralAPIError,
    MistralService,
    detect_function_call,
    extract_message_content,
)
from services.similarity_service import SimilarityChecker, is_similar_answer


def make_service(handler, **overrides):
    settings = Settings(
        MISTRAL_API_KEY="test-key",
        MISTRAL_API_URL="https://mistral.test",
        MISTRAL_AGENT_ID="agent-1",
        **overrides,
    )
    return MistralService(settings, http_client=httpx.Client(transport=httpx.MockTransport(handler)))


def test_detect_function_call_decodes_string_arguments():
    response = {"choices": [{"message": {"tool_calls": [
        {"id": "call_9", "function": {"name": "search_flights", "arguments": '{"origin": "PAR"}'}}
    ]}}]}
    assert detect_function_call(response) == ("search_flights", {"origin": "PAR"}, "call_9")
    assert detect_function_call({"choices": [{"message": {"content": "hi"}}]}) is None


def test_extract_message_content_joins_chunks():
    response = {"choices": [{"message": {"content": [{"type": "text", "text": "Bon"}, {"type": "text", "text": "jour"}]}}]}
    assert extract_message_content(response) == "Bonjour"
    with pytest.raises(MistralAPIError):
        extract_message_content({"choices": []})


def test_agent_completion_request():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": "Salut"}}]})

    service = make_service(handler)
    assert service.send_chat([{"role": "user", "content": "hi"}]) == "Salut"
    assert seen["url"] == "https://mistral.test/v1/agents/completions"
    assert seen["auth"] == "Bearer test-key"
    assert seen["body"]["agent_id"] == "agent-1"
    assert seen["body"]["stream"] is False


def test_start_conversation_uses_gift_agent():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"outputs": [{"content": "```json\n{}\n```"}]})

    service = make_service(handler, MISTRAL_GIFT_AGENT_ID="gift-agent")
    assert service.start_conversation("ideas please") == "```json\n{}\n```"
    assert seen["body"]["agent_id"] == "gift-agent"
    assert seen["body"]["inputs"] == [{"role": "user", "content": "ideas please"}]


def test_error_status_raises():
    service = make_service(lambda request: httpx.Response(429, text="rate limited"))
    with pytest.raises(MistralAPIError) as exc_info:
        service.chat_completion("same?")
    assert exc_info.value.upstream_status == 429

    empty = make_service(lambda request: httpx.Response(200, json={"outputs": []}))
    with pytest.raises(MistralAPIError):
        empty.start_conversation("ideas")


@pytest.mark.parametrize("answer, expected", [
    ("YES", True),
    ("yes, both are scarves", True),
    ("NO", False),
    ("", False),
])
def test_is_similar_answer(answer, expected):
    assert is_similar_answer(answer) is expected


def test_similarity_checker_skips_without_existing_or_key():
    class Exploding:
        def chat_completion(self, *args, **kwargs):
            raise AssertionError("should not be called")

    keyed = Settings(MISTRAL_API_KEY="k")
    assert SimilarityChecker(keyed, mistral=Exploding()).check(object(), [], "en") == (False, "")
    assert SimilarityChecker(Settings(MISTRAL_API_KEY=""), mistral=Exploding()).check(object(), [object()], "en") == (False, "")


def test_mistral_generator_requires_configuration():
    service = GiftSuggestionService(Settings(GIFT_LLM_PROVIDER="mistral", MISTRAL_API_KEY=""))
    with pytest.raises(GiftGenerationError):
        service._default_generator()


def test_gemini_provider_selected():
    class FakeGemini:
        def generate_content_sync(self, prompt, temperature=0.7):
            return prompt

    fake = FakeGemini()
    with patch("services.gift_suggestion_service.get_gemini_service", return_value=fake):
        generator = GiftSuggestionService(Settings(GIFT_LLM_PROVIDER="Gemini"))._default_generator()
    assert generator("x") == "x"
