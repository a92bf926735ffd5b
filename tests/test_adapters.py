"""
Tests for model adapters, the adapter registry, config validation and
provider dispatch.
"""

import pytest
import json

import httpx

from modelflow.adapters.anthropic import AnthropicAdapter
from modelflow.adapters.base import ProviderRequest
from modelflow.adapters.cohere import CohereAdapter
from modelflow.adapters.dispatch import ProviderDispatcher, StaticCredentialProvider
from modelflow.adapters.google import GoogleAdapter
from modelflow.adapters.mock import MOCK_MODEL_ID, MockAdapter
from modelflow.adapters.openai import OpenAIAdapter, OpenAISearchAdapter, TogetherAdapter
from modelflow.adapters.registry import AdapterRegistry, adapter_registry, build_registry
from modelflow.adapters.validation import ConfigValidator, type_name, validate_registry
from modelflow.config import Settings
from modelflow.errors import AdapterParseError, MissingCredentialsError, ProviderDispatchError


# ============================================================
# Adapter Tests
# ============================================================

class TestOpenAIAdapter:
    """Tests for the chat-completions adapter family."""

    def test_build_request(self):
        adapter = OpenAIAdapter("gpt-4o", "https://api.example.com/v1/")
        request = adapter.build_request("hi", {"temperature": 0.3, "systemPrompt": "Be brief."})

        assert request.url == "https://api.example.com/v1/chat/completions"
        assert request.payload["model"] == "gpt-4o"
        assert request.payload["messages"] == [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "hi"},
        ]
        assert request.payload["temperature"] == 0.3
        assert request.payload["max_tokens"] == 512

    def test_web_search_only_when_supported(self):
        config = {"enableWebSearch": True}

        plain = OpenAIAdapter("gpt-4o").build_request("hi", config)
        search = OpenAISearchAdapter("gpt-4.1").build_request("hi", config)

        assert "web_search_options" not in plain.payload
        assert search.payload["web_search_options"] == {}

    def test_parse_response(self):
        adapter = OpenAIAdapter("gpt-4o")
        response = adapter.parse_response({
            "choices": [{"message": {"content": "answer"}}],
            "usage": {"prompt_tokens": 10, "completion_tokens": 2},
        })

        assert response.output == "answer"
        assert response.usage.to_dict() == {"input_tokens": 10, "output_tokens": 2}

    def test_parse_error_body(self):
        adapter = OpenAIAdapter("gpt-4o")

        with pytest.raises(AdapterParseError, match="quota exceeded"):
            adapter.parse_response({"error": {"message": "quota exceeded"}})

        with pytest.raises(AdapterParseError, match="missing 'choices.0.message.content'"):
            adapter.parse_response({"choices": []})

    def test_temperature_range(self):
        adapter = OpenAIAdapter("gpt-4o")

        assert adapter.validate_config({"temperature": 1.8})
        assert not adapter.validate_config({"temperature": 2.5})
        assert not adapter.validate_config({"maxTokens": 0})

    def test_together_top_p(self):
        adapter = TogetherAdapter("meta-llama/x")
        request = adapter.build_request("hi", adapter.get_default_config())

        assert request.payload["top_p"] == 0.9
        assert not adapter.validate_config({"top_p": 1.5})


class TestOtherAdapters:
    """Tests for the Anthropic, Gemini, Cohere and mock adapters."""

    def test_anthropic_request(self):
        adapter = AnthropicAdapter("claude-sonnet-4-20250514", "https://api.anthropic.com/v1")
        request = adapter.build_request("hi", adapter.get_default_config())

        assert request.url == "https://api.anthropic.com/v1/messages"
        assert request.payload["system"] == "You are Claude, a helpful AI assistant."
        assert request.payload["messages"] == [{"role": "user", "content": "hi"}]
        assert request.headers["anthropic-version"]
        assert adapter.auth_headers("k") == {"x-api-key": "k"}

    def test_anthropic_response(self):
        response = AnthropicAdapter("c").parse_response({
            "content": [{"type": "text", "text": "Hello "}, {"type": "text", "text": "there"}],
            "usage": {"input_tokens": 4, "output_tokens": 2},
        })

        assert response.output == "Hello there"
        assert response.usage.output_tokens == 2

    def test_google_request_and_response(self):
        adapter = GoogleAdapter("gemini-2.0-flash", "https://g.example.com/v1beta")
        request = adapter.build_request("hi", {"temperature": 0.1, "maxTokens": 64})

        assert request.url == "https://g.example.com/v1beta/models/gemini-2.0-flash:generateContent"
        assert request.payload["generationConfig"] == {"temperature": 0.1, "maxOutputTokens": 64}

        response = adapter.parse_response({
            "candidates": [{"content": {"parts": [{"text": "gem"}]}}],
            "usageMetadata": {"promptTokenCount": 3, "candidatesTokenCount": 1},
        })
        assert response.output == "gem"
        assert response.usage.input_tokens == 3

    def test_cohere_response(self):
        response = CohereAdapter("command-r").parse_response({
            "message": {"content": [{"type": "text", "text": "co"}]},
            "usage": {"tokens": {"input_tokens": 5, "output_tokens": 1}},
        })

        assert response.output == "co"
        assert response.usage.to_dict() == {"input_tokens": 5, "output_tokens": 1}

    def test_mock_round_trip(self):
        adapter = MockAdapter()
        request = adapter.build_request("ping", adapter.get_default_config())
        response = adapter.parse_response(adapter.respond(request))

        assert adapter.is_local
        assert response.output == "Mock response to: ping"

    def test_default_config_is_a_copy(self):
        adapter = OpenAIAdapter("gpt-4o")
        config = adapter.get_default_config()
        config["temperature"] = 0.0

        assert adapter.get_default_config()["temperature"] == 0.7


class TestMalformedResponses:
    """Malformed provider bodies surface as AdapterParseError."""

    def test_openai_usage_not_an_object(self):
        with pytest.raises(AdapterParseError, match="'usage' must be an object"):
            OpenAIAdapter("gpt-4o").parse_response(
                {"choices": [{"message": {"content": "hi"}}], "usage": "n/a"}
            )

    def test_openai_content_not_a_string(self):
        with pytest.raises(AdapterParseError, match="not a string"):
            OpenAIAdapter("gpt-4o").parse_response({"choices": [{"message": {"content": 42}}]})

    def test_anthropic_bad_token_count(self):
        with pytest.raises(AdapterParseError, match="input_tokens"):
            AnthropicAdapter("c").parse_response({
                "content": [{"type": "text", "text": "hi"}],
                "usage": {"input_tokens": "many", "output_tokens": 1},
            })

    def test_anthropic_content_not_a_list(self):
        with pytest.raises(AdapterParseError, match="'content' must be a list"):
            AnthropicAdapter("c").parse_response({"content": "hi"})

    def test_google_usage_not_an_object(self):
        with pytest.raises(AdapterParseError, match="'usageMetadata' must be an object"):
            GoogleAdapter("g").parse_response({
                "candidates": [{"content": {"parts": [{"text": "gem"}]}}],
                "usageMetadata": [3, 1],
            })

    def test_google_part_text_not_a_string(self):
        with pytest.raises(AdapterParseError, match="not a string"):
            GoogleAdapter("g").parse_response({
                "candidates": [{"content": {"parts": [{"text": ["gem"]}]}}],
            })

    def test_cohere_bad_token_count(self):
        with pytest.raises(AdapterParseError, match="input_tokens"):
            CohereAdapter("command-r").parse_response({
                "message": {"content": [{"type": "text", "text": "co"}]},
                "usage": {"tokens": {"input_tokens": "abc", "output_tokens": 1}},
            })

    def test_cohere_numeric_strings_accepted(self):
        response = CohereAdapter("command-r").parse_response({
            "message": {"content": [{"type": "text", "text": "co"}]},
            "usage": {"tokens": {"input_tokens": "5", "output_tokens": 1.0}},
        })

        assert response.usage.to_dict() == {"input_tokens": 5, "output_tokens": 1}

    def test_mock_bool_token_count(self):
        with pytest.raises(AdapterParseError, match="output_tokens"):
            MockAdapter().parse_response({"output": "x", "usage": {"output_tokens": True}})


# ============================================================
# Registry Tests
# ============================================================

class BrokenAdapter(OpenAIAdapter):
    default_config = {"temperature": 9.0}


class TestAdapterRegistry:
    """Tests for AdapterRegistry."""

    def test_resolve(self):
        assert isinstance(adapter_registry.resolve("gpt-4o"), OpenAIAdapter)
        assert adapter_registry.resolve("Claude-Sonnet-4-20250514") is adapter_registry.resolve(
            "claude-sonnet-4-20250514"
        )
        assert adapter_registry.resolve("no-such-model") is None
        assert adapter_registry.resolve(None) is None

    def test_resolve_or_mock(self):
        assert isinstance(adapter_registry.resolve_or_mock("no-such-model"), MockAdapter)
        assert isinstance(adapter_registry.resolve_or_mock("gpt-4o"), OpenAIAdapter)

    def test_api_model_id(self):
        """Test registry ids can map to a different provider model id."""
        adapter = adapter_registry.resolve("claude-3.7-sonnet")
        assert adapter.model_name == "claude-3-7-sonnet-20250219"

    def test_register_rejects_duplicates(self):
        registry = AdapterRegistry()
        registry.register("m", MockAdapter())

        with pytest.raises(ValueError, match="already registered"):
            registry.register("m", MockAdapter())

    def test_register_rejects_invalid_adapter(self):
        registry = AdapterRegistry()

        with pytest.raises(ValueError, match="fails its own validation"):
            registry.register("broken", BrokenAdapter("broken"))

    def test_listing(self):
        models = {m["model_id"]: m for m in adapter_registry.list_models()}

        assert MOCK_MODEL_ID in models
        assert models["gpt-4o"]["provider"] == "OpenAI"
        assert "Anthropic" in adapter_registry.providers()
        assert "gpt-4o" in adapter_registry.models_by_provider()["OpenAI"]
        assert adapter_registry.canonical_id("GPT-4O") == "gpt-4o"

    def test_build_registry_uses_settings(self):
        registry = build_registry(Settings(OPENAI_BASE_URL="http://localhost:9999/v1"))
        assert registry.resolve("gpt-4o").base_url == "http://localhost:9999/v1"


# ============================================================
# Validation Tests
# ============================================================

class TestConfigValidator:
    """Tests for ConfigValidator."""

    validator = ConfigValidator(adapter_registry)

    def test_missing_config_is_valid(self):
        assert self.validator.validate("gpt-4o", None).valid

    def test_valid_config(self):
        result = self.validator.validate("gpt-4o", {"temperature": 0.2, "maxTokens": 100})
        assert result.valid
        assert result.errors == []

    def test_unknown_model(self):
        result = self.validator.validate("nope", {})
        assert not result.valid
        assert result.errors == ["unknown model nope"]

    def test_unknown_property(self):
        result = self.validator.validate("gpt-4o", {"frequency": 1})
        assert result.errors == ["unknown property frequency"]

    def test_bool_is_not_a_number(self):
        result = self.validator.validate("gpt-4o", {"maxTokens": True})

        assert not result.valid
        assert "wrong type for maxTokens: expected number got boolean" in result.errors

    def test_adapter_predicate(self):
        result = self.validator.validate("mistral-large", {"temperature": 1.5})
        assert result.errors == ["invalid configuration for model mistral-large"]

    def test_type_names(self):
        assert type_name(None) == "null"
        assert type_name(True) == "boolean"
        assert type_name(3) == "number"
        assert type_name([]) == "array"
        assert type_name({}) == "object"

    def test_default_registry_is_consistent(self):
        report = validate_registry(adapter_registry)
        assert report.valid, report.errors

    def test_inconsistent_provider_types(self):
        class OddOpenAI(OpenAIAdapter):
            default_config = {"temperature": 0.7, "maxTokens": 512, "systemPrompt": 1}

        registry = AdapterRegistry()
        registry.register("a", OpenAIAdapter("a"))
        registry.register("b", OddOpenAI("b"))

        report = validate_registry(registry)

        assert not report.valid
        assert any("systemPrompt" in e for e in report.errors)
        assert any("enableWebSearch" in w for w in report.warnings)


# ============================================================
# Dispatch Tests
# ============================================================

def make_dispatcher(handler, keys=None) -> ProviderDispatcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    credentials = StaticCredentialProvider(keys if keys is not None else {"OpenAI": "sk-test"})
    return ProviderDispatcher(credentials=credentials, client=client)


class TestProviderDispatcher:
    """Tests for ProviderDispatcher over a mocked transport."""

    @pytest.mark.asyncio
    async def test_successful_dispatch(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]})

        adapter = OpenAIAdapter("gpt-4o", "https://api.example.com/v1")
        request = adapter.build_request("hi", adapter.get_default_config())

        async with make_dispatcher(handler) as dispatcher:
            raw = await dispatcher.dispatch(adapter, request)

        assert adapter.parse_response(raw).output == "ok"
        assert seen["url"] == "https://api.example.com/v1/chat/completions"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"]["model"] == "gpt-4o"

    @pytest.mark.asyncio
    async def test_provider_headers(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.headers)
            return httpx.Response(200, json={"content": []})

        adapter = AnthropicAdapter("claude-sonnet-4-20250514", "https://api.example.com/v1")
        request = adapter.build_request("hi", adapter.get_default_config())

        async with make_dispatcher(handler, {"Anthropic": "ak"}) as dispatcher:
            await dispatcher.dispatch(adapter, request)

        assert seen["x-api-key"] == "ak"
        assert seen["anthropic-version"]
        assert "authorization" not in seen

    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={})

        adapter = OpenAIAdapter("gpt-4o", "https://api.example.com/v1")
        request = adapter.build_request("hi", {})

        async with make_dispatcher(handler, keys={}) as dispatcher:
            with pytest.raises(MissingCredentialsError, match="API key for provider 'OpenAI' is missing"):
                await dispatcher.dispatch(adapter, request)
        assert calls == []

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, json={"error": {"message": "Rate limit reached"}})

        adapter = OpenAIAdapter("gpt-4o", "https://api.example.com/v1")

        async with make_dispatcher(handler) as dispatcher:
            with pytest.raises(ProviderDispatchError) as exc_info:
                await dispatcher.dispatch(adapter, adapter.build_request("hi", {}))

        assert exc_info.value.status_code == 429
        assert str(exc_info.value) == "[OpenAI] HTTP Error 429: Rate limit reached"

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        adapter = OpenAIAdapter("gpt-4o", "https://api.example.com/v1")

        async with make_dispatcher(handler) as dispatcher:
            with pytest.raises(ProviderDispatchError, match="Request failed"):
                await dispatcher.dispatch(adapter, adapter.build_request("hi", {}))

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>oops</html>")

        adapter = OpenAIAdapter("gpt-4o", "https://api.example.com/v1")

        async with make_dispatcher(handler) as dispatcher:
            with pytest.raises(AdapterParseError, match="not valid JSON"):
                await dispatcher.dispatch(adapter, adapter.build_request("hi", {}))

    @pytest.mark.asyncio
    async def test_body_not_utf8(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"\x80\x81{not json")

        adapter = OpenAIAdapter("gpt-4o", "https://api.example.com/v1")

        async with make_dispatcher(handler) as dispatcher:
            with pytest.raises(AdapterParseError, match="not valid JSON"):
                await dispatcher.dispatch(adapter, adapter.build_request("hi", {}))

    @pytest.mark.asyncio
    async def test_error_status_with_undecodable_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, content=b"\x80\x81 bad gateway")

        adapter = OpenAIAdapter("gpt-4o", "https://api.example.com/v1")

        async with make_dispatcher(handler) as dispatcher:
            with pytest.raises(ProviderDispatchError) as exc_info:
                await dispatcher.dispatch(adapter, adapter.build_request("hi", {}))

        assert exc_info.value.status_code == 502
        assert "bad gateway" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_local_adapter_skips_http(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("local adapters must not use HTTP")

        adapter = MockAdapter()
        request = ProviderRequest(url="mock://x", payload={"input": "hey"})

        async with make_dispatcher(handler, keys={}) as dispatcher:
            raw = await dispatcher.dispatch(adapter, request)

        assert raw["output"] == "Mock response to: hey"
