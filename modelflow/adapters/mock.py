"""
Mock adapter: answers in-process by echoing its input.

Used for simulation runs, for the demo flow, and as the fallback when a
model id cannot be resolved and simulation is enabled.
"""

from typing import Any, Dict

from modelflow.adapters.base import AdapterResponse, ModelAdapter, ProviderRequest, Usage


MOCK_MODEL_ID = "mock-model"


class MockAdapter(ModelAdapter):
    provider_name = "Mock"
    supported_features = ("text",)
    is_local = True
    default_config = {
        "temperature": 0.7,
        "maxTokens": 512,
        "systemPrompt": "You are a helpful assistant.",
    }

    def __init__(self, model_name: str = MOCK_MODEL_ID, base_url: str = ""):
        super().__init__(model_name, base_url)

    def build_request(self, input: str, config: Dict[str, Any]) -> ProviderRequest:
        return ProviderRequest(
            url=f"mock://{self.model_name}",
            payload={"model": self.model_name, "input": input, "config": dict(config)},
        )

    def respond(self, request: ProviderRequest) -> Dict[str, Any]:
        text = request.payload.get("input", "")
        words = len(text.split())
        return {
            "output": f"Mock response to: {text}",
            "usage": {"input_tokens": words, "output_tokens": words + 3},
        }

    def parse_response(self, raw: Any) -> AdapterResponse:
        self._check_error_body(raw)
        output = self._require(raw, ["output"])
        usage = self._usage(raw, "usage")
        return AdapterResponse(
            output=str(output),
            usage=Usage(
                input_tokens=self._int(usage, "input_tokens"),
                output_tokens=self._int(usage, "output_tokens"),
            ),
            raw=raw,
        )
