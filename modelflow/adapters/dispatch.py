"""
Provider dispatch.

Sends built ProviderRequests to provider endpoints with httpx, injecting
credentials looked up by (user_id, provider_name, model_id). Local adapters
are answered in-process without any I/O.
"""

from typing import Any, Dict, Optional
import logging

import httpx

from modelflow.adapters.base import ModelAdapter, ProviderRequest
from modelflow.config import settings as default_settings
from modelflow.errors import (
    AdapterParseError,
    MissingCredentialsError,
    ProviderDispatchError,
)


logger = logging.getLogger(__name__)


# provider_name -> settings attribute holding its API key
PROVIDER_KEY_SETTINGS: Dict[str, str] = {
    "OpenAI": "OPENAI_API_KEY",
    "Anthropic": "ANTHROPIC_API_KEY",
    "Google Gemini": "GOOGLE_API_KEY",
    "Mistral": "MISTRAL_API_KEY",
    "Cohere": "COHERE_API_KEY",
    "XAI": "XAI_API_KEY",
    "DeepSeek": "DEEPSEEK_API_KEY",
    "Together AI": "TOGETHER_API_KEY",
}


class CredentialProvider:
    """Looks up API keys. Subclass to back it with a real secret store."""

    def get_api_key(
        self,
        provider_name: str,
        model_id: str,
        user_id: Optional[str] = None,
    ) -> Optional[str]:
        raise NotImplementedError


class SettingsCredentialProvider(CredentialProvider):
    """Reads one key per provider from application settings."""

    def __init__(self, app_settings=None):
        self.settings = app_settings or default_settings

    def get_api_key(self, provider_name, model_id, user_id=None):
        attr = PROVIDER_KEY_SETTINGS.get(provider_name)
        return getattr(self.settings, attr, None) if attr else None


class StaticCredentialProvider(CredentialProvider):
    """Keys from a fixed provider_name -> key mapping."""

    def __init__(self, keys: Dict[str, str]):
        self.keys = dict(keys)

    def get_api_key(self, provider_name, model_id, user_id=None):
        return self.keys.get(provider_name)


class ProviderDispatcher:
    """
    Async HTTP dispatcher shared by all node executions.

    Usage:
        async with ProviderDispatcher() as dispatcher:
            raw = await dispatcher.dispatch(adapter, request)
    """

    def __init__(
        self,
        credentials: Optional[CredentialProvider] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.credentials = credentials or SettingsCredentialProvider()
        self.timeout = timeout if timeout is not None else default_settings.PROVIDER_TIMEOUT
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def dispatch(
        self,
        adapter: ModelAdapter,
        request: ProviderRequest,
        model_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Any:
        """
        Send a request and return the decoded JSON body.

        Raises:
            MissingCredentialsError: No API key for the provider
            ProviderDispatchError: Network failure or non-2xx status
            AdapterParseError: Body is not JSON
        """
        if adapter.is_local:
            return adapter.respond(request)

        provider = adapter.provider_name
        api_key = self.credentials.get_api_key(provider, model_id or adapter.model_name, user_id)
        if not api_key:
            raise MissingCredentialsError(provider)

        headers = {"Content-Type": "application/json", **request.headers, **adapter.auth_headers(api_key)}

        logger.debug(f"Dispatching {request.method} {request.url} ({provider})")
        try:
            response = await self.client.request(
                request.method,
                request.url,
                json=request.payload,
                headers=headers,
            )
        except httpx.TimeoutException as e:
            raise ProviderDispatchError(provider, f"Request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise ProviderDispatchError(provider, f"Request failed: {e}") from e

        if not response.is_success:
            raise ProviderDispatchError(
                provider,
                _error_message(response),
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise AdapterParseError(provider, f"body is not valid JSON ({e})") from e

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ProviderDispatcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def _error_message(response: httpx.Response) -> str:
    """Best-effort error text from a failed provider response."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return error["message"]
        if isinstance(error, str):
            return error
        if body.get("message"):
            return str(body["message"])
    return response.reason_phrase or "Unknown error"


# Global dispatcher instance; its client is created on first use
provider_dispatcher = ProviderDispatcher()
