"""
Model provider registry.

Built once at process start from the configured credentials: one backend per
provider family. The registry is immutable and passed explicitly to the agent
runner, so tests can hand it fake pydantic-ai models instead.
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable

from pydantic_ai.models import Model

from ..config import PROVIDER_PRIORITY, PROVIDERS, Settings
from ..errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelBackend:
    """Public description of a configured backend. Holds no credentials."""

    id: str
    name: str
    provider: str
    model: str
    is_available: bool = True


@dataclass(frozen=True)
class RegisteredBackend:
    """A backend descriptor with the pydantic-ai model that serves it."""

    backend: ModelBackend
    model: Model

    @property
    def id(self) -> str:
        return self.backend.id


def _openai(model_name: str, api_key: str) -> Model:
    from pydantic_ai.models.openai import OpenAIChatModel
    from pydantic_ai.providers.openai import OpenAIProvider

    return OpenAIChatModel(model_name, provider=OpenAIProvider(api_key=api_key))


def _anthropic(model_name: str, api_key: str) -> Model:
    from pydantic_ai.models.anthropic import AnthropicModel
    from pydantic_ai.providers.anthropic import AnthropicProvider

    return AnthropicModel(model_name, provider=AnthropicProvider(api_key=api_key))


def _google(model_name: str, api_key: str) -> Model:
    from pydantic_ai.models.google import GoogleModel
    from pydantic_ai.providers.google import GoogleProvider

    return GoogleModel(model_name, provider=GoogleProvider(api_key=api_key))


def _mistral(model_name: str, api_key: str) -> Model:
    from pydantic_ai.models.mistral import MistralModel
    from pydantic_ai.providers.mistral import MistralProvider

    return MistralModel(model_name, provider=MistralProvider(api_key=api_key))


# Provider SDKs are imported on first use so only configured families need them
MODEL_FACTORIES: dict[str, Callable[[str, str], Model]] = {
    "openai": _openai,
    "anthropic": _anthropic,
    "google": _google,
    "mistral": _mistral,
}


class ModelRegistry:
    """Immutable catalog of configured language-model backends."""

    def __init__(
        self,
        backends: list[RegisteredBackend],
        priority: tuple[str, ...] = PROVIDER_PRIORITY,
    ):
        if not backends:
            raise ConfigurationError(
                "No LLM backend configured. Set at least one of: "
                + ", ".join(PROVIDERS[p]["env_key"] for p in PROVIDER_PRIORITY)
            )

        by_provider: dict[str, RegisteredBackend] = {}
        for entry in backends:
            provider = entry.backend.provider
            if provider in by_provider:
                raise ConfigurationError(f"Duplicate backend for provider '{provider}'")
            by_provider[provider] = entry

        # Registered families first in priority order, then any others by name
        order = [p for p in priority if p in by_provider]
        order += sorted(p for p in by_provider if p not in order)
        self._order = tuple(order)
        self._backends = MappingProxyType({by_provider[p].id: by_provider[p] for p in order})

    @classmethod
    def from_settings(cls, settings: Settings) -> "ModelRegistry":
        """Register one backend per provider whose API key is configured.

        Raises:
            ConfigurationError: If no provider credential is present.
        """
        backends = []
        for provider in PROVIDER_PRIORITY:
            credentials = settings.provider_credentials.get(provider)
            if credentials is None:
                continue
            api_key, model_name = credentials
            backends.append(
                RegisteredBackend(
                    backend=ModelBackend(
                        id=provider,
                        name=PROVIDERS[provider]["display_name"]
                        if model_name == PROVIDERS[provider]["model"]
                        else f"{provider.title()} {model_name}",
                        provider=provider,
                        model=model_name,
                    ),
                    model=MODEL_FACTORIES[provider](model_name, api_key),
                )
            )
            logger.info("Registered %s backend (%s)", provider, model_name)

        if not backends:
            logger.error("No LLM initialized. Missing API keys.")
        return cls(backends)

    def get(self, provider_id: str | None = None) -> RegisteredBackend:
        """Selected backend if registered and available, else the first by priority."""
        if provider_id:
            entry = self._backends.get(provider_id)
            if entry is not None and entry.backend.is_available:
                return entry
            logger.info("Backend '%s' not available, using default", provider_id)

        for entry in self._backends.values():
            if entry.backend.is_available:
                return entry
        raise ConfigurationError("No available LLM backend")

    def list_available(self) -> list[ModelBackend]:
        """Descriptors for a selection surface. Never exposes credentials."""
        return [entry.backend for entry in self._backends.values() if entry.backend.is_available]

    def __contains__(self, provider_id: str) -> bool:
        return provider_id in self._backends

    def __len__(self) -> int:
        return len(self._backends)
