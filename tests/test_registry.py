"""Tests for the model backend registry."""

import pytest
from pydantic_ai.models.function import FunctionModel
from pydantic_ai.messages import ModelResponse, TextPart

from sqlreport.agent import ModelBackend, ModelRegistry, RegisteredBackend
from sqlreport.config import Settings
from sqlreport.errors import ConfigurationError


def echo(messages, info):
    return ModelResponse(parts=[TextPart("ok")])


def backend(provider: str, available: bool = True) -> RegisteredBackend:
    return RegisteredBackend(
        backend=ModelBackend(
            id=provider,
            name=f"{provider} test model",
            provider=provider,
            model=f"{provider}-test",
            is_available=available,
        ),
        model=FunctionModel(echo),
    )


class TestModelRegistry:
    def test_empty_registry_is_a_configuration_error(self):
        with pytest.raises(ConfigurationError, match="No LLM backend configured"):
            ModelRegistry([])

    def test_duplicate_provider(self):
        with pytest.raises(ConfigurationError, match="Duplicate backend"):
            ModelRegistry([backend("openai"), backend("openai")])

    def test_backends_are_ordered_by_priority(self):
        registry = ModelRegistry([backend("mistral"), backend("anthropic"), backend("openai")])
        assert [b.id for b in registry.list_available()] == ["openai", "anthropic", "mistral"]

    def test_get_selected_backend(self):
        registry = ModelRegistry([backend("openai"), backend("anthropic")])
        assert registry.get("anthropic").id == "anthropic"

    def test_unknown_selection_falls_back_to_first(self):
        registry = ModelRegistry([backend("anthropic"), backend("google")])
        assert registry.get("openai").id == "anthropic"
        assert registry.get(None).id == "anthropic"

    def test_unavailable_backend_is_skipped(self):
        registry = ModelRegistry([backend("openai", available=False), backend("google")])

        assert registry.get("openai").id == "google"
        assert [b.id for b in registry.list_available()] == ["google"]
        assert "openai" in registry
        assert len(registry) == 2

    def test_nothing_available(self):
        registry = ModelRegistry([backend("openai", available=False)])
        with pytest.raises(ConfigurationError, match="No available LLM backend"):
            registry.get()

    def test_descriptors_hold_no_credentials(self):
        registry = ModelRegistry([backend("openai")])
        descriptor = registry.list_available()[0]
        assert set(vars(descriptor)) == {"id", "name", "provider", "model", "is_available"}


class TestFromSettings:
    def test_no_credentials(self):
        with pytest.raises(ConfigurationError):
            ModelRegistry.from_settings(Settings(provider_credentials={}))

    def test_openai_backend(self):
        settings = Settings(
            provider_credentials={"openai": ("sk-test", "gpt-4.1-mini-2025-04-14")}
        )
        registry = ModelRegistry.from_settings(settings)

        entry = registry.get()
        assert entry.id == "openai"
        assert entry.backend.name == "OpenAI GPT-4.1 Mini"
        assert entry.model.model_name == "gpt-4.1-mini-2025-04-14"

    def test_custom_model_name(self):
        settings = Settings(provider_credentials={"openai": ("sk-test", "gpt-4o")})
        registry = ModelRegistry.from_settings(settings)
        assert registry.get().backend.name == "Openai gpt-4o"
