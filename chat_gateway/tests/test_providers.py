from chat_gateway.providers import create_provider
from chat_gateway.providers.openai_client import AzureOpenAIClient, OpenAIClient
from chat_gateway.providers.registry import get_provider_config


def test_create_provider_default(monkeypatch):
    class DummySettings:
        completion_provider = "azure"

    monkeypatch.setattr("chat_gateway.providers.settings", DummySettings())
    provider = create_provider()
    assert isinstance(provider, AzureOpenAIClient)
    assert provider.name == "azure"


def test_create_provider_explicit(monkeypatch):
    class DummySettings:
        completion_provider = "azure"

    monkeypatch.setattr("chat_gateway.providers.settings", DummySettings())
    provider = create_provider("openai")
    assert type(provider) is OpenAIClient


def test_registry_lookup_and_deployment_override():
    cfg = get_provider_config("AZURE")
    assert cfg.model("chat").provider_model == "gpt-4o-mini"
    assert cfg.model("chat", "gpt-4o").provider_model == "gpt-4o"
