"""Creation of AI providers from configuration."""

from __future__ import annotations

from dataclasses import dataclass, field

from gitsage.deepseek import DeepSeekProvider
from gitsage.ollama import OllamaProvider
from gitsage.openai_provider import OpenAIProvider
from gitsage.prompt import PromptTemplate
from gitsage.provider import Provider, ProviderConfig

PROVIDER_NAME_OPENAI = "openai"
PROVIDER_NAME_DEEPSEEK = "deepseek"
PROVIDER_NAME_OLLAMA = "ollama"


@dataclass
class ProviderSettings:
    """The provider section of the application configuration."""

    name: str = ""
    api_key: str = field(default="", repr=False)
    model: str = ""
    endpoint: str = ""
    temperature: float = 0.0
    max_tokens: int = 0


def new_provider(settings: ProviderSettings | None) -> Provider:
    """Create the provider named in the settings; OpenAI when none is named."""
    if settings is None:
        raise ValueError("provider configuration is required")

    config = ProviderConfig(
        api_key=settings.api_key,
        model=settings.model,
        endpoint=settings.endpoint,
        temperature=settings.temperature,
        max_tokens=settings.max_tokens,
    )

    if settings.name in (PROVIDER_NAME_OPENAI, ""):
        return OpenAIProvider(config)
    if settings.name == PROVIDER_NAME_DEEPSEEK:
        return DeepSeekProvider(config)
    if settings.name == PROVIDER_NAME_OLLAMA:
        return OllamaProvider(config)
    raise ValueError(f"unknown provider: {settings.name}")


def new_provider_with_custom_prompt(
    settings: ProviderSettings | None, system_prompt: str, user_prompt: str
) -> Provider:
    """Create a provider that uses the given prompts; empty ones fall back to defaults."""
    provider = new_provider(settings)
    template = PromptTemplate(system_prompt, user_prompt)
    if isinstance(provider, (OpenAIProvider, DeepSeekProvider, OllamaProvider)):
        provider.set_prompt_template(template)
    return provider