"""Local model backends.

- OllamaProvider: Ollama's native API
- LmStudioProvider: LM Studio's OpenAI-compatible API
- ProviderFactory: builds providers from Settings and caches them
"""

from arbitrator.providers.base import (
    AttachmentLimits,
    CapabilityProfile,
    CompositePrompt,
    ModelProvider,
    PromptInput,
    RequestOptions,
    TextPrompt,
    as_prompt_input,
)
from arbitrator.providers.factory import ProviderFactory, ProviderType
from arbitrator.providers.lmstudio import LmStudioProvider
from arbitrator.providers.ollama import OllamaProvider

__all__ = [
    "AttachmentLimits",
    "CapabilityProfile",
    "CompositePrompt",
    "ModelProvider",
    "PromptInput",
    "RequestOptions",
    "TextPrompt",
    "as_prompt_input",
    "ProviderFactory",
    "ProviderType",
    "LmStudioProvider",
    "OllamaProvider",
]
