"""Shared pieces of the enhancers.

Local reasoning models tend to answer with a ``<think>...</think>``
preamble followed by Markdown sections. The helpers here split that
output so each enhancer can lay it out as labelled blocks.
"""

import logging
import re
from dataclasses import dataclass

from arbitrator.providers.base import (
    CompositePrompt,
    ModelProvider,
    PromptInput,
    RequestOptions,
    TextPrompt,
)
from arbitrator.templates import TemplateStore

logger = logging.getLogger(__name__)

THINK_BLOCK = re.compile(r"<think>([\s\S]*?)</think>")


@dataclass
class SplitResponse:
    thinking: str
    body: str


def split_thinking(response: str) -> SplitResponse:
    """Separate the first ``<think>`` block from the rest of a reply."""
    match = THINK_BLOCK.search(response)
    if not match:
        return SplitResponse(thinking="", body=response)
    return SplitResponse(
        thinking=match.group(1).strip(),
        body=THINK_BLOCK.sub("", response, count=1).strip(),
    )


def section_pattern(*titles: str) -> re.Pattern[str]:
    """Regex for a ``#``/``##`` section with one of ``titles``, up to the next heading."""
    names = "|".join(re.escape(t) for t in titles)
    return re.compile(rf"(?:## |# )(?:{names})([\s\S]*?)(?=## |# |\Z)", re.IGNORECASE)


def find_section(text: str, pattern: re.Pattern[str]) -> str:
    match = pattern.search(text)
    return match.group(0) if match else ""


def build_prompt_input(text: str, files: list[str] | None) -> PromptInput:
    if files:
        return CompositePrompt(text, tuple(files))
    return TextPrompt(text)


class Enhancer:
    """Base for enhancers: holds templates and runs one completion."""

    temperature: float = 0.2
    max_tokens: int = 4000

    def __init__(self, templates: TemplateStore | None = None):
        self.templates = templates or TemplateStore.default()

    async def _complete(
        self,
        provider: ModelProvider,
        text: str,
        files: list[str] | None,
        system_message: str,
        model: str | None,
    ) -> str:
        options = RequestOptions(
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            system_message=system_message,
            model=model or None,
        )
        logger.debug(
            f"{type(self).__name__} -> {provider.name} ({len(files or [])} files)")
        return await provider.complete_prompt(build_prompt_input(text, files), options)
