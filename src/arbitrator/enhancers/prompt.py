"""Prompt optimization enhancer."""

import logging
import re

from arbitrator.providers.base import ModelProvider
from arbitrator.templates import TemplateCategory, render

from .base import Enhancer, find_section, section_pattern, split_thinking

logger = logging.getLogger(__name__)

OPTIMIZED_PROMPT = re.compile(
    r"(?:(?:Here'?s?|is) the optimized prompt:|I've restructured the prompt:|"
    r"OPTIMIZED PROMPT:|## Optimized Prompt)([\s\S]+?)"
    r"(?:(?:\n\n|\Z)(?:Explanation:|Note:|Why this works:|Rationale:|## |----))",
    re.IGNORECASE,
)
RATIONALE_SECTION = section_pattern(
    "Optimization Rationale", "Explanation", "Why This Works", "Key Improvements")
LEADING_LABEL = re.compile(
    r"^(?:(?:Here is|Here's) (?:the|an|my) optimized prompt:?\s*|OPTIMIZED PROMPT:?\s*)",
    re.IGNORECASE,
)

DOMAIN_EXPERTISE = {
    "quantum": "You have deep knowledge of quantum computing concepts and terminology.",
    "functional": "You have deep knowledge of functional programming paradigms and best practices.",
}

OPTIMIZATION_STRUCTURE = """
Your prompt optimization should have a clear structure with these sections:

1. <think>...</think> - Begin with your analysis of the original prompt: strengths, weaknesses, ambiguities, and opportunities for improvement.

2. ## Optimized Prompt - The clearly formatted, improved prompt.

3. ## Optimization Rationale - A brief explanation of the 3-5 key improvements you made.

Focus on clarity, necessary context, precise requirements, and token efficiency."""


class PromptEnhancer(Enhancer):
    """Rewrites a user prompt with a routed backend."""

    temperature = 0.3

    async def optimize(
        self,
        provider: ModelProvider,
        original_prompt: str,
        domain: str = "",
        files: list[str] | None = None,
        model: str = "",
    ) -> str:
        """Return the optimized prompt as structured Markdown.

        Raises:
            BackendError: If the backend fails to answer.
        """
        prompt = self.build_prompt(original_prompt, domain)
        response = await self._complete(
            provider, prompt, files, self.system_message(domain), model)
        return self.post_process(response)

    def build_prompt(self, original_prompt: str, domain: str) -> str:
        template = self.templates.get(domain, TemplateCategory.PROMPT_OPTIMIZATION)
        if template:
            return render(template, original_prompt=original_prompt)

        parts = [
            "# Prompt Optimization Request\n",
            f'## Original Prompt\n"""{original_prompt}"""\n',
        ]
        if domain:
            parts.append(f"## Specialized Domain\n{domain}\n")
        parts.append(
            "Please optimize this prompt: improve clarity and structure, add "
            "necessary context and constraints, and specify requirements precisely.\n")
        return "\n".join(parts)

    @staticmethod
    def system_message(domain: str) -> str:
        message = "You are an expert prompt engineer specializing in optimizing prompts for AI assistants."
        if domain in DOMAIN_EXPERTISE:
            message += f" {DOMAIN_EXPERTISE[domain]}"
        return message + "\n" + OPTIMIZATION_STRUCTURE

    @staticmethod
    def post_process(response: str) -> str:
        split = split_thinking(response)
        rationale = ""

        match = OPTIMIZED_PROMPT.search(split.body)
        if match:
            optimized = match.group(1).strip()
            rationale = find_section(split.body, RATIONALE_SECTION).strip()
        else:
            optimized = LEADING_LABEL.sub("", split.body)

        out = ["# Optimized Prompt\n"]
        if split.thinking:
            out.append(f"## Prompt Engineering Process\n\n{split.thinking}\n")
        out.append(f"## Optimized Prompt\n\n{optimized}\n")
        if rationale:
            out.append(rationale + "\n")
        out.append(
            "## Notes\n\n"
            "The prompt above was rewritten by a local model. "
            "Use it as the primary guidance when answering the original request.")
        return "\n".join(out)
