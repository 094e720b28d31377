"""Code generation enhancer.

Builds a code-generation prompt from a domain template, attaches the
given files plus auto-discovered context for the first one, and turns
the model reply into labelled sections:

    # Enhanced Code Solution
    ## Reasoning Process      (from <think>, if present)
    ## Implementation
    ## Key Insights           (if the model wrote one)
    ## Notes
"""

import logging
import os

from arbitrator.context_engine import ContextDiscoverer, ScanConfig
from arbitrator.providers.base import ModelProvider
from arbitrator.templates import TemplateCategory, TemplateStore, render

from .base import Enhancer, find_section, section_pattern, split_thinking

logger = logging.getLogger(__name__)

INSIGHTS_SECTION = section_pattern(
    "Key Insights", "Important Considerations", "Design Decisions")

# Auto-discovered files added on top of the caller's own files
AUTO_DISCOVER_LIMIT = 5

DOMAIN_EXPERTISE = {
    "quantum": "You excel at quantum computing code that correctly implements quantum algorithms and circuits.",
    "functional": "You excel at functional programming with immutable data structures and pure functions.",
}

RESPONSE_STRUCTURE = """
Your response should have a clear structure with three main sections:

1. <think>...</think> - Begin with a detailed thinking process that explains your approach, alternatives considered, tradeoffs, and important design decisions.

2. Implementation - The actual code solution, properly formatted with code blocks and clear function/class documentation.

3. Key Insights - After the implementation, highlight 3-5 key insights about your solution, such as performance characteristics, design patterns used, or potential extensions.

Focus on correctness, efficiency, and best practices. Include essential code comments but avoid excessive commenting."""


class CodeEnhancer(Enhancer):
    """Generates code for a task with a routed backend."""

    temperature = 0.2

    def __init__(
        self,
        templates: TemplateStore | None = None,
        discoverer: ContextDiscoverer | None = None,
    ):
        super().__init__(templates)
        self.discoverer = discoverer or ContextDiscoverer(
            ScanConfig(max_files=AUTO_DISCOVER_LIMIT))

    async def discover_context_files(self, main_file: str, max_files: int = AUTO_DISCOVER_LIMIT) -> list[str]:
        """Related, test and doc files for ``main_file``, capped at ``max_files``.

        Discovery problems are logged and yield an empty list.
        """
        try:
            result = await self.discoverer.discover_all(main_file)
        except OSError as e:
            logger.warning(f"Context discovery failed for {main_file}: {e}")
            return []
        return result.all_files[:max_files]

    async def enhance(
        self,
        provider: ModelProvider,
        task_description: str,
        project_context: str = "",
        language: str = "",
        domain: str = "",
        files: list[str] | None = None,
        model: str = "",
        auto_discover: bool = True,
    ) -> str:
        """Generate a structured code solution.

        Raises:
            BackendError: If the backend fails to answer.
        """
        files = list(files or [])
        if auto_discover and files:
            discovered = await self.discover_context_files(files[0])
            known = {os.path.abspath(f) for f in files}
            added = [f for f in discovered if os.path.abspath(f) not in known]
            files.extend(added)
            logger.info(f"Auto-discovered {len(added)} additional context files")

        prompt = self.build_prompt(
            task_description, project_context, language, domain)
        response = await self._complete(
            provider, prompt, files, self.system_message(domain, language), model)
        return self.post_process(response, language)

    def build_prompt(
        self,
        task_description: str,
        project_context: str,
        language: str,
        domain: str,
    ) -> str:
        template = self.templates.get(domain, TemplateCategory.CODE_GENERATION)
        if template:
            return render(
                template,
                task_description=task_description,
                project_context=project_context,
                language=language,
                domain=domain,
            )

        parts = ["# Code Generation Task\n", f"## Task Description\n{task_description}\n"]
        if project_context:
            parts.append(f"## Project Context\n{project_context}\n")
        if language:
            parts.append(f"## Programming Language\n{language}\n")
        if domain:
            parts.append(f"## Specialized Domain\n{domain}\n")
        parts.append(
            "Please provide a high-quality, optimized code solution for this task.\n"
            "Include explanations of key components and approach.\n")
        return "\n".join(parts)

    @staticmethod
    def system_message(domain: str, language: str) -> str:
        message = "You are an expert code generator specializing in producing high-quality, optimized solutions."
        if domain in DOMAIN_EXPERTISE:
            message += f" {DOMAIN_EXPERTISE[domain]}"
        if language:
            message += f" You are particularly skilled in {language} programming."
        return message + "\n" + RESPONSE_STRUCTURE

    @staticmethod
    def post_process(response: str, language: str) -> str:
        split = split_thinking(response)
        implementation = split.body

        insights = find_section(implementation, INSIGHTS_SECTION)
        if insights:
            implementation = implementation.replace(insights, "", 1).strip()

        if "```" not in implementation and language and implementation:
            implementation = f"```{language}\n{implementation}\n```"

        out = ["# Enhanced Code Solution\n"]
        if split.thinking:
            out.append(f"## Reasoning Process\n\n{split.thinking}\n")
        out.append(f"## Implementation\n\n{implementation}\n")
        if insights:
            out.append(insights.strip() + "\n")
        out.append(
            "## Notes\n\n"
            "The solution above was generated by a local model routed for this task. "
            "The reasoning section, when present, shows the rationale behind design decisions. "
            "Keep the core solution logic intact when adapting the code.")
        return "\n".join(out)
