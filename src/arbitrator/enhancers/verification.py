"""Code verification enhancer."""

import logging
import re

from arbitrator.providers.base import ModelProvider
from arbitrator.templates import GENERAL_DOMAIN, TemplateCategory, render

from .base import Enhancer, find_section, section_pattern, split_thinking

logger = logging.getLogger(__name__)

QUANTUM_MARKERS = ("qiskit", "cirq", "qubit", "quantum")
QUANTUM_LANGUAGES = ("qiskit", "q#")
FUNCTIONAL_LANGUAGES = ("haskell", "ocaml", "elm", "f#")
FUNCTIONAL_CALLS = re.compile(r"fold|map|filter|reduce|pure|compose|curry")

FINDINGS_SECTION = section_pattern(
    "Key Findings", "Summary", "Important Issues", "Critical Problems")
IMPROVEMENTS_SECTION = section_pattern(
    "Suggested Improvements", "Recommendations", "Fixes", "Solutions")

DOMAIN_EXPERTISE = {
    "quantum": "You have deep expertise in quantum computing and can identify issues specific to quantum algorithms and circuits.",
    "functional": "You have deep expertise in functional programming and can identify issues related to immutability, side effects, and functional patterns.",
}

REVIEW_STRUCTURE = """
Your code review should have a clear structure with distinct sections:

1. <think>...</think> - Begin with your detailed analysis process, showing how you evaluate the code and identify potential issues.

2. Analysis sections:
   - Correctness: Does the code work as expected? Are there bugs or unhandled edge cases?
   - Performance: Algorithmic complexity and performance characteristics
   - Code Structure: Organization, modularity, and readability
   - Best Practices: Where the code follows or violates language conventions

3. Key Findings: the 3-5 most important points about the code

4. Suggested Improvements: concrete, specific changes that address the issues found

Focus on critical issues first, followed by optimization suggestions."""


def infer_domain(code: str, language: str) -> str:
    """Guess the domain of a snippet: quantum, functional or general."""
    lang = language.lower()
    if any(m in code for m in QUANTUM_MARKERS) or any(q in lang for q in QUANTUM_LANGUAGES):
        return "quantum"

    if lang in FUNCTIONAL_LANGUAGES:
        return "functional"
    if "=>" in code and "this." not in code and "class " not in code:
        return "functional"
    if len(FUNCTIONAL_CALLS.findall(code)) > 3:
        return "functional"

    return GENERAL_DOMAIN


class VerificationEnhancer(Enhancer):
    """Reviews a code solution with a routed backend."""

    temperature = 0.2

    async def verify(
        self,
        provider: ModelProvider,
        code: str,
        language: str,
        task_description: str = "",
        files: list[str] | None = None,
        model: str = "",
    ) -> str:
        """Return a structured review of ``code``.

        Raises:
            BackendError: If the backend fails to answer.
        """
        domain = infer_domain(code, language)
        logger.debug(f"Verifying {language} code as domain={domain}")
        prompt = self.build_prompt(code, language, task_description, domain)
        response = await self._complete(
            provider, prompt, files, self.system_message(domain, language), model)
        return self.post_process(response)

    def build_prompt(self, code: str, language: str, task_description: str, domain: str) -> str:
        template = self.templates.get(domain, TemplateCategory.VERIFICATION)
        if template:
            return render(template, code=code, language=language,
                          task_description=task_description)

        parts = [
            "# Code Verification Task\n",
            f"## Code to Verify\n```{language}\n{code}\n```\n",
        ]
        if task_description:
            parts.append(f"## Task Description\n{task_description}\n")
        if domain != GENERAL_DOMAIN:
            parts.append(f"## Specialized Domain\n{domain}\n")
        parts.append(
            "Please analyze this code for correctness, bugs and edge cases, "
            "performance, and code quality, and suggest improvements.\n")
        return "\n".join(parts)

    @staticmethod
    def system_message(domain: str, language: str) -> str:
        message = f"You are an expert code reviewer specializing in {language} programming."
        if domain in DOMAIN_EXPERTISE:
            message += f" {DOMAIN_EXPERTISE[domain]}"
        return message + "\n" + REVIEW_STRUCTURE

    @staticmethod
    def post_process(response: str) -> str:
        split = split_thinking(response)
        findings = find_section(split.body, FINDINGS_SECTION)
        improvements = find_section(split.body, IMPROVEMENTS_SECTION)

        out = ["# Code Verification Analysis\n"]
        if split.thinking:
            out.append(f"## Review Process and Reasoning\n\n{split.thinking}\n")
        out.append(f"## Detailed Analysis\n\n{split.body}\n")
        if not findings and not improvements:
            out.append(
                "## Key Takeaways\n\n"
                "The review did not include a findings or improvements section; "
                "read the detailed analysis above for the reviewer's conclusions.\n")
        out.append(
            "## Notes\n\n"
            "This review was generated by a local model routed for verification. "
            "Address any critical problems it identifies before presenting the solution.")
        return "\n".join(out)
