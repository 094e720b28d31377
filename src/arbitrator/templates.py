"""Domain prompt templates.

Templates are keyed by domain (quantum, functional, general) and
category (code generation, verification, prompt optimization).
Placeholders use ``{{NAME}}`` syntax and are filled by ``render``.

A TemplateStore is built once and handed to the enhancers; there is no
module-level registry to mutate.
"""

import re
from enum import Enum


class TemplateCategory(str, Enum):
    CODE_GENERATION = "code-generation"
    VERIFICATION = "verification"
    PROMPT_OPTIMIZATION = "prompt-optimization"


GENERAL_DOMAIN = "general"

DEFAULT_TEMPLATES: dict[str, dict[TemplateCategory, str]] = {
    "quantum": {
        TemplateCategory.CODE_GENERATION: """# Quantum Computing Code Generation Task

## Task Description
{{TASK_DESCRIPTION}}

## Project Context
{{PROJECT_CONTEXT}}

## Programming Language/Framework
{{LANGUAGE}}

Please provide a high-quality quantum computing solution for this task.
Your solution should:
1. Correctly implement quantum circuits and algorithms
2. Follow quantum computing best practices
3. Include proper qubit management and measurement
4. Be optimized for the target quantum framework
5. Include explanations of the quantum approach used

Structure your code to be compilable and include comments explaining the quantum operations.
""",
        TemplateCategory.VERIFICATION: """# Quantum Code Verification Task

## Code to Verify
```{{LANGUAGE}}
{{CODE}}
```

## Task Description
{{TASK_DESCRIPTION}}

Please analyze this quantum computing code and provide:
1. Verification of correctness for quantum operations
2. Identification of any quantum-specific issues (decoherence, measurement, etc.)
3. Performance analysis for quantum circuit depth and operations
4. Suggestions for quantum-specific optimizations
5. Assessment of whether the code achieves the intended quantum task
""",
        TemplateCategory.PROMPT_OPTIMIZATION: '''I need to optimize a prompt about quantum computing.
The original prompt is:

"""
{{ORIGINAL_PROMPT}}
"""

Please help me restructure this prompt to:
1. Include proper quantum computing terminology
2. Specify the quantum framework/language requirements clearly
3. Structure the request in a way that will generate correct quantum code
4. Specify any quantum-specific constraints or requirements
5. Request appropriate explanations of quantum concepts
''',
    },
    "functional": {
        TemplateCategory.CODE_GENERATION: """# Functional Programming Code Generation Task

## Task Description
{{TASK_DESCRIPTION}}

## Project Context
{{PROJECT_CONTEXT}}

## Programming Language
{{LANGUAGE}}

Please provide a pure functional programming solution for this task.
Your solution should:
1. Use immutable data structures
2. Avoid side effects
3. Use higher-order functions where appropriate
4. Apply functional composition
5. Include appropriate type signatures
""",
        TemplateCategory.VERIFICATION: """# Functional Code Verification Task

## Code to Verify
```{{LANGUAGE}}
{{CODE}}
```

## Task Description
{{TASK_DESCRIPTION}}

Please analyze this functional code and provide:
1. Verification that it follows functional programming principles
2. Identification of any side effects or mutable state
3. Assessment of function purity
4. Suggestions for improving functional composition
5. Analysis of type correctness (if applicable)
""",
        TemplateCategory.PROMPT_OPTIMIZATION: '''I need to optimize a prompt about functional programming.
The original prompt is:

"""
{{ORIGINAL_PROMPT}}
"""

Please help me restructure this prompt to:
1. Properly emphasize functional programming paradigms
2. Specify immutability and side-effect constraints
3. Request appropriate functional patterns
4. Structure the request for clarity
5. Ask for type signatures if appropriate
''',
    },
    GENERAL_DOMAIN: {
        TemplateCategory.CODE_GENERATION: """# Code Generation Task

## Task Description
{{TASK_DESCRIPTION}}

## Project Context
{{PROJECT_CONTEXT}}

## Programming Language
{{LANGUAGE}}

Please provide a high-quality, optimized code solution for this task.
Your solution should:
1. Be correct and efficient
2. Follow best practices for {{LANGUAGE}}
3. Use appropriate data structures and algorithms
4. Include proper error handling
5. Be well-structured and maintainable

Include explanations of your approach and key design decisions.
""",
        TemplateCategory.VERIFICATION: """# Code Verification Task

## Code to Verify
```{{LANGUAGE}}
{{CODE}}
```

## Task Description
{{TASK_DESCRIPTION}}

Please analyze this code and provide:
1. Verification of correctness
2. Performance analysis
3. Identification of potential bugs or edge cases
4. Suggestions for improvements
5. Assessment of code quality and maintainability
""",
        TemplateCategory.PROMPT_OPTIMIZATION: '''I need to optimize a programming prompt.
The original prompt is:

"""
{{ORIGINAL_PROMPT}}
"""

Please help me restructure this prompt to:
1. Clearly specify the requirements
2. Include relevant context
3. Specify the programming language/framework precisely
4. Structure the request for clarity
5. Ask for appropriate explanations and documentation
''',
    },
}

_PLACEHOLDER = re.compile(r"\{\{([A-Z_]+)\}\}")


def render(template: str, **values: str) -> str:
    """Fill ``{{KEY}}`` placeholders from keyword arguments.

    Keys are matched case-insensitively against the upper-case
    placeholder names; unknown placeholders become empty strings.
    """
    lookup = {k.upper(): v for k, v in values.items()}
    return _PLACEHOLDER.sub(lambda m: lookup.get(m.group(1), ""), template)


class TemplateStore:
    """Lookup of prompt templates by domain and category."""

    def __init__(self, templates: dict[str, dict[TemplateCategory, str]] | None = None):
        self._templates: dict[str, dict[TemplateCategory, str]] = {
            domain: dict(categories)
            for domain, categories in (templates or {}).items()
        }

    @classmethod
    def default(cls) -> "TemplateStore":
        return cls(DEFAULT_TEMPLATES)

    @property
    def domains(self) -> list[str]:
        return list(self._templates)

    def register(self, domain: str, category: TemplateCategory | str, text: str) -> None:
        self._templates.setdefault(domain, {})[TemplateCategory(category)] = text

    def has(self, domain: str, category: TemplateCategory | str) -> bool:
        return TemplateCategory(category) in self._templates.get(domain, {})

    def get(self, domain: str | None, category: TemplateCategory | str) -> str | None:
        """Template for ``domain``, falling back to the general domain.

        Returns None when neither the domain nor the general set has
        the category.
        """
        category = TemplateCategory(category)
        key = domain if domain and domain in self._templates else GENERAL_DOMAIN
        return self._templates.get(key, {}).get(category)
