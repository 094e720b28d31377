"""Static import extraction.

Each language family has its own set of regex matchers. The family is
picked from the source file's extension; unknown extensions fall back
to a generic matcher for quoted paths that carry an extension.

Nothing here touches the filesystem - resolution of the captured
literals happens in the discoverer.
"""

import re
from enum import Enum


class LanguageFamily(str, Enum):
    """Source families with distinct import syntax."""
    SCRIPT = "script"      # JavaScript / TypeScript
    PYTHON = "python"
    C_LIKE = "c_like"      # C / C++ includes
    GENERIC = "generic"    # Anything else


IMPORT_PATTERNS: dict[LanguageFamily, tuple[re.Pattern[str], ...]] = {
    LanguageFamily.SCRIPT: (
        re.compile(r"""import\s+.*\s+from\s+['"]([^'"]+)['"]"""),
        re.compile(r"""import\s*\(\s*['"]([^'"]+)['"]\s*\)"""),
        re.compile(r"""require\s*\(\s*['"]([^'"]+)['"]\s*\)"""),
    ),
    LanguageFamily.PYTHON: (
        re.compile(r"import\s+([a-zA-Z0-9_.]+)"),
        re.compile(r"from\s+([a-zA-Z0-9_.]+)\s+import"),
    ),
    LanguageFamily.C_LIKE: (
        re.compile(r"""#include\s+["<]([^">]+)[">]"""),
    ),
    LanguageFamily.GENERIC: (
        re.compile(r"""['"]([^'"]+\.[a-zA-Z0-9]+)['"]"""),
    ),
}

EXTENSION_FAMILIES: dict[str, LanguageFamily] = {
    ".js": LanguageFamily.SCRIPT,
    ".jsx": LanguageFamily.SCRIPT,
    ".ts": LanguageFamily.SCRIPT,
    ".tsx": LanguageFamily.SCRIPT,
    ".mjs": LanguageFamily.SCRIPT,
    ".cjs": LanguageFamily.SCRIPT,
    ".py": LanguageFamily.PYTHON,
    ".c": LanguageFamily.C_LIKE,
    ".cpp": LanguageFamily.C_LIKE,
    ".h": LanguageFamily.C_LIKE,
    ".hpp": LanguageFamily.C_LIKE,
}

# Literals with these prefixes never name a local file
NON_FILE_PREFIXES = ("@", "http", "node:")


def family_for_extension(ext: str) -> LanguageFamily:
    return EXTENSION_FAMILIES.get(ext.lower(), LanguageFamily.GENERIC)


def extract_import_literals(content: str, family: LanguageFamily) -> list[str]:
    """Collect every captured import literal, in pattern order.

    Duplicates are kept; the caller deduplicates after resolution.
    """
    literals: list[str] = []
    for pattern in IMPORT_PATTERNS[family]:
        literals.extend(m.group(1) for m in pattern.finditer(content))
    return literals


def is_non_file_reference(literal: str) -> bool:
    """True for package scopes, URLs and scheme-style built-ins."""
    return literal.startswith(NON_FILE_PREFIXES)


def is_relative_literal(literal: str) -> bool:
    return literal.startswith(("./", "../"))
