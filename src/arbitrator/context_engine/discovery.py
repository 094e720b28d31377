"""Related-file discovery for prompt context.

Given one source file, the discoverer gathers candidates from two places:

1. Imports: literals pulled out of the source by the language family's
   matchers, resolved against the source directory.
2. Siblings: files next to the source with a similar name, the same
   extension, or a related extension (.c <-> .h, .js <-> .ts, ...).

Every candidate is then scored by evidence (never subtracted):

    +5    extension is a priority extension
    +0-10 directory proximity, 10 - 2 * depth
    +2    per shared significant keyword (top 50 by frequency)
    +10   candidate mentions the source file name
    +10   source mentions the candidate file name

The highest scores win, capped at ``max_files``. Test and documentation
files are found separately by naming convention, without scoring.

Usage:
    discoverer = ContextDiscoverer(ScanConfig(max_files=5))
    related = await discoverer.get_context_files("src/app.js")
    tests = await discoverer.find_test_files("src/app.js")
"""

import logging
import os
import re
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .filesystem import FileSystem, LocalFileSystem
from .imports import (
    extract_import_literals,
    family_for_extension,
    is_non_file_reference,
    is_relative_literal,
)
from .scan import MAX_CANDIDATE_BYTES, ScanConfig

logger = logging.getLogger(__name__)

# Symmetric: a pair is related if either side lists the other
RELATED_EXTENSIONS: dict[str, tuple[str, ...]] = {
    ".js": (".jsx", ".ts", ".tsx", ".d.ts", ".js.map"),
    ".jsx": (".js", ".ts", ".tsx", ".d.ts", ".jsx.map"),
    ".ts": (".js", ".jsx", ".tsx", ".d.ts", ".ts.map"),
    ".tsx": (".js", ".jsx", ".ts", ".d.ts", ".tsx.map"),
    ".c": (".h", ".cpp", ".hpp", ".o"),
    ".cpp": (".h", ".c", ".hpp", ".o"),
    ".h": (".c", ".cpp", ".hpp"),
    ".hpp": (".h", ".c", ".cpp"),
    ".py": (".pyc", ".pyd", ".pyo"),
}

TEST_DIR_NAMES = ("tests", "test", "__tests__")
DOC_DIR_NAMES = ("docs", "doc", "documentation")
DOC_EXTENSIONS = (".md", ".txt", ".pdf", ".html", ".rst", ".adoc")
README_NAMES = ("README.md", "README.txt")

# Extensions tried for `<base>.test.<ext>` / `<base>.spec.<ext>`
SCRIPT_TEST_EXTENSIONS = (".js", ".ts")
# Extensions tried for `test_<base>.<ext>` / `<base>_test.<ext>`
PREFIX_TEST_EXTENSIONS = (".py",)

KEYWORD_LIMIT = 50
MIN_KEYWORD_LENGTH = 5

_NON_WORD = re.compile(r"[^\w\s]", re.ASCII)
_NUMERIC = re.compile(r"^[0-9]+$")


@dataclass
class CandidateFile:
    """A file being considered during one discovery call."""
    path: str
    score: float = 0.0


@dataclass
class DiscoveryResult:
    """Related, test and documentation files for one source file."""
    source: str
    related: list[str] = field(default_factory=list)
    tests: list[str] = field(default_factory=list)
    docs: list[str] = field(default_factory=list)

    @property
    def all_files(self) -> list[str]:
        """Union of every list, first occurrence wins."""
        return list(dict.fromkeys(self.related + self.tests + self.docs))

    def to_dict(self) -> dict[str, Any]:
        return {
            "related_files": self.related,
            "test_files": self.tests,
            "documentation_files": self.docs,
            "all_files": self.all_files,
        }


def is_related_extension(ext1: str, ext2: str) -> bool:
    return ext2 in RELATED_EXTENSIONS.get(ext1, ()) or ext1 in RELATED_EXTENSIONS.get(ext2, ())


def extract_keywords(content: str, limit: int = KEYWORD_LIMIT) -> set[str]:
    """Most frequent significant words in ``content``.

    Words shorter than five characters and pure numbers are ignored.
    """
    words = [
        word.lower()
        for word in _NON_WORD.sub(" ", content).split()
        if len(word) >= MIN_KEYWORD_LENGTH and not _NUMERIC.match(word)
    ]
    return {word for word, _ in Counter(words).most_common(limit)}


def directory_depth(from_dir: str, to_dir: str) -> int:
    """Number of path segments between two directories.

    The same directory counts as one segment (``"."``).
    """
    return len(os.path.relpath(to_dir, from_dir).split(os.sep))


def split_name(path: str) -> tuple[str, str]:
    """Return ``(base_without_extension, extension)`` of a path's file name."""
    p = Path(path)
    return p.stem, p.suffix


class ContextDiscoverer:
    """Ranks files related to a source file.

    A discoverer is read-only over its configuration, so one instance
    may serve overlapping requests.
    """

    def __init__(
        self,
        config: ScanConfig | None = None,
        fs: FileSystem | None = None,
    ):
        self.config = config or ScanConfig()
        self.fs = fs or LocalFileSystem()

    # ── Related files ─────────────────────────────────────

    async def get_context_files(self, source_path: str) -> list[str]:
        """Return up to ``max_files`` related files, best first.

        Raises:
            FileNotFoundError: If ``source_path`` does not exist.
        """
        source_path = os.path.abspath(source_path)
        if not await self.fs.exists(source_path):
            raise FileNotFoundError(
                f"Source file does not exist: {source_path}")

        source_dir = str(Path(source_path).parent)
        _, source_ext = split_name(source_path)
        source_content = await self.fs.read_text(source_path)

        imported = await self._resolve_imports(
            source_content, source_ext, source_dir)
        siblings = await self._sibling_files(source_path)

        # Union by resolved path, first occurrence wins
        source_key = str(Path(source_path).resolve())
        seen: set[str] = {source_key}
        candidates: list[str] = []
        for path in imported + siblings:
            key = str(Path(path).resolve())
            if key in seen:
                continue
            seen.add(key)
            candidates.append(path)

        scored = await self._score_candidates(
            candidates, source_path, source_content)

        # sorted() is stable, so equal scores keep discovery order
        ranked = sorted(scored, key=lambda c: c.score, reverse=True)
        return [c.path for c in ranked[:self.config.max_files]]

    async def _resolve_imports(
        self,
        content: str,
        source_ext: str,
        source_dir: str,
    ) -> list[str]:
        family = family_for_extension(source_ext)
        resolved: list[str] = []

        for literal in extract_import_literals(content, family):
            path = await self._resolve_import(literal, source_dir, source_ext)
            if path is not None:
                resolved.append(path)

        return resolved

    async def _resolve_import(
        self,
        literal: str,
        source_dir: str,
        source_ext: str,
    ) -> str | None:
        """Map an import literal to an existing file, or None."""
        if is_non_file_reference(literal):
            return None

        resolved = os.path.normpath(os.path.join(source_dir, literal))

        if not is_relative_literal(literal):
            # Local-module style: only the direct path, no package search
            return resolved if await self._is_file(resolved) else None

        if await self._is_file(resolved):
            return resolved

        if Path(resolved).suffix:
            return None

        for ext in self.config.priority_extensions:
            with_ext = f"{resolved}{ext}"
            if await self._is_file(with_ext):
                return with_ext

        index_file = str(Path(resolved) / f"index{source_ext}")
        if await self._is_file(index_file):
            return index_file

        return None

    async def _sibling_files(self, source_path: str) -> list[str]:
        source_dir = Path(source_path).parent
        source_base, source_ext = split_name(source_path)
        siblings: list[str] = []

        try:
            entries = await self.fs.list_dir(str(source_dir))
        except OSError as e:
            logger.warning(f"Error listing siblings of {source_path}: {e}")
            return siblings

        for name in entries:
            path = str(source_dir / name)
            if path == source_path:
                continue

            try:
                info = await self.fs.stat(path)
            except OSError as e:
                logger.warning(f"Error reading {path}: {e}")
                continue
            if info.is_dir:
                continue

            base, ext = split_name(path)
            if (
                base in source_base
                or source_base in base
                or ext == source_ext
                or is_related_extension(ext, source_ext)
            ):
                siblings.append(path)

        return siblings

    async def _score_candidates(
        self,
        candidates: list[str],
        source_path: str,
        source_content: str,
    ) -> list[CandidateFile]:
        source_dir = str(Path(source_path).parent)
        source_name = Path(source_path).name
        source_keywords = extract_keywords(source_content)
        scored: list[CandidateFile] = []

        for path in candidates:
            try:
                info = await self.fs.stat(path)
                if not info.is_file or info.size > MAX_CANDIDATE_BYTES:
                    continue
                content = await self.fs.read_text(path)
            except OSError as e:
                logger.warning(f"Skipping context candidate {path}: {e}")
                continue

            candidate = CandidateFile(path=path)
            _, ext = split_name(path)

            if ext in self.config.priority_extensions:
                candidate.score += 5

            depth = directory_depth(str(Path(path).parent), source_dir)
            candidate.score += max(0, 10 - depth * 2)

            shared = source_keywords & extract_keywords(content)
            candidate.score += len(shared) * 2

            if source_name in content:
                candidate.score += 10
            if Path(path).name in source_content:
                candidate.score += 10

            logger.debug(f"Context candidate {path} scored {candidate.score}")
            scored.append(candidate)

        return scored

    # ── Tests and docs ────────────────────────────────────

    async def find_test_files(self, source_path: str) -> list[str]:
        """Find test files for ``source_path`` by naming convention.

        Checks ``<base>.test.<ext>``-style names beside the source, then
        scans ``tests``/``test``/``__tests__`` in the source directory
        and its parent for files whose name contains the base name.
        """
        source_path = os.path.abspath(source_path)
        source_dir = Path(source_path).parent
        source_base, source_ext = split_name(source_path)
        found: dict[str, None] = {}

        script_exts = _unique(source_ext, *SCRIPT_TEST_EXTENSIONS)
        prefix_exts = _unique(source_ext, *PREFIX_TEST_EXTENSIONS)
        names = (
            [f"{source_base}.test{ext}" for ext in script_exts]
            + [f"{source_base}.spec{ext}" for ext in script_exts]
            + [f"test_{source_base}{ext}" for ext in prefix_exts]
            + [f"{source_base}_test{ext}" for ext in prefix_exts]
        )
        for name in names:
            path = str(source_dir / name)
            if await self._is_file(path):
                found[path] = None

        for test_dir in self._convention_dirs(source_dir, TEST_DIR_NAMES):
            for path in await self._list_files(test_dir):
                name = Path(path).name
                _, ext = split_name(path)
                if source_base in name and ext not in self.config.exclude_extensions:
                    found[path] = None

        return list(found)

    async def find_documentation_files(self, source_path: str) -> list[str]:
        """Find documentation for ``source_path``.

        Doc directories contribute files named after the source plus any
        ``index.md``; a README beside the source is always included.
        """
        source_path = os.path.abspath(source_path)
        source_dir = Path(source_path).parent
        source_base, _ = split_name(source_path)
        found: dict[str, None] = {}

        for doc_dir in self._convention_dirs(source_dir, DOC_DIR_NAMES):
            for path in await self._list_files(doc_dir):
                name = Path(path).name
                _, ext = split_name(path)
                if ext not in DOC_EXTENSIONS:
                    continue
                if source_base in name or name == "index.md":
                    found[path] = None

        for readme in README_NAMES:
            path = str(source_dir / readme)
            if await self._is_file(path):
                found[path] = None

        return list(found)

    async def discover_all(
        self,
        source_path: str,
        include_tests: bool = True,
        include_docs: bool = True,
    ) -> DiscoveryResult:
        """Run every discovery for one source file."""
        result = DiscoveryResult(
            source=os.path.abspath(source_path),
            related=await self.get_context_files(source_path),
        )
        if include_tests:
            result.tests = await self.find_test_files(source_path)
        if include_docs:
            result.docs = await self.find_documentation_files(source_path)
        return result

    # ── Helpers ───────────────────────────────────────────

    @staticmethod
    def _convention_dirs(source_dir: Path, names: tuple[str, ...]) -> list[str]:
        return [str(base / n) for base in (source_dir, source_dir.parent) for n in names]

    async def _is_file(self, path: str) -> bool:
        if not await self.fs.exists(path):
            return False
        try:
            return (await self.fs.stat(path)).is_file
        except OSError as e:
            logger.warning(f"Cannot stat {path}: {e}")
            return False

    async def _list_files(self, directory: str) -> list[str]:
        """Files directly inside ``directory``; missing dirs yield nothing."""
        if not await self.fs.exists(directory):
            return []

        try:
            names = await self.fs.list_dir(directory)
        except OSError as e:
            logger.warning(f"Error reading directory {directory}: {e}")
            return []

        files = []
        for name in names:
            path = str(Path(directory) / name)
            try:
                info = await self.fs.stat(path)
            except OSError as e:
                logger.warning(f"Skipping {path}: {e}")
                continue
            if info.is_file:
                files.append(path)
        return files


def _unique(*items: str) -> list[str]:
    return list(dict.fromkeys(i for i in items if i))
