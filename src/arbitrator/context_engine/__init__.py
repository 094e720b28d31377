"""Context discovery for prompts.

Finds the files worth attaching to a request about one source file:
1. Related files: imports + siblings, ranked by relevance evidence
2. Test files: naming conventions and conventional test directories
3. Documentation: doc directories and READMEs
"""

from arbitrator.context_engine.discovery import (
    ContextDiscoverer,
    DiscoveryResult,
    extract_keywords,
)
from arbitrator.context_engine.filesystem import FileStat, FileSystem, LocalFileSystem
from arbitrator.context_engine.imports import LanguageFamily
from arbitrator.context_engine.scan import MAX_CANDIDATE_BYTES, ScanConfig

__all__ = [
    "ContextDiscoverer",
    "DiscoveryResult",
    "extract_keywords",
    "FileStat",
    "FileSystem",
    "LocalFileSystem",
    "LanguageFamily",
    "MAX_CANDIDATE_BYTES",
    "ScanConfig",
]
