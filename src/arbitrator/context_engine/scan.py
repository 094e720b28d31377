"""Scan configuration for context discovery."""

from dataclasses import dataclass, field

# Files above this size are never considered as context
MAX_CANDIDATE_BYTES = 1024 * 1024

DEFAULT_EXCLUDE_DIRS = frozenset(
    {"node_modules", "dist", "build", ".git", "coverage"})
DEFAULT_EXCLUDE_EXTENSIONS = frozenset({".log", ".map", ".d.ts"})
DEFAULT_PRIORITY_EXTENSIONS = (
    ".js", ".ts", ".jsx", ".tsx", ".py", ".c", ".cpp", ".h", ".hpp",
)


@dataclass(frozen=True)
class ScanConfig:
    """Immutable settings for one discovery session.

    ``max_depth`` is accepted for configuration compatibility but the
    scoring algorithm does not consult it.
    """
    max_files: int = 10
    max_depth: int = 3
    exclude_dirs: frozenset[str] = field(
        default_factory=lambda: DEFAULT_EXCLUDE_DIRS)
    exclude_extensions: frozenset[str] = field(
        default_factory=lambda: DEFAULT_EXCLUDE_EXTENSIONS)
    priority_extensions: tuple[str, ...] = DEFAULT_PRIORITY_EXTENSIONS

    def __post_init__(self):
        if self.max_files < 0:
            raise ValueError("max_files must be >= 0")
        # Accept plain lists/sets from callers
        object.__setattr__(self, "exclude_dirs", frozenset(self.exclude_dirs))
        object.__setattr__(
            self, "exclude_extensions", frozenset(self.exclude_extensions))
        object.__setattr__(
            self, "priority_extensions", tuple(self.priority_extensions))
