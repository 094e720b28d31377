"""Backend provider interface.

A provider wraps one locally hosted model server. The router only sees
two things: the capability profiles a provider declares, and whether
it is reachable right now. Everything else (model listing, completion)
is used by the enhancers once a provider has been chosen.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Union

import httpx

from arbitrator.errors import BackendError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CapabilityProfile:
    """What a backend declares it is good at."""
    domain: str                                  # e.g. "code", "reasoning"
    tasks: frozenset[str]                        # e.g. "generation", "verification"
    language_support: frozenset[str] = frozenset()
    specializations: frozenset[str] = frozenset()
    performance_metrics: Mapping[str, float] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        domain: str,
        tasks: list[str] | set[str] | tuple[str, ...],
        language_support: list[str] | set[str] | tuple[str, ...] = (),
        specializations: list[str] | set[str] | tuple[str, ...] = (),
        performance_metrics: Mapping[str, float] | None = None,
    ) -> "CapabilityProfile":
        """Build a profile from plain collections."""
        metrics = dict(performance_metrics or {})
        for name, value in metrics.items():
            if not 0.0 <= value <= 1.0:
                raise ValueError(
                    f"performance metric {name!r} must be in [0, 1], got {value}")
        return cls(
            domain=domain,
            tasks=frozenset(tasks),
            language_support=frozenset(language_support),
            specializations=frozenset(specializations),
            performance_metrics=metrics,
        )


# ── Prompt input ────────────────────────────────────────

@dataclass(frozen=True)
class TextPrompt:
    """A plain text prompt."""
    text: str


@dataclass(frozen=True)
class CompositePrompt:
    """Prompt text plus files whose content is attached."""
    text: str
    files: tuple[str, ...] = ()


PromptInput = Union[TextPrompt, CompositePrompt]


def as_prompt_input(value: "str | Mapping[str, Any] | PromptInput") -> PromptInput:
    """Resolve loosely typed prompt data into a PromptInput.

    Accepts a string, a ``{"text": ..., "files": [...]}`` mapping, or an
    existing PromptInput.
    """
    if isinstance(value, (TextPrompt, CompositePrompt)):
        return value
    if isinstance(value, str):
        return TextPrompt(value)
    if isinstance(value, Mapping):
        text = value.get("text", "")
        if not isinstance(text, str):
            raise TypeError("prompt text must be a string")
        files = tuple(value.get("files") or ())
        if files:
            return CompositePrompt(text, files)
        return TextPrompt(text)
    raise TypeError(f"Unsupported prompt input: {type(value).__name__}")


@dataclass(frozen=True)
class AttachmentLimits:
    """Which files may be attached to a prompt. None means unrestricted."""
    max_file_size: int | None = None
    allowed_extensions: frozenset[str] | None = None

    def rejects(self, path: Path) -> str | None:
        """Reason ``path`` may not be attached, or None if it may."""
        if (
            self.allowed_extensions is not None
            and path.suffix.lower() not in self.allowed_extensions
        ):
            return f"extension {path.suffix or '(none)'} not allowed"
        if self.max_file_size is not None:
            size = path.stat().st_size
            if size > self.max_file_size:
                return f"{size} bytes exceeds limit of {self.max_file_size}"
        return None


def format_file_block(path: Path) -> str:
    """Read a file and wrap it as a fenced Markdown block."""
    content = path.read_text(encoding="utf-8")
    lang = path.suffix.lstrip(".")
    logger.debug(f"Attached {path.name} to prompt ({len(content)} chars)")
    return f"# File: {path.name}\n```{lang}\n{content}\n```\n"


def read_file_blocks(
    files: tuple[str, ...],
    limits: AttachmentLimits | None = None,
) -> list[str]:
    """Format every attachable file.

    Unreadable files, and files rejected by ``limits``, are logged and
    skipped.
    """
    limits = limits or AttachmentLimits()
    blocks = []
    for name in files:
        path = Path(name).absolute()
        try:
            reason = limits.rejects(path)
            if reason:
                logger.warning(f"Skipping attachment {name}: {reason}")
                continue
            blocks.append(format_file_block(path))
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Error reading file {name}: {e}")
    return blocks


@dataclass
class RequestOptions:
    """Options for a completion request. None means provider default."""
    temperature: float | None = None
    max_tokens: int | None = None
    model: str | None = None
    system_message: str | None = None
    stop: list[str] = field(default_factory=list)

    def merged_over(self, defaults: "RequestOptions | None") -> "RequestOptions":
        """Return these options with unset fields taken from ``defaults``."""
        if defaults is None:
            return self
        return RequestOptions(
            temperature=self.temperature if self.temperature is not None else defaults.temperature,
            max_tokens=self.max_tokens if self.max_tokens is not None else defaults.max_tokens,
            model=self.model or defaults.model,
            system_message=self.system_message or defaults.system_message,
            stop=self.stop or list(defaults.stop),
        )


# ── Capability inference ────────────────────────────────

CODE_MODEL_MARKERS = ("code", "deepseek", "wizard", "starcoder", "codellama")
REASONING_MODEL_MARKERS = ("qwen", "llama", "mixtral", "deepseek", "mistral")
MULTILINGUAL_MODEL_MARKERS = ("qwen",)


# ── Provider base ───────────────────────────────────────

class ModelProvider(ABC):
    """Base class for model backends.

    Subclasses implement the HTTP details; this class holds the shared
    httpx client, default-model bookkeeping and the reachability cache.
    The cache is best effort: a backend may go away between the probe
    and the completion request, in which case the request raises
    BackendError.
    """

    name: str = "base"
    default_endpoint: str = ""

    def __init__(
        self,
        endpoint: str | None = None,
        default_model: str = "",
        timeout: float = 60.0,
        default_options: RequestOptions | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        attachment_limits: AttachmentLimits | None = None,
    ):
        self.endpoint = endpoint or self.default_endpoint
        self.default_model = default_model
        self.timeout = timeout
        self.default_options = default_options
        self.attachment_limits = attachment_limits or AttachmentLimits()
        self._transport = transport
        self._http: httpx.AsyncClient | None = None
        self._reachable: bool | None = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(endpoint={self.endpoint!r}, model={self.default_model!r})"

    async def _client(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(
                base_url=self.endpoint,
                timeout=self.timeout,
                headers={"Content-Type": "application/json"},
                transport=self._transport,
            )
        return self._http

    async def aclose(self) -> None:
        if self._http is not None and not self._http.is_closed:
            await self._http.aclose()

    # Capabilities

    def get_capabilities(self) -> list[CapabilityProfile]:
        """Profiles inferred from the default model's name."""
        profiles = [self._base_profile()]
        model = (self.default_model or "").lower()
        if not model:
            return profiles

        if any(marker in model for marker in CODE_MODEL_MARKERS):
            profiles.append(self._code_profile())
        if any(marker in model for marker in REASONING_MODEL_MARKERS):
            profiles.append(self._reasoning_profile())
        if any(marker in model for marker in MULTILINGUAL_MODEL_MARKERS):
            profiles.append(CapabilityProfile.create(
                "multilingual", ["translation", "understanding"],
                performance_metrics={"accuracy": 0.8, "speed": 0.7},
            ))
        return profiles

    @abstractmethod
    def _base_profile(self) -> CapabilityProfile: ...

    @abstractmethod
    def _code_profile(self) -> CapabilityProfile: ...

    @abstractmethod
    def _reasoning_profile(self) -> CapabilityProfile: ...

    # Reachability

    @abstractmethod
    async def test_connection(self) -> bool:
        """Probe the backend. Never raises for network failures."""
        ...

    async def is_reachable(self, refresh: bool = False) -> bool:
        """Cached probe result; ``refresh`` forces a new probe."""
        if self._reachable is None or refresh:
            self._reachable = await self.test_connection()
        return self._reachable

    def mark_unreachable(self) -> None:
        self._reachable = False

    # Models and completion

    @abstractmethod
    async def get_available_models(self) -> list[str]: ...

    async def supports_model(self, model_id: str) -> bool:
        return model_id in await self.get_available_models()

    async def _pick_model(self, requested: str | None) -> str:
        """Use the requested or default model, else the first available."""
        wanted = requested or self.default_model
        available = await self.get_available_models()
        if wanted in available:
            return wanted
        if not available:
            raise BackendError(self.name, "no models available on server")
        logger.warning(
            f"Model {wanted!r} not found on {self.name}; falling back to {available[0]!r}")
        return available[0]

    @abstractmethod
    async def complete_prompt(
        self,
        prompt: "PromptInput | str",
        options: RequestOptions | None = None,
    ) -> str:
        """Send a completion request and return the text.

        Raises:
            BackendError: If the backend cannot answer.
        """
        ...

    async def initialize(self, **overrides: Any) -> bool:
        """Apply overrides (endpoint, default_model, timeout) and probe."""
        if overrides.get("endpoint"):
            self.endpoint = overrides["endpoint"]
        if "timeout" in overrides:
            self.timeout = float(overrides["timeout"])
        if "default_model" in overrides:
            self.default_model = overrides["default_model"] or ""
        if overrides.get("endpoint") or "timeout" in overrides:
            # Client settings are fixed at construction
            await self.aclose()
            self._http = None
        return await self.is_reachable(refresh=True)
