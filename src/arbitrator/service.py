"""Request handler for the arbitrator tools.

One ArbitratorService handles every tool call:

1. enhance_code_generation  - route to a code/generation backend, run CodeEnhancer
2. verify_solution          - route to a code/verification backend, run VerificationEnhancer
3. optimize_prompt          - route to a reasoning/analysis backend, run PromptEnhancer
4. get_context_files        - local discovery only, returns JSON

Arguments are validated with pydantic. Field names follow the camelCase
tool schema (``taskDescription``), snake_case names are accepted too.
"""

import json
import logging
from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr, ValidationError

from arbitrator.config import Settings, load_settings
from arbitrator.context_engine import ContextDiscoverer
from arbitrator.enhancers import CodeEnhancer, PromptEnhancer, VerificationEnhancer
from arbitrator.errors import InvalidArgumentsError, NoCapableBackendError, UnknownToolError
from arbitrator.providers import ModelProvider, ProviderFactory
from arbitrator.routing import CapabilityRouter, TaskRequirement
from arbitrator.templates import TemplateStore

logger = logging.getLogger(__name__)


class ToolName(str, Enum):
    ENHANCE_CODE_GENERATION = "enhance_code_generation"
    VERIFY_SOLUTION = "verify_solution"
    OPTIMIZE_PROMPT = "optimize_prompt"
    GET_CONTEXT_FILES = "get_context_files"


# ── Argument models ────────────────────────────────────

class ToolArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class EnhanceCodeArgs(ToolArgs):
    task_description: StrictStr = Field(alias="taskDescription")
    project_context: StrictStr = Field("", alias="projectContext")
    language: StrictStr = ""
    domain: StrictStr = ""
    files: list[StrictStr] = Field(default_factory=list)
    model: StrictStr = ""


class VerifySolutionArgs(ToolArgs):
    code: StrictStr
    language: StrictStr
    task_description: StrictStr = Field("", alias="taskDescription")
    files: list[StrictStr] = Field(default_factory=list)
    model: StrictStr = ""


class OptimizePromptArgs(ToolArgs):
    original_prompt: StrictStr = Field(alias="originalPrompt")
    domain: StrictStr = ""
    files: list[StrictStr] = Field(default_factory=list)
    model: StrictStr = ""


class ContextFilesArgs(ToolArgs):
    file_path: StrictStr = Field(alias="filePath")
    max_files: int | None = Field(None, alias="maxFiles", ge=0)
    include_tests: StrictBool = Field(True, alias="includeTests")
    include_docs: StrictBool = Field(True, alias="includeDocs")


ARG_MODELS: dict[ToolName, type[ToolArgs]] = {
    ToolName.ENHANCE_CODE_GENERATION: EnhanceCodeArgs,
    ToolName.VERIFY_SOLUTION: VerifySolutionArgs,
    ToolName.OPTIMIZE_PROMPT: OptimizePromptArgs,
    ToolName.GET_CONTEXT_FILES: ContextFilesArgs,
}

# (domain, task_type) each model-backed tool is routed with
TOOL_REQUIREMENTS: dict[ToolName, tuple[str, str]] = {
    ToolName.ENHANCE_CODE_GENERATION: ("code", "generation"),
    ToolName.VERIFY_SOLUTION: ("code", "verification"),
    ToolName.OPTIMIZE_PROMPT: ("reasoning", "analysis"),
}


def parse_arguments(tool: ToolName, arguments: Mapping[str, Any] | None) -> ToolArgs:
    """Validate raw tool arguments.

    Raises:
        InvalidArgumentsError: If required fields are missing or mistyped.
    """
    try:
        return ARG_MODELS[tool].model_validate(dict(arguments or {}))
    except ValidationError as e:
        logger.error(f"Invalid {tool.value} arguments: {e}")
        raise InvalidArgumentsError(f"Invalid {tool.value} arguments: {e}") from e


class ArbitratorService:
    """Validates, routes and runs tool calls.

    Usage:
        service = ArbitratorService(load_settings())
        text = await service.handle("verify_solution", {"code": src, "language": "python"})
        await service.aclose()
    """

    def __init__(
        self,
        settings: Settings | None = None,
        factory: ProviderFactory | None = None,
        router: CapabilityRouter | None = None,
        templates: TemplateStore | None = None,
    ):
        self.settings = settings or load_settings()
        self.factory = factory or ProviderFactory(self.settings)
        self.router = router or CapabilityRouter()
        self.templates = templates or TemplateStore.default()

        self.code_enhancer = CodeEnhancer(
            self.templates, ContextDiscoverer(self.settings.scan_config()))
        self.verification_enhancer = VerificationEnhancer(self.templates)
        self.prompt_enhancer = PromptEnhancer(self.templates)

    async def handle(self, tool: ToolName | str, arguments: Mapping[str, Any] | None) -> str:
        """Run one tool call and return its text result.

        Raises:
            UnknownToolError: For a tool name that is not handled.
            InvalidArgumentsError: If the arguments fail validation.
            NoCapableBackendError: If no reachable backend fits the task.
            BackendError: If the chosen backend fails to answer.
            FileNotFoundError: If get_context_files is given a missing file.
        """
        try:
            tool = ToolName(tool)
        except ValueError as e:
            raise UnknownToolError(f"Unknown tool: {tool}") from e

        logger.info(f"Received tool call: {tool.value}")
        args = parse_arguments(tool, arguments)

        if tool == ToolName.ENHANCE_CODE_GENERATION:
            return await self.enhance_code(args)
        if tool == ToolName.VERIFY_SOLUTION:
            return await self.verify_solution(args)
        if tool == ToolName.OPTIMIZE_PROMPT:
            return await self.optimize_prompt(args)
        return await self.get_context_files(args)

    async def route(self, tool: ToolName, language: str | None = None) -> ModelProvider:
        """Pick the backend for ``tool``.

        Raises:
            NoCapableBackendError: If the router finds no suitable backend.
        """
        domain, task_type = TOOL_REQUIREMENTS[tool]
        requirement = TaskRequirement(domain, task_type, (language or "").lower() or None)
        backend = await self.router.select_backend(
            requirement, self.factory.configured_providers())
        if backend is None:
            raise NoCapableBackendError(domain, task_type, requirement.language)
        return backend

    async def enhance_code(self, args: EnhanceCodeArgs) -> str:
        logger.info(f"Enhancing code for task: {args.task_description[:50]}...")
        backend = await self.route(ToolName.ENHANCE_CODE_GENERATION, args.language)
        return await self.code_enhancer.enhance(
            backend,
            args.task_description,
            project_context=args.project_context,
            language=args.language,
            domain=args.domain,
            files=args.files,
            model=args.model,
        )

    async def verify_solution(self, args: VerifySolutionArgs) -> str:
        logger.info(f"Verifying {args.language} code solution")
        backend = await self.route(ToolName.VERIFY_SOLUTION, args.language)
        return await self.verification_enhancer.verify(
            backend,
            args.code,
            args.language,
            task_description=args.task_description,
            files=args.files,
            model=args.model,
        )

    async def optimize_prompt(self, args: OptimizePromptArgs) -> str:
        logger.info(f"Optimizing prompt: {args.original_prompt[:50]}...")
        backend = await self.route(ToolName.OPTIMIZE_PROMPT)
        return await self.prompt_enhancer.optimize(
            backend,
            args.original_prompt,
            domain=args.domain,
            files=args.files,
            model=args.model,
        )

    async def get_context_files(self, args: ContextFilesArgs) -> str:
        """Discover context for one file and return it as JSON."""
        logger.info(f"Finding context files for: {args.file_path}")
        discoverer = ContextDiscoverer(self.settings.scan_config(args.max_files))
        result = await discoverer.discover_all(
            args.file_path,
            include_tests=args.include_tests,
            include_docs=args.include_docs,
        )
        return json.dumps(result.to_dict(), indent=2)

    async def aclose(self) -> None:
        await self.factory.aclose()
