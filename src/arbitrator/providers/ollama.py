"""Ollama backend (``/api/tags``, ``/api/chat``, ``/api/generate``)."""

import logging
from typing import Any

import httpx

from arbitrator.errors import BackendError

from .base import (
    CapabilityProfile,
    CompositePrompt,
    ModelProvider,
    PromptInput,
    RequestOptions,
    as_prompt_input,
    read_file_blocks,
)

logger = logging.getLogger(__name__)


class OllamaProvider(ModelProvider):
    """Talks to a local Ollama server.

    With a system message the chat endpoint is used; otherwise the plain
    generate endpoint, with attached files appended under a
    "Reference Files" heading.
    """

    name = "ollama"
    default_endpoint = "http://127.0.0.1:11434"

    def _base_profile(self) -> CapabilityProfile:
        return CapabilityProfile.create(
            "chat", ["conversation", "assistance"],
            performance_metrics={"accuracy": 0.85, "speed": 0.8},
        )

    def _code_profile(self) -> CapabilityProfile:
        return CapabilityProfile.create(
            "code", ["generation", "explanation", "verification"],
            language_support=["python", "javascript",
                              "typescript", "go", "rust", "java"],
            specializations=["functional", "web"],
            performance_metrics={"accuracy": 0.82, "speed": 0.8},
        )

    def _reasoning_profile(self) -> CapabilityProfile:
        return CapabilityProfile.create(
            "reasoning", ["analysis", "problemSolving", "chainOfThought"],
            performance_metrics={"accuracy": 0.78, "speed": 0.75},
        )

    async def _tags(self) -> list[dict[str, Any]]:
        client = await self._client()
        resp = await client.get("/api/tags")
        resp.raise_for_status()
        return resp.json().get("models") or []

    async def test_connection(self) -> bool:
        try:
            models = await self._tags()
        except (httpx.HTTPError, ValueError) as e:
            logger.info(f"Ollama not reachable at {self.endpoint}: {e}")
            return False

        if not self.default_model and models:
            self.default_model = models[0].get("name", "")
            logger.info(
                f"Using first available Ollama model as default: {self.default_model}")
        logger.debug(f"Ollama reachable at {self.endpoint}")
        return True

    async def get_available_models(self) -> list[str]:
        try:
            return [m["name"] for m in await self._tags() if "name" in m]
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Failed to list Ollama models: {e}")
            return []

    def _build_request(
        self,
        prompt: PromptInput,
        options: RequestOptions,
        model: str,
    ) -> tuple[str, dict[str, Any]]:
        body: dict[str, Any] = {
            "model": model,
            "options": {
                "temperature": options.temperature if options.temperature is not None else 0.7,
                "num_predict": options.max_tokens if options.max_tokens is not None else 2000,
            },
            "stream": False,
        }
        if options.stop:
            body["options"]["stop"] = list(options.stop)

        blocks = read_file_blocks(prompt.files, self.attachment_limits) if isinstance(
            prompt, CompositePrompt) else []

        if options.system_message:
            user_content = "\n\n".join([p for p in [prompt.text] if p] + blocks)
            body["messages"] = [
                {"role": "system", "content": options.system_message},
                {"role": "user", "content": user_content},
            ]
            return "/api/chat", body

        text = prompt.text
        if blocks:
            text += "\n\n## Reference Files\n" + "\n".join(blocks) + "\n"
        body["prompt"] = text
        return "/api/generate", body

    async def complete_prompt(
        self,
        prompt: "PromptInput | str",
        options: RequestOptions | None = None,
    ) -> str:
        prompt = as_prompt_input(prompt)
        options = (options or RequestOptions()).merged_over(self.default_options)
        model = await self._pick_model(options.model)
        path, body = self._build_request(prompt, options, model)

        logger.debug(f"Sending request to Ollama model {model} via {path}")
        try:
            client = await self._client()
            resp = await client.post(path, json=body)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            if isinstance(e, httpx.TransportError):
                self.mark_unreachable()
            raise BackendError(self.name, f"completion failed: {e}") from e

        if "messages" in body:
            return (data.get("message") or {}).get("content", "") or ""
        return data.get("response", "") or ""
