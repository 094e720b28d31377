"""LM Studio backend (OpenAI-compatible ``/v1`` API)."""

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


class LmStudioProvider(ModelProvider):
    """Talks to a local LM Studio server.

    Uses ``/v1/chat/completions``. Older servers without the chat route
    answer 404, in which case the request is retried once against
    ``/v1/completions`` with the prompt text only.
    """

    name = "lmstudio"
    default_endpoint = "http://127.0.0.1:1234"

    def _base_profile(self) -> CapabilityProfile:
        return CapabilityProfile.create(
            "chat", ["conversation", "assistance"],
            performance_metrics={"accuracy": 0.85, "speed": 0.7},
        )

    def _code_profile(self) -> CapabilityProfile:
        return CapabilityProfile.create(
            "code", ["generation", "explanation", "verification"],
            language_support=["python", "javascript",
                              "typescript", "c", "cpp", "java", "rust"],
            specializations=["functional", "quantum"],
            performance_metrics={"accuracy": 0.85, "speed": 0.7},
        )

    def _reasoning_profile(self) -> CapabilityProfile:
        return CapabilityProfile.create(
            "reasoning", ["analysis", "problemSolving", "chainOfThought"],
            performance_metrics={"accuracy": 0.8, "speed": 0.6},
        )

    async def _models(self) -> list[dict[str, Any]]:
        client = await self._client()
        resp = await client.get("/v1/models")
        resp.raise_for_status()
        return resp.json().get("data") or []

    async def test_connection(self) -> bool:
        try:
            models = await self._models()
        except (httpx.HTTPError, ValueError) as e:
            logger.info(f"LM Studio not reachable at {self.endpoint}: {e}")
            return False

        if not self.default_model and models:
            self.default_model = models[0].get("id", "")
        logger.debug(f"LM Studio reachable at {self.endpoint}")
        return True

    async def get_available_models(self) -> list[str]:
        try:
            return [m["id"] for m in await self._models() if "id" in m]
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Failed to list LM Studio models: {e}")
            return []

    def _chat_body(
        self,
        prompt: PromptInput,
        options: RequestOptions,
        model: str,
    ) -> dict[str, Any]:
        messages: list[dict[str, Any]] = []
        if options.system_message:
            messages.append(
                {"role": "system", "content": options.system_message})

        if isinstance(prompt, CompositePrompt):
            content = [{"type": "text", "text": prompt.text}]
            content += [{"type": "text", "text": block}
                        for block in read_file_blocks(prompt.files, self.attachment_limits)]
            messages.append({"role": "user", "content": content})
        else:
            messages.append({"role": "user", "content": prompt.text})

        body: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": options.temperature if options.temperature is not None else 0.7,
            "max_tokens": options.max_tokens if options.max_tokens is not None else 2000,
            "stream": False,
        }
        if options.stop:
            body["stop"] = list(options.stop)
        return body

    async def complete_prompt(
        self,
        prompt: "PromptInput | str",
        options: RequestOptions | None = None,
    ) -> str:
        prompt = as_prompt_input(prompt)
        options = (options or RequestOptions()).merged_over(self.default_options)
        model = await self._pick_model(options.model)
        client = await self._client()

        logger.debug(f"Sending request to LM Studio model {model}")
        try:
            resp = await client.post(
                "/v1/chat/completions", json=self._chat_body(prompt, options, model))
            if resp.status_code == 404:
                return await self._complete_legacy(client, prompt, options, model)
            resp.raise_for_status()
            choices = resp.json().get("choices") or []
        except (httpx.HTTPError, ValueError) as e:
            if isinstance(e, httpx.TransportError):
                self.mark_unreachable()
            raise BackendError(self.name, f"completion failed: {e}") from e

        if not choices:
            raise BackendError(self.name, "invalid response: no choices")
        return (choices[0].get("message") or {}).get("content", "") or ""

    async def _complete_legacy(
        self,
        client: httpx.AsyncClient,
        prompt: PromptInput,
        options: RequestOptions,
        model: str,
    ) -> str:
        logger.warning("LM Studio chat endpoint missing, trying /v1/completions")
        body: dict[str, Any] = {
            "model": model,
            "prompt": prompt.text,
            "temperature": options.temperature if options.temperature is not None else 0.7,
            "max_tokens": options.max_tokens if options.max_tokens is not None else 2000,
            "stream": False,
        }
        if options.stop:
            body["stop"] = list(options.stop)

        resp = await client.post("/v1/completions", json=body)
        resp.raise_for_status()
        choices = resp.json().get("choices") or []
        if not choices:
            raise BackendError(self.name, "invalid response: no choices")
        return choices[0].get("text", "") or ""
