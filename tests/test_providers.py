"""Tests for the Ollama and LM Studio providers and the factory.

HTTP is served by httpx.MockTransport; no real server is contacted.
"""

import asyncio
import json

import httpx
import pytest

from arbitrator.config import Settings
from arbitrator.errors import BackendError
from arbitrator.providers import (
    AttachmentLimits,
    CompositePrompt,
    LmStudioProvider,
    OllamaProvider,
    ProviderFactory,
    ProviderType,
    RequestOptions,
    TextPrompt,
    as_prompt_input,
)


class Recorder:
    """MockTransport handler that records requests and serves canned routes."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request):
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, request.url.path, body))
        handler = self.routes.get(request.url.path)
        if handler is None:
            return httpx.Response(404, json={"error": "not found"})
        if callable(handler):
            return handler(request)
        return httpx.Response(200, json=handler)

    def posted(self, path):
        return [body for method, p, body in self.requests if method == "POST" and p == path]


def refuse(request):
    raise httpx.ConnectError("connection refused", request=request)


OLLAMA_TAGS = {"models": [{"name": "deepseek-coder:33b"}, {"name": "llama3:8b"}]}
LMSTUDIO_MODELS = {"data": [{"id": "deepseek-r1-distill-qwen-32b"}]}


def ollama(routes, **kwargs):
    recorder = Recorder(routes)
    provider = OllamaProvider(transport=httpx.MockTransport(recorder), **kwargs)
    return provider, recorder


def lmstudio(routes, **kwargs):
    recorder = Recorder(routes)
    provider = LmStudioProvider(transport=httpx.MockTransport(recorder), **kwargs)
    return provider, recorder


# ═══════════════════════════════════════════════════════════════
# 1. PROMPT INPUT
# ═══════════════════════════════════════════════════════════════

class TestPromptInput:
    """Test resolution of loosely typed prompts."""

    def test_string(self):
        assert as_prompt_input("hi") == TextPrompt("hi")

    def test_mapping_with_files(self):
        prompt = as_prompt_input({"text": "hi", "files": ["a.py"]})
        assert prompt == CompositePrompt("hi", ("a.py",))

    def test_mapping_without_files(self):
        assert as_prompt_input({"text": "hi", "files": []}) == TextPrompt("hi")

    def test_rejects_other_types(self):
        with pytest.raises(TypeError):
            as_prompt_input(42)

    def test_options_merge(self):
        merged = RequestOptions(temperature=0.2).merged_over(
            RequestOptions(temperature=0.7, max_tokens=100))
        assert merged.temperature == 0.2
        assert merged.max_tokens == 100


# ═══════════════════════════════════════════════════════════════
# 2. CAPABILITIES
# ═══════════════════════════════════════════════════════════════

class TestCapabilities:
    """Test capability inference from model names."""

    def test_no_model_only_base_profile(self):
        profiles = OllamaProvider().get_capabilities()
        assert [p.domain for p in profiles] == ["chat"]

    def test_code_model(self):
        profiles = OllamaProvider(default_model="deepseek-coder:33b").get_capabilities()
        domains = [p.domain for p in profiles]
        assert domains == ["chat", "code", "reasoning"]

    def test_qwen_is_multilingual(self):
        profiles = LmStudioProvider(default_model="qwen2.5-7b").get_capabilities()
        assert "multilingual" in [p.domain for p in profiles]

    def test_lmstudio_specializations(self):
        profiles = LmStudioProvider(default_model="deepseek-r1").get_capabilities()
        code = next(p for p in profiles if p.domain == "code")
        assert "quantum" in code.specializations
        assert "verification" in code.tasks


# ═══════════════════════════════════════════════════════════════
# 3. OLLAMA
# ═══════════════════════════════════════════════════════════════

class TestOllama:
    """Test the Ollama HTTP protocol."""

    def test_reachable_sets_default_model(self):
        provider, _ = ollama({"/api/tags": OLLAMA_TAGS})
        assert asyncio.run(provider.is_reachable()) is True
        assert provider.default_model == "deepseek-coder:33b"

    def test_unreachable(self):
        provider, _ = ollama({"/api/tags": refuse})
        assert asyncio.run(provider.is_reachable()) is False

    def test_probe_is_cached(self):
        provider, recorder = ollama({"/api/tags": OLLAMA_TAGS})

        async def run():
            await provider.is_reachable()
            await provider.is_reachable()
            await provider.is_reachable(refresh=True)

        asyncio.run(run())
        assert len(recorder.requests) == 2

    def test_generate_without_system_message(self):
        provider, recorder = ollama({
            "/api/tags": OLLAMA_TAGS,
            "/api/generate": {"response": "done"},
        }, default_model="llama3:8b")
        text = asyncio.run(provider.complete_prompt("write code",
                                                    RequestOptions(temperature=0.1)))
        assert text == "done"
        body = recorder.posted("/api/generate")[0]
        assert body["model"] == "llama3:8b"
        assert body["prompt"] == "write code"
        assert body["options"]["temperature"] == 0.1
        assert body["stream"] is False

    def test_chat_with_system_message_and_files(self, tmp_path):
        attached = tmp_path / "util.py"
        attached.write_text("def f(): pass\n")
        provider, recorder = ollama({
            "/api/tags": OLLAMA_TAGS,
            "/api/chat": {"message": {"role": "assistant", "content": "ok"}},
        })
        prompt = CompositePrompt("review this", (str(attached),))
        text = asyncio.run(provider.complete_prompt(
            prompt, RequestOptions(system_message="be terse")))
        assert text == "ok"
        messages = recorder.posted("/api/chat")[0]["messages"]
        assert messages[0] == {"role": "system", "content": "be terse"}
        assert "review this" in messages[1]["content"]
        assert "# File: util.py" in messages[1]["content"]
        assert "```py" in messages[1]["content"]

    def test_generate_appends_reference_files(self, tmp_path):
        attached = tmp_path / "notes.md"
        attached.write_text("remember this")
        provider, recorder = ollama({
            "/api/tags": OLLAMA_TAGS,
            "/api/generate": {"response": "done"},
        })
        prompt = CompositePrompt("task", (str(attached), str(tmp_path / "gone.txt")))
        asyncio.run(provider.complete_prompt(prompt))
        sent = recorder.posted("/api/generate")[0]["prompt"]
        assert "## Reference Files" in sent
        assert "remember this" in sent
        assert "gone.txt" not in sent

    def test_oversized_attachment_left_out(self, tmp_path):
        small = tmp_path / "small.py"
        small.write_text("x = 1\n")
        big = tmp_path / "big.py"
        big.write_text("y = 2\n" * 100)
        provider, recorder = ollama({
            "/api/tags": OLLAMA_TAGS,
            "/api/generate": {"response": "done"},
        }, attachment_limits=AttachmentLimits(max_file_size=64))
        asyncio.run(provider.complete_prompt(
            CompositePrompt("task", (str(small), str(big)))))
        sent = recorder.posted("/api/generate")[0]["prompt"]
        assert "# File: small.py" in sent
        assert "big.py" not in sent

    def test_disallowed_extension_left_out(self, tmp_path):
        allowed = tmp_path / "main.py"
        allowed.write_text("x = 1\n")
        blocked = tmp_path / "secrets.env"
        blocked.write_text("TOKEN=abc\n")
        provider, recorder = ollama({
            "/api/tags": OLLAMA_TAGS,
            "/api/generate": {"response": "done"},
        }, attachment_limits=AttachmentLimits(allowed_extensions=frozenset({".py"})))
        asyncio.run(provider.complete_prompt(
            CompositePrompt("task", (str(allowed), str(blocked)))))
        sent = recorder.posted("/api/generate")[0]["prompt"]
        assert "# File: main.py" in sent
        assert "TOKEN=abc" not in sent

    def test_unknown_model_falls_back_to_first(self):
        provider, recorder = ollama({
            "/api/tags": OLLAMA_TAGS,
            "/api/generate": {"response": "x"},
        }, default_model="missing:1b")
        asyncio.run(provider.complete_prompt("hi"))
        assert recorder.posted("/api/generate")[0]["model"] == "deepseek-coder:33b"

    def test_no_models_is_backend_error(self):
        provider, _ = ollama({"/api/tags": {"models": []}})
        with pytest.raises(BackendError):
            asyncio.run(provider.complete_prompt("hi"))

    def test_server_error_is_backend_error(self):
        provider, _ = ollama({
            "/api/tags": OLLAMA_TAGS,
            "/api/generate": lambda request: httpx.Response(500, json={}),
        })
        with pytest.raises(BackendError) as exc:
            asyncio.run(provider.complete_prompt("hi"))
        assert exc.value.backend == "ollama"

    def test_connection_drop_marks_unreachable(self):
        provider, _ = ollama({"/api/tags": OLLAMA_TAGS, "/api/generate": refuse})

        async def run():
            assert await provider.is_reachable()
            with pytest.raises(BackendError):
                await provider.complete_prompt("hi")
            return await provider.is_reachable()

        assert asyncio.run(run()) is False


# ═══════════════════════════════════════════════════════════════
# 4. LM STUDIO
# ═══════════════════════════════════════════════════════════════

class TestLmStudio:
    """Test the LM Studio HTTP protocol."""

    def test_chat_completion(self):
        provider, recorder = lmstudio({
            "/v1/models": LMSTUDIO_MODELS,
            "/v1/chat/completions": {"choices": [{"message": {"content": "answer"}}]},
        })
        text = asyncio.run(provider.complete_prompt(
            "q", RequestOptions(system_message="sys", max_tokens=50)))
        assert text == "answer"
        body = recorder.posted("/v1/chat/completions")[0]
        assert body["messages"][0] == {"role": "system", "content": "sys"}
        assert body["messages"][1] == {"role": "user", "content": "q"}
        assert body["max_tokens"] == 50

    def test_files_sent_as_content_parts(self, tmp_path):
        attached = tmp_path / "main.c"
        attached.write_text("int main(void) { return 0; }\n")
        provider, recorder = lmstudio({
            "/v1/models": LMSTUDIO_MODELS,
            "/v1/chat/completions": {"choices": [{"message": {"content": "ok"}}]},
        })
        asyncio.run(provider.complete_prompt(CompositePrompt("q", (str(attached),))))
        content = recorder.posted("/v1/chat/completions")[0]["messages"][-1]["content"]
        assert content[0] == {"type": "text", "text": "q"}
        assert "# File: main.c" in content[1]["text"]

    def test_legacy_fallback_on_404(self):
        provider, recorder = lmstudio({
            "/v1/models": LMSTUDIO_MODELS,
            "/v1/completions": {"choices": [{"text": "legacy"}]},
        })
        assert asyncio.run(provider.complete_prompt("q")) == "legacy"
        assert recorder.posted("/v1/completions")[0]["prompt"] == "q"

    def test_empty_choices_is_backend_error(self):
        provider, _ = lmstudio({
            "/v1/models": LMSTUDIO_MODELS,
            "/v1/chat/completions": {"choices": []},
        })
        with pytest.raises(BackendError):
            asyncio.run(provider.complete_prompt("q"))

    def test_supports_model(self):
        provider, _ = lmstudio({"/v1/models": LMSTUDIO_MODELS})

        async def run():
            return (await provider.supports_model("deepseek-r1-distill-qwen-32b"),
                    await provider.supports_model("other"))

        assert asyncio.run(run()) == (True, False)


# ═══════════════════════════════════════════════════════════════
# 5. FACTORY
# ═══════════════════════════════════════════════════════════════

class TestFactory:
    """Test provider construction and caching."""

    def test_same_config_same_instance(self):
        factory = ProviderFactory(Settings())
        assert factory.create("ollama") is factory.create(ProviderType.OLLAMA)

    def test_options_change_identity(self):
        factory = ProviderFactory(Settings())
        base = factory.create("ollama")
        other = factory.create("ollama", {"endpoint": "http://10.0.0.2:11434"})
        assert other is not base
        assert other.endpoint == "http://10.0.0.2:11434"
        assert factory.create("ollama", {"endpoint": "http://10.0.0.2:11434"}) is other

    def test_cache_key_ignores_option_order(self):
        k1 = ProviderFactory.cache_key(ProviderType.LMSTUDIO, {"a": 1, "b": 2})
        k2 = ProviderFactory.cache_key(ProviderType.LMSTUDIO, {"b": 2, "a": 1})
        assert k1 == k2

    def test_settings_applied(self):
        settings = Settings.model_validate({
            "providers": {"lmstudio": {"endpoint": "http://lm:1234",
                                       "default_model": "m", "timeout": 5}},
        })
        provider = ProviderFactory(settings).create("lmstudio")
        assert provider.endpoint == "http://lm:1234"
        assert provider.default_model == "m"
        assert provider.timeout == 5.0

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            ProviderFactory(Settings()).create("openai")

    def test_disabled_provider_not_configured(self):
        settings = Settings.model_validate({
            "providers": {"ollama": {"enabled": False, "endpoint": "http://x"}},
        })
        names = [p.name for p in ProviderFactory(settings).configured_providers()]
        assert names == ["lmstudio"]

    def test_available_providers(self):
        def handler(request):
            if request.url.port == 11434:
                return httpx.Response(200, json=OLLAMA_TAGS)
            raise httpx.ConnectError("refused", request=request)

        factory = ProviderFactory(Settings(), transport=httpx.MockTransport(handler))
        assert asyncio.run(factory.available_providers()) == [ProviderType.OLLAMA]

    def test_file_settings_limit_attachments(self, tmp_path):
        small = tmp_path / "small.py"
        small.write_text("x = 1\n")
        big = tmp_path / "big.py"
        big.write_text("y = 2\n" * 100)
        notes = tmp_path / "notes.log"
        notes.write_text("log line\n")
        settings = Settings.model_validate({
            "files": {"max_file_size": 64, "allowed_extensions": [".PY"]},
        })
        recorder = Recorder({
            "/v1/models": LMSTUDIO_MODELS,
            "/v1/chat/completions": {"choices": [{"message": {"content": "ok"}}]},
        })
        factory = ProviderFactory(settings, transport=httpx.MockTransport(recorder))
        provider = factory.create("lmstudio")
        assert provider.attachment_limits.max_file_size == 64
        asyncio.run(provider.complete_prompt(
            CompositePrompt("q", (str(small), str(big), str(notes)))))
        content = recorder.posted("/v1/chat/completions")[0]["messages"][-1]["content"]
        attached = [part["text"] for part in content[1:]]
        assert len(attached) == 1
        assert "# File: small.py" in attached[0]
