"""Tests for the Typer CLI."""

import json

import httpx
import pytest
from typer.testing import CliRunner

from arbitrator import __version__
from arbitrator.cli import app
from arbitrator.providers import ProviderFactory

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    """No user config, and both backends disabled unless a test enables them."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("ARBITRATOR_CONFIG_PATH", raising=False)
    monkeypatch.setenv("ARBITRATOR_LMSTUDIO_ENABLED", "false")
    monkeypatch.setenv("ARBITRATOR_OLLAMA_ENABLED", "false")
    return tmp_path


@pytest.fixture
def ollama_only(monkeypatch):
    """Enable Ollama, served by a mock transport."""
    def handler(request):
        if request.url.path == "/api/tags":
            return httpx.Response(200, json={"models": [{"name": "deepseek-coder:33b"}]})
        return httpx.Response(200, json={"message": {"content": "mock answer"}})

    monkeypatch.setenv("ARBITRATOR_OLLAMA_ENABLED", "true")
    monkeypatch.setattr(
        "arbitrator.service.ProviderFactory",
        lambda settings: ProviderFactory(settings, transport=httpx.MockTransport(handler)),
    )


class TestBasics:
    """Test version and config output."""

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_config_shows_settings(self):
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "deepseek-coder:33b" in result.stdout

    def test_bad_config_file(self, isolated):
        bad = isolated / "bad.yaml"
        bad.write_text("server: {log_level: loud}\n")
        result = runner.invoke(app, ["--config", str(bad), "config"])
        assert result.exit_code == 1
        assert "Config error" in result.stdout


class TestContextCommand:
    """Test `arbitrator context`."""

    def test_json(self, isolated):
        (isolated / "a.js").write_text("import b from './b.js';\n")
        (isolated / "b.js").write_text("")
        result = runner.invoke(app, ["context", "a.js", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["related_files"] == [str(isolated / "b.js")]

    def test_missing_file(self):
        result = runner.invoke(app, ["context", "nope.js"])
        assert result.exit_code == 1
        assert "File not found" in result.stdout

    def test_nothing_found(self, isolated):
        (isolated / "lonely.js").write_text("")
        result = runner.invoke(app, ["context", "lonely.js", "--no-docs"])
        assert result.exit_code == 0
        assert "No context files found" in result.stdout


class TestModelCommands:
    """Test commands that route to a backend."""

    def test_route_without_backends(self):
        result = runner.invoke(app, ["route", "code", "generation"])
        assert result.exit_code == 1
        assert "No capable backend" in result.stdout

    def test_enhance_without_backends(self):
        result = runner.invoke(app, ["enhance", "sort a list", "-l", "python"])
        assert result.exit_code == 1
        assert "No capable backend" in result.stdout

    def test_enhance(self, ollama_only):
        result = runner.invoke(app, ["enhance", "sort a list", "-l", "python"])
        assert result.exit_code == 0
        assert "mock answer" in result.stdout

    def test_verify(self, ollama_only, isolated):
        (isolated / "solution.py").write_text("def f():\n    return 1\n")
        result = runner.invoke(app, ["verify", "solution.py", "-l", "python"])
        assert result.exit_code == 0
        assert "mock answer" in result.stdout

    def test_verify_missing_file(self):
        result = runner.invoke(app, ["verify", "nope.py", "-l", "python"])
        assert result.exit_code == 1

    def test_optimize(self, ollama_only):
        result = runner.invoke(app, ["optimize", "write a sorter"])
        assert result.exit_code == 0
        assert "mock answer" in result.stdout
