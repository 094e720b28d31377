"""Settings for the arbitrator.

Settings come from three layers, highest priority first:

1. Environment variables (``ARBITRATOR_*``)
2. The first YAML config file found:
   ``./.arbitrator.yaml``, ``~/.arbitrator/config.yaml``,
   or the path in ``ARBITRATOR_CONFIG_PATH``
3. Built-in defaults

Example ``~/.arbitrator/config.yaml``::

    server:
      log_level: debug
    providers:
      ollama:
        default_model: qwen2.5-coder:14b
    files:
      max_context_files: 5
"""

import json
import os
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, Field, ValidationError

from arbitrator import __version__
from arbitrator.context_engine.scan import ScanConfig
from arbitrator.errors import ConfigError

LogLevel = Literal["debug", "info", "warning", "error"]

DEFAULT_ALLOWED_EXTENSIONS = [
    ".js", ".ts", ".jsx", ".tsx", ".py", ".java", ".c", ".cpp", ".h", ".hpp",
    ".cs", ".go", ".rb", ".php", ".html", ".css", ".json", ".md", ".txt",
    ".yml", ".yaml", ".xml", ".sh", ".bat", ".ps1",
]


class ServerSettings(BaseModel):
    name: str = "llm-arbitrator"
    version: str = __version__
    log_level: LogLevel = "info"


class ProviderSettings(BaseModel):
    """Connection settings for one local backend."""
    enabled: bool = True
    endpoint: str
    default_model: str = ""
    timeout: float = 30.0  # seconds


class ProvidersSettings(BaseModel):
    lmstudio: ProviderSettings = Field(default_factory=lambda: ProviderSettings(
        endpoint="http://127.0.0.1:1234",
        default_model="deepseek-r1-distill-qwen-32b",
    ))
    ollama: ProviderSettings = Field(default_factory=lambda: ProviderSettings(
        endpoint="http://127.0.0.1:11434",
        default_model="deepseek-coder:33b",
    ))


class ModelDefaults(BaseModel):
    temperature: float = Field(0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(4000, gt=0)
    stop: list[str] = Field(default_factory=list)


class FileSettings(BaseModel):
    max_context_files: int = Field(10, ge=0)
    max_file_size: int = Field(1024 * 1024, gt=0)  # bytes
    allowed_extensions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_EXTENSIONS))


class DebugSettings(BaseModel):
    enabled: bool = False
    log_file: str | None = None
    verbose: bool = False


class Settings(BaseModel):
    """Effective arbitrator configuration."""
    server: ServerSettings = Field(default_factory=ServerSettings)
    providers: ProvidersSettings = Field(default_factory=ProvidersSettings)
    models: ModelDefaults = Field(default_factory=ModelDefaults)
    files: FileSettings = Field(default_factory=FileSettings)
    debug: DebugSettings = Field(default_factory=DebugSettings)

    # Where the file layer came from, if any
    source_path: str | None = None

    def scan_config(self, max_files: int | None = None) -> ScanConfig:
        """Build a discovery configuration from these settings."""
        return ScanConfig(
            max_files=self.files.max_context_files if max_files is None else max_files,
        )


# env var -> (section, key, parser)
ENV_VARS: dict[str, tuple[tuple[str, ...], str]] = {
    "ARBITRATOR_SERVER_NAME": (("server", "name"), "str"),
    "ARBITRATOR_LOG_LEVEL": (("server", "log_level"), "level"),
    "ARBITRATOR_LMSTUDIO_ENABLED": (("providers", "lmstudio", "enabled"), "bool"),
    "ARBITRATOR_LMSTUDIO_ENDPOINT": (("providers", "lmstudio", "endpoint"), "str"),
    "ARBITRATOR_LMSTUDIO_DEFAULT_MODEL": (("providers", "lmstudio", "default_model"), "str"),
    "ARBITRATOR_LMSTUDIO_TIMEOUT": (("providers", "lmstudio", "timeout"), "float"),
    "ARBITRATOR_OLLAMA_ENABLED": (("providers", "ollama", "enabled"), "bool"),
    "ARBITRATOR_OLLAMA_ENDPOINT": (("providers", "ollama", "endpoint"), "str"),
    "ARBITRATOR_OLLAMA_DEFAULT_MODEL": (("providers", "ollama", "default_model"), "str"),
    "ARBITRATOR_OLLAMA_TIMEOUT": (("providers", "ollama", "timeout"), "float"),
    "ARBITRATOR_DEFAULT_TEMPERATURE": (("models", "temperature"), "float"),
    "ARBITRATOR_DEFAULT_MAX_TOKENS": (("models", "max_tokens"), "int"),
    "ARBITRATOR_DEFAULT_STOP_SEQUENCES": (("models", "stop"), "json"),
    "ARBITRATOR_MAX_CONTEXT_FILES": (("files", "max_context_files"), "int"),
    "ARBITRATOR_MAX_FILE_SIZE": (("files", "max_file_size"), "int"),
    "ARBITRATOR_ALLOWED_EXTENSIONS": (("files", "allowed_extensions"), "json"),
    "ARBITRATOR_DEBUG_ENABLED": (("debug", "enabled"), "bool"),
    "ARBITRATOR_DEBUG_LOG_FILE": (("debug", "log_file"), "str"),
    "ARBITRATOR_DEBUG_VERBOSE": (("debug", "verbose"), "bool"),
}


def get_config_dir() -> Path:
    """Get the per-user config directory."""
    return Path.home() / ".arbitrator"


def config_search_paths(env: Mapping[str, str] | None = None) -> list[Path]:
    """Candidate config file locations, in lookup order."""
    env = os.environ if env is None else env
    paths = [
        Path.cwd() / ".arbitrator.yaml",
        get_config_dir() / "config.yaml",
    ]
    if env.get("ARBITRATOR_CONFIG_PATH"):
        paths.append(Path(env["ARBITRATOR_CONFIG_PATH"]))
    return paths


def find_config_file(env: Mapping[str, str] | None = None) -> Path | None:
    for path in config_search_paths(env):
        if path.is_file():
            return path
    return None


def load_config_file(path: Path) -> dict[str, Any]:
    """Read a YAML config file into a plain dict."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def _parse_env_value(name: str, raw: str, kind: str) -> Any:
    if kind == "bool":
        return raw.strip().lower() == "true"
    if kind == "level":
        level = raw.strip().lower()
        if level == "warn":
            level = "warning"
        return level
    if kind == "json":
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigError(f"{name} must be JSON: {e}") from e
    if kind == "int":
        try:
            return int(raw)
        except ValueError as e:
            raise ConfigError(f"{name} must be an integer") from e
    if kind == "float":
        try:
            return float(raw)
        except ValueError as e:
            raise ConfigError(f"{name} must be a number") from e
    return raw


def env_overrides(env: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Collect settings overrides from ``ARBITRATOR_*`` variables."""
    env = os.environ if env is None else env
    overrides: dict[str, Any] = {}

    for name, (keys, kind) in ENV_VARS.items():
        if name not in env:
            continue
        value = _parse_env_value(name, env[name], kind)
        node = overrides
        for key in keys[:-1]:
            node = node.setdefault(key, {})
        node[keys[-1]] = value

    return overrides


def deep_merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = deep_merge(dict(merged[key]), value)
        elif value is not None:
            merged[key] = value
    return merged


def load_settings(
    path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> Settings:
    """Load settings from defaults, a config file, and the environment.

    Args:
        path: Explicit config file. If None, the standard locations are searched.
        env: Environment mapping (defaults to ``os.environ``).

    Returns:
        Validated Settings.

    Raises:
        ConfigError: If the file is unreadable or a value is invalid.
    """
    env = os.environ if env is None else env

    if path is not None and not Path(path).is_file():
        raise ConfigError(f"Config file not found: {path}")
    config_path = Path(path) if path is not None else find_config_file(env)

    data: dict[str, Any] = Settings().model_dump(exclude={"source_path"})
    if config_path is not None:
        data = deep_merge(data, load_config_file(config_path))
    data = deep_merge(data, env_overrides(env))

    try:
        settings = Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    settings.source_path = str(config_path) if config_path else None
    return settings


def save_settings(settings: Settings, path: Path | None = None) -> Path:
    """Write settings to YAML (default: ``~/.arbitrator/config.yaml``)."""
    path = path or get_config_dir() / "config.yaml"
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(settings.model_dump(exclude={"source_path"}),
                  f, default_flow_style=False)
    return path
