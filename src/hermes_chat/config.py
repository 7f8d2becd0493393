"""Configuration loading and management."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from hermes_chat.errors import ConfigurationError

DEFAULT_FILTERED_TOOLS = ["context", "file_tree", "read_file", "open_file"]


@dataclass
class ModelConfig:
    name: str = "gemini-2.0-flash"
    api_key: str = ""
    max_retries: int = 2
    retry_delay_seconds: float = 1.0
    max_tool_steps: int = 10
    system_instruction: str = ""
    custom_context: str = ""


@dataclass
class ArchiveConfig:
    filtered_tools: list[str] = field(default_factory=lambda: list(DEFAULT_FILTERED_TOOLS))
    min_content_length: int = 50
    min_entries: int = 2


@dataclass
class TypesenseConfig:
    enabled: bool = False
    host: str = "localhost"
    port: int = 8108
    protocol: str = "http"
    api_key: str = "dev-api-key"


@dataclass
class Config:
    vault_path: Path = field(default_factory=lambda: Path.home() / "hermes-vault")
    chat_history_folder: str = "chat-history"
    index_db: Path = field(default_factory=lambda: Path.home() / ".hermes-chat" / "state" / "archive.db")
    model: ModelConfig = field(default_factory=ModelConfig)
    archive: ArchiveConfig = field(default_factory=ArchiveConfig)
    typesense: TypesenseConfig = field(default_factory=TypesenseConfig)


def expand_env_var(value: str) -> str:
    """Expand environment variables in string (e.g. ${VAR})."""
    if value.startswith("${") and value.endswith("}"):
        env_var = value[2:-1]
        return os.environ.get(env_var, "")
    return value


def expand_path(path_str: str) -> Path:
    """Expand ~ and environment variables in path."""
    return Path(os.path.expandvars(os.path.expanduser(path_str)))


def require_api_key(config: ModelConfig) -> str:
    """Return the model API key or fail fast.

    Raises:
        ConfigurationError: If no key is configured
    """
    if not config.api_key:
        raise ConfigurationError(
            "Model API key is not configured (set model.api_key or GEMINI_API_KEY)"
        )
    return config.api_key


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from YAML file."""
    if config_path is None:
        # Look for config in standard locations
        search_paths = [
            Path.cwd() / "config.yaml",
            Path.home() / ".config" / "hermes-chat" / "config.yaml",
            Path("/etc/hermes-chat/config.yaml"),
        ]
        for path in search_paths:
            if path.exists():
                config_path = path
                break

    if config_path is None or not config_path.exists():
        return Config(model=ModelConfig(api_key=os.environ.get("GEMINI_API_KEY", "")))

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    # Parse model config
    model_data = data.get("model", {})
    model = ModelConfig(
        name=model_data.get("name", "gemini-2.0-flash"),
        api_key=expand_env_var(model_data.get("api_key", "${GEMINI_API_KEY}")),
        max_retries=model_data.get("max_retries", 2),
        retry_delay_seconds=float(model_data.get("retry_delay_seconds", 1.0)),
        max_tool_steps=model_data.get("max_tool_steps", 10),
        system_instruction=model_data.get("system_instruction", ""),
        custom_context=model_data.get("custom_context", ""),
    )

    # Parse archive config
    archive_data = data.get("archive", {})
    archive = ArchiveConfig(
        filtered_tools=list(archive_data.get("filtered_tools", DEFAULT_FILTERED_TOOLS)),
        min_content_length=archive_data.get("min_content_length", 50),
        min_entries=archive_data.get("min_entries", 2),
    )

    # Parse typesense config
    ts_data = data.get("typesense", {})
    typesense = TypesenseConfig(
        enabled=ts_data.get("enabled", False),
        host=ts_data.get("host", "localhost"),
        port=ts_data.get("port", 8108),
        protocol=ts_data.get("protocol", "http"),
        api_key=expand_env_var(ts_data.get("api_key", "dev-api-key")),
    )

    return Config(
        vault_path=expand_path(data.get("vault_path", "~/hermes-vault")),
        chat_history_folder=data.get("chat_history_folder", "chat-history").strip("/"),
        index_db=expand_path(data.get("index_db", "~/.hermes-chat/state/archive.db")),
        model=model,
        archive=archive,
        typesense=typesense,
    )
