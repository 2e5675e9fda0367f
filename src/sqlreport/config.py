"""Configuration management for the reporting agent.

Values come from the process environment, optionally seeded from a ``.env``
file at the project root. Invalid numeric values fall back to their defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).parent.parent.parent
ENV_PATH = ROOT_DIR / ".env"

# Provider families in fallback priority order, with their default models
PROVIDERS = {
    "openai": {
        "env_key": "OPENAI_API_KEY",
        "env_model": "OPENAI_MODEL",
        "model": "gpt-4.1-mini-2025-04-14",
        "display_name": "OpenAI GPT-4.1 Mini",
    },
    "anthropic": {
        "env_key": "ANTHROPIC_API_KEY",
        "env_model": "ANTHROPIC_MODEL",
        "model": "claude-3-haiku-20240307",
        "display_name": "Anthropic Claude 3 Haiku",
    },
    "google": {
        "env_key": "GOOGLE_API_KEY",
        "env_model": "GOOGLE_MODEL",
        "model": "gemini-2.5-flash",
        "display_name": "Google Gemini 2.5 Flash",
    },
    "mistral": {
        "env_key": "MISTRAL_API_KEY",
        "env_model": "MISTRAL_MODEL",
        "model": "mistral-large-latest",
        "display_name": "Mistral Large Latest",
    },
}

PROVIDER_PRIORITY = tuple(PROVIDERS)


def _env_str(name: str, default: str = "") -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "y", "on")


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables."""

    # LLM providers: {provider: (api_key, model)} for every key that is set
    provider_credentials: dict[str, tuple[str, str]]

    # Object storage
    s3_bucket: str = "reporting-agent-files"
    aws_region: str = "us-east-1"
    s3_max_attempts: int = 3
    s3_request_timeout: float = 60.0
    s3_connect_timeout: float = 5.0
    s3_acl: str = "public-read"
    s3_public_base_url: str = ""

    # Export
    export_max_mb: float = 50.0
    default_datasource: str = "db"

    # Agent loop
    max_iterations: int = 15
    tool_timeout: float = 60.0
    turn_timeout: float = 300.0
    max_return_values: int = 200

    # Database
    probe_timeout: float = 10.0
    require_table_list: bool = False

    # Logging
    log_level: str = "INFO"
    log_dir: str = "logs"

    @classmethod
    def from_env(cls, env_file: Path | None = ENV_PATH) -> "Settings":
        """Build settings from the environment, loading ``env_file`` first if it exists."""
        if env_file is not None and env_file.exists():
            load_dotenv(env_file)

        credentials = {}
        for provider, entry in PROVIDERS.items():
            api_key = _env_str(entry["env_key"])
            if api_key and not api_key.startswith("your_"):
                credentials[provider] = (api_key, _env_str(entry["env_model"], entry["model"]))

        return cls(
            provider_credentials=credentials,
            s3_bucket=_env_str("AWS_S3_BUCKET", "reporting-agent-files"),
            aws_region=_env_str("AWS_REGION", "us-east-1"),
            s3_max_attempts=_env_int("AWS_S3_MAX_RETRIES", 3),
            # The S3 timeouts are expressed in milliseconds in the environment
            s3_request_timeout=_env_int("AWS_S3_REQUEST_TIMEOUT", 60000) / 1000,
            s3_connect_timeout=_env_int("AWS_S3_CONNECTION_TIMEOUT", 5000) / 1000,
            s3_acl=_env_str("AWS_S3_ACL", "public-read"),
            s3_public_base_url=_env_str("AWS_S3_PUBLIC_BASE_URL"),
            export_max_mb=_env_float("EXPORT_MAX_MB", 50.0),
            default_datasource=_env_str("PG_DATABASE", "db"),
            max_iterations=_env_int("AGENT_MAX_ITERATIONS", 15),
            tool_timeout=_env_float("AGENT_TOOL_TIMEOUT", 60.0),
            turn_timeout=_env_float("AGENT_TURN_TIMEOUT", 300.0),
            max_return_values=_env_int("MAX_RETURN_VALUES", 200),
            probe_timeout=_env_float("DB_PROBE_TIMEOUT", 10.0),
            require_table_list=_env_bool("DB_REQUIRE_TABLE_LIST", False),
            log_level=_env_str("LOG_LEVEL", "INFO").upper(),
            log_dir=_env_str("LOG_DIR", "logs"),
        )

    @property
    def export_max_bytes(self) -> int:
        return int(self.export_max_mb * 1024 * 1024)
