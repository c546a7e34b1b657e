"""
Configuration Settings.

This module defines the application configuration using Pydantic's BaseSettings.
It automatically loads all configuration from environment variables and .env file
without explicit dotenv loading.

Grouped views (``settings.llm``, ``settings.github`` ...) are plain models
validated from the aliased dump of the flat settings object, so every value
has exactly one environment variable.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# =====================================================================
# Grouped Configuration Models
# =====================================================================


class LoggingConfig(BaseModel):
    """Console and file logging configuration."""

    level: str = Field(
        default="INFO",
        alias="GOVERNANCE_AI_LOG_LEVEL",
        description="Console log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    format: Literal["simple", "detailed", "json"] = Field(
        default="detailed", alias="GOVERNANCE_AI_LOG_FORMAT", description="Log line layout"
    )
    file_dir: Optional[str] = Field(
        default=None,
        alias="GOVERNANCE_AI_LOG_FILE_DIR",
        description="Directory for governance_ai.log; file logging is off when unset",
    )

    model_config = {"populate_by_name": True}


class LLMConfig(BaseModel):
    """LLM completion configuration."""

    model: str = Field(
        default="anthropic:claude-sonnet-4-5",
        alias="GOVERNANCE_AI_LLM_MODEL",
        description="Default model identifier in '<provider>:<model>' form",
    )
    max_tokens: int = Field(default=8192, alias="GOVERNANCE_AI_LLM_MAX_TOKENS", description="Default output token cap")
    timeout_seconds: float = Field(
        default=120.0,
        alias="GOVERNANCE_AI_LLM_TIMEOUT_SECONDS",
        description="Upper bound for a single completion call",
    )

    model_config = {"populate_by_name": True}


class GitHubConfig(BaseModel):
    """GitHub REST API configuration."""

    token: Optional[str] = Field(default=None, alias="GITHUB_TOKEN", description="GitHub API token")
    api_url: str = Field(default="https://api.github.com", alias="GITHUB_API_URL", description="GitHub API base URL")

    model_config = {"populate_by_name": True}


class EmbeddingConfig(BaseModel):
    """Embedding endpoint configuration (OpenAI-compatible)."""

    api_key: Optional[str] = Field(default=None, alias="OPENAI_API_KEY", description="API key for embeddings")
    base_url: str = Field(
        default="https://api.openai.com/v1", alias="EMBEDDINGS_BASE_URL", description="Embeddings API base URL"
    )
    model: str = Field(default="text-embedding-3-small", alias="EMBEDDINGS_MODEL", description="Embedding model")

    model_config = {"populate_by_name": True}


class AgentConfig(BaseModel):
    """Agent loop and governance behaviour."""

    max_iterations: int = Field(
        default=10, alias="GOVERNANCE_AI_MAX_ITERATIONS", description="Upper bound of LLM calls per session"
    )
    stop_hook_mode: Literal["warn", "block"] = Field(
        default="warn",
        alias="GOVERNANCE_AI_STOP_HOOK_MODE",
        description="Whether missing decision logs only warn or block the session response",
    )
    trust_cache_ttl_seconds: float = Field(
        default=300.0,
        alias="GOVERNANCE_AI_TRUST_CACHE_TTL_SECONDS",
        description="How long a GitHub permission lookup stays cached",
    )

    model_config = {"populate_by_name": True}


class DeveloperConfig(BaseModel):
    """Delegated development CLI configuration."""

    cli_command: str = Field(default="claude", alias="DEVELOPER_CLI_COMMAND", description="Coding agent executable")
    repo_root: str = Field(default=".", alias="DEVELOPER_REPO_ROOT", description="Default working directory")
    timeout_seconds: float = Field(
        default=600.0, alias="DEVELOPER_TIMEOUT_SECONDS", description="Timeout for one CLI execution"
    )
    mcp_config_path: Optional[str] = Field(
        default=None, alias="DEVELOPER_MCP_CONFIG_PATH", description="Optional MCP config passed to the CLI"
    )

    model_config = {"populate_by_name": True}


# =====================================================================
# Main Settings Class
# =====================================================================


class Settings(BaseSettings):
    """
    Application settings model.

    All properties are automatically bound from environment variables and .env file.
    Pydantic's BaseSettings handles dotenv loading automatically via model_config.
    """

    # =====================================================================
    # Pydantic Configuration
    # =====================================================================
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
        populate_by_name=True,
    )

    # =====================================================================
    # Logging
    # =====================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        alias="GOVERNANCE_AI_LOG_LEVEL",
    )
    log_format: Literal["simple", "detailed", "json"] = Field(default="detailed", alias="GOVERNANCE_AI_LOG_FORMAT")
    log_file_dir: Optional[str] = Field(default=None, alias="GOVERNANCE_AI_LOG_FILE_DIR")

    # =====================================================================
    # Database Configuration
    # =====================================================================
    database_url: str = Field(
        default="sqlite+aiosqlite:///./governance_ai.db",
        description="Async SQLAlchemy connection URL",
        alias="GOVERNANCE_AI_DATABASE_URL",
    )

    # =====================================================================
    # LLM
    # =====================================================================
    llm_model: str = Field(default="anthropic:claude-sonnet-4-5", alias="GOVERNANCE_AI_LLM_MODEL")
    llm_max_tokens: int = Field(default=8192, alias="GOVERNANCE_AI_LLM_MAX_TOKENS")
    llm_timeout_seconds: float = Field(default=120.0, alias="GOVERNANCE_AI_LLM_TIMEOUT_SECONDS")

    # =====================================================================
    # Agent loop
    # =====================================================================
    max_iterations: int = Field(default=10, alias="GOVERNANCE_AI_MAX_ITERATIONS")
    stop_hook_mode: Literal["warn", "block"] = Field(default="warn", alias="GOVERNANCE_AI_STOP_HOOK_MODE")
    trust_cache_ttl_seconds: float = Field(default=300.0, alias="GOVERNANCE_AI_TRUST_CACHE_TTL_SECONDS")

    # =====================================================================
    # External services
    # =====================================================================
    github_token: Optional[str] = Field(default=None, alias="GITHUB_TOKEN")
    github_api_url: str = Field(default="https://api.github.com", alias="GITHUB_API_URL")

    openai_api_key: Optional[str] = Field(default=None, alias="OPENAI_API_KEY")
    embeddings_base_url: str = Field(default="https://api.openai.com/v1", alias="EMBEDDINGS_BASE_URL")
    embeddings_model: str = Field(default="text-embedding-3-small", alias="EMBEDDINGS_MODEL")

    developer_cli_command: str = Field(default="claude", alias="DEVELOPER_CLI_COMMAND")
    developer_repo_root: str = Field(default=".", alias="DEVELOPER_REPO_ROOT")
    developer_timeout_seconds: float = Field(default=600.0, alias="DEVELOPER_TIMEOUT_SECONDS")
    developer_mcp_config_path: Optional[str] = Field(default=None, alias="DEVELOPER_MCP_CONFIG_PATH")

    wiki_root: str = Field(default="wiki", alias="GOVERNANCE_AI_WIKI_ROOT", description="Local wiki checkout")

    # =====================================================================
    # Computed Properties (Grouped Configurations)
    # =====================================================================

    @property
    def logging(self) -> LoggingConfig:
        """Get logging configuration from environment variables."""
        return LoggingConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def llm(self) -> LLMConfig:
        """Get LLM configuration from environment variables."""
        return LLMConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def github(self) -> GitHubConfig:
        """Get GitHub configuration from environment variables."""
        return GitHubConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def embeddings(self) -> EmbeddingConfig:
        """Get embeddings configuration from environment variables."""
        return EmbeddingConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def agent(self) -> AgentConfig:
        """Get agent loop configuration from environment variables."""
        return AgentConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def developer(self) -> DeveloperConfig:
        """Get delegated development configuration from environment variables."""
        return DeveloperConfig.model_validate(self.model_dump(by_alias=True))


settings = Settings()
