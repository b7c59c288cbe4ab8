"""
Application settings management.

Settings are loaded from environment variables with .env file support.
All configuration is validated using Pydantic.
"""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator, ValidationInfo
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment.

    Environment variables take precedence over .env file values.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # ==========================================================================
    # Paths
    # ==========================================================================

    config_dir: Path = Field(
        default=Path("config"),
        description="Directory containing YAML configuration files",
    )

    # ==========================================================================
    # Transcript database
    # ==========================================================================

    database_path: Path = Field(
        default=Path("data/journal.db"),
        description="Path to SQLite database holding conversation transcripts",
    )

    # ==========================================================================
    # Cache (Redis)
    # ==========================================================================

    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for conversation state",
    )
    conversation_state_ttl_seconds: int = Field(
        default=86400, ge=60, description="TTL for conversation state records"
    )
    session_context_ttl_seconds: int = Field(
        default=7200, ge=60, description="TTL for cached session context"
    )
    memory_tracker_ttl_seconds: int = Field(
        default=86400, ge=60, description="TTL for the memory-usage tracker"
    )

    # ==========================================================================
    # External services
    # ==========================================================================
    #
    # The generation client defaults are defined in journal/llm/client.py.
    # Set LLM_GENERATION_PROVIDER only to override them.

    llm_generation_provider: Optional[str] = Field(
        default=None,
        description="Override generation LLM provider (default: openai)",
    )
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    deepseek_api_key: Optional[str] = Field(
        default=None, description="DeepSeek API key (optional)"
    )
    mem0_api_key: Optional[str] = Field(
        default=None, description="mem0 platform API key for long-term memory"
    )

    # ==========================================================================
    # Journal defaults
    # ==========================================================================

    default_user_id: str = Field(
        default="default-user", description="User id when none is supplied"
    )

    # ==========================================================================
    # Server Configuration
    # ==========================================================================

    host: str = Field(default="127.0.0.1", description="Server host address")
    port: int = Field(default=8000, ge=1, le=65535, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")


# ============================================================================
# Conversation Configuration (from YAML)
# ============================================================================


class ExtractionConfig(BaseModel):
    """Thresholds for the rule-based message extractor."""

    short_max_words: int = Field(
        default=10, ge=1, description="Messages below this word count are short"
    )
    medium_max_words: int = Field(
        default=30, ge=2, description="Messages below this word count are medium"
    )
    answered_min_words: int = Field(
        default=5,
        ge=0,
        description="A reply must exceed this word count to count as an answer",
    )

    @field_validator("medium_max_words")
    @classmethod
    def medium_above_short(cls, v: int, info: ValidationInfo) -> int:
        """Keep the length buckets ordered."""
        short = info.data.get("short_max_words")
        if short is not None and v <= short:
            raise ValueError("medium_max_words must be greater than short_max_words")
        return v


class MemoryConfig(BaseModel):
    """Long-term memory enrichment limits."""

    search_limit: int = Field(
        default=5, ge=1, le=20, description="Snippets requested per theme query"
    )
    context_limit: int = Field(
        default=10, ge=1, le=50, description="Cap on the state's context list"
    )


class ResponseConfig(BaseModel):
    """Conversational response generator constraints."""

    memory_mention_max_words: int = Field(
        default=8, ge=1, description="Word cap for an explicit memory clause"
    )
    memory_mention_min_gap_turns: int = Field(
        default=2, ge=0, description="Turns required between memory mentions"
    )
    casual_message_max_chars: int = Field(
        default=50, ge=1, description="Messages shorter than this get a casual reply"
    )


class ConversationConfig(BaseModel):
    """
    Complete conversation configuration loaded from conversation_config.yaml.

    Groups the tunable constants used by the extractor, the memory
    service and the response generator.
    """

    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    response: ResponseConfig = Field(default_factory=ResponseConfig)


def load_conversation_config(config_path: Optional[Path] = None) -> ConversationConfig:
    """
    Load conversation configuration from YAML file.

    Args:
        config_path: Path to conversation_config.yaml. If None, uses default path.

    Returns:
        ConversationConfig with validated settings

    Raises:
        ValueError: If config validation fails
    """
    if config_path is None:
        # Default path: config/conversation_config.yaml relative to project root
        current = Path(__file__).resolve().parent.parent.parent
        check_path = current / "config" / "conversation_config.yaml"
        if check_path.exists():
            config_path = check_path
        else:
            cwd_config = Path.cwd() / "config" / "conversation_config.yaml"
            if not cwd_config.exists():
                return ConversationConfig()
            config_path = cwd_config

    config_path = Path(config_path).resolve()

    if not config_path.exists():
        return ConversationConfig()

    with open(str(config_path)) as f:
        config_data = yaml.safe_load(f)

    if not config_data:
        return ConversationConfig()

    return ConversationConfig(**config_data)


# Global settings instance
settings = Settings()

# Global conversation config instance
conversation_config = load_conversation_config()
