"""
Application settings management.

Settings are loaded from environment variables with .env file support.
Engine tuning (stage detection, invites, presence, realtime) is loaded
from config/mediator_config.yaml. All configuration is validated using Pydantic.
"""

from pathlib import Path
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
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
    # Database
    # ==========================================================================

    database_path: Path = Field(
        default=Path("data/mediator.db"), description="Path to SQLite database file"
    )

    # ==========================================================================
    # LLM Configuration
    # ==========================================================================
    #
    # Two-client architecture:
    # - safety: classify each inbound utterance (small, fast, deterministic)
    # - generation: mediator replies and welcome messages
    #
    # Defaults are defined in mediator/llm/client.py. Set environment variables
    # below only to override defaults (e.g., LLM_SAFETY_PROVIDER=deepseek)

    llm_safety_provider: Optional[str] = Field(
        default=None, description="Override safety LLM provider (default: anthropic)"
    )
    llm_generation_provider: Optional[str] = Field(
        default=None,
        description="Override generation LLM provider (default: anthropic)",
    )

    anthropic_api_key: Optional[str] = Field(
        default=None, description="Anthropic API key"
    )
    deepseek_api_key: Optional[str] = Field(
        default=None, description="DeepSeek API key"
    )

    validate_api_keys_on_startup: bool = Field(
        default=True,
        description="Fail fast at startup when a configured provider has no API key",
    )

    # ==========================================================================
    # Server Configuration
    # ==========================================================================

    public_base_url: str = Field(
        default="http://localhost:3000",
        description="Base URL used when building invite links",
    )
    host: str = Field(default="127.0.0.1", description="Server host address")
    port: int = Field(default=8000, ge=1, le=65535, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")


# ============================================================================
# Mediator Engine Configuration (from YAML)
# ============================================================================


DEFAULT_PROGRESS_PHRASES = [
    "thank you for sharing",
    "let's move on",
    "now that we have",
    "let's hear from",
    "person b",
    "next step",
    "summarize",
    "agreement",
    "conclude",
]


class StageConfig(BaseModel):
    """Stage advancement detection.

    - signal: advance only when the reply carries the control token
    - keyword: advance when the reply contains a progress phrase
    - hybrid: either of the above
    """

    detection: Literal["signal", "keyword", "hybrid"] = "hybrid"
    advance_token: str = Field(default="[[ADVANCE]]", min_length=3)
    progress_phrases: List[str] = Field(
        default_factory=lambda: list(DEFAULT_PROGRESS_PHRASES)
    )

    @field_validator("progress_phrases")
    @classmethod
    def lowercase_phrases(cls, v: List[str]) -> List[str]:
        """Phrases are matched case-insensitively, so store them lowercased."""
        return [p.strip().lower() for p in v if p.strip()]


class SafetyConfig(BaseModel):
    """Safety classifier policy."""

    fail_open: bool = Field(
        default=True,
        description="Treat classifier outages as safe (True) or block the turn (False)",
    )


class InviteConfig(BaseModel):
    """Invite code generation."""

    ttl_hours: int = Field(default=24, ge=1, le=24 * 30)
    code_length: int = Field(default=8, ge=4, le=32)
    alphabet: str = Field(default="ABCDEFGHJKLMNPQRSTUVWXYZ23456789", min_length=10)


class PresenceConfig(BaseModel):
    """Participant liveness window."""

    window_seconds: int = Field(default=120, ge=5, le=3600)


class RealtimeConfig(BaseModel):
    """Broadcast channel tuning."""

    subscriber_queue_size: int = Field(default=100, ge=1, le=10_000)


class HistoryConfig(BaseModel):
    """Conversation history sent to the completion service."""

    max_turns: int = Field(default=100, ge=2, le=1000)


class MediatorConfig(BaseModel):
    """
    Complete engine configuration loaded from mediator_config.yaml.
    """

    stages: StageConfig = Field(default_factory=StageConfig)
    safety: SafetyConfig = Field(default_factory=SafetyConfig)
    invites: InviteConfig = Field(default_factory=InviteConfig)
    presence: PresenceConfig = Field(default_factory=PresenceConfig)
    realtime: RealtimeConfig = Field(default_factory=RealtimeConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)


def load_mediator_config(config_path: Optional[Path] = None) -> MediatorConfig:
    """
    Load engine configuration from YAML file.

    Args:
        config_path: Path to mediator_config.yaml. If None, looks in
            <project root>/config and then ./config.

    Returns:
        MediatorConfig with validated settings (defaults if no file found)

    Raises:
        pydantic.ValidationError: If the file contents fail validation
    """
    if config_path is None:
        project_root = Path(__file__).resolve().parent.parent.parent
        candidates = [
            project_root / "config" / "mediator_config.yaml",
            Path.cwd() / "config" / "mediator_config.yaml",
        ]
        config_path = next((p for p in candidates if p.exists()), None)
        if config_path is None:
            return MediatorConfig()

    config_path = Path(config_path).resolve()

    if not config_path.exists():
        return MediatorConfig()

    with open(str(config_path)) as f:
        config_data = yaml.safe_load(f)

    if not config_data:
        return MediatorConfig()

    return MediatorConfig(**config_data)


# Global settings instance
settings = Settings()

# Global engine config instance
mediator_config = load_mediator_config()
