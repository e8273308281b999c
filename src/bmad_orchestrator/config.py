"""
Application Configuration

Pydantic Settings for environment variable management.
Every key can be overridden with a ``BMAD_`` prefixed environment variable
or an entry in ``.env``.
"""
from functools import lru_cache
from pathlib import Path
from typing import List, Optional
import json

from pydantic_settings import BaseSettings, SettingsConfigDict


PACKAGE_DIR = Path(__file__).resolve().parent


class Settings(BaseSettings):
    """Orchestrator settings loaded from environment variables"""

    # App
    app_name: str = "BMAD Orchestrator API"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    # Persistence (empty string keeps snapshots in memory)
    database_url: str = "sqlite:///./bmad_orchestrator.db"

    # API
    cors_origins: str = '["http://localhost:3000"]'

    # Definitions
    definitions_dir: Path = PACKAGE_DIR / "definitions"
    default_sequence: str = "greenfield-fullstack"

    # Prompt rules
    min_prompt_length: int = 10
    max_prompt_length: int = 5000
    interview_prompt: str = (
        "The user has not described the project yet. Interview them to "
        "gather goals, target users, constraints and success criteria "
        "before producing any deliverable."
    )

    # Engine
    auto_advance: bool = True
    checkpoint_enabled: bool = True
    max_checkpoints: int = 10
    max_message_history: int = 1000

    # Broadcast
    broadcast_queue_size: int = 1000

    # Executor
    mock_mode: bool = True
    mock_delay_seconds: float = 0.0
    mock_delay_jitter: float = 0.0
    mock_failure_rate: float = 0.0
    generation_max_attempts: int = 2
    generation_backoff_base: float = 1.0
    generation_backoff_cap: float = 5.0
    required_sections: List[str] = ["Context", "Instructions", "Task"]
    min_output_length: int = 100
    interactive_actions: List[str] = [
        "classify_enhancement_scope",
        "elicit_requirements",
        "gather_user_feedback",
    ]

    # OpenAI
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    openai_temperature: float = 0.7
    openai_timeout: float = 60.0

    model_config = SettingsConfigDict(
        env_prefix="BMAD_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def agents_file(self) -> Path:
        """Static agent definitions file"""
        return self.definitions_dir / "agents.yaml"

    @property
    def workflows_dir(self) -> Path:
        """Directory holding dynamic workflow definitions"""
        return self.definitions_dir / "workflows"

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from JSON string"""
        try:
            return json.loads(self.cors_origins)
        except (json.JSONDecodeError, TypeError):
            return ["http://localhost:3000"]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
