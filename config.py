# QueryGate - configuration
from pathlib import Path
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    secret_key: str = "dev-secret-change-in-production"
    database_url: str = "sqlite+aiosqlite:///./querygate.db"
    translator_provider: str = "openai"  # openai | anthropic
    openai_api_key: str = ""
    openai_base_url: str = "http://localhost:11434/v1"  # Ollama default
    openai_model: str = "llama3.2"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    catalog_path: Path | None = None  # JSON file replacing the built-in catalog
    policy_path: Path | None = None  # JSON file replacing the built-in role table
    default_query_limit: int = 100
    max_query_limit: int = 500
    query_timeout_seconds: float = 15.0
    audit_log_path: Path = Path("./data/audit_log.jsonl")

    class Config:
        env_file = ".env"
        extra = "ignore"


def get_settings() -> Settings:
    return Settings()
