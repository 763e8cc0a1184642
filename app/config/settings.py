from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # API Configuration
    debug: bool = False
    environment: str = "development"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_prefix: str = "/api/v1"

    # AI provider used for chunk generation: "openai" or "gemini"
    ai_provider: str = "openai"
    ai_max_tokens: int = 2000

    # OpenAI Configuration (secrets come from environment)
    openai_api_key: Optional[str] = None
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"
    openai_timeout_seconds: float = 60.0

    # Gemini Configuration (optional)
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-pro"

    # Chunking
    chunk_max_chars: int = 3000   # ~750 tokens
    chunk_overlap: int = 300      # ~75 tokens

    # Generate More batching
    default_max_chunks_per_call: int = 3
    # Pause between successive chunk calls to stay under provider rate limits
    generation_pacing_delay_seconds: float = 0.5
    # Chunks whose historical yield is below this are generated first
    coverage_threshold: float = 0.7

    # Near-duplicate reconciliation (max SimHash Hamming distance, in bits)
    reconcile_hamming_threshold: int = 4

    # Database Configuration
    database_url: str = "sqlite:///./data/testcases.db"

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
