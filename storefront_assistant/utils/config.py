"""Configuration management for the application."""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    # API Keys
    anthropic_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None

    # Database
    database_url: str = "sqlite:///./storefront_assistant.db"

    # LLM Configuration
    llm_provider: str = "anthropic"  # Options: "openai", "anthropic"
    llm_model: str = "claude-3-5-haiku-20241022"
    llm_temperature: float = 0.7
    llm_max_tokens: int = 800

    # Store identity used in the assistant instruction
    store_name: str = "NEXU Store"
    contact_path: str = "/contact"
    product_path_prefix: str = "/shop"

    # Catalog context caps (per request snapshot)
    context_max_categories: int = 10
    context_max_products: int = 5

    # Assistant transport limits
    stream_max_duration_seconds: float = 30.0
    max_history_messages: int = 20
    ask_max_products: int = 4
    ask_max_suggestions: int = 3

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 3565

    # Rate Limiting
    rate_limit_per_minute: int = 60

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = "logs/app.log"

    # Environment Configuration
    environment: str = "development"  # development, staging, production
    production_mode: bool = False  # Auto-detected from environment

    # CORS Configuration (comma-separated list of allowed origins)
    cors_origins: str = "*"

    class Config:
        env_file = ".env"
        case_sensitive = False

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.production_mode = self.environment.lower() in ("production", "prod")

        # More restrictive logging in production
        if self.production_mode and self.log_level == "INFO":
            self.log_level = "WARNING"

    @property
    def provider_api_key(self) -> Optional[str]:
        """Credential of the configured LLM provider, if any."""
        provider = self.llm_provider.lower()
        if provider == "anthropic":
            return self.anthropic_api_key
        if provider == "openai":
            return self.openai_api_key
        return None


settings = Settings()
