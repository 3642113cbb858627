"""Configuration and environment validation."""
from storefront_assistant.utils.config import settings
from storefront_assistant.analytics.logger import logger


def validate_config() -> dict:
    """Validate application configuration."""
    issues = []
    warnings = []

    provider = settings.llm_provider.lower()
    if provider not in ("anthropic", "openai"):
        issues.append(f"Invalid LLM provider: {provider}. Use 'anthropic' or 'openai'")
    elif not settings.provider_api_key:
        # Not fatal: the assistant endpoints answer 503 until a key is configured
        warnings.append(f"{provider.upper()}_API_KEY is not set - assistant endpoints will return 503")

    if settings.stream_max_duration_seconds <= 0:
        issues.append("STREAM_MAX_DURATION_SECONDS must be positive")

    if settings.context_max_categories < 0 or settings.context_max_products < 0:
        issues.append("Catalog context caps must not be negative")

    if "sqlite" in settings.database_url:
        warnings.append("Using SQLite - not recommended for production")

    if settings.production_mode and "*" in settings.cors_origins.split(","):
        warnings.append("CORS allows all origins in production")

    for issue in issues:
        logger.error(f"Configuration issue: {issue}")
    for warning in warnings:
        logger.warning(f"Configuration warning: {warning}")

    return {
        "valid": len(issues) == 0,
        "issues": issues,
        "warnings": warnings
    }
