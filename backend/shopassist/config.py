"""Application configuration using pydantic-settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Shopping Assistant"
    environment: str = "development"
    log_level: str = "info"

    # Google AI
    google_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    model_temperature: float = 0.7

    # Storage ("mongodb" or "memory")
    storage_backend: str = "mongodb"
    mongodb_uri: str = "mongodb://mongodb:27017"
    mongodb_database: str = "shopping_assistant"

    # Storefront catalog (MCP endpoint)
    storefront_mcp_endpoint: str = ""
    shopify_storefront_password: str = ""
    catalog_timeout_seconds: float = 15.0

    # Session cookie
    session_cookie_name: str = "ecommerce_chat_session"
    session_secret: str = "change-me"
    session_max_age_days: int = 365

    # Images
    image_ttl_hours: int = 24

    # CORS
    frontend_url: str = "http://localhost:4321"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


settings = Settings()


def get_settings() -> Settings:
    """FastAPI dependency for injecting settings."""
    return settings
