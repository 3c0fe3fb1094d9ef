"""
Application configuration
Loads environment variables (and .env) into a single Settings object
"""
from functools import lru_cache
from typing import List, Optional
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"
    FRONTEND_URL: str = "https://localhost:8081"
    CORS_ORIGINS: str = "http://localhost:8081,http://localhost:19006,http://127.0.0.1:8081"

    # Database
    DATABASE_URL: Optional[str] = None
    DB_HOST: str = "localhost"
    DB_PORT: str = "5432"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_NAME: str = "giftwise_db"
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 300

    # Startup tasks
    RUN_MIGRATIONS_ON_STARTUP: bool = True
    IMPORT_TRANSLATIONS_ON_STARTUP: bool = True
    SYNC_PARTICIPANTS_ON_STARTUP: bool = True

    # JWT
    JWT_SECRET: str = "change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Firebase (ID token verification only)
    FIREBASE_PROJECT_ID: str = ""

    # Mistral
    MISTRAL_API_KEY: str = ""
    MISTRAL_API_URL: str = "https://api.mistral.ai/"
    MISTRAL_AGENT_ID: str = ""
    MISTRAL_GIFT_AGENT_ID: str = ""
    MISTRAL_SIMILARITY_MODEL: str = "mistral-large-latest"

    # Gift text generation backend: "mistral" or "gemini"
    GIFT_LLM_PROVIDER: str = "mistral"
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.0-flash"

    # Amadeus flight search
    AMADEUS_BASE_URL: str = "https://test.api.amadeus.com"
    AMADEUS_CLIENT_ID: str = ""
    AMADEUS_CLIENT_SECRET: str = ""

    # Amazon Product Advertising API
    AMAZON_API_ENABLED: bool = False
    AMAZON_ACCESS_KEY: str = ""
    AMAZON_SECRET_KEY: str = ""
    AMAZON_PARTNER_TAG_US: str = ""
    AMAZON_PARTNER_TAG_FR: str = ""

    # Localization
    TRANSLATIONS_DIR: str = "localization/translations"

    class Config:
        env_file = ".env"
        extra = "allow"

    @property
    def is_production(self) -> bool:
        return self.APP_ENV.lower() == "production"

    @property
    def database_url(self) -> str:
        """DATABASE_URL if set, otherwise built from the DB_* parts"""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        url = f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        if self.is_production:
            url += "?sslmode=require"
        return url

    @property
    def cors_origins(self) -> List[str]:
        origins = [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]
        if self.FRONTEND_URL and self.FRONTEND_URL not in origins:
            origins.append(self.FRONTEND_URL)
        return origins

    @property
    def gift_agent_id(self) -> str:
        return self.MISTRAL_GIFT_AGENT_ID or self.MISTRAL_AGENT_ID


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
