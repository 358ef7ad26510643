# shopauth/core/config.py
from pydantic_settings import BaseSettings
from functools import lru_cache

class Settings(BaseSettings):
    # --- App Config ---
    APP_NAME: str = "ShopAuth"
    APP_ENV: str = "development"
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 8080
    DEBUG: bool = False

    # public https base url of this service, used for oauth/webhook callbacks
    HOST: str = "https://localhost:8080"
    FRONTEND_URL: str = "http://localhost:3000"
    CORS_ORIGIN: str = "http://localhost:8080"

    # --- Database ---
    DATABASE_URL: str | None = None
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "shopauth"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432

    # --- JWT / Auth ---
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 30

    # --- OAuth / Shopify ---
    SHOPIFY_API_KEY: str
    SHOPIFY_API_SECRET: str
    SHOPIFY_API_SCOPES: str = "read_products,write_products"
    SHOPIFY_API_VERSION: str = "2025-07"
    SHOPIFY_WEBHOOK_TOPICS: str = "app/uninstalled"
    SHOPIFY_HTTP_TIMEOUT: float = 10.0

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    class Config:
        env_file = ".env"

    @property
    def database_url(self) -> str:
        return self.DATABASE_URL or (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:"
            f"{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:"
            f"{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def shopify_scopes(self) -> list[str]:
        return [s.strip() for s in self.SHOPIFY_API_SCOPES.split(",") if s.strip()]

    @property
    def shopify_webhook_topics(self) -> list[str]:
        return [t.strip() for t in self.SHOPIFY_WEBHOOK_TOPICS.split(",") if t.strip()]

    @property
    def is_development(self) -> bool:
        return self.APP_ENV == "development"

@lru_cache()
def get_settings():
    return Settings()
