from typing import Optional
from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import PostgresDsn, RedisDsn


class PostgresSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )
    host: str = Field(default="localhost", alias="POSTGRES_HOST")
    port: int = Field(default=5432, alias="POSTGRES_DB_PORT")
    db_name: str = Field(default="flashcards", alias="POSTGRES_DB_NAME")
    user: str = Field(default="postgres", alias="POSTGRES_DB_USER")
    password: str = Field(default="postgres", alias="POSTGRES_DB_PASSWORD")
    # Full SQLAlchemy URL; wins over the POSTGRES_* parts when set
    database_url: Optional[str] = Field(default=None, alias="DATABASE_URL")

    @computed_field
    def connection_string(self) -> str:
        if self.database_url:
            return self.database_url
        return str(
            PostgresDsn(
                f"postgresql+asyncpg://{self.user}:{self.password}@{self.host}:{self.port}/{self.db_name}"
            )
        )


class RedisSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )
    host: str = Field(default="localhost", alias="REDIS_HOST")
    port: int = Field(default=6379, alias="REDIS_PORT")
    password: Optional[str] = Field(default=None, alias="REDIS_PASSWORD")
    db: int = Field(default=0, alias="REDIS_DB")

    @computed_field
    def dsn(self) -> RedisDsn:
        if self.password:
            return RedisDsn(
                f"redis://:{self.password}@{self.host}:{self.port}/{self.db}"
            )
        else:
            return RedisDsn(f"redis://{self.host}:{self.port}/{self.db}")


class JWTSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )
    issuer: str = Field(default="https://auth.example.com", alias="JWT_ISSUER")
    application_id: str = Field(default="flashcards-ai", alias="JWT_APPLICATION_ID")
    token_lifetime_seconds: int = Field(
        default=3600, alias="JWT_TOKEN_LIFETIME_SECONDS"
    )
    key_path: str = Field(default="jwt_rsa_key.pem", alias="JWT_KEY_PATH")


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )
    name: str = Field(default="flashcards-ai", alias="APP_NAME")
    version: str = Field(default="v1", alias="API_VERSION")
    port: int = Field(default=9000, alias="APP_PORT")
    mode: str = Field(default="prod", alias="MODE")
    jwt_secret: str = Field(alias="JWT_SECRET")
    auto_create_tables: bool = Field(default=False, alias="AUTO_CREATE_TABLES")
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"], alias="CORS_ORIGINS"
    )

    @computed_field
    def is_production(self) -> bool:
        return self.mode not in ("dev", "test")

    @computed_field
    def is_testing(self) -> bool:
        return self.mode == "test"


class OpenRouterSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )
    api_key: Optional[str] = Field(default=None, alias="OPENROUTER_API_KEY")
    base_url: str = Field(
        default="https://openrouter.ai/api/v1", alias="OPENROUTER_BASE_URL"
    )
    model: str = Field(default="openai/gpt-3.5-turbo", alias="OPENROUTER_MODEL")
    temperature: float = Field(default=0.7, alias="OPENROUTER_TEMPERATURE")
    max_tokens: int = Field(default=1000, alias="OPENROUTER_MAX_TOKENS")
    timeout: float = Field(default=30.0, alias="OPENROUTER_TIMEOUT")
    http_referer: Optional[str] = Field(default=None, alias="OPENROUTER_HTTP_REFERER")
    app_title: Optional[str] = Field(default=None, alias="OPENROUTER_APP_TITLE")


class GenerationSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )
    min_source_length: int = Field(default=1000, alias="GENERATION_MIN_SOURCE_LENGTH")
    max_source_length: int = Field(
        default=10000, alias="GENERATION_MAX_SOURCE_LENGTH"
    )
    min_flashcards: int = Field(default=5, alias="GENERATION_MIN_FLASHCARDS")
    max_flashcards: int = Field(default=15, alias="GENERATION_MAX_FLASHCARDS")
    mock_mode: bool = Field(default=False, alias="GENERATION_MOCK_MODE")


class RateLimitSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )
    # "memory" for a single instance, "redis" when running several
    backend: str = Field(default="memory", alias="RATE_LIMIT_BACKEND")
    requests: int = Field(default=5, alias="RATE_LIMIT_REQUESTS")
    window_seconds: int = Field(default=60, alias="RATE_LIMIT_WINDOW_SECONDS")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    app: AppSettings = Field(default_factory=lambda: AppSettings())
    postgres: PostgresSettings = Field(default_factory=lambda: PostgresSettings())
    redis: RedisSettings = Field(default_factory=lambda: RedisSettings())
    jwt: JWTSettings = Field(default_factory=lambda: JWTSettings())
    openrouter: OpenRouterSettings = Field(
        default_factory=lambda: OpenRouterSettings()
    )
    generation: GenerationSettings = Field(
        default_factory=lambda: GenerationSettings()
    )
    rate_limit: RateLimitSettings = Field(default_factory=lambda: RateLimitSettings())

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")


settings = Settings()
