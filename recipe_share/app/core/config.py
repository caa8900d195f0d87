import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = Field("sqlite:///./recipe_share.db", alias="DATABASE_URL")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    media_root: Path = Field(Path("media"), alias="MEDIA_ROOT")
    site_url: str = Field("http://localhost:3000", alias="SITE_URL")

    # Hosted identity provider (GoTrue-compatible REST API)
    identity_base_url: str | None = Field(None, alias="IDENTITY_BASE_URL")
    identity_anon_key: str | None = Field(None, alias="IDENTITY_ANON_KEY")
    auth_jwt_secret: str = Field("change-me", alias="AUTH_JWT_SECRET")
    auth_jwt_algorithm: str = Field("HS256", alias="AUTH_JWT_ALGORITHM")
    auth_jwt_audience: str | None = Field("authenticated", alias="AUTH_JWT_AUDIENCE")
    auth_cookie_secure: bool = Field(True, alias="AUTH_COOKIE_SECURE")
    auth_cookie_max_age_seconds: int = Field(60 * 60 * 24 * 7, alias="AUTH_COOKIE_MAX_AGE_SECONDS")
    # Demo identity: every unauthenticated request becomes this user. Never enable in production.
    auth_demo_mode: bool = Field(False, alias="AUTH_DEMO_MODE")
    auth_demo_user_id: str = Field("8df050ee-e733-479f-83c8-b6a2efa0d95f", alias="AUTH_DEMO_USER_ID")
    auth_demo_user_email: str = Field("default@example.com", alias="AUTH_DEMO_USER_EMAIL")

    # OpenAI-compatible completion / image / transcription API
    llm_base_url: str = Field("https://api.openai.com", alias="LLM_BASE_URL")
    llm_api_key: str | None = Field(None, alias="LLM_API_KEY")
    llm_chat_model: str = Field("gpt-4o", alias="LLM_CHAT_MODEL")
    llm_chat_temperature: float = Field(0.1, alias="LLM_CHAT_TEMPERATURE")
    llm_image_model: str = Field("dall-e-3", alias="LLM_IMAGE_MODEL")
    llm_transcribe_model: str = Field("whisper-1", alias="LLM_TRANSCRIBE_MODEL")
    llm_timeout_seconds: int = Field(120, alias="LLM_TIMEOUT_SECONDS")
    transcribe_stream_word_delay_ms: int = Field(100, alias="TRANSCRIBE_STREAM_WORD_DELAY_MS")

    # S3-compatible object storage (AWS S3, Cloudflare R2, MinIO)
    s3_endpoint_url: str | None = Field(None, alias="S3_ENDPOINT_URL")
    s3_region: str | None = Field("auto", alias="S3_REGION")
    s3_bucket_name: str | None = Field(None, alias="S3_BUCKET_NAME")
    s3_public_base_url: str | None = Field(None, alias="S3_PUBLIC_BASE_URL")
    s3_force_path_style: bool = Field(False, alias="S3_FORCE_PATH_STYLE")
    s3_image_prefix: str = Field("recipe-images", alias="S3_IMAGE_PREFIX")
    aws_access_key_id: str | None = Field(None, alias="AWS_ACCESS_KEY_ID")
    aws_secret_access_key: str | None = Field(None, alias="AWS_SECRET_ACCESS_KEY")

    default_page_size: int = Field(24, alias="DEFAULT_PAGE_SIZE")

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


logger = logging.getLogger(__name__)


@lru_cache
def get_settings() -> Settings:
    try:
        settings = Settings()
    except PermissionError:
        logger.warning("Unable to read .env; continuing with environment variables only")
        settings = Settings(_env_file=None)
    settings.media_root.mkdir(parents=True, exist_ok=True)
    return settings
