"""Application configuration using Pydantic BaseSettings"""
import logging
from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Setup logging
logger = logging.getLogger("config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Database
    DATABASE_URL: str = "sqlite:///./shortform.db"

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"

    # Domain & URLs
    PORT: int = 3001
    FRONTEND_URL: str = "http://localhost:3000"
    BACKEND_URL: str = "http://localhost:3001"
    ENVIRONMENT: str = "development"

    # Logging
    LOG_LEVEL: str = "INFO"

    # Security
    ENCRYPTION_KEY: str = ""

    # Generated media (served under /renders and /images)
    PUBLIC_DIR: Path = Path("public").resolve()

    # Rate limiting (fixed window per client)
    RATE_LIMIT_WINDOW_SECONDS: int = 900
    RATE_LIMIT_MAX_REQUESTS: int = 100
    TTS_MAX_REQUESTS: int = 20
    IMAGE_MAX_REQUESTS: int = 50

    # Text-to-video / avatar providers
    BYTEZ_API_KEY: str = ""
    FAL_API_KEY: str = ""
    REPLICATE_API_KEY: str = ""
    HEYGEN_API_KEY: str = ""
    SKYREELS_API_KEY: str = ""

    # Script providers
    SCRIPT_PROVIDER: str = "groq"
    GROQ_API_KEY: str = ""
    OPENROUTER_API_KEY: str = ""
    TOGETHER_API_KEY: str = ""

    # Image providers
    IMAGE_PROVIDER: str = "pollinations"
    PEXELS_API_KEY: str = ""
    HUGGINGFACE_API_KEY: str = ""
    POLLINATIONS_API_KEY: str = ""
    LEONARDO_API_KEY: str = ""
    DEEPAI_API_KEY: str = ""

    # Text-to-speech
    TTS_PROVIDER: str = "edge-tts"
    MURF_API_KEY: str = ""

    # Google OAuth (YouTube)
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""
    GOOGLE_PROJECT_ID: str = ""

    # Instagram / Facebook Graph
    INSTAGRAM_APP_ID: str = ""
    INSTAGRAM_APP_SECRET: str = ""
    INSTAGRAM_GRAPH_API_BASE: str = "https://graph.facebook.com"
    INSTAGRAM_GRAPH_API_VERSION: str = "v21.0"

    # Background tasks
    ENABLE_SCHEDULERS: bool = True
    POLL_INTERVAL_SECONDS: int = 30
    POLL_MAX_ATTEMPTS: int = 120
    AUTO_POST_INTERVAL_SECONDS: int = 60
    TOKEN_REFRESH_BUFFER_SECONDS: int = 300

    # Outbound HTTP
    PROVIDER_HTTP_TIMEOUT: float = 120.0

    # OpenTelemetry (disabled when no endpoint is set)
    OTEL_EXPORTER_OTLP_ENDPOINT: str = ""
    OTEL_SERVICE_NAME: str = "shortform-studio-backend"
    OTEL_ENVIRONMENT: str = "development"

    # Pydantic V2 Config
    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    @field_validator("ENCRYPTION_KEY")
    @classmethod
    def check_encryption_key(cls, v):
        if not v or v.strip() == "":
            # Connected account tokens cannot be stored or read without this
            logger.error("❌ ERROR: ENCRYPTION_KEY is missing! OAuth token encryption will fail.")
            return v
        return v


# Create global settings instance
settings = Settings()


def is_key_configured(value: Optional[str], name: str) -> bool:
    """True when an API key is set and is not the sample placeholder"""
    if not value or not value.strip():
        return False
    return value.strip() != f"your_{name}_api_key_here"


# --- Module-level Constants (Extracted from settings) ---
INSTAGRAM_GRAPH_URL = f"{settings.INSTAGRAM_GRAPH_API_BASE}/{settings.INSTAGRAM_GRAPH_API_VERSION}"

RENDERS_DIR = settings.PUBLIC_DIR / "renders"
IMAGES_DIR = settings.PUBLIC_DIR / "images"

# Derived constants
YOUTUBE_SCOPES = [
    "https://www.googleapis.com/auth/youtube.upload",
    "https://www.googleapis.com/auth/youtube.readonly",
]
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
YOUTUBE_CHANNELS_URL = "https://www.googleapis.com/youtube/v3/channels?part=snippet&mine=true"
YOUTUBE_REDIRECT_URI = f"{settings.BACKEND_URL}/api/auth/callback/youtube"

INSTAGRAM_AUTH_URL = f"https://www.facebook.com/{settings.INSTAGRAM_GRAPH_API_VERSION}/dialog/oauth"
INSTAGRAM_TOKEN_URL = f"{INSTAGRAM_GRAPH_URL}/oauth/access_token"
INSTAGRAM_REDIRECT_URI = f"{settings.BACKEND_URL}/api/auth/callback/instagram"
INSTAGRAM_SCOPES = [
    "instagram_basic",
    "instagram_content_publish",
    "pages_read_engagement",
    "pages_show_list"
]

SUPPORTED_PLATFORMS = ["youtube", "instagram"]
