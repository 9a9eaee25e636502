# card_studio/config/settings.py
from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    # API
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Card Studio"

    # CORS
    ALLOWED_HOSTS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "https://coustomized-birthday-card.vercel.app",
    ]

    # Env
    ENVIRONMENT: str = "development"

    # Where the credential relay (/auth) is reachable from the upload client
    API_BASE_URL: Optional[str] = "http://localhost:8000"

    # ImageKit
    IMAGEKIT_PUBLIC_KEY: Optional[str] = None
    IMAGEKIT_PRIVATE_KEY: Optional[str] = None
    IMAGEKIT_URL_ENDPOINT: Optional[str] = None
    IMAGEKIT_UPLOAD_URL: str = "https://upload.imagekit.io/api/v1/files/upload"
    UPLOAD_FOLDER: str = "/birthday-cards"
    AUTH_TOKEN_TTL_SECONDS: int = 60 * 30
    REQUEST_TIMEOUT: int = 30

    # Composition limits
    MIN_PHOTO_SLOTS: int = 2
    MAX_STICKERS: int = 3

    # Sessions untouched for this long are discarded
    SESSION_TTL_SECONDS: int = 60 * 60 * 6

    # Export
    EXPORT_WORKERS: int = 2
    DEFAULT_EXPORT_NAME: str = "birthday-card"

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
