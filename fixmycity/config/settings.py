from fastapi import Request
from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    PROJECT_NAME: str = "FixMyCity API"
    ENVIRONMENT: str = "development" # "production" turns on secure cookies
    DATABASE_URL: str = "sqlite:///./fixmycity.db"

    # Access and refresh tokens must never share a secret
    JWT_SECRET: str = "fallback-secret" # Change in production
    JWT_REFRESH_SECRET: str = "fallback-refresh-secret" # Change in production
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    REFRESH_COOKIE_NAME: str = "refresh_token"
    COOKIE_DOMAIN: Optional[str] = None
    BCRYPT_ROUNDS: int = 12

    CORS_ORIGINS: List[str] = ["*"]

    IMAGEKIT_PUBLIC_KEY: Optional[str] = None
    IMAGEKIT_PRIVATE_KEY: Optional[str] = None
    IMAGEKIT_URL_ENDPOINT: Optional[str] = None
    IMAGEKIT_UPLOAD_URL: str = "https://upload.imagekit.io/api/v1/files/upload"
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    REMARK_DATE_FORMAT: str = "%m/%d/%Y"
    ENFORCE_STATUS_TRANSITIONS: bool = False

    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = None

    DEFAULT_SUPERADMIN_NAME: str = "Super Admin"
    DEFAULT_SUPERADMIN_EMAIL: str = "superadmin@fixmycity.org"
    DEFAULT_SUPERADMIN_PASSWORD: str = "admin123" # Change in production

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def imagekit_configured(self) -> bool:
        return bool(self.IMAGEKIT_PUBLIC_KEY and self.IMAGEKIT_PRIVATE_KEY and self.IMAGEKIT_URL_ENDPOINT)

settings = Settings()

def get_settings(request: Request) -> Settings:
    return request.app.state.settings
