from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./lms.db"
    REDIS_URL: str = "redis://localhost:6379/0"
    STORAGE_BACKEND: str = "sql"  # sql | redis | memory
    SECRET_KEY: str = "dev-secret-lms"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_MINUTES: int = 60 * 24
    LOG_LEVEL: str = "INFO"
    RATE_LIMIT_PER_MINUTE: int = 60
    LOGIN_RATE_LIMIT: str = "10/minute"

    NOTIFICATION_SCAN_ENABLED: bool = True
    NOTIFICATION_SCAN_SECONDS: int = 300

    SEED_ADMIN_EMAIL: str = "admin@example.com"
    SEED_ADMIN_PASSWORD: str = "change-me-admin"
    SEED_ADMIN_FIRST_NAME: str = "Admin"
    SEED_ADMIN_LAST_NAME: str = "User"

    CERTIFICATE_ORGANIZATION: str = "Learning Platform"
    PUBLIC_BASE_URL: str = "http://localhost:5173"
    INVITATION_TTL_DAYS: int = 7
    PASSWORD_RESET_TTL_MINUTES: int = 60
    # no mailer: return reset tokens in the API response (development only)
    EXPOSE_RESET_TOKENS: bool = False
    MIN_PASSWORD_LENGTH: int = 8

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
