from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "BlueCollar"
    DEBUG: bool = True
    DATABASE_URL: str
    REDIS_URL: str = "redis://localhost:6379/0"
    SECRET_KEY: str = "replace-me"
    ALEMBIC_LOCATION: str = "alembic"
    # JWT / auth settings
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 30
    # Rate limiting for login attempts (max attempts per window)
    LOGIN_RATE_LIMIT_ATTEMPTS: int = 5
    LOGIN_RATE_LIMIT_WINDOW_SECONDS: int = 60
    # Platform cut of every paid booking
    COMMISSION_RATE: float = 0.10
    PAYMENT_CURRENCY: str = "INR"
    PAYMENT_MIN_AMOUNT: float = 1
    PAYMENT_MAX_AMOUNT: float = 100000
    # Gateway credentials (configure in .env)
    # Local development only: fake gateway orders when credentials are missing
    PAYMENT_SIMULATION: bool = False
    RAZORPAY_KEY_ID: str = ""
    RAZORPAY_KEY_SECRET: str = ""
    RAZORPAY_WEBHOOK_SECRET: str = ""
    CASHFREE_APP_ID: str = ""
    CASHFREE_SECRET_KEY: str = ""
    CASHFREE_ENVIRONMENT: str = "TEST"
    CASHFREE_API_VERSION: str = "2022-09-01"
    FRONTEND_URL: str = "http://localhost:3000"
    PAYMENT_CALLBACK_HOST: str = "http://localhost:8000"
    NEARBY_DEFAULT_RADIUS_KM: float = 50
    EMAIL_NOTIFICATIONS_ENABLED: bool = False
    SENTRY_DSN: str = ""
    LOG_LEVEL: str = "INFO"
    # comma separated; defaults to FRONTEND_URL
    CORS_ORIGINS: str = ""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


settings = Settings()
