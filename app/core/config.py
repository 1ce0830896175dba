from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Database
    DATABASE_USER: str = "shop"
    DATABASE_PASSWORD: str = "shop"
    DATABASE_HOST: str = "localhost"
    DATABASE_PORT: int = 5432
    DATABASE_NAME: str = "shop"

    # Tokens are issued by the shop auth service, this service only verifies them
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379

    # Shared secret the checkout service sends in X-Webhook-Secret
    CHECKOUT_WEBHOOK_SECRET: str = ""

    # How long the business config snapshot lives in Redis
    CONFIG_CACHE_TTL_SECONDS: int = 60

    # Settlement sweep schedule
    SCHEDULER_TIMEZONE: str = "Asia/Shanghai"
    SETTLEMENT_CRON_HOUR: int = 2
    SETTLEMENT_CRON_MINUTE: int = 0

    DEFAULT_COMMISSION_RATE: float = 0.1

    FRONTEND_URL: str = "http://localhost:3000"

    @property
    def REDIS_URL(self) -> str:
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}"

    @property
    def DATABASE_URL(self) -> str:
        return f"postgresql+psycopg2://{self.DATABASE_USER}:{self.DATABASE_PASSWORD}@{self.DATABASE_HOST}:{self.DATABASE_PORT}/{self.DATABASE_NAME}"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
