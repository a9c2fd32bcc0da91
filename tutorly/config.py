from functools import lru_cache
import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field


class Settings(BaseModel):
    env: str = Field(default="dev", alias="ENV")
    timezone: str = Field(default="Europe/Rome", alias="TIMEZONE")

    database_url: str | None = Field(default=None, alias="DATABASE_URL")
    postgres_db: str = Field(default="tutorly", alias="POSTGRES_DB")
    postgres_user: str = Field(default="tutorly", alias="POSTGRES_USER")
    postgres_password: str = Field(default="tutorly", alias="POSTGRES_PASSWORD")
    postgres_host: str = Field(default="localhost", alias="POSTGRES_HOST")
    postgres_port: int = Field(default=5432, alias="POSTGRES_PORT")

    jwt_secret: str = Field(default="secret", alias="JWT_SECRET")
    jwt_expire_min: int = Field(default=43200, alias="JWT_EXPIRE_MIN")

    default_admin_username: str = Field(default="admin", alias="DEFAULT_ADMIN_USERNAME")
    default_admin_password: str = Field(default="admin123", alias="DEFAULT_ADMIN_PASSWORD")

    booking_lock_timeout_sec: float = Field(default=2.0, alias="BOOKING_LOCK_TIMEOUT_SEC")
    booking_retry_attempts: int = Field(default=3, alias="BOOKING_RETRY_ATTEMPTS")
    booking_retry_backoff_sec: float = Field(default=0.05, alias="BOOKING_RETRY_BACKOFF_SEC")
    booking_min_minutes: int | None = Field(default=None, alias="BOOKING_MIN_MINUTES")
    booking_max_minutes: int | None = Field(default=None, alias="BOOKING_MAX_MINUTES")

    class Config:
        populate_by_name = True

    @property
    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+psycopg2://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    load_dotenv(override=False)
    return Settings(**os.environ)
