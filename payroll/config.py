from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List, Any, Iterable
import json


class Settings(BaseSettings):
    # CRM user IDs allowed to act as admins. Alias allows env var ADMIN_IDS.
    admin_ids: List[int] = Field(default_factory=list, alias="ADMIN_IDS")

    POSTGRES_HOST: str = "db"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "payroll"
    POSTGRES_USER: str = "payroll"
    POSTGRES_PASSWORD: str = "payroll"

    DATABASE_URL: str = "postgresql+asyncpg://payroll:payroll@db:5432/payroll"

    WEB_JWT_SECRET: str = "change_me"
    JWT_TTL_MINUTES: int = 60

    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "/var/log/app/payroll"
    LOG_BACKUP_DAYS: int = 31

    # Business calendar: "today" for month closure is taken in this zone
    TIMEZONE: str = "Europe/Moscow"
    CARRYOVER_MAX_ITERATIONS: int = 12
    # "ru" -> "Перенос с января 2025", "en" -> "Carried over from January 2025"
    CARRYOVER_COMMENT_LOCALE: str = "ru"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    @field_validator("admin_ids", mode="before")
    @classmethod
    def parse_admin_ids(cls, v: Any) -> List[int]:
        if v is None:
            return []
        if isinstance(v, (list, tuple, set)):
            return [int(x) for x in v]
        if isinstance(v, int):
            return [int(v)]
        if isinstance(v, str):
            s = v.strip()
            if not s:
                return []
            # JSON array first, then CSV, then a single number
            if s.startswith("[") and s.endswith("]"):
                data = json.loads(s)
                if isinstance(data, Iterable):
                    return [int(x) for x in data]
            if "," in s:
                parts = [p.strip() for p in s.split(",") if p.strip()]
                return [int(p) for p in parts]
            return [int(s)]
        return [int(v)]

    @field_validator("CARRYOVER_COMMENT_LOCALE")
    @classmethod
    def check_locale(cls, v: str) -> str:
        v = (v or "").strip().lower()
        if v not in {"ru", "en"}:
            raise ValueError("CARRYOVER_COMMENT_LOCALE must be 'ru' or 'en'")
        return v


settings = Settings()
