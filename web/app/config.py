from payroll.config import settings as payroll_settings
from pydantic import BaseModel


class WebConfig(BaseModel):
    jwt_secret: str
    jwt_ttl_minutes: int
    admin_ids: list[int]


def get_config() -> WebConfig:
    return WebConfig(
        jwt_secret=payroll_settings.WEB_JWT_SECRET,
        jwt_ttl_minutes=payroll_settings.JWT_TTL_MINUTES,
        admin_ids=list(payroll_settings.admin_ids),
    )
